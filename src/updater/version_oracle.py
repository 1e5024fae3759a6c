# -*- coding: utf-8 -*-
"""
Запрос последней ревизии отслеживаемой ветки через GitHub API.

Никогда не бросает исключений наружу: сетевой сбой, таймаут, не-200 или
битый JSON превращаются в псевдо-ревизию "unknown-<epoch_ms>". Монитор
распознаёт её через is_fallback() и пропускает цикл, а не применяет.
"""
from __future__ import annotations

import time
from typing import TYPE_CHECKING, Optional

import httpx
import structlog

if TYPE_CHECKING:
    from httpx import AsyncClient

logger = structlog.get_logger(__name__)

FALLBACK_PREFIX = "unknown-"
DEFAULT_API_BASE = "https://api.github.com"


def fallback_revision() -> str:
    return f"{FALLBACK_PREFIX}{int(time.time() * 1000)}"


def is_fallback(revision: Optional[str]) -> bool:
    return not revision or revision.startswith(FALLBACK_PREFIX)


class RemoteVersionOracle:
    def __init__(
        self,
        repo: str,
        branch: str = "main",
        *,
        timeout: float = 8.0,
        token: Optional[str] = None,
        api_base: str = DEFAULT_API_BASE,
        client: Optional["AsyncClient"] = None,
    ):
        self.repo = repo.strip().strip("/")
        self.branch = branch
        self.timeout = timeout
        self.token = token
        self.api_base = api_base.rstrip("/")
        self._client = client

    @property
    def url(self) -> str:
        return f"{self.api_base}/repos/{self.repo}/commits/{self.branch}"

    def _headers(self) -> dict[str, str]:
        headers = {
            "User-Agent": "bothost-auto-updater",
            "Accept": "application/vnd.github+json",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    is_fallback = staticmethod(is_fallback)

    async def get_latest_revision(self) -> str:
        """SHA головы ветки или fallback-псевдоревизия."""
        try:
            if self._client is not None:
                resp = await self._client.get(self.url, headers=self._headers(), timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as ac:
                    resp = await ac.get(self.url, headers=self._headers())
        except (httpx.HTTPError, OSError) as e:
            logger.warning("revision_check_failed", repo=self.repo, branch=self.branch, error=str(e))
            return fallback_revision()

        if resp.status_code != 200:
            logger.warning(
                "revision_check_bad_status",
                repo=self.repo,
                branch=self.branch,
                status=resp.status_code,
            )
            return fallback_revision()

        try:
            data = resp.json()
        except ValueError:
            logger.warning("revision_check_malformed_body", repo=self.repo)
            return fallback_revision()

        sha = data.get("sha") if isinstance(data, dict) else None
        if not isinstance(sha, str) or not sha.strip():
            logger.warning("revision_check_missing_sha", repo=self.repo)
            return fallback_revision()
        return sha.strip()
