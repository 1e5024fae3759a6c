# -*- coding: utf-8 -*-
"""
Получение снапшота удалённой ветки во временную директорию.

Снапшот — это shallow single-branch клон в <root>/.update_snapshot_<ms>.
Префикс попадает под ignore-правила, поэтому хешер не видит собственный
скретч, а cleanup_stale() убирает хвосты после падения процесса.
В отличие от проверки ревизии, ошибка клонирования НЕ глотается:
цикл должен прерваться до любых записей.
"""

from __future__ import annotations

import asyncio
import os
import shutil
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import structlog

from src.core.exceptions import SnapshotFetchError

logger = structlog.get_logger(__name__)

SNAPSHOT_PREFIX = ".update_snapshot_"


class SnapshotFetcher:
    def __init__(
        self,
        repo_url: str,
        branch: str,
        install_root: os.PathLike | str,
        *,
        timeout: float = 60.0,
        git_binary: str = "git",
    ):
        self.repo_url = repo_url
        self.branch = branch
        self.install_root = Path(install_root).resolve()
        self.timeout = timeout
        self.git_binary = git_binary

    def _new_snapshot_dir(self) -> Path:
        stamp = int(time.time() * 1000)
        candidate = self.install_root / f"{SNAPSHOT_PREFIX}{stamp}"
        while candidate.exists():
            stamp += 1
            candidate = self.install_root / f"{SNAPSHOT_PREFIX}{stamp}"
        return candidate

    async def fetch_snapshot(self) -> Path:
        """Клонирует ветку и возвращает путь; вызывающий обязан удалить директорию."""
        target = self._new_snapshot_dir()
        cmd = [
            self.git_binary,
            "clone",
            "--depth", "1",
            "--single-branch",
            "--branch", self.branch,
            self.repo_url,
            str(target),
        ]
        env = dict(os.environ)
        env["GIT_TERMINAL_PROMPT"] = "0"

        logger.info("snapshot_fetch_started", branch=self.branch, target=target.name)
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except OSError as e:
            self.remove_snapshot(target)
            raise SnapshotFetchError(f"git не запускается: {e}") from e

        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            self.remove_snapshot(target)
            raise SnapshotFetchError(f"git clone превысил таймаут {self.timeout:.0f}с") from None

        if proc.returncode != 0:
            self.remove_snapshot(target)
            detail = (stderr or b"").decode("utf-8", errors="replace").strip()
            raise SnapshotFetchError(f"git clone завершился с кодом {proc.returncode}: {detail[-500:]}")

        if not target.is_dir():
            raise SnapshotFetchError("git clone не создал директорию снапшота")

        logger.info("snapshot_fetched", target=target.name)
        return target

    @asynccontextmanager
    async def snapshot(self) -> AsyncIterator[Path]:
        """Снапшот на время блока; удаляется на любом пути выхода, включая исключения."""
        path = await self.fetch_snapshot()
        try:
            yield path
        finally:
            self.remove_snapshot(path)

    def remove_snapshot(self, path: os.PathLike | str) -> None:
        target = Path(path)
        if not target.exists():
            return
        # Удаляем только собственный скретч внутри install_root
        if target.parent.resolve() != self.install_root or not target.name.startswith(SNAPSHOT_PREFIX):
            logger.error("snapshot_remove_refused", path=str(target))
            return
        shutil.rmtree(target, ignore_errors=True)
        if target.exists():
            logger.warning("snapshot_remove_incomplete", path=str(target))

    def cleanup_stale(self) -> int:
        """Удаляет снапшоты, оставшиеся после аварийного завершения."""
        removed = 0
        try:
            entries = list(self.install_root.iterdir())
        except OSError as e:
            logger.warning("snapshot_cleanup_failed", error=str(e))
            return 0
        for entry in entries:
            if entry.is_dir() and entry.name.startswith(SNAPSHOT_PREFIX):
                self.remove_snapshot(entry)
                removed += 1
        if removed:
            logger.info("stale_snapshots_removed", count=removed)
        return removed
