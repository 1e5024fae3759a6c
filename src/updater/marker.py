# -*- coding: utf-8 -*-
"""
Маркер перезапуска после обновления.

Старый процесс пишет {"written_at_ms": ..., "tracked_revision": ...} прямо
перед перезапуском, новый процесс при старте читает и удаляет файл. Свежий
маркер (моложе окна свежести) означает "я — процесс после обновления";
устаревший или битый просто удаляется, это обычный холодный старт.

tracked_revision — последняя полностью применённая ревизия предшественника.
Замена стартует с неё, а не с текущей головы ветки: недописанные файлы и
коммиты, пришедшие во время перезапуска, подхватит первый же тик.
"""

from __future__ import annotations

import enum
import json
import os
import time
from pathlib import Path
from typing import Optional

import structlog

logger = structlog.get_logger(__name__)

MARKER_FILENAME = ".update_pending.json"


class MarkerState(str, enum.Enum):
    FRESH = "fresh"
    STALE = "stale"
    ABSENT = "absent"


def _now_ms() -> int:
    return int(time.time() * 1000)


class UpdateMarker:
    def __init__(self, path: os.PathLike | str, freshness_seconds: float = 10.0):
        self.path = Path(path)
        self.freshness_seconds = freshness_seconds
        # Заполняется consume() только для свежего маркера
        self.revision: Optional[str] = None

    def write(self, now_ms: Optional[int] = None, revision: Optional[str] = None) -> Path:
        written_at = _now_ms() if now_ms is None else int(now_ms)
        payload: dict = {"written_at_ms": written_at}
        if revision:
            payload["tracked_revision"] = revision
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(json.dumps(payload), encoding="utf-8")
        os.replace(tmp, self.path)
        logger.info(
            "update_marker_written",
            path=str(self.path),
            written_at_ms=written_at,
            revision=revision,
        )
        return self.path

    def _read_payload(self) -> tuple[Optional[int], Optional[str]]:
        raw = self.path.read_text(encoding="utf-8").strip()
        if raw.isdigit():
            # Старый формат: голое число миллисекунд
            return int(raw), None
        try:
            data = json.loads(raw)
        except ValueError:
            return None, None
        if not isinstance(data, dict):
            return None, None
        written_at = data.get("written_at_ms")
        revision = data.get("tracked_revision")
        return (
            written_at if isinstance(written_at, int) else None,
            revision if isinstance(revision, str) and revision else None,
        )

    def consume(self, now_ms: Optional[int] = None) -> MarkerState:
        """Читает и удаляет маркер; возвращает FRESH / STALE / ABSENT."""
        self.revision = None
        if not self.path.exists():
            return MarkerState.ABSENT

        revision = None
        try:
            written_at, revision = self._read_payload()
        except OSError as e:
            logger.warning("update_marker_unreadable", path=str(self.path), error=str(e))
            written_at = None
        finally:
            try:
                self.path.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning("update_marker_remove_failed", path=str(self.path), error=str(e))

        if written_at is None:
            return MarkerState.STALE

        now = _now_ms() if now_ms is None else int(now_ms)
        age_ms = now - written_at
        if 0 <= age_ms < self.freshness_seconds * 1000:
            self.revision = revision
            return MarkerState.FRESH
        logger.debug("update_marker_stale", age_ms=age_ms)
        return MarkerState.STALE
