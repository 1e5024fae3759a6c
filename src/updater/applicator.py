# -*- coding: utf-8 -*-
"""
Применение набора изменений к рабочему дереву.

Запись атомарная насколько позволяет ФС: содержимое пишется во временный
файл рядом с целью, fsync, затем os.replace. Убитый посреди записи процесс
оставит либо старый файл, либо новый, но не половину.

Ошибка одного файла не прерывает цикл: файлы в основном независимы,
поэтому логируем и идём дальше (failed в результате).
"""

from __future__ import annotations

import asyncio
import inspect
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Sequence, Union

import structlog

from src.core.exceptions import ApplyError
from src.updater.diff_engine import ChangeEntry, ChangeKind
from src.updater.rules import PathRules

logger = structlog.get_logger(__name__)

UpdateCallback = Callable[[list, str], Union[Awaitable[Any], Any]]
Invalidator = Callable[[Path], Any]


@dataclass
class ApplyResult:
    applied_count: int = 0
    restart_required: bool = False
    applied: list[ChangeEntry] = field(default_factory=list)
    failed: list[tuple[ChangeEntry, str]] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed


def atomic_copy(source: Path, target: Path) -> None:
    """Копирует source → target через временный соседний файл и os.replace."""
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
    try:
        with os.fdopen(fd, "wb") as out, open(source, "rb") as src:
            shutil.copyfileobj(src, out)
            out.flush()
            os.fsync(out.fileno())
        shutil.copymode(source, tmp_name)
        os.replace(tmp_name, target)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise


def prune_empty_dirs(start: Path, stop: Path) -> None:
    """Удаляет пустые директории от start вверх до stop (stop не трогаем)."""
    current = start
    stop = stop.resolve()
    while True:
        try:
            current_resolved = current.resolve()
        except OSError:
            return
        if current_resolved == stop or stop not in current_resolved.parents:
            return
        try:
            current.rmdir()
        except OSError:
            return
        current = current.parent


class ChangeApplicator:
    def __init__(
        self,
        install_root: os.PathLike | str,
        core: PathRules,
        protected: Optional[PathRules] = None,
        *,
        invalidate: Optional[Invalidator] = None,
    ):
        self.install_root = Path(install_root).resolve()
        self.core = core
        self.protected = protected or PathRules()
        self.invalidate = invalidate

    def is_core(self, relative_path: str) -> bool:
        return self.core.matches(relative_path)

    def _apply_entry(self, snapshot_dir: Path, entry: ChangeEntry) -> None:
        if self.protected.matches(entry.relative_path):
            raise ApplyError("путь защищён от перезаписи", path=entry.relative_path, retryable=False)

        target = Path(entry.target_path)
        if self.install_root not in target.resolve().parents:
            raise ApplyError("цель вне install_root", path=entry.relative_path, retryable=False)

        try:
            if entry.kind is ChangeKind.DELETED:
                if target.exists():
                    target.unlink()
                prune_empty_dirs(target.parent, self.install_root)
            else:
                atomic_copy(snapshot_dir / entry.relative_path, target)
        except OSError as e:
            raise ApplyError(str(e), path=entry.relative_path) from e

    def _apply_entries(self, snapshot_dir: Path, changes: Sequence[ChangeEntry]) -> ApplyResult:
        result = ApplyResult()
        for entry in changes:
            try:
                self._apply_entry(snapshot_dir, entry)
            except ApplyError as e:
                logger.warning(
                    "⚠️ change_apply_failed",
                    path=entry.relative_path,
                    kind=entry.kind.value,
                    error=str(e),
                )
                result.failed.append((entry, str(e)))
                continue

            result.applied.append(entry)
            if self.invalidate is not None:
                try:
                    self.invalidate(Path(entry.target_path))
                except Exception as e:
                    logger.warning("invalidate_failed", path=entry.relative_path, error=str(e))

            if self.is_core(entry.relative_path):
                logger.info("core_file_changed", path=entry.relative_path, kind=entry.kind.value)

        result.applied_count = len(result.applied)
        result.restart_required = any(self.is_core(e.relative_path) for e in result.applied)
        return result

    async def apply(
        self,
        snapshot_dir: os.PathLike | str,
        changes: Sequence[ChangeEntry],
        *,
        revision: str,
        on_complete: Optional[UpdateCallback] = None,
        notify_empty: bool = False,
    ) -> ApplyResult:
        """
        Пишет изменения в рабочее дерево (в отдельном потоке, чтобы не
        блокировать обработку сообщений) и один раз вызывает on_complete.
        """
        snapshot_root = Path(snapshot_dir).resolve()
        if changes:
            result = await asyncio.to_thread(self._apply_entries, snapshot_root, list(changes))
        else:
            result = ApplyResult()

        logger.info(
            "📦 changes_applied",
            revision=revision,
            applied=result.applied_count,
            failed=len(result.failed),
            restart_required=result.restart_required,
        )

        if on_complete is not None and (changes or notify_empty):
            try:
                outcome = on_complete(list(changes), revision)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                logger.exception("update_callback_failed", revision=revision)

        return result
