# -*- coding: utf-8 -*-
"""
Сравнение снапшота с локальным деревом.

Источник истины — SHA-256 содержимого: mtime после git clone всегда
новый, поэтому размер/время не используются для решения "изменился ли файл".
Локальная сторона берётся из FileIndex (если передан): хеш пересчитывается
только для файлов, чей stat изменился после индексации.
Защищённые пути отфильтровываются во всех направлениях, включая удаление.
"""

from __future__ import annotations

import difflib
import enum
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import structlog

from src.updater.file_walker import (
    UNREADABLE_HASH,
    FileIndex,
    hash_file,
    relative_posix,
    walk_files,
)
from src.updater.rules import PathRules

logger = structlog.get_logger(__name__)

# Для файлов крупнее построчный diff в логах не считаем
DIFF_SUMMARY_MAX_BYTES = 256 * 1024


class ChangeKind(str, enum.Enum):
    NEW = "NEW"
    UPDATED = "UPDATED"
    DELETED = "DELETED"


@dataclass(frozen=True)
class ChangeEntry:
    relative_path: str
    kind: ChangeKind
    target_path: Path
    size_delta: Optional[int] = None
    diff_summary: Optional[str] = None


def _size(path: Path) -> int:
    try:
        return path.stat().st_size
    except OSError:
        return 0


def _read_text(path: Path) -> Optional[list[str]]:
    if _size(path) > DIFF_SUMMARY_MAX_BYTES:
        return None
    try:
        return path.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError):
        return None


def summarize_diff(old: Optional[Path], new: Optional[Path]) -> Optional[str]:
    """'+N -M' по строкам для небольших текстовых файлов, иначе None."""
    old_lines = _read_text(old) if old is not None else []
    new_lines = _read_text(new) if new is not None else []
    if old_lines is None or new_lines is None:
        return None
    added = removed = 0
    for line in difflib.unified_diff(old_lines, new_lines, lineterm="", n=0):
        if line.startswith("+++") or line.startswith("---"):
            continue
        if line.startswith("+"):
            added += 1
        elif line.startswith("-"):
            removed += 1
    return f"+{added} -{removed}"


class DiffEngine:
    def __init__(
        self,
        install_root: os.PathLike | str,
        ignore: PathRules,
        protected: PathRules,
        *,
        delete_mode: bool = False,
        file_index: Optional[FileIndex] = None,
    ):
        self.install_root = Path(install_root).resolve()
        self.ignore = ignore
        self.protected = protected
        self.delete_mode = delete_mode
        self.file_index = file_index

    def _local_hash(self, rel: str, target: Path) -> str:
        if self.file_index is not None:
            return self.file_index.local_hash(rel)
        return hash_file(target)

    def compare(self, snapshot_dir: os.PathLike | str) -> list[ChangeEntry]:
        snapshot_root = Path(snapshot_dir).resolve()
        changes: list[ChangeEntry] = []
        seen: set[str] = set()

        for remote_file in walk_files(snapshot_root, self.ignore):
            rel = relative_posix(remote_file, snapshot_root)
            seen.add(rel)
            if self.protected.matches(rel):
                continue
            target = self.install_root / rel

            if not target.is_file():
                changes.append(ChangeEntry(
                    relative_path=rel,
                    kind=ChangeKind.NEW,
                    target_path=target,
                    size_delta=_size(remote_file),
                    diff_summary=summarize_diff(None, remote_file),
                ))
                continue

            remote_hash = hash_file(remote_file)
            local_hash = self._local_hash(rel, target)
            if remote_hash == local_hash and remote_hash != UNREADABLE_HASH:
                continue
            changes.append(ChangeEntry(
                relative_path=rel,
                kind=ChangeKind.UPDATED,
                target_path=target,
                size_delta=_size(remote_file) - _size(target),
                diff_summary=summarize_diff(target, remote_file),
            ))

        if self.delete_mode:
            for local_file in walk_files(self.install_root, self.ignore):
                rel = relative_posix(local_file, self.install_root)
                if rel in seen or self.protected.matches(rel):
                    continue
                changes.append(ChangeEntry(
                    relative_path=rel,
                    kind=ChangeKind.DELETED,
                    target_path=local_file,
                    size_delta=-_size(local_file),
                ))

        changes.sort(key=lambda c: c.relative_path)
        logger.info(
            "diff_computed",
            total=len(changes),
            new=sum(1 for c in changes if c.kind is ChangeKind.NEW),
            updated=sum(1 for c in changes if c.kind is ChangeKind.UPDATED),
            deleted=sum(1 for c in changes if c.kind is ChangeKind.DELETED),
        )
        return changes
