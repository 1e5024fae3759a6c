# -*- coding: utf-8 -*-
"""
Обход дерева файлов и хеширование содержимого.

Только чтение. Игнорируемые директории отсекаются целиком (без спуска),
нечитаемые файлы получают стабильный сентинел вместо исключения.
"""

from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator, Optional

import structlog

from src.updater.rules import PathRules, to_posix

logger = structlog.get_logger(__name__)

UNREADABLE_HASH = "unreadable"
_CHUNK = 1024 * 1024


def hash_file(path: os.PathLike | str) -> str:
    """SHA-256 (hex) всего содержимого файла; UNREADABLE_HASH при ошибке чтения."""
    hasher = hashlib.sha256()
    try:
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(_CHUNK), b""):
                hasher.update(chunk)
    except OSError:
        return UNREADABLE_HASH
    return hasher.hexdigest()


def relative_posix(path: Path, root: Path) -> str:
    return to_posix(os.path.relpath(path, root))


def walk_files(root: os.PathLike | str, ignore: Optional[PathRules] = None) -> Iterator[Path]:
    """
    Лениво отдаёт абсолютные пути файлов под root.

    Порядок внутри каждой директории лексикографический, поэтому обход
    детерминирован. Симлинки на директории не раскрываются.
    """
    root_path = Path(root).resolve()
    ignore = ignore or PathRules()
    stack = [root_path]
    while stack:
        current = stack.pop()
        try:
            with os.scandir(current) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            logger.warning("walk_dir_unreadable", path=str(current), error=str(e))
            continue

        subdirs = []
        for entry in entries:
            rel = relative_posix(Path(entry.path), root_path)
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError:
                continue
            if ignore.matches(rel, is_dir=is_dir):
                continue
            if is_dir:
                subdirs.append(Path(entry.path))
            elif entry.is_file():
                yield Path(entry.path)
        # reversed: стек выдаёт поддиректории в прямом порядке
        stack.extend(reversed(subdirs))


@dataclass(frozen=True)
class FileRecord:
    relative_path: str
    content_hash: str
    size: int
    modified_at: datetime
    mtime_ns: int = 0

    @classmethod
    def from_path(cls, path: Path, root: Path) -> "FileRecord":
        try:
            stat = path.stat()
            size, mtime, mtime_ns = stat.st_size, stat.st_mtime, stat.st_mtime_ns
        except OSError:
            size, mtime, mtime_ns = 0, 0.0, 0
        return cls(
            relative_path=relative_posix(path, root),
            content_hash=hash_file(path),
            size=size,
            modified_at=datetime.fromtimestamp(mtime, tz=timezone.utc),
            mtime_ns=mtime_ns,
        )


class FileIndex:
    """
    Индекс локального дерева: относительный путь → FileRecord.
    Строится при старте, точечно обновляется после каждого применения.
    Служит кэшем локальных хешей для DiffEngine: запись переиспользуется,
    пока размер и mtime файла не изменились.
    """

    def __init__(self, root: os.PathLike | str, ignore: Optional[PathRules] = None):
        self.root = Path(root).resolve()
        self.ignore = ignore or PathRules()
        self._records: dict[str, FileRecord] = {}
        self.hits = 0
        self.misses = 0

    def build(self) -> int:
        records = {}
        for path in walk_files(self.root, self.ignore):
            record = FileRecord.from_path(path, self.root)
            records[record.relative_path] = record
        self._records = records
        logger.info("file_index_built", root=str(self.root), files=len(records))
        return len(records)

    def refresh(self, relative_paths: Iterable[str]) -> None:
        for rel in relative_paths:
            path = self.root / rel
            if path.is_file():
                record = FileRecord.from_path(path, self.root)
                self._records[record.relative_path] = record
            else:
                self._records.pop(to_posix(rel), None)

    def discard(self, relative_paths: Iterable[str]) -> None:
        for rel in relative_paths:
            self._records.pop(to_posix(rel), None)

    def get(self, relative_path: str) -> Optional[FileRecord]:
        return self._records.get(to_posix(relative_path))

    def local_hash(self, relative_path: str) -> str:
        """Хеш локального файла: из индекса, если stat совпал, иначе пересчёт."""
        rel = to_posix(relative_path)
        path = self.root / rel
        record = self._records.get(rel)
        if record is not None:
            try:
                stat = path.stat()
            except OSError:
                stat = None
            if stat is not None and stat.st_size == record.size and stat.st_mtime_ns == record.mtime_ns:
                self.hits += 1
                return record.content_hash
        self.misses += 1
        record = FileRecord.from_path(path, self.root)
        self._records[rel] = record
        return record.content_hash

    def hashes(self) -> dict[str, str]:
        return {rel: rec.content_hash for rel, rec in self._records.items()}

    def __contains__(self, relative_path: str) -> bool:
        return to_posix(relative_path) in self._records

    def __len__(self) -> int:
        return len(self._records)
