# -*- coding: utf-8 -*-
"""
Правила путей для апдейтера: ignore / protected / core.

Семантика совпадения:
- правило проверяется и по имени файла (basename), и по полному
  относительному пути в POSIX-виде; для директорий к обоим добавляется "/";
- правило со "*" компилируется в regex ("*" → ".*", остальное буквально,
  якорь только на конце строки);
- правило без "*" совпадает по вхождению подстроки.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Iterable, Pattern, Union


def _compile(pattern: str) -> Pattern[str]:
    parts = [re.escape(part) for part in pattern.split("*")]
    return re.compile(".*".join(parts) + "$")


@dataclass(frozen=True)
class PathRule:
    pattern: str
    regex: Union[Pattern[str], None] = None

    @classmethod
    def parse(cls, pattern: str) -> "PathRule":
        pattern = pattern.strip()
        if "*" in pattern:
            return cls(pattern=pattern, regex=_compile(pattern))
        return cls(pattern=pattern)

    def test(self, candidate: str) -> bool:
        if self.regex is not None:
            return self.regex.search(candidate) is not None
        return self.pattern in candidate


@dataclass(frozen=True)
class PathRules:
    """Упорядоченный набор правил; порядок сохраняется для логов и !version."""

    rules: tuple[PathRule, ...] = field(default_factory=tuple)

    @classmethod
    def from_patterns(cls, patterns: Iterable[str]) -> "PathRules":
        return cls(tuple(PathRule.parse(p) for p in patterns if p and p.strip()))

    @property
    def patterns(self) -> list[str]:
        return [rule.pattern for rule in self.rules]

    def matches(self, relative_path: str, is_dir: bool = False) -> bool:
        rel = to_posix(relative_path)
        if not rel:
            return False
        name = PurePosixPath(rel).name
        candidates = (name, rel)
        if is_dir:
            candidates = (f"{name}/", f"{rel}/")
        return any(rule.test(c) for rule in self.rules for c in candidates)

    def __bool__(self) -> bool:
        return bool(self.rules)

    def __len__(self) -> int:
        return len(self.rules)


def to_posix(relative_path: str) -> str:
    """Нормализует относительный путь к виду a/b/c без ведущего ./"""
    rel = str(relative_path).replace("\\", "/")
    while rel.startswith("./"):
        rel = rel[2:]
    return rel.strip("/")
