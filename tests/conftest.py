# -*- coding: utf-8 -*-
"""
Глобальные pytest-настройки и общие фикстуры тестового контура хоста бота.

- Подавляем известный внешний DeprecationWarning из pyrogram.
- Фикстура make_tree: раскладывает файлы по словарю {путь: содержимое}.
"""

import warnings
from pathlib import Path

import pytest

from src.updater.rules import PathRules


warnings.filterwarnings(
    "ignore",
    message="There is no current event loop",
    category=DeprecationWarning,
)

DEFAULT_IGNORE = [".git/", "__pycache__", "*.pyc", ".update_snapshot_", ".update_pending.json", "*.log"]


def write_tree(root: Path, files: dict) -> Path:
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def make_tree():
    return write_tree


@pytest.fixture
def ignore_rules():
    return PathRules.from_patterns(DEFAULT_IGNORE)
