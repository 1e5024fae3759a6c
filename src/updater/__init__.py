# -*- coding: utf-8 -*-
"""
Updater Package — живое автообновление хоста из удалённого репозитория.

Компоненты (снизу вверх):
- rules: ignore / protected / core правила путей
- file_walker: обход дерева и SHA-256 содержимого
- version_oracle: последняя ревизия ветки (GitHub API)
- snapshot: shallow clone ветки во временную директорию
- diff_engine: классификация NEW / UPDATED / DELETED
- applicator: атомарная запись, инвалидация, решение о перезапуске
- monitor: планировщик и guard "один цикл за раз"
- restart / marker: перезапуск процесса и handshake после него

Сборка всего графа из конфигурации — build_update_monitor().
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Callable, Optional, Sequence

from src.core.exceptions import ConfigError
from src.updater.applicator import ApplyResult, ChangeApplicator
from src.updater.diff_engine import ChangeEntry, ChangeKind, DiffEngine
from src.updater.file_walker import FileIndex
from src.updater.marker import MARKER_FILENAME, MarkerState, UpdateMarker
from src.updater.monitor import CycleOutcome, MonitorState, UpdateMonitor
from src.updater.restart import RestartCoordinator
from src.updater.rules import PathRules
from src.updater.snapshot import SnapshotFetcher
from src.updater.version_oracle import RemoteVersionOracle

__all__ = [
    "ApplyResult",
    "ChangeApplicator",
    "ChangeEntry",
    "ChangeKind",
    "CycleOutcome",
    "DiffEngine",
    "FileIndex",
    "MarkerState",
    "MonitorState",
    "PathRules",
    "RemoteVersionOracle",
    "RestartCoordinator",
    "SnapshotFetcher",
    "UpdateMarker",
    "UpdateMonitor",
    "build_update_monitor",
    "marker_for",
]


def marker_for(install_root: os.PathLike | str, freshness_seconds: float = 10.0) -> UpdateMarker:
    return UpdateMarker(Path(install_root) / MARKER_FILENAME, freshness_seconds=freshness_seconds)


def build_update_monitor(
    config: Any,
    config_manager: Any,
    *,
    install_root: Optional[os.PathLike | str] = None,
    invalidate: Optional[Callable[[Path], Any]] = None,
    before_exit: Sequence[Callable[[], Any]] = (),
    resume_revision: Optional[str] = None,
) -> UpdateMonitor:
    """Собирает монитор из Config (env) и ConfigManager (YAML-правила)."""
    if not config.UPDATE_REPO or config.UPDATE_REPO.count("/") != 1:
        raise ConfigError("UPDATE_REPO должен иметь вид owner/name, автообновление невозможно")
    if not config.UPDATE_REPO_URL:
        raise ConfigError("UPDATE_REPO_URL не задан, автообновление невозможно")
    if not config.UPDATE_BRANCH:
        raise ConfigError("UPDATE_BRANCH пуст, автообновление невозможно")
    root = Path(install_root or config.BASE_DIR).resolve()

    ignore = PathRules.from_patterns(config_manager.get_list("updater.ignore_patterns"))
    protected = PathRules.from_patterns(config_manager.get_list("updater.protected_patterns"))
    core = PathRules.from_patterns(config_manager.get_list("updater.core_patterns"))

    oracle = RemoteVersionOracle(
        config.UPDATE_REPO,
        config.UPDATE_BRANCH,
        timeout=config.UPDATE_METADATA_TIMEOUT,
        token=config.UPDATE_GITHUB_TOKEN,
    )
    fetcher = SnapshotFetcher(
        config.UPDATE_REPO_URL,
        config.UPDATE_BRANCH,
        root,
        timeout=config.UPDATE_CLONE_TIMEOUT,
    )
    file_index = FileIndex(root, ignore)
    diff_engine = DiffEngine(
        root, ignore, protected, delete_mode=config.UPDATE_DELETE_MODE, file_index=file_index
    )
    applicator = ChangeApplicator(root, core, protected, invalidate=invalidate)
    restarter = RestartCoordinator(
        marker_for(root, config.UPDATE_MARKER_FRESHNESS_SECONDS),
        grace_seconds=config.UPDATE_RESTART_GRACE_SECONDS,
        cwd=root,
        before_exit=before_exit,
    )

    monitor = UpdateMonitor(
        oracle,
        fetcher,
        diff_engine,
        applicator,
        restarter,
        interval_seconds=config.UPDATE_CHECK_INTERVAL_SECONDS,
        notify_empty=config.UPDATE_NOTIFY_EMPTY,
        file_index=file_index,
        resume_revision=resume_revision,
    )
    if config.UPDATE_NOTIFY_CHAT:
        chat = config.UPDATE_NOTIFY_CHAT
        monitor.notifier.chat_id = int(chat) if chat.lstrip("-").isdigit() else chat
    return monitor
