# -*- coding: utf-8 -*-
"""
Контекст приложения вместо глобальных переменных.

Держит конфигурацию, реестр плагинов, апдейтер и ссылку на текущий клиент.
Один объект передаётся и диспетчеру, и апдейтеру: после переподключения
хост присваивает context.bot, и апдейтер получает тот же handle.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Sequence

import structlog

from src.core.plugin_manager import PluginRegistry

if TYPE_CHECKING:
    from src.updater.diff_engine import ChangeEntry
    from src.updater.monitor import UpdateMonitor

logger = structlog.get_logger("AppContext")


class AppContext:
    def __init__(self, config: Any, registry: PluginRegistry, updater: Optional["UpdateMonitor"] = None):
        self.config = config
        self.registry = registry
        self.updater = updater
        self.started_at = datetime.now()
        self.version = "unknown"
        self._bot: Any = None

    @property
    def bot(self) -> Any:
        return self._bot

    @bot.setter
    def bot(self, client: Any) -> None:
        self._bot = client
        if self.updater is not None:
            self.updater.bot = client

    def attach_updater(self, updater: "UpdateMonitor") -> None:
        self.updater = updater
        updater.bot = self._bot
        updater.on_update_complete = self.handle_update_complete

    def handle_update_complete(self, changes: Sequence["ChangeEntry"], revision: str) -> bool:
        """Перезагружает реестр, если обновление затронуло plugins/ или lib/."""
        touched = [c for c in changes if self.registry.owns(Path(c.target_path))]
        logger.info(
            "✅ update_complete",
            revision=revision,
            files=len(changes),
            plugin_files=len(touched),
        )
        if not touched:
            return False
        logger.info("🔄 hot_reloading_plugins")
        self.registry.reload()
        return True
