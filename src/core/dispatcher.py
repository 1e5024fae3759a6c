# -*- coding: utf-8 -*-
"""
Диспетчер команд: текст с префиксом → плагин из текущего реестра.

Не зависит от транспорта: обработчик pyrogram (src/handlers/messages.py)
превращает сообщение в IncomingMessage, исходный объект лежит в `raw`.
Ошибка плагина логируется и не доходит до клиента.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional, Union

import structlog

if TYPE_CHECKING:
    from src.core.app_context import AppContext

logger = structlog.get_logger("Dispatcher")

# Служебные чаты, которые не обслуживаются (аналог status-рассылок)
IGNORED_CHATS = frozenset({"status@broadcast"})

# Счётчик ошибок плагинов для !version
_plugin_error_counts: dict[str, int] = {}


@dataclass
class IncomingMessage:
    chat_id: Union[int, str]
    text: str
    from_me: bool = False
    sender: str = ""
    raw: Any = field(default=None, repr=False)

    async def reply(self, bot: Any, text: str) -> Any:
        return await bot.send_message(chat_id=self.chat_id, text=text)


def get_plugin_error_stats() -> dict[str, int]:
    return dict(_plugin_error_counts)


class CommandDispatcher:
    def __init__(self, context: "AppContext"):
        self.context = context

    @property
    def prefix(self) -> str:
        return self.context.config.COMMAND_PREFIX or "."

    def parse(self, text: Optional[str]) -> Optional[tuple[str, list[str]]]:
        """'.Ping  a b' → ('ping', ['a', 'b']); None, если это не команда."""
        if not text:
            return None
        stripped = text.strip()
        prefix = self.prefix
        if not stripped.lower().startswith(prefix.lower()):
            return None
        parts = stripped[len(prefix):].split()
        if not parts:
            return None
        return parts[0].lower(), parts[1:]

    def accepts(self, message: IncomingMessage) -> bool:
        if str(message.chat_id) in IGNORED_CHATS:
            return False
        # Приватный режим: отвечаем только на свои сообщения
        if not self.context.config.BOT_PUBLIC and not message.from_me:
            return False
        return True

    async def dispatch(self, message: IncomingMessage) -> bool:
        """True, если команда найдена и плагин отработал без исключения."""
        if not self.accepts(message):
            return False
        parsed = self.parse(message.text)
        if parsed is None:
            return False
        command, args = parsed

        # Один снимок реестра на всё сообщение, даже если reload случится посреди
        plugin = self.context.registry.commands.get(command)
        if plugin is None:
            return False

        try:
            outcome = plugin.execute(self.context.bot, message, args)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            _plugin_error_counts[plugin.name] = _plugin_error_counts.get(plugin.name, 0) + 1
            logger.error(
                "💥 plugin_execute_failed",
                plugin=plugin.name,
                error_type=type(e).__name__,
                error=str(e),
                exc_info=True,
            )
            return False
        return True
