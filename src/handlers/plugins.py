# -*- coding: utf-8 -*-
"""
Plugin System Handler.
Просмотр и ручная перезагрузка командных плагинов.
"""

from pyrogram import filters
from pyrogram.types import Message
from .auth import is_owner, get_msg_method
import structlog

logger = structlog.get_logger(__name__)


def format_plugin_list(registry) -> str:
    resp = "🧩 **Плагины:**\n"
    files = registry.plugin_files()
    if not files and not registry.errors:
        return resp + "_Папка plugins/ пуста_"
    for name in registry.names():
        resp += f"- ✅ `{name}`\n"
    for file_name, error in sorted(registry.errors.items()):
        resp += f"- ❌ `{file_name}`: {error[:120]}\n"
    return resp


def register_handlers(app, deps: dict):
    safe_handler = deps["safe_handler"]
    registry = deps["registry"]

    @app.on_message(filters.command("plugins", prefixes="!"))
    @safe_handler
    async def plugins_command(client, message: Message):
        """Управление плагинами: !plugins [reload]"""
        if not is_owner(message):
            return

        reply = get_msg_method(message)
        args = message.command
        if len(args) > 1 and args[1].lower() == "reload":
            count = registry.reload()
            logger.info("plugins_reloaded_by_owner", count=count)
            await reply(f"🔄 Плагины перезагружены: {count} (ошибок: {len(registry.errors)})")
            return

        await reply(format_plugin_list(registry))
