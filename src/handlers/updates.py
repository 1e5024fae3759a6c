# -*- coding: utf-8 -*-
"""
Update Handler — управление автообновлением из чата владельца.

- !update: внеочередная проверка ревизии
- !autoupdate on|off: сохранить согласие на автообновления в .env
- !version: версия, аптайм, состояние апдейтера
- !logs [N]: хвост основного лога
"""

from datetime import datetime

from pyrogram import filters
from pyrogram.types import Message

from src.core.dispatcher import get_plugin_error_stats
from src.core.error_handler import get_error_stats
from src.core.logger_setup import get_last_logs
from src.updater.monitor import CycleOutcome
from .auth import is_owner, get_msg_method

_OUTCOME_TEXT = {
    CycleOutcome.SKIPPED: "🌐 Ревизия недоступна (сеть), повторю по таймеру.",
    CycleOutcome.SEEDED: "📌 Базовая ревизия зафиксирована.",
    CycleOutcome.UNCHANGED: "✅ Обновлений нет.",
    CycleOutcome.APPLIED: "📦 Обновление применено.",
    CycleOutcome.PARTIAL: "⚠️ Обновление применено частично, см. логи.",
    CycleOutcome.FAILED: "❌ Цикл обновления не удался, см. логи.",
}


def _format_uptime(started_at: datetime) -> str:
    seconds = int((datetime.now() - started_at).total_seconds())
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours}h {minutes}m {secs}s"


def format_status(context) -> str:
    registry = context.registry
    lines = [
        f"**🤖 {context.version}**",
        f"⏱ Uptime: `{_format_uptime(context.started_at)}`",
        f"📦 Plugins: `{len(registry)}` (errors: {len(registry.errors)})",
        f"⚡ Mode: `{'Public' if context.config.BOT_PUBLIC else 'Private'}`",
    ]
    updater = context.updater
    if updater is None:
        lines.append("🔄 Auto-updates: `Disabled`")
    else:
        status = updater.status()
        revision = status["tracked_revision"] or "—"
        lines.append(f"🔄 Auto-updates: `{'Enabled' if status['running'] else 'Stopped'}`")
        lines.append(f"🔖 Revision: `{revision[:12]}`")
        lines.append(f"🕒 Last check: `{status['last_checked_at'] or 'never'}`")
        if status["last_error"]:
            lines.append(f"⚠️ Last error: `{status['last_error'][:200]}`")
    errors = get_error_stats()
    if errors:
        lines.append(f"💥 Handler errors: `{errors}`")
    plugin_errors = get_plugin_error_stats()
    if plugin_errors:
        lines.append(f"🧩 Plugin errors: `{plugin_errors}`")
    return "\n".join(lines)


def register_handlers(app, deps: dict):
    safe_handler = deps["safe_handler"]
    context = deps["context"]
    config = deps["config"]

    @app.on_message(filters.command("update", prefixes="!"))
    @safe_handler
    async def update_command(client, message: Message):
        """Внеочередная проверка обновлений: !update"""
        if not is_owner(message):
            return
        reply = get_msg_method(message)
        updater = context.updater
        if updater is None:
            await reply("🔕 Автообновления выключены (`!autoupdate on` и перезапуск).")
            return

        await reply("🔍 Проверяю обновления...")
        outcome = await updater.check_now()
        if outcome is None:
            await reply("⏳ Обновление уже идёт, проверка отложена.")
            return
        await reply(_OUTCOME_TEXT.get(outcome, str(outcome)))

    @app.on_message(filters.command("autoupdate", prefixes="!"))
    @safe_handler
    async def autoupdate_command(client, message: Message):
        """Согласие на автообновления: !autoupdate on|off"""
        if not is_owner(message):
            return
        reply = get_msg_method(message)
        args = message.command
        if len(args) < 2 or args[1].lower() not in ("on", "off"):
            state = "ENABLED" if config.updates_enabled() else "DISABLED"
            await reply(f"🔄 Auto-updates: **{state}**\nИспользование: `!autoupdate on|off`")
            return

        enable = args[1].lower() == "on"
        if not config.update_setting("ALLOW_UPDATES", "1" if enable else "0"):
            await reply("❌ Не удалось сохранить настройку.")
            return
        if not enable and context.updater is not None and context.updater.running:
            context.updater.stop()
            await reply("🔕 Автообновления выключены.")
            return
        await reply("✅ Сохранено. Вступит в силу после перезапуска.")

    @app.on_message(filters.command("version", prefixes="!"))
    @safe_handler
    async def version_command(client, message: Message):
        if not is_owner(message):
            return
        await get_msg_method(message)(format_status(context))

    @app.on_message(filters.command("logs", prefixes="!"))
    @safe_handler
    async def logs_command(client, message: Message):
        if not is_owner(message):
            return
        args = message.command
        lines = int(args[1]) if len(args) > 1 and args[1].isdigit() else 20
        text = get_last_logs(min(lines, 100))
        await get_msg_method(message)(f"```\n{text[-3500:]}\n```")
