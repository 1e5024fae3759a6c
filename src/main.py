# -*- coding: utf-8 -*-
"""
Bot Host — Core Orchestrator (Entry Point)

Тонкий оркестратор. Логика обработчиков вынесена в src/handlers/,
автообновление в src/updater/. Этот файл отвечает только за:
1. Загрузку конфигурации и handshake маркера перезапуска
2. Process lock (один процесс на install-каталог)
3. Инициализацию реестра плагинов, диспетчера и апдейтера
4. Запуск клиента Pyrogram и graceful shutdown
"""

import sys
from pathlib import Path

from pyrogram import Client, idle

from src.config import Config
from src.core.app_context import AppContext
from src.core.config_manager import ConfigManager
from src.core.dispatcher import CommandDispatcher
from src.core.error_handler import safe_handler
from src.core.exceptions import ConfigError
from src.core.logger_setup import setup_logger
from src.core.plugin_manager import PluginRegistry
from src.core.process_lock import DuplicateInstanceError, SingleInstanceProcessLock
from src.handlers import register_all_handlers
from src.updater import MarkerState, build_update_monitor, marker_for

VERSION_FILES = ("version.txt", "ver/version.txt", "vers/version.txt")
DEFAULT_VERSION = "BotHost"
LOCK_PATH = str(Config.BASE_DIR / "data" / "bothost.lock")
PID_PATH = str(Config.BASE_DIR / "data" / "bothost.pid")


def read_version(base_dir: Path) -> str:
    """Первая непустая строка из version.txt (несколько исторических путей)."""
    for candidate in VERSION_FILES:
        path = base_dir / candidate
        try:
            text = path.read_text(encoding="utf-8").strip()
        except OSError:
            continue
        if text:
            return text.splitlines()[0].strip()
    return DEFAULT_VERSION


# === ИНИЦИАЛИЗАЦИЯ ===

logger = setup_logger(level=Config.LOG_LEVEL)

# Handshake: свежий маркер = мы процесс-замена после обновления
restart_marker = marker_for(Config.BASE_DIR, Config.UPDATE_MARKER_FRESHNESS_SECONDS)
marker_state = restart_marker.consume()
if marker_state is MarkerState.FRESH:
    logger.info("=" * 40)
    logger.info("✅ UPDATE APPLIED, process restarted", revision=restart_marker.revision)
    logger.info("=" * 40)

config_errors = Config.validate()
if config_errors:
    for err in config_errors:
        logger.error("config_error", error=err)
    sys.exit(1)

# Первый запуск: согласие не решено → сохраняем "включено"
if Config.ALLOW_UPDATES is None:
    Config.update_setting("ALLOW_UPDATES", "1")
    logger.info("auto_updates_enabled_by_default")

cfg = ConfigManager()
registry = PluginRegistry(
    plugins_dir=str(Config.BASE_DIR / cfg.get("plugins.dir", "plugins")),
    lib_dir=str(Config.BASE_DIR / cfg.get("plugins.lib_dir", "lib")),
)
context = AppContext(Config, registry)
context.version = read_version(Config.BASE_DIR)
dispatcher = CommandDispatcher(context)

process_lock = SingleInstanceProcessLock(LOCK_PATH, PID_PATH)

app = Client(
    Config.TELEGRAM_SESSION_NAME,
    api_id=Config.TELEGRAM_API_ID,
    api_hash=Config.TELEGRAM_API_HASH,
    workdir=str(Config.BASE_DIR),
)

_deps = {
    "config": Config,
    "context": context,
    "registry": registry,
    "dispatcher": dispatcher,
    "safe_handler": safe_handler,
}

register_all_handlers(app, _deps)

if Config.updates_enabled():
    try:
        updater = build_update_monitor(
            Config,
            cfg,
            install_root=Config.BASE_DIR,
            invalidate=registry.invalidate_path,
            before_exit=[app.stop, process_lock.release],
            resume_revision=restart_marker.revision,
        )
    except ConfigError as e:
        logger.error("❌ updater_not_configured", error=str(e))
    else:
        context.attach_updater(updater)
else:
    logger.info("🔕 auto_updates_disabled")


# === MAIN LOOP ===

async def main():
    """Точка входа: lock, клиент, плагины, апдейтер."""
    try:
        if marker_state is MarkerState.FRESH:
            # Предшественник ещё может держать lock, пока выполняет before_exit
            process_lock.acquire_with_retry(timeout=Config.UPDATE_MARKER_FRESHNESS_SECONDS)
        else:
            process_lock.acquire()
    except DuplicateInstanceError as e:
        logger.error("❌ duplicate_instance", holder_pid=e.holder_pid, started_at=e.holder_started_at)
        return

    logger.info("🤖 Starting bot host", version=context.version)
    await app.start()
    context.bot = app

    me = await app.get_me()
    logger.info("Logged in", first_name=me.first_name, username=me.username)

    registry.load_all()

    if context.updater is not None:
        await context.updater.start()

    async def graceful_shutdown():
        logger.info("🛑 Graceful shutdown in progress...")
        if context.updater is not None:
            context.updater.stop()
        if app.is_connected:
            await app.stop()
        process_lock.release()
        logger.info("✅ Bot host stopped cleanly.")

    # idle() сам ловит SIGINT/SIGTERM и возвращает управление
    logger.info("⚡ Entering idle mode...")
    try:
        await idle()
    finally:
        await graceful_shutdown()


if __name__ == "__main__":
    try:
        app.run(main())
    except KeyboardInterrupt:
        pass
    except Exception as e:
        logger.critical("🔥 Critical Crash in main loop", error=str(e), exc_info=True)
