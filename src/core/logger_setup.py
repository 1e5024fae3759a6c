# -*- coding: utf-8 -*-
"""
Логирование хоста бота.
Использует structlog для структурированного логирования (консоль) и
RotatingFileHandler для ротации файловых логов.
"""

import os
import sys
import logging
import logging.handlers
import structlog

LOGS_DIR = "logs"
MAIN_LOG = os.path.join(LOGS_DIR, "bot.log")
ERROR_LOG = os.path.join(LOGS_DIR, "errors.log")


def setup_logger(debug=False, level: str = "", logs_dir: str = LOGS_DIR):
    """Настройка структурированного логирования."""
    os.makedirs(logs_dir, exist_ok=True)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", utc=False),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    console_processors = processors + [
        structlog.dev.ConsoleRenderer()
    ]

    max_bytes = 50 * 1024 * 1024  # 50 MB
    backup_count = 7

    main_handler = logging.handlers.RotatingFileHandler(
        os.path.join(logs_dir, os.path.basename(MAIN_LOG)),
        maxBytes=max_bytes, backupCount=backup_count, encoding='utf-8'
    )

    # Отдельный файл только для ошибок: быстрее разбирать упавшие циклы обновления
    error_handler = logging.handlers.RotatingFileHandler(
        os.path.join(logs_dir, os.path.basename(ERROR_LOG)),
        maxBytes=max_bytes, backupCount=backup_count, encoding='utf-8'
    )
    error_handler.setLevel(logging.ERROR)

    if level:
        log_level = getattr(logging, level.upper(), logging.INFO)
    else:
        log_level = logging.DEBUG if debug else logging.INFO

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    structlog.configure(
        processors=console_processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    for h in [main_handler, error_handler]:
        h.setFormatter(formatter)
        root_logger.addHandler(h)

    logger = structlog.get_logger("BotHost")
    logger.info("🚀 Logging initialized", logs_dir=logs_dir, files=["bot.log", "errors.log"])
    return logger


def get_last_logs(lines=20, path: str = MAIN_LOG):
    """Возвращает последние N строк из лог-файла."""
    if not os.path.exists(path):
        return "Лог-файл не найден."

    try:
        with open(path, 'r', encoding='utf-8') as f:
            all_lines = f.readlines()
            return "".join(all_lines[-lines:])
    except OSError as e:
        return f"Ошибка при чтении логов: {e}"
