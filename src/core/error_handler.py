# -*- coding: utf-8 -*-
"""
Единый middleware для обработки ошибок в обработчиках pyrogram.

Обеспечивает:
- Логирование ошибок с полным traceback
- FloodWait backoff БЕЗ повторного вызова хэндлера
- Статистику ошибок для !version
"""

import asyncio
import functools

import structlog
from pyrogram.errors import ChatWriteForbidden, FloodWait, MessageNotModified

logger = structlog.get_logger("ErrorHandler")

# Счётчик ошибок для мониторинга
_error_counts = {}


def safe_handler(func):
    """
    Декоратор для всех хэндлеров pyrogram.

    - FloodWait: ждёт указанное время + 1с, но НЕ повторяет вызов
    - MessageNotModified: тихо игнорирует
    - ChatWriteForbidden: логирует и пропускает
    - Остальное: логирует полный traceback
    """
    @functools.wraps(func)
    async def wrapper(client, update, *args, **kwargs):
        try:
            return await func(client, update, *args, **kwargs)

        except FloodWait as e:
            wait_time = e.value + 1
            logger.warning("⏳ FloodWait", wait_seconds=wait_time, handler=func.__name__)
            _error_counts["FloodWait"] = _error_counts.get("FloodWait", 0) + 1
            await asyncio.sleep(wait_time)

        except MessageNotModified:
            pass

        except ChatWriteForbidden:
            logger.warning("🚫 chat_write_forbidden", handler=func.__name__)

        except Exception as e:
            error_name = type(e).__name__
            _error_counts[error_name] = _error_counts.get(error_name, 0) + 1
            logger.error(
                "💥 unhandled_handler_error",
                handler=func.__name__,
                error_type=error_name,
                error=str(e),
                exc_info=True,
            )

    return wrapper


def get_error_stats() -> dict:
    """Возвращает статистику ошибок для диагностики."""
    return dict(_error_counts)


def reset_error_stats():
    _error_counts.clear()
