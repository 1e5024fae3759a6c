# -*- coding: utf-8 -*-
"""
Handlers Package — обработчики pyrogram.

- messages: каждое текстовое сообщение → диспетчер плагинов
- updates: !update, !autoupdate, !version, !logs
- plugins: !plugins, !plugins reload

Все обработчики регистрируются через register_handlers(app, deps).
"""

import structlog

logger = structlog.get_logger(__name__)


def _register_or_skip(label: str, register_func, app, deps: dict):
    """
    Регистрирует обработчик и не валит запуск, если отсутствует зависимость
    (например, апдейтер выключен пользователем).
    """
    try:
        register_func(app, deps)
    except KeyError as exc:
        logger.warning("Пропуск регистрации handler-модуля: отсутствует зависимость", module=label, missing=str(exc))


def register_all_handlers(app, deps: dict):
    """
    Регистрирует все обработчики на клиент.

    deps — словарь зависимостей (context, dispatcher, safe_handler, ...),
    чтобы обработчики не импортировали глобальные переменные напрямую.
    """
    from .updates import register_handlers as reg_updates
    from .plugins import register_handlers as reg_plugins
    from .messages import register_handlers as reg_messages

    # Служебные команды регистрируются раньше (group=0), диспетчер плагинов — group=1
    _register_or_skip("updates", reg_updates, app, deps)
    _register_or_skip("plugins", reg_plugins, app, deps)
    _register_or_skip("messages", reg_messages, app, deps)
