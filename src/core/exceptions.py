# -*- coding: utf-8 -*-
"""
Иерархия исключений хоста бота.

Базовый BotHostError с поддержкой retryable и user_message, чтобы
обработчики и цикл обновлений одинаково решали: повторять или нет.
Все ошибки апдейтера видит только оператор (логи), не пользователи чата.
"""


class BotHostError(Exception):
    """
    Базовое исключение приложения.

    Параметры:
        message: внутреннее сообщение для логов/отладки (первый позиционный аргумент).
        retryable: можно ли безопасно повторить операцию (по умолчанию False).
        user_message: текст, безопасный для показа пользователю (по умолчанию = message).
    """

    def __init__(
        self,
        message: str = "",
        *,
        retryable: bool = False,
        user_message: str = "",
        **kwargs: object,
    ) -> None:
        super().__init__(message)
        self.retryable = retryable
        self.user_message = user_message or message


class SnapshotFetchError(BotHostError):
    """
    Не удалось получить снапшот удалённой ветки (git clone упал или завис).
    Цикл обновления прерывается до любых записей; следующий тик повторит.
    """

    def __init__(
        self,
        message: str = "",
        *,
        retryable: bool = True,
        user_message: str = "",
        **kwargs: object,
    ) -> None:
        super().__init__(
            message,
            retryable=retryable,
            user_message=user_message or "Не удалось скачать обновление.",
            **kwargs,
        )


class ApplyError(BotHostError):
    """
    Ошибка записи/удаления одного файла из набора изменений.
    Ловится по-файлово: остальные файлы продолжают применяться.
    """

    def __init__(
        self,
        message: str = "",
        *,
        path: str = "",
        retryable: bool = True,
        user_message: str = "",
        **kwargs: object,
    ) -> None:
        super().__init__(message, retryable=retryable, user_message=user_message, **kwargs)
        self.path = path


class PluginLoadError(BotHostError):
    """Файл плагина не импортируется или не экспортирует name + execute."""

    def __init__(
        self,
        message: str = "",
        *,
        plugin_file: str = "",
        user_message: str = "",
        **kwargs: object,
    ) -> None:
        super().__init__(message, retryable=False, user_message=user_message, **kwargs)
        self.plugin_file = plugin_file


class ConfigError(BotHostError):
    """Некорректное значение настройки."""

    def __init__(
        self,
        message: str = "",
        *,
        user_message: str = "",
        **kwargs: object,
    ) -> None:
        super().__init__(
            message,
            retryable=False,
            user_message=user_message or message,
            **kwargs,
        )
