# -*- coding: utf-8 -*-
"""
Auth Utilities — проверка прав для служебных команд (!update, !plugins).
Служебные команды доступны только владельцу; плагины — всем (по BOT_PUBLIC).
"""

import os
from pyrogram.types import Message


def get_owner() -> str:
    """Возвращает username владельца (без @)."""
    return os.getenv("OWNER_USERNAME", "").replace("@", "").strip()


def is_owner(message: Message) -> bool:
    """
    Проверяет, является ли отправитель владельцем.
    Свои сообщения (userbot) всегда считаются владельцем.
    """
    if not message.from_user:
        return False

    if message.from_user.is_self:
        return True

    sender = message.from_user.username or ""
    owner = get_owner()
    return bool(owner) and sender == owner


def get_msg_method(message: Message):
    """
    Определяет метод ответа: edit_text (свои сообщения) или reply_text (чужие).
    """
    if message.from_user and message.from_user.is_self:
        return message.edit_text
    return message.reply_text
