# -*- coding: utf-8 -*-
"""
Messages Handler — мост pyrogram → CommandDispatcher.
"""

from pyrogram import filters
from pyrogram.types import Message

from src.core.dispatcher import IncomingMessage


def to_incoming(message: Message) -> IncomingMessage:
    user = message.from_user
    return IncomingMessage(
        chat_id=message.chat.id if message.chat else 0,
        text=message.text or message.caption or "",
        from_me=bool(message.outgoing or (user and user.is_self)),
        sender=(user.username or str(user.id)) if user else "",
        raw=message,
    )


def register_handlers(app, deps: dict):
    safe_handler = deps["safe_handler"]
    dispatcher = deps["dispatcher"]

    @app.on_message((filters.text | filters.caption) & ~filters.service, group=1)
    @safe_handler
    async def dispatch_plugins(client, message: Message):
        await dispatcher.dispatch(to_incoming(message))
