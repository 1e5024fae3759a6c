# -*- coding: utf-8 -*-
"""
Ping Plugin.
.ping — проверка, что бот жив, с задержкой ответа.
"""

import time

name = "ping"
description = "Проверка связи"


async def execute(bot, message, args):
    started = time.perf_counter()
    await message.reply(bot, "🏓 Pong!")
    elapsed_ms = (time.perf_counter() - started) * 1000
    if args and args[0] == "-v":
        await message.reply(bot, f"⏱ {elapsed_ms:.0f} ms")
