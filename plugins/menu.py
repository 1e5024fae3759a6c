# -*- coding: utf-8 -*-
"""
Menu Plugin.
.menu — список команд и сведения о процессе.
"""

from lib.system_stats import platform_summary, process_uptime


class MenuPlugin:
    name = "menu"
    description = "Список команд"

    async def execute(self, bot, message, args):
        lines = [
            "📋 **Команды:**",
            "`.ping` — проверка связи",
            "`.menu` — это меню",
            "",
            f"⏱ Uptime: `{process_uptime()}`",
            f"🖥 {platform_summary()}",
        ]
        await message.reply(bot, "\n".join(lines))


plugin = MenuPlugin()
