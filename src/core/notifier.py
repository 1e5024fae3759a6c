# -*- coding: utf-8 -*-
"""
Notification Engine
Операторские уведомления через текущий клиент бота (обновления, перезапуски).
Пользователям чата ничего не отправляет.
"""

import structlog
from typing import Optional, Union

logger = structlog.get_logger(__name__)


class Notifier:
    def __init__(self, client=None, chat_id: Optional[Union[int, str]] = None):
        self.client = client
        self.chat_id = chat_id

    def set_client(self, client, chat_id: Optional[Union[int, str]] = None):
        """Привязка клиента (после переподключения) и, опционально, чата оператора."""
        self.client = client
        if chat_id is not None:
            self.chat_id = chat_id
        logger.info("🔔 Notifier linked", chat=self.chat_id, has_client=client is not None)

    @property
    def ready(self) -> bool:
        return self.client is not None and bool(self.chat_id)

    async def notify(self, text: str) -> bool:
        """Отправить сообщение оператору. Ошибки не пробрасываются."""
        if not self.ready:
            logger.debug("notifier_not_ready", text=text[:80])
            return False

        try:
            await self.client.send_message(chat_id=self.chat_id, text=text)
            return True
        except Exception as e:
            logger.error("❌ Notification failed", error=str(e))
            return False

    async def notify_update(self, revision: str, applied: int, failed: int, restart: bool) -> bool:
        """Итог цикла обновления."""
        msg = (
            f"📦 **Update applied:** `{revision[:12]}`\n"
            f"Files: {applied} applied, {failed} failed\n"
            f"{'♻️ Restarting...' if restart else '⚡ Hot reload, no restart'}"
        )
        return await self.notify(msg)
