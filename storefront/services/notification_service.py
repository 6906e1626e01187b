import asyncio
import logging
from typing import Set
from telegram import Bot
from ..config import Config
from ..models.order import Order
from ..utils.messages import Messages

logger = logging.getLogger(__name__)


class Notifier:
    """Delivers customer notifications"""

    async def start(self):
        pass

    async def close(self):
        pass

    async def send_order_confirmation(self, order: Order, chat_id: int):
        raise NotImplementedError


class LogNotifier(Notifier):
    """Used when no bot token is configured"""

    async def send_order_confirmation(self, order: Order, chat_id: int):
        logger.info(f"Order confirmation for order {order.order_id} to {chat_id} (not sent, no bot token)")


class TelegramNotifier(Notifier):
    """Sends notifications as Telegram messages; a user's id is their private chat id"""

    def __init__(self, token: str):
        self.bot = Bot(token=token)

    async def start(self):
        await self.bot.initialize()

    async def close(self):
        await self.bot.shutdown()

    async def send_order_confirmation(self, order: Order, chat_id: int):
        await self.bot.send_message(chat_id=chat_id, text=Messages.order_confirmation(order))


def build_notifier() -> Notifier:
    if Config.TELEGRAM_TOKEN:
        return TelegramNotifier(Config.TELEGRAM_TOKEN)
    return LogNotifier()


class NotificationDispatcher:
    """Fire-and-forget delivery; a failed notification never affects the order"""

    def __init__(self, notifier: Notifier):
        self.notifier = notifier
        self._tasks: Set[asyncio.Task] = set()

    def dispatch_order_confirmation(self, order: Order):
        task = asyncio.create_task(self._send_order_confirmation(order))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _send_order_confirmation(self, order: Order):
        try:
            await self.notifier.send_order_confirmation(order, order.user_id)
        except Exception as e:
            logger.error(f"Order confirmation error for order {order.order_id}: {e}")

    async def drain(self):
        """Wait for notifications still in flight"""
        if self._tasks:
            await asyncio.gather(*list(self._tasks))
