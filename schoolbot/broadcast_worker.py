"""Отдельный процесс рассылки новостей из очереди."""

import asyncio
from typing import Optional

from aiogram import Bot
from sqlalchemy.ext.asyncio import async_sessionmaker

from config.settings import settings
from schoolbot.core.broadcast import BroadcastMessage, BroadcastQueue, QueuedMessage
from schoolbot.core.dispatcher import DispatchOutcome, deliver_to_class
from schoolbot.core.notifications import NotificationGateway
from schoolbot.core.store import EntityStore
from schoolbot.utils.enums import NewsType
from schoolbot.utils.logger import get_logger
from schoolbot.utils.text_formatter import format_broadcast

logger = get_logger(__name__)


class BroadcastConsumer:
    """
    Читает очередь и рассылает новости.

    Получатели вычисляются заново в момент доставки. Каждое сообщение
    подтверждается после обработки, в том числе некорректное: повторных
    попыток нет.
    """

    def __init__(self, queue: BroadcastQueue, session_maker: async_sessionmaker,
                 notifier: NotificationGateway, batch_size: int = 10):
        self.queue = queue
        self.session_maker = session_maker
        self.notifier = notifier
        self.batch_size = batch_size
        self._running = False

    async def handle(self, message: QueuedMessage) -> Optional[DispatchOutcome]:
        """Обработать одно сообщение и подтвердить его."""
        outcome = None
        try:
            if not message.payload:
                logger.warning("broadcast_empty_message", message_id=message.message_id)
                return None
            payload = BroadcastMessage.from_payload(message.payload)
            if payload.type.lower() != NewsType.NEWS.value:
                logger.info("broadcast_skipped", message_id=message.message_id, type=payload.type)
                return None
            text = format_broadcast(payload.title, payload.content, payload.created_at_utc)
            async with self.session_maker() as session:
                outcome = await deliver_to_class(EntityStore(session), self.notifier, payload.class_id, text)
            return outcome
        except Exception as e:
            logger.error("broadcast_message_dropped", message_id=message.message_id, error=str(e), exc_info=True)
            return None
        finally:
            await self._ack(message)

    async def _ack(self, message: QueuedMessage) -> None:
        try:
            await self.queue.ack(message.message_id)
        except Exception as e:
            logger.error("broadcast_ack_failed", message_id=message.message_id, error=str(e))

    async def run_once(self) -> int:
        """Прочитать и обработать одну пачку. Returns: число сообщений."""
        messages = await self.queue.read(self.batch_size)
        for message in messages:
            await self.handle(message)
        return len(messages)

    async def run(self) -> None:
        """Основной цикл до вызова stop()."""
        self._running = True
        logger.info("broadcast_consumer_started")
        while self._running:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("broadcast_read_failed", error=str(e))
                await asyncio.sleep(5)
        logger.info("broadcast_consumer_stopped")

    def stop(self) -> None:
        self._running = False


async def main() -> None:
    """Запуск воркера рассылки."""
    from config.database import async_session_maker
    from config.redis_client import close_redis
    from schoolbot.bot.transport import AiogramTransport
    from schoolbot.services import create_broadcast_queue

    bot = Bot(token=settings.telegram_bot_token)
    queue = await create_broadcast_queue()
    consumer = BroadcastConsumer(
        queue,
        async_session_maker,
        NotificationGateway(AiogramTransport(bot)),
        batch_size=settings.broadcast_batch_size,
    )
    try:
        await consumer.run()
    finally:
        await close_redis()
        await bot.session.close()
