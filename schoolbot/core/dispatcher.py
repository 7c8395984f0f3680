"""Рассылка опубликованных новостей."""

from dataclasses import dataclass
from typing import Optional

from schoolbot.core.broadcast import BroadcastMessage, BroadcastQueue
from schoolbot.core.notifications import NotificationGateway
from schoolbot.core.store import EntityStore
from schoolbot.utils.enums import DeliveryMode, NewsType
from schoolbot.utils.logger import get_logger
from schoolbot.utils.text_formatter import format_broadcast

logger = get_logger(__name__)


@dataclass
class DispatchOutcome:
    """
    Как обработана публикация.

    mode: "pull" - отчет, рассылки нет; "queued" - поставлено в очередь;
    "direct" - отправлено сразу.
    """
    mode: str
    sent: int = 0
    failed: int = 0


async def deliver_to_class(store: EntityStore, notifier: NotificationGateway, class_id: int,
                           text: str) -> DispatchOutcome:
    """Вычислить получателей класса и отправить каждому."""
    recipients = await store.recipients_for_class(class_id)
    report = await notifier.notify_many(recipients, text, html=True)
    logger.info(
        "news_delivered",
        class_id=class_id,
        recipients=len(recipients),
        sent=report.sent,
        failed=report.failed,
    )
    return DispatchOutcome(mode="direct", sent=report.sent, failed=report.failed)


class NewsDispatcher:
    """
    Решает, как доставить публикацию.

    Отчеты не рассылаются. Новости ставятся в очередь или, в режиме
    direct и при недоступности очереди, отправляются сразу.
    """

    def __init__(self, notifier: NotificationGateway, queue: Optional[BroadcastQueue] = None,
                 mode: DeliveryMode = DeliveryMode.QUEUE):
        self.notifier = notifier
        self.queue = queue
        self.mode = DeliveryMode(mode)

    async def dispatch(self, news, store: EntityStore) -> DispatchOutcome:
        """
        Доставить сохраненную публикацию.

        Вызывается после коммита. Не выбрасывает исключений из-за
        ошибок доставки.
        """
        if news.type == NewsType.REPORT:
            logger.info("report_published", news_id=news.id, class_id=news.class_id)
            return DispatchOutcome(mode="pull")

        if self.mode == DeliveryMode.QUEUE and self.queue is not None:
            if await self.queue.publish(BroadcastMessage.from_news(news).to_bytes()):
                return DispatchOutcome(mode="queued")
            logger.warning("broadcast_fallback_direct", news_id=news.id)

        text = format_broadcast(news.title, news.content, news.created_at)
        return await deliver_to_class(store, self.notifier, news.class_id, text)
