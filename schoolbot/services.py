"""Сборка общих зависимостей для бота, воркера и админ-панели."""
from typing import Optional

from config.settings import settings
from schoolbot.core.broadcast import RedisStreamBroadcastQueue
from schoolbot.core.dispatcher import NewsDispatcher
from schoolbot.core.notifications import NotificationGateway
from schoolbot.core.report_storage import ReportBlobStore, create_report_store
from schoolbot.core.transport import BotTransport
from schoolbot.utils.enums import DeliveryMode
from schoolbot.utils.logger import get_logger

logger = get_logger(__name__)


async def create_broadcast_queue() -> RedisStreamBroadcastQueue:
    """Очередь рассылки с созданной consumer group."""
    from config.redis_client import broadcast_stream_key, get_redis

    queue = RedisStreamBroadcastQueue(
        await get_redis(),
        stream=broadcast_stream_key(),
        group=settings.broadcast_group,
        consumer=settings.broadcast_consumer,
        block_ms=settings.broadcast_block_ms,
    )
    await queue.ensure_group()
    return queue


async def create_dispatcher(transport: BotTransport) -> NewsDispatcher:
    """
    Диспетчер новостей по настройкам.

    Если Redis недоступен при старте, новости отправляются напрямую.
    """
    notifier = NotificationGateway(transport)
    mode = DeliveryMode(settings.news_delivery_mode)
    queue = None
    if mode == DeliveryMode.QUEUE:
        try:
            queue = await create_broadcast_queue()
        except Exception as e:
            logger.error("broadcast_queue_unavailable", error=str(e))
            mode = DeliveryMode.DIRECT
    logger.info("news_dispatcher_ready", mode=mode.value)
    return NewsDispatcher(notifier, queue=queue, mode=mode)


def create_blob_store() -> Optional[ReportBlobStore]:
    """Хранилище отчетов или None, если MinIO не настроен."""
    if not settings.minio_access_key:
        logger.warning("report_storage_disabled")
        return None
    return create_report_store()
