"""
Общий Redis для бота, воркера рассылки и админ-панели.

Все ключи проекта лежат под префиксом KEY_PREFIX: состояния диалогов
(FSM aiogram) и stream очереди рассылки. Клиент декодирует ответы в str.
"""
import asyncio
from typing import Optional

import redis.asyncio as aioredis
from aiogram.fsm.storage.base import DefaultKeyBuilder

from config.settings import settings
from schoolbot.utils.logger import get_logger

logger = get_logger(__name__)

KEY_PREFIX = "school_bot"

_client: Optional[aioredis.Redis] = None
_lock = asyncio.Lock()


def redis_key(*parts) -> str:
    """Ключ под общим префиксом: redis_key("stream", "news") -> school_bot:stream:news."""
    return ":".join([KEY_PREFIX, *(str(part) for part in parts)])


def broadcast_stream_key() -> str:
    """Stream очереди рассылки новостей."""
    return redis_key("stream", settings.broadcast_stream)


def fsm_key_builder() -> DefaultKeyBuilder:
    """
    Ключи состояний диалогов.

    Bot id входит в ключ.
    """
    return DefaultKeyBuilder(prefix=redis_key("fsm"), with_bot_id=True)


async def get_redis() -> aioredis.Redis:
    """
    Получить клиент, при первом вызове подключиться и проверить соединение.

    Потерянные соединения пула проверяет сам клиент (health_check_interval).
    """
    global _client
    async with _lock:
        if _client is None:
            client = aioredis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
                health_check_interval=30,
                socket_timeout=settings.external_call_timeout_seconds,
            )
            try:
                await client.ping()
            except Exception as e:
                logger.error("redis_connection_error", url=settings.redis_url, error=str(e))
                await client.aclose()
                raise
            logger.info("redis_connected", url=settings.redis_url)
            _client = client
    return _client


async def close_redis() -> None:
    """Закрыть клиент, если он создавался."""
    global _client
    if _client is None:
        return
    try:
        await _client.aclose()
        logger.info("redis_disconnected")
    except Exception as e:
        logger.warning("redis_close_error", error=str(e))
    finally:
        _client = None


async def health_check() -> bool:
    """
    Доступен ли Redis.

    Не подключается заново, если клиент еще не создан.
    """
    if _client is None:
        return False
    try:
        await asyncio.wait_for(_client.ping(), timeout=settings.external_call_timeout_seconds)
        return True
    except Exception as e:
        logger.warning("redis_health_check_failed", error=str(e))
        return False
