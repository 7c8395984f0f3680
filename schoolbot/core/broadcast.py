"""Очередь рассылки новостей поверх Redis Streams."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Union

import redis.asyncio as aioredis
from pydantic import BaseModel, ConfigDict, Field
from redis.exceptions import ResponseError

from schoolbot.utils.logger import get_logger

logger = get_logger(__name__)

PAYLOAD_FIELD = "payload"


class BroadcastMessage(BaseModel):
    """Сообщение очереди: {classId, title, content, createdAtUtc, type}."""

    model_config = ConfigDict(populate_by_name=True)

    class_id: int = Field(..., alias="classId")
    title: str
    content: Optional[str] = None
    created_at_utc: datetime = Field(..., alias="createdAtUtc")
    type: str

    @classmethod
    def from_news(cls, news) -> "BroadcastMessage":
        return cls(
            class_id=news.class_id,
            title=news.title,
            content=news.content,
            created_at_utc=news.created_at,
            type=news.type,
        )

    def to_bytes(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode("utf-8")

    @classmethod
    def from_payload(cls, payload: Union[str, bytes]) -> "BroadcastMessage":
        """Raises: pydantic.ValidationError для некорректного сообщения."""
        return cls.model_validate_json(payload)


@dataclass
class QueuedMessage:
    """Полученное сообщение и идентификатор для подтверждения."""
    message_id: str
    payload: Union[str, bytes, None]


class BroadcastQueue(ABC):
    """Надежный канал сообщений с подтверждением обработки."""

    @abstractmethod
    async def publish(self, payload: bytes) -> bool:
        """Опубликовать сообщение. Ошибки логируются, исключения не выбрасываются."""

    @abstractmethod
    async def read(self, count: int = 10) -> List[QueuedMessage]:
        """Получить очередную пачку сообщений."""

    @abstractmethod
    async def ack(self, message_id: str) -> None:
        """Подтвердить обработку сообщения."""


class RedisStreamBroadcastQueue(BroadcastQueue):
    """
    Очередь на Redis Streams с consumer group.

    Неподтвержденные сообщения этого consumer после перезапуска
    выдаются повторно до чтения новых.
    """

    def __init__(self, redis: aioredis.Redis, stream: str, group: str, consumer: str, block_ms: int = 5000):
        self.redis = redis
        self.stream = stream
        self.group = group
        self.consumer = consumer
        self.block_ms = block_ms
        self._replay_pending = True

    async def ensure_group(self) -> None:
        """Создать stream и consumer group, если их нет."""
        try:
            await self.redis.xgroup_create(self.stream, self.group, id="0", mkstream=True)
            logger.info("broadcast_group_created", stream=self.stream, group=self.group)
        except ResponseError as e:
            if "BUSYGROUP" not in str(e):
                raise

    async def publish(self, payload: bytes) -> bool:
        try:
            message_id = await self.redis.xadd(self.stream, {PAYLOAD_FIELD: payload})
            logger.info("broadcast_published", stream=self.stream, message_id=message_id)
            return True
        except Exception as e:
            logger.error("broadcast_publish_failed", stream=self.stream, error=str(e))
            return False

    async def read(self, count: int = 10) -> List[QueuedMessage]:
        if self._replay_pending:
            messages = await self._read_group("0", count, block=None)
            if messages:
                return messages
            self._replay_pending = False
        return await self._read_group(">", count, block=self.block_ms)

    async def _read_group(self, last_id: str, count: int, block: Optional[int]) -> List[QueuedMessage]:
        response = await self.redis.xreadgroup(
            self.group, self.consumer, {self.stream: last_id}, count=count, block=block
        )
        messages = []
        for _stream, entries in response or []:
            for message_id, fields in entries:
                payload = fields.get(PAYLOAD_FIELD) if fields else None
                messages.append(QueuedMessage(message_id=message_id, payload=payload))
        return messages

    async def ack(self, message_id: str) -> None:
        await self.redis.xack(self.stream, self.group, message_id)
