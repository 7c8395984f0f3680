"""
Состояния многошаговых диалогов поверх FSM-хранилища aiogram.

Шаг диалога хранится как состояние FSM, накопленный ввод как данные FSM.
Ключ хранилища совпадает с ключом FSMContext личного чата, где
chat_id равен user_id.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from aiogram.fsm.state import State, StatesGroup
from aiogram.fsm.storage.base import BaseStorage, StorageKey
from aiogram.fsm.storage.memory import MemoryStorage
from aiogram.fsm.storage.redis import RedisStorage
from redis.exceptions import WatchError

from config.settings import settings
from schoolbot.utils.enums import SessionBackend
from schoolbot.utils.logger import get_logger

logger = get_logger(__name__)


class Step(StatesGroup):
    """Шаги диалогов."""
    WAITING_FOR_FULL_NAME = State()
    WAITING_FOR_PHONE_NUMBER = State()
    WAITING_FOR_CLASS_NAME_CREATE = State()
    WAITING_FOR_CLASS_NAME_REQUEST = State()
    WAITING_FOR_NEWS_CLASS = State()
    WAITING_FOR_NEWS_TITLE = State()
    WAITING_FOR_NEWS_CONTENT = State()
    WAITING_FOR_MODERATOR_CLASS = State()
    WAITING_FOR_MODERATOR_USER_ID_ADD = State()
    WAITING_FOR_MODERATOR_USER_ID_REMOVE = State()
    # Выбор класса кнопкой для просмотра списков или удаления
    WAITING_FOR_CLASS_CHOICE = State()


_STEPS_BY_NAME: Dict[str, State] = {step.state: step for step in Step}


class PendingAction(str, Enum):
    """Что будет сделано после выбора класса."""
    NONE = "none"
    ADD_MODERATOR = "add_moderator"
    REMOVE_MODERATOR = "remove_moderator"
    LIST_MODERATORS = "list_moderators"
    DELETE_CLASS = "delete_class"
    PARENTS_INFO = "parents_info"
    VERIFICATIONS_INFO = "verifications_info"


@dataclass
class ConversationState:
    """Состояние диалога одного пользователя."""
    step: State
    action: PendingAction = PendingAction.NONE
    full_name: Optional[str] = None
    phone_number: Optional[str] = None
    class_id: Optional[int] = None
    news_title: Optional[str] = None
    # Последнее сообщение-подсказка, удаляется при прерывании диалога
    prompt_message_id: Optional[int] = None

    @property
    def step_name(self) -> str:
        return self.step.state

    def to_data(self) -> Dict[str, Any]:
        """Данные FSM без шага."""
        data = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "step"}
        data["action"] = self.action.value
        return data

    @classmethod
    def from_storage(cls, raw_state: Optional[str], data: Dict[str, Any]) -> Optional["ConversationState"]:
        """
        Собрать состояние из записи FSM.

        Returns:
            None если шаг пуст или не относится к диалогам бота
        """
        step = _STEPS_BY_NAME.get(raw_state) if raw_state else None
        if step is None:
            return None
        known = {f.name for f in fields(cls)} - {"step"}
        values = {k: v for k, v in data.items() if k in known}
        values["action"] = PendingAction(values.get("action", PendingAction.NONE.value))
        return cls(step=step, **values)


class SessionStore(ABC):
    """
    Хранилище состояний, не больше одного состояния на пользователя.

    Обертка над BaseStorage aiogram. Подклассы выполняют pop и
    replace_if атомарно.
    """

    def __init__(self, storage: BaseStorage, bot_id: int):
        self.storage = storage
        self.bot_id = bot_id

    def key(self, user_id: int) -> StorageKey:
        return StorageKey(bot_id=self.bot_id, chat_id=user_id, user_id=user_id)

    async def _read(self, key: StorageKey) -> Optional[ConversationState]:
        raw_state = await self.storage.get_state(key)
        if raw_state is None:
            return None
        return ConversationState.from_storage(raw_state, await self.storage.get_data(key))

    async def _write(self, key: StorageKey, state: ConversationState) -> None:
        await self.storage.set_state(key, state.step)
        await self.storage.set_data(key, state.to_data())

    async def _clear(self, key: StorageKey) -> None:
        await self.storage.set_state(key, None)
        await self.storage.set_data(key, {})

    async def get(self, user_id: int) -> Optional[ConversationState]:
        """Получить состояние пользователя."""
        return await self._read(self.key(user_id))

    async def set(self, user_id: int, state: ConversationState) -> None:
        """Сохранить состояние пользователя."""
        await self._write(self.key(user_id), state)

    @abstractmethod
    async def pop(self, user_id: int) -> Optional[ConversationState]:
        """Забрать и удалить состояние одной операцией."""

    @abstractmethod
    async def replace_if(self, user_id: int, expected_step: State, state: ConversationState) -> bool:
        """
        Заменить состояние, только если текущий шаг равен expected_step.

        Returns:
            True если состояние заменено
        """

    async def delete(self, user_id: int) -> None:
        """Удалить состояние пользователя."""
        await self.pop(user_id)

    async def close(self) -> None:
        await self.storage.close()


class MemorySessionStore(SessionStore):
    """MemoryStorage aiogram, операции чтения-записи под одной блокировкой."""

    def __init__(self, storage: Optional[MemoryStorage] = None, bot_id: int = 0):
        super().__init__(storage or MemoryStorage(), bot_id)
        self._lock = asyncio.Lock()

    async def get(self, user_id: int) -> Optional[ConversationState]:
        async with self._lock:
            return await super().get(user_id)

    async def set(self, user_id: int, state: ConversationState) -> None:
        async with self._lock:
            await super().set(user_id, state)

    async def pop(self, user_id: int) -> Optional[ConversationState]:
        key = self.key(user_id)
        async with self._lock:
            state = await self._read(key)
            await self._clear(key)
            return state

    async def replace_if(self, user_id: int, expected_step: State, state: ConversationState) -> bool:
        key = self.key(user_id)
        async with self._lock:
            current = await self._read(key)
            if current is None or current.step != expected_step:
                return False
            await self._write(key, state)
            return True


class RedisSessionStore(SessionStore):
    """
    RedisStorage aiogram, общий для нескольких процессов бота.

    Шаг и данные пишутся одной транзакцией MULTI, pop и replace_if
    следят за обоими ключами через WATCH.
    """

    storage: RedisStorage

    def __init__(self, storage: RedisStorage, bot_id: int, retries: int = 3):
        super().__init__(storage, bot_id)
        self.retries = retries

    def _keys(self, user_id: int) -> Tuple[str, str]:
        key = self.key(user_id)
        builder = self.storage.key_builder
        return builder.build(key, "state"), builder.build(key, "data")

    def _decode(self, raw_state, raw_data) -> Optional[ConversationState]:
        if raw_state is None:
            return None
        if isinstance(raw_state, bytes):
            raw_state = raw_state.decode("utf-8")
        data = self.storage.json_loads(raw_data) if raw_data else {}
        return ConversationState.from_storage(raw_state, data)

    def _queue_write(self, pipe, state_key: str, data_key: str, state: ConversationState) -> None:
        pipe.set(state_key, state.step_name, ex=self.storage.state_ttl)
        pipe.set(data_key, self.storage.json_dumps(state.to_data()), ex=self.storage.data_ttl)

    async def set(self, user_id: int, state: ConversationState) -> None:
        state_key, data_key = self._keys(user_id)
        async with self.storage.redis.pipeline(transaction=True) as pipe:
            self._queue_write(pipe, state_key, data_key, state)
            await pipe.execute()

    async def pop(self, user_id: int) -> Optional[ConversationState]:
        state_key, data_key = self._keys(user_id)
        for _ in range(self.retries):
            async with self.storage.redis.pipeline(transaction=True) as pipe:
                try:
                    await pipe.watch(state_key, data_key)
                    state = self._decode(await pipe.get(state_key), await pipe.get(data_key))
                    pipe.multi()
                    pipe.delete(state_key, data_key)
                    await pipe.execute()
                    return state
                except WatchError:
                    logger.info("session_pop_conflict", user_id=user_id)
        raise RuntimeError(f"Не удалось сбросить состояние пользователя {user_id}")

    async def replace_if(self, user_id: int, expected_step: State, state: ConversationState) -> bool:
        state_key, data_key = self._keys(user_id)
        async with self.storage.redis.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(state_key, data_key)
                current = self._decode(await pipe.get(state_key), await pipe.get(data_key))
                if current is None or current.step != expected_step:
                    await pipe.unwatch()
                    return False
                pipe.multi()
                self._queue_write(pipe, state_key, data_key, state)
                await pipe.execute()
                return True
            except WatchError:
                logger.info("session_replace_conflict", user_id=user_id)
                return False


async def create_fsm_storage() -> BaseStorage:
    """FSM-хранилище по настройкам, общее для Dispatcher и диалогов."""
    if settings.session_backend == SessionBackend.REDIS.value:
        from config.redis_client import fsm_key_builder, get_redis

        logger.info("fsm_storage_selected", backend="redis")
        return RedisStorage(
            await get_redis(),
            key_builder=fsm_key_builder(),
            state_ttl=settings.session_ttl_seconds,
            data_ttl=settings.session_ttl_seconds,
        )
    logger.info("fsm_storage_selected", backend="memory")
    return MemoryStorage()


def create_session_store(storage: BaseStorage, bot_id: int) -> SessionStore:
    """Обертка с атомарными операциями для выбранного хранилища."""
    if isinstance(storage, RedisStorage):
        return RedisSessionStore(storage, bot_id)
    if isinstance(storage, MemoryStorage):
        return MemorySessionStore(storage, bot_id)
    raise ValueError(f"Неподдерживаемое FSM-хранилище: {type(storage).__name__}")
