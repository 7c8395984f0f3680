"""Контекст обработки одного обновления."""
from dataclasses import dataclass

from schoolbot.core.store import EntityStore
from schoolbot.models import User


@dataclass
class UpdateContext:
    """Сессия БД, автор обновления и чат для ответа."""
    store: EntityStore
    user: User
    chat_id: int
    # Telegram ID автора отдельно от ORM-объекта: доступен и после rollback
    user_id: int
