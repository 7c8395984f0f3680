"""Перечисления для ролей, статусов и типов."""
from enum import Enum


class UserRole(str, Enum):
    """Роли пользователей."""
    UNVERIFIED = "unverified"
    PARENT = "parent"
    MODERATOR = "moderator"
    ADMIN = "admin"


class NewsType(str, Enum):
    """Типы публикаций."""
    NEWS = "news"
    REPORT = "report"


class VerificationStatus(str, Enum):
    """Статусы заявок на вступление в класс."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DeliveryMode(str, Enum):
    """Способ доставки новостей."""
    QUEUE = "queue"
    DIRECT = "direct"


class SessionBackend(str, Enum):
    """Хранилище состояний диалогов."""
    MEMORY = "memory"
    REDIS = "redis"
