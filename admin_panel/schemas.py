"""Схемы ответов админ-панели."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class UserResponse(BaseModel):
    """Пользователь бота."""

    id: int
    telegram_user_id: int
    username: Optional[str]
    full_name: Optional[str]
    phone_number: Optional[str]
    role: str
    is_verified: bool
    class_id: Optional[int]

    class Config:
        from_attributes = True


class ClassResponse(BaseModel):
    """Класс."""

    id: int
    name: str
    admin_telegram_user_id: int
    created_at: datetime

    class Config:
        from_attributes = True


class NewsResponse(BaseModel):
    """Новость или отчет."""

    id: int
    class_id: int
    author_telegram_user_id: int
    title: str
    content: str
    type: str
    file_name: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class NewsListResponse(BaseModel):
    items: List[NewsResponse]
    total: int


class PublishResponse(BaseModel):
    """Результат публикации."""

    news: NewsResponse
    delivery: str
    sent: int = 0
    failed: int = 0


class VerificationResponse(BaseModel):
    """Заявка родителя."""

    id: int
    telegram_user_id: int
    full_name: Optional[str]
    phone_number: Optional[str]
    class_id: Optional[int]
    status: str
    created_at: datetime
    processed_at: Optional[datetime]

    class Config:
        from_attributes = True


class CascadeResponse(BaseModel):
    """Итог удаления класса."""

    class_id: int
    news: int
    verifications: int
    links: int
    detached_users: int
