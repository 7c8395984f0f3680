"""Зависимости FastAPI: сессия БД, текущий пользователь, сервисы."""

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from schoolbot.core import authorization as policy
from schoolbot.core.dispatcher import NewsDispatcher
from schoolbot.core.notifications import NotificationGateway
from schoolbot.core.report_storage import ReportBlobStore
from schoolbot.core.store import EntityStore
from schoolbot.models import User

SESSION_KEY = "telegram_user_id"

limiter = Limiter(key_func=get_remote_address)

# Заполняются при старте приложения
_dispatcher: Optional[NewsDispatcher] = None
_blob_store: Optional[ReportBlobStore] = None


def set_services(dispatcher: NewsDispatcher, blob_store: Optional[ReportBlobStore]) -> None:
    """Установить сервисы доставки и хранения файлов."""
    global _dispatcher, _blob_store
    _dispatcher = dispatcher
    _blob_store = blob_store


def get_dispatcher() -> NewsDispatcher:
    if _dispatcher is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Рассылка недоступна")
    return _dispatcher


def get_notifier(dispatcher: NewsDispatcher = Depends(get_dispatcher)) -> NotificationGateway:
    return dispatcher.notifier


def get_blob_store() -> Optional[ReportBlobStore]:
    return _blob_store


def get_store(db: AsyncSession = Depends(get_db)) -> EntityStore:
    return EntityStore(db)


async def get_current_user(request: Request, store: EntityStore = Depends(get_store)) -> User:
    """
    Пользователь из cookie-сессии.

    Права не кэшируются: роль перечитывается из БД при каждом запросе.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Требуется вход",
    )
    telegram_user_id = request.session.get(SESSION_KEY)
    if telegram_user_id is None:
        raise credentials_exception

    user = await store.get_user(int(telegram_user_id))
    if user is None or not policy.is_manager(user):
        request.session.clear()
        raise credentials_exception
    return user
