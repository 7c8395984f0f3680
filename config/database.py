"""Настройка базы данных."""
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from config.settings import settings


def _engine_options(url: str) -> dict:
    """Параметры пула. SQLite работает без пула соединений."""
    options = {"echo": settings.database_echo}
    if not url.startswith("sqlite"):
        options.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_pre_ping=True,
        )
    return options


# Создание движка базы данных
engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))

# Фабрика сессий для бота, воркера и админ-панели
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# Базовый класс для моделей
Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Сессия БД на время запроса админ-панели."""
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def health_check() -> bool:
    """
    Проверка доступности базы данных.

    Returns:
        True если запрос SELECT 1 выполнен
    """
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
