"""Точка входа для админ-панели."""

from datetime import datetime, timedelta

from aiogram import Bot
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.middleware.sessions import SessionMiddleware

from admin_panel.api import api_router
from admin_panel.core.dependencies import limiter, set_services
from config.settings import settings
from schoolbot import __version__
from schoolbot.bot.transport import AiogramTransport
from schoolbot.services import create_blob_store, create_dispatcher
from schoolbot.utils.exceptions import (
    AuthorizationError,
    FlowAbortedError,
    NotFoundError,
    SchoolBotError,
    StateExpiredError,
    ValidationError,
)
from schoolbot.utils.logger import get_logger, setup_logging

setup_logging()
logger = get_logger(__name__)

# Проверка обязательных настроек при старте
if not settings.secret_key or len(settings.secret_key) < 32:
    raise ValueError(
        "SECRET_KEY must be set in .env file and be at least 32 characters long. "
        "Generate a secure random string for production."
    )

app = FastAPI(
    title="School Bot Admin Panel API",
    description="API для админ-панели классов",
    version=__version__,
)

# Подключаем rate limiter к приложению
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    SessionMiddleware,
    secret_key=settings.secret_key,
    max_age=int(timedelta(days=settings.session_max_age_days).total_seconds()),
    same_site="lax",
    https_only=settings.environment == "production",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.admin_panel_url],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Accept"],
)

ERROR_STATUS = (
    (ValidationError, 422),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (FlowAbortedError, 409),
    (StateExpiredError, 409),
)


@app.exception_handler(SchoolBotError)
async def school_bot_error_handler(request: Request, exc: SchoolBotError):
    """Доменные ошибки в JSON с подходящим кодом."""
    status_code = 400
    for error_type, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            status_code = code
            break
    logger.info("admin_panel_request_rejected", path=request.url.path, error=exc.message, status=status_code)
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


# Подключаем роутеры
app.include_router(api_router, prefix="/api")


@app.get("/")
async def root():
    """Корневой эндпоинт."""
    return {"message": "School Bot Admin Panel API", "version": __version__, "docs": "/docs"}


@app.get("/health")
async def health():
    """Health check - базовая проверка."""
    return {"status": "ok"}


@app.get("/health/detailed")
async def health_detailed():
    """Проверка БД и Redis."""
    from config import database, redis_client

    checks = {
        "database": "ok" if await database.health_check() else "error",
        "redis": "ok" if await redis_client.health_check() else "unavailable",
    }
    status = "ok" if checks["database"] == "ok" else "degraded"
    return {"status": status, "timestamp": datetime.utcnow().isoformat(), "checks": checks}


@app.on_event("startup")
async def startup_event():
    """Подключение к Telegram и сервисам доставки."""
    bot = Bot(token=settings.telegram_bot_token)
    app.state.bot = bot
    dispatcher = await create_dispatcher(AiogramTransport(bot))
    set_services(dispatcher, create_blob_store())
    logger.info("admin_panel_startup", delivery_mode=dispatcher.mode.value)


@app.on_event("shutdown")
async def shutdown_event():
    """Закрытие соединений."""
    from config.redis_client import close_redis

    bot = getattr(app.state, "bot", None)
    if bot is not None:
        await bot.session.close()
    await close_redis()
    logger.info("admin_panel_shutdown")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "admin_panel.main:app",
        host=settings.admin_panel_host,
        port=settings.admin_panel_port,
    )
