"""Главный файл для запуска Telegram бота."""

import asyncio
import sys

from aiogram import Bot, Dispatcher
from aiogram.fsm.storage.base import BaseStorage
from aiogram.types import BotCommand

from config.database import async_session_maker
from config.redis_client import close_redis
from config.settings import settings
from schoolbot.bot.handlers import router, set_command_router
from schoolbot.bot.transport import AiogramTransport
from schoolbot.core.conversation import ConversationEngine
from schoolbot.core.listings import ContentBrowser
from schoolbot.core.notifications import NotificationGateway
from schoolbot.core.router import CommandRouter
from schoolbot.core.sessions import create_fsm_storage, create_session_store
from schoolbot.services import create_blob_store, create_dispatcher
from schoolbot.utils.logger import setup_logging, get_logger

logger = get_logger(__name__)

BOT_COMMANDS = [
    BotCommand(command="start", description="Начало работы"),
    BotCommand(command="help", description="Список команд"),
    BotCommand(command="register", description="Регистрация"),
    BotCommand(command="requestclass", description="Заявка в класс"),
    BotCommand(command="myclass", description="Мои классы"),
    BotCommand(command="viewnews", description="Новости класса"),
    BotCommand(command="viewreports", description="Отчеты класса"),
    BotCommand(command="createnews", description="Опубликовать новость"),
    BotCommand(command="createclass", description="Создать класс"),
]


async def build_command_router(bot: Bot, storage: BaseStorage) -> CommandRouter:
    """Собрать маршрутизатор со всеми зависимостями."""
    transport = AiogramTransport(bot)
    notifier = NotificationGateway(transport)
    sessions = create_session_store(storage, bot.id)
    dispatcher = await create_dispatcher(transport)
    engine = ConversationEngine(
        sessions,
        dispatcher,
        notifier,
        max_classes_per_admin=settings.max_classes_per_admin,
    )
    browser = ContentBrowser(
        transport,
        blob_store=create_blob_store(),
        url_ttl_seconds=settings.report_url_ttl_seconds,
        timeout_seconds=settings.external_call_timeout_seconds,
    )
    return CommandRouter(
        async_session_maker,
        sessions,
        engine,
        browser,
        transport,
        notifier,
        admin_panel_url=settings.admin_panel_url,
    )


async def main():
    """Главная функция запуска бота."""
    setup_logging()

    bot = Bot(token=settings.telegram_bot_token)

    try:
        me = await bot.get_me()
        logger.info("bot_info", bot_id=me.id, username=me.username)
    except Exception as e:
        logger.error("failed_to_get_bot_info", error=str(e))
        raise

    storage = await create_fsm_storage()
    set_command_router(await build_command_router(bot, storage))

    dp = Dispatcher(storage=storage)
    dp.include_router(router)

    try:
        await bot.set_my_commands(BOT_COMMANDS)
    except Exception as e:
        logger.warning("set_commands_failed", error=str(e))

    logger.info("bot_starting", delivery_mode=settings.news_delivery_mode, sessions=settings.session_backend)

    try:
        await dp.start_polling(bot)
    finally:
        await close_redis()
        await bot.session.close()
        logger.info("bot_stopped")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        sys.exit(0)
