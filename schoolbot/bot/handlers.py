"""Обработчики обновлений Telegram бота."""
from typing import Optional

from aiogram import F, Router
from aiogram.types import CallbackQuery, Message

from schoolbot.core.router import CommandRouter, IncomingCallback, IncomingMessage

router = Router()

# Глобальный маршрутизатор команд
_command_router: Optional[CommandRouter] = None


def set_command_router(command_router: CommandRouter) -> None:
    """Установить маршрутизатор команд."""
    global _command_router
    _command_router = command_router


def get_command_router() -> CommandRouter:
    """Получить маршрутизатор команд."""
    if _command_router is None:
        raise RuntimeError("Command router not initialized")
    return _command_router


@router.message(F.text)
async def on_text(message: Message):
    """Любое текстовое сообщение: команда или ответ на шаг диалога."""
    if message.from_user is None:
        return
    await get_command_router().handle_message(IncomingMessage(
        chat_id=message.chat.id,
        user_id=message.from_user.id,
        text=message.text,
        username=message.from_user.username,
        first_name=message.from_user.first_name,
        last_name=message.from_user.last_name,
    ))


@router.callback_query()
async def on_callback(callback: CallbackQuery):
    """Нажатие inline-кнопки."""
    message = callback.message
    await get_command_router().handle_callback(IncomingCallback(
        callback_id=callback.id,
        chat_id=message.chat.id if message else callback.from_user.id,
        user_id=callback.from_user.id,
        data=callback.data,
        message_id=message.message_id if message else None,
        username=callback.from_user.username,
        first_name=callback.from_user.first_name,
        last_name=callback.from_user.last_name,
    ))
