"""Отправка сообщений через aiogram."""
from typing import Optional

from aiogram import Bot
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramBadRequest
from aiogram.types import BufferedInputFile

from schoolbot.bot.keyboards import build_inline_keyboard
from schoolbot.core.replies import Keyboard
from schoolbot.core.transport import BotTransport
from schoolbot.utils.logger import get_logger

logger = get_logger(__name__)


def _parse_mode(html: bool) -> Optional[str]:
    return ParseMode.HTML if html else None


class AiogramTransport(BotTransport):
    """BotTransport поверх aiogram.Bot."""

    def __init__(self, bot: Bot):
        self.bot = bot

    async def send_text(self, chat_id: int, text: str, keyboard: Optional[Keyboard] = None,
                        html: bool = False) -> int:
        message = await self.bot.send_message(
            chat_id,
            text,
            reply_markup=build_inline_keyboard(keyboard),
            parse_mode=_parse_mode(html),
        )
        return message.message_id

    async def edit_text(self, chat_id: int, message_id: int, text: str,
                        keyboard: Optional[Keyboard] = None, html: bool = False) -> None:
        try:
            await self.bot.edit_message_text(
                text=text,
                chat_id=chat_id,
                message_id=message_id,
                reply_markup=build_inline_keyboard(keyboard),
                parse_mode=_parse_mode(html),
            )
        except TelegramBadRequest as e:
            # Повторное нажатие на ту же страницу
            if "message is not modified" in str(e):
                return
            raise

    async def delete_message(self, chat_id: int, message_id: int) -> None:
        await self.bot.delete_message(chat_id=chat_id, message_id=message_id)

    async def answer_callback(self, callback_id: str, text: Optional[str] = None,
                              alert: bool = False) -> None:
        await self.bot.answer_callback_query(callback_id, text=text, show_alert=alert)

    async def send_document_url(self, chat_id: int, url: str, caption: str) -> None:
        await self.bot.send_document(chat_id, document=url, caption=caption, parse_mode=ParseMode.HTML)

    async def send_document_bytes(self, chat_id: int, data: bytes, filename: str, caption: str) -> None:
        await self.bot.send_document(
            chat_id,
            document=BufferedInputFile(data, filename=filename),
            caption=caption,
            parse_mode=ParseMode.HTML,
        )
