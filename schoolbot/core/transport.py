"""Интерфейс отправки сообщений в Telegram."""
from abc import ABC, abstractmethod
from typing import Optional

from schoolbot.core.replies import Keyboard


class BotTransport(ABC):
    """Операции Bot API, которые использует бот."""

    @abstractmethod
    async def send_text(self, chat_id: int, text: str, keyboard: Optional[Keyboard] = None,
                        html: bool = False) -> int:
        """Отправить текст. Returns: message_id."""

    @abstractmethod
    async def edit_text(self, chat_id: int, message_id: int, text: str,
                        keyboard: Optional[Keyboard] = None, html: bool = False) -> None:
        """Изменить текст отправленного сообщения."""

    @abstractmethod
    async def delete_message(self, chat_id: int, message_id: int) -> None:
        """Удалить сообщение."""

    @abstractmethod
    async def answer_callback(self, callback_id: str, text: Optional[str] = None,
                              alert: bool = False) -> None:
        """Ответить на нажатие кнопки."""

    @abstractmethod
    async def send_document_url(self, chat_id: int, url: str, caption: str) -> None:
        """Отправить документ по ссылке (подпись в HTML)."""

    @abstractmethod
    async def send_document_bytes(self, chat_id: int, data: bytes, filename: str, caption: str) -> None:
        """Загрузить документ из памяти (подпись в HTML)."""
