"""Клавиатуры для Telegram бота."""
from typing import Optional

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup

from schoolbot.core.replies import Keyboard


def build_inline_keyboard(keyboard: Optional[Keyboard]) -> Optional[InlineKeyboardMarkup]:
    """
    Преобразовать описание кнопок в InlineKeyboardMarkup.

    Args:
        keyboard: Ряды кнопок или None

    Returns:
        InlineKeyboardMarkup или None, если кнопок нет
    """
    if not keyboard:
        return None
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text=button.text, callback_data=button.callback_data) for button in row]
        for row in keyboard
    ])
