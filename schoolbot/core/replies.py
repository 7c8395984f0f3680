"""Ответы бота, не зависящие от транспорта."""
from dataclasses import dataclass, field
from typing import List, Optional

from schoolbot.core.sessions import ConversationState


@dataclass(frozen=True)
class Button:
    """Inline-кнопка."""
    text: str
    callback_data: str


Keyboard = List[List[Button]]


@dataclass
class Reply:
    """
    Сообщение для отправки пользователю.

    remember_prompt: сохранить ID отправленного сообщения в состоянии
    диалога, чтобы удалить его при прерывании.
    """
    text: str
    keyboard: Optional[Keyboard] = None
    html: bool = False
    remember_prompt: bool = False


@dataclass
class Transition:
    """Результат шага диалога: новое состояние (None - диалог завершен) и ответы."""
    state: Optional[ConversationState]
    replies: List[Reply] = field(default_factory=list)


def one_per_row(buttons: List[Button]) -> Keyboard:
    """Каждая кнопка в отдельном ряду."""
    return [[button] for button in buttons]
