"""Кастомные исключения для приложения."""
from typing import Optional


class SchoolBotError(Exception):
    """Базовое исключение бота. Текст сообщения показывается пользователю."""

    default_message = "Произошла ошибка. Попробуйте позже."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(SchoolBotError):
    """Некорректный ввод. Шаг диалога повторяется."""

    default_message = "Некорректный ввод. Попробуйте еще раз."


class AuthorizationError(SchoolBotError):
    """Недостаточно прав."""

    default_message = "У вас нет прав для выполнения этой команды."


class NotFoundError(SchoolBotError):
    """Сущность не найдена или не принадлежит пользователю."""

    default_message = "Не найдено."


class StateExpiredError(SchoolBotError):
    """Кнопка ссылается на уже завершенный диалог."""

    default_message = "Сессия устарела. Начните заново."


class FlowAbortedError(SchoolBotError):
    """Диалог прерван бизнес-правилом."""
    pass


class CallbackParseError(SchoolBotError):
    """Не удалось разобрать данные кнопки."""

    default_message = "Ошибка: неизвестная кнопка."


class ExternalDeliveryError(SchoolBotError):
    """Ошибка отправки во внешний сервис."""

    default_message = "Не удалось доставить сообщение."
