"""Telegram-бот школьных классов: регистрация родителей, новости и отчеты."""

__version__ = "1.0.0"
