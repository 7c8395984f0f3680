"""Утилиты для форматирования текста сообщений."""
from datetime import datetime, timedelta
from html import escape
from typing import Optional

from config.settings import settings

DATE_FORMAT = "%d.%m.%Y %H:%M"


def to_display_time(moment: datetime) -> datetime:
    """Перевести UTC время в часовой пояс отображения."""
    return moment + timedelta(hours=settings.display_utc_offset_hours)


def format_date(moment: Optional[datetime]) -> str:
    """Дата в формате дд.мм.гггг чч:мм."""
    if moment is None:
        return "-"
    return to_display_time(moment).strftime(DATE_FORMAT)


def html(text: Optional[str]) -> str:
    """Экранировать текст для HTML-разметки Telegram."""
    return escape(text or "", quote=False)


def format_news_item(index: int, news) -> str:
    """Элемент списка новостей."""
    return (
        f"<b>{index}. {html(news.title)}</b>\n\n"
        f"{html(news.content)}\n\n"
        f"Дата: {format_date(news.created_at)}"
    )


def format_report_item(index: int, report) -> str:
    """Элемент списка отчетов."""
    file_line = f"\n📎 {html(report.file_name)}" if report.file_name else ""
    return (
        f"<b>{index}. {html(report.title)}</b>{file_line}\n"
        f"Дата: {format_date(report.created_at)}"
    )


def format_report_caption(report) -> str:
    """Подпись к файлу отчета."""
    return (
        f"<b>{html(report.title)}</b>\n\n"
        f"{html(report.file_name or 'Файл не прикреплен')}\n\n"
        f"Дата: {format_date(report.created_at)}"
    )


def format_broadcast(title: str, content: Optional[str], created_at: datetime) -> str:
    """Текст рассылки новости."""
    return (
        f"📢 <b>{html(title)}</b>\n\n"
        f"{html(content)}\n\n"
        f"Дата: {format_date(created_at)}"
    )


def display_name(user) -> str:
    """Имя пользователя для списков."""
    if user.full_name:
        return user.full_name
    parts = [p for p in (user.first_name, user.last_name) if p]
    if parts:
        return " ".join(parts)
    if user.username:
        return f"@{user.username}"
    return str(user.telegram_user_id)
