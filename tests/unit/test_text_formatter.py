"""Тесты для форматирования текста."""
from datetime import datetime
from types import SimpleNamespace

import pytest

from schoolbot.utils.text_formatter import (
    display_name,
    format_broadcast,
    format_date,
    format_news_item,
    format_report_item,
)


@pytest.mark.unit
def test_format_date_uses_display_offset():
    """UTC время показывается со смещением +3 часа."""
    assert format_date(datetime(2026, 9, 1, 8, 30)) == "01.09.2026 11:30"
    assert format_date(None) == "-"


@pytest.mark.unit
def test_news_item_escapes_html():
    news = SimpleNamespace(title="<b>Собрание</b>", content="A & B", created_at=datetime(2026, 9, 1, 8, 0))
    text = format_news_item(3, news)

    assert text.startswith("<b>3. &lt;b&gt;Собрание&lt;/b&gt;</b>")
    assert "A &amp; B" in text
    assert "Дата: 01.09.2026 11:00" in text


@pytest.mark.unit
def test_report_item_shows_file_name():
    report = SimpleNamespace(title="Итоги", file_name="itogi.pdf", created_at=datetime(2026, 9, 1, 8, 0))
    assert "📎 itogi.pdf" in format_report_item(1, report)

    report.file_name = None
    assert "📎" not in format_report_item(1, report)


@pytest.mark.unit
def test_broadcast_text():
    text = format_broadcast("Экскурсия", "В пятницу", datetime(2026, 9, 1, 8, 0))
    assert text == "📢 <b>Экскурсия</b>\n\nВ пятницу\n\nДата: 01.09.2026 11:00"


@pytest.mark.unit
def test_display_name_fallbacks():
    user = SimpleNamespace(full_name=None, first_name="Анна", last_name=None, username="anna", telegram_user_id=5)
    assert display_name(user) == "Анна"

    user.first_name = None
    assert display_name(user) == "@anna"

    user.username = None
    assert display_name(user) == "5"
