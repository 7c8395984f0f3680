"""Тесты для валидаторов."""
import pytest
from pydantic import ValidationError

from schoolbot.utils.enums import UserRole
from schoolbot.utils.exceptions import ValidationError as InputError
from schoolbot.utils.validators import (
    ClassNameInput,
    LoginInput,
    NewsInput,
    RoleChangeInput,
    is_valid_class_name,
    is_valid_full_name,
    parse_telegram_id,
)


@pytest.mark.unit
@pytest.mark.parametrize("name", ["5А-1", "11Б", "7", "10-А", "1a"])
def test_valid_class_names(name):
    """Название начинается с цифры, буквы и цифры, не больше одного дефиса."""
    assert is_valid_class_name(name) is True


@pytest.mark.unit
@pytest.mark.parametrize("name", ["А5", "5-А-1", "", "   ", "5 А", "5А!", "-5А", None])
def test_invalid_class_names(name):
    assert is_valid_class_name(name) is False


@pytest.mark.unit
def test_full_name_requires_two_words():
    assert is_valid_full_name("Иванов Иван Иванович") is True
    assert is_valid_full_name("Иванов Иван") is True
    assert is_valid_full_name("Иванов") is False
    assert is_valid_full_name("   ") is False
    assert is_valid_full_name("/start now") is False


@pytest.mark.unit
def test_parse_telegram_id():
    assert parse_telegram_id(" 123456 ") == 123456
    with pytest.raises(InputError) as exc_info:
        parse_telegram_id("abc")
    assert exc_info.value.message == "ID должен быть числом."


@pytest.mark.unit
def test_class_name_input_strips_and_validates():
    """ClassNameInput обрезает пробелы и проверяет формат."""
    assert ClassNameInput(name=" 5А-1 ").name == "5А-1"
    with pytest.raises(ValidationError):
        ClassNameInput(name="А5")


@pytest.mark.unit
def test_login_input_rejects_extra_fields():
    with pytest.raises(ValidationError):
        LoginInput(telegram_user_id=1, password="secret")
    with pytest.raises(ValidationError):
        LoginInput(telegram_user_id=0)


@pytest.mark.unit
def test_news_input_requires_content():
    with pytest.raises(ValidationError):
        NewsInput(class_id=1, title="Собрание", content="")


@pytest.mark.unit
def test_role_change_input_allows_only_parent_and_moderator():
    assert RoleChangeInput(class_id=1, role="moderator").role == UserRole.MODERATOR
    assert RoleChangeInput(class_id=1, role="parent").role == UserRole.PARENT
    with pytest.raises(ValidationError):
        RoleChangeInput(class_id=1, role="admin")
