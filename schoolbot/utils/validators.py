"""Валидаторы для входных данных."""
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from schoolbot.utils.enums import NewsType, UserRole
from schoolbot.utils.exceptions import ValidationError

CLASS_NAME_ERROR = (
    "Некорректное название. Разрешены только буквы и цифры, один символ '-', "
    "и название должно начинаться с цифры."
)


def is_valid_class_name(name: Optional[str]) -> bool:
    """
    Проверить название класса.

    Название не пустое, начинается с цифры, состоит из букв и цифр
    и содержит не больше одного дефиса. Например "5А-1".
    """
    if not name or not name.strip():
        return False
    if not name[0].isdecimal():
        return False

    dashes = 0
    for ch in name:
        if ch == "-":
            dashes += 1
            if dashes > 1:
                return False
            continue
        if not (ch.isalpha() or ch.isdecimal()):
            return False
    return True


def is_valid_full_name(text: Optional[str]) -> bool:
    """ФИО: минимум два слова через пробел и не команда."""
    if not text or not text.strip():
        return False
    if text.startswith("/"):
        return False
    return len(text.split()) >= 2


def parse_telegram_id(text: Optional[str]) -> int:
    """
    Разобрать Telegram ID из текста.

    Raises:
        ValidationError: Если текст не является целым числом
    """
    try:
        return int((text or "").strip())
    except ValueError:
        raise ValidationError("ID должен быть числом.")


class ClassNameInput(BaseModel):
    """Валидация названия класса."""
    name: str = Field(..., min_length=1, max_length=64)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not is_valid_class_name(v):
            raise ValueError(CLASS_NAME_ERROR)
        return v

    class Config:
        extra = "forbid"


class LoginInput(BaseModel):
    """Вход в админ-панель по Telegram ID."""
    telegram_user_id: int = Field(..., gt=0)

    class Config:
        extra = "forbid"


class NewsInput(BaseModel):
    """Создание новости через админ-панель."""
    class_id: int = Field(..., gt=0)
    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)

    class Config:
        extra = "forbid"


class NewsUpdateInput(BaseModel):
    """Редактирование новости или отчета."""
    class_id: Optional[int] = Field(None, gt=0)
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    content: Optional[str] = None
    type: Optional[NewsType] = None

    class Config:
        extra = "forbid"


class ModeratorInput(BaseModel):
    """Назначение модератора."""
    class_id: int = Field(..., gt=0)
    telegram_user_id: int = Field(..., gt=0)

    class Config:
        extra = "forbid"


class ParentLinkInput(BaseModel):
    """Привязка родителя к классу."""
    class_id: int = Field(..., gt=0)
    telegram_user_id: int = Field(..., gt=0)

    class Config:
        extra = "forbid"


class RoleChangeInput(BaseModel):
    """Смена роли участника класса."""
    class_id: int = Field(..., gt=0)
    role: UserRole

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: UserRole) -> UserRole:
        if v not in (UserRole.PARENT, UserRole.MODERATOR):
            raise ValueError("Можно назначить только роль родителя или модератора")
        return v

    class Config:
        extra = "forbid"


class ApproveInput(BaseModel):
    """Одобрение заявки с явным выбором класса."""
    class_id: Optional[int] = Field(None, gt=0)

    class Config:
        extra = "forbid"
