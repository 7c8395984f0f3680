"""
Действия inline-кнопок.

callback_data разбирается один раз в типизированное намерение.
Формат: токены через "_", первый токен - действие, далее целые ID.
"""
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Union, get_args

from schoolbot.core.pagination import ListingKind, PageCursor
from schoolbot.utils.exceptions import CallbackParseError


class ModeratorAction(str, Enum):
    ADD = "add"
    REMOVE = "remove"
    LIST = "list"


@dataclass(frozen=True)
class ApproveVerification:
    verification_id: int
    class_id: Optional[int] = None

    def encode(self) -> str:
        if self.class_id is None:
            return f"approve_{self.verification_id}"
        return f"approve_{self.verification_id}_{self.class_id}"


@dataclass(frozen=True)
class RejectVerification:
    verification_id: int

    def encode(self) -> str:
        return f"reject_{self.verification_id}"


@dataclass(frozen=True)
class SelectNewsClass:
    class_id: int

    def encode(self) -> str:
        return f"news_class_{self.class_id}"


@dataclass(frozen=True)
class TurnPage:
    cursor: PageCursor
    direction: int

    def encode(self) -> str:
        return self.cursor.encode(self.direction)


@dataclass(frozen=True)
class ViewNewsClass:
    class_id: int

    def encode(self) -> str:
        return f"viewnews_class_{self.class_id}"


@dataclass(frozen=True)
class ViewReportsClass:
    class_id: int

    def encode(self) -> str:
        return f"viewreports_class_{self.class_id}"


@dataclass(frozen=True)
class DownloadReport:
    report_id: int

    def encode(self) -> str:
        return f"report_dl_{self.report_id}"


@dataclass(frozen=True)
class DeleteClass:
    class_id: int

    def encode(self) -> str:
        return f"delete_class_{self.class_id}"


@dataclass(frozen=True)
class SelectModeratorClass:
    action: ModeratorAction
    class_id: int

    def encode(self) -> str:
        return f"modclass_{self.action.value}_{self.class_id}"


@dataclass(frozen=True)
class ShowParents:
    class_id: int

    def encode(self) -> str:
        return f"parents_class_{self.class_id}"


@dataclass(frozen=True)
class ShowVerifications:
    class_id: int

    def encode(self) -> str:
        return f"verif_class_{self.class_id}"


CallbackIntent = Union[
    ApproveVerification,
    RejectVerification,
    SelectNewsClass,
    TurnPage,
    ViewNewsClass,
    ViewReportsClass,
    DownloadReport,
    DeleteClass,
    SelectModeratorClass,
    ShowParents,
    ShowVerifications,
]

INTENT_TYPES = get_args(CallbackIntent)

# действие "<префикс>_class_<id>" -> тип намерения
_CLASS_ACTIONS = {
    "news": SelectNewsClass,
    "viewnews": ViewNewsClass,
    "viewreports": ViewReportsClass,
    "delete": DeleteClass,
    "parents": ShowParents,
    "verif": ShowVerifications,
}


def _ints(tokens: List[str], min_count: int, max_count: int) -> List[int]:
    if not min_count <= len(tokens) <= max_count:
        raise CallbackParseError("Ошибка выбора: неверные данные кнопки.")
    try:
        return [int(token) for token in tokens]
    except ValueError:
        raise CallbackParseError("Ошибка выбора: неверные данные кнопки.")


def decode_callback(data: Optional[str]) -> CallbackIntent:
    """
    Разобрать callback_data.

    Raises:
        CallbackParseError: Неизвестное действие или нечисловые ID
    """
    tokens = (data or "").split("_")
    if len(tokens) < 2:
        raise CallbackParseError()
    head, second = tokens[0], tokens[1]

    if head == "approve":
        ids = _ints(tokens[1:], 1, 2)
        return ApproveVerification(ids[0], ids[1] if len(ids) > 1 else None)
    if head == "reject":
        return RejectVerification(*_ints(tokens[1:], 1, 1))
    if head in (ListingKind.NEWS.value, ListingKind.REPORTS.value) and second in ("prev", "next"):
        class_id, page = _ints(tokens[2:], 2, 2)
        cursor = PageCursor(ListingKind(head), class_id, page)
        return TurnPage(cursor, 1 if second == "next" else -1)
    if head == "report" and second == "dl":
        return DownloadReport(*_ints(tokens[2:], 1, 1))
    if head == "modclass":
        try:
            action = ModeratorAction(second)
        except ValueError:
            raise CallbackParseError()
        return SelectModeratorClass(action, *_ints(tokens[2:], 1, 1))
    if second == "class" and head in _CLASS_ACTIONS:
        return _CLASS_ACTIONS[head](*_ints(tokens[2:], 1, 1))
    raise CallbackParseError()
