"""
Постраничный просмотр новостей и отчетов.

Позиция (класс, страница) кодируется в callback_data кнопок навигации.
"""
import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from schoolbot.core.replies import Button

PAGE_SIZE = 5
MAX_PAGES = 10


class ListingKind(str, Enum):
    """Вид списка. Значение - префикс callback_data."""
    NEWS = "news"
    REPORTS = "reports"


def total_pages(count: int) -> int:
    """Количество страниц с учетом ограничения MAX_PAGES."""
    if count <= 0:
        return 0
    return min(math.ceil(count / PAGE_SIZE), MAX_PAGES)


def clamp_page(page: int, pages: int) -> int:
    """Привести номер страницы к диапазону [1, pages]."""
    return max(1, min(page, max(pages, 1)))


def page_bounds(page: int) -> Tuple[int, int]:
    """(offset, limit) для страницы, нумерация с 1."""
    return (page - 1) * PAGE_SIZE, PAGE_SIZE


@dataclass(frozen=True)
class PageCursor:
    """Текущая страница списка класса."""
    kind: ListingKind
    class_id: int
    page: int

    def encode(self, direction: int) -> str:
        """callback_data для перехода на соседнюю страницу."""
        word = "next" if direction > 0 else "prev"
        return f"{self.kind.value}_{word}_{self.class_id}_{self.page}"

    def target(self, direction: int) -> int:
        """Номер страницы после перехода."""
        return self.page + (1 if direction > 0 else -1)

    def navigation(self, pages: int) -> Optional[List[Button]]:
        """Ряд кнопок "« Пред" / "След »" или None, если страница одна."""
        buttons = []
        if self.page > 1:
            buttons.append(Button(text="« Пред", callback_data=self.encode(-1)))
        if self.page < pages:
            buttons.append(Button(text="След »", callback_data=self.encode(1)))
        return buttons or None
