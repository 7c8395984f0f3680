"""Просмотр новостей и отчетов класса с постраничной навигацией."""

import asyncio
from typing import Optional

from schoolbot.core import authorization as policy
from schoolbot.core.context import UpdateContext
from schoolbot.core.intents import DownloadReport
from schoolbot.core.pagination import ListingKind, PageCursor, clamp_page, page_bounds, total_pages
from schoolbot.core.replies import Button
from schoolbot.core.report_storage import ReportBlobStore
from schoolbot.core.transport import BotTransport
from schoolbot.models import SchoolClass
from schoolbot.utils.enums import NewsType
from schoolbot.utils.exceptions import AuthorizationError, NotFoundError
from schoolbot.utils.logger import get_logger
from schoolbot.utils.text_formatter import format_news_item, format_report_caption, format_report_item, html

logger = get_logger(__name__)

_LISTINGS = {
    ListingKind.NEWS: (NewsType.NEWS, "Пока нет новостей.", "У вас нет доступа к новостям этого класса.", "Новости"),
    ListingKind.REPORTS: (NewsType.REPORT, "Отчеты отсутствуют.", "У вас нет доступа к отчетам этого класса.", "Отчеты"),
}


class ContentBrowser:
    """
    Страницы новостей и отчетов и выдача файлов отчетов.

    Доступ проверяется при каждом показе страницы, поэтому старая кнопка
    навигации не покажет содержимое после потери доступа.
    """

    def __init__(self, transport: BotTransport, blob_store: Optional[ReportBlobStore] = None,
                 url_ttl_seconds: int = 3600, timeout_seconds: float = 15.0):
        self.transport = transport
        self.blob_store = blob_store
        self.url_ttl_seconds = url_ttl_seconds
        self.timeout_seconds = timeout_seconds

    async def _viewable_class(self, ctx: UpdateContext, class_id: int, denied: str) -> SchoolClass:
        school_class = await ctx.store.get_class(class_id)
        if school_class is None:
            raise NotFoundError("Класс не найден.")
        linked = await ctx.store.linked_class_ids(ctx.user.id)
        if not policy.can_view_class_content(ctx.user, school_class, linked):
            raise AuthorizationError(denied)
        return school_class

    async def show_page(self, ctx: UpdateContext, kind: ListingKind, class_id: int, page: int,
                        message_id: Optional[int] = None) -> int:
        """
        Показать страницу списка.

        Номер страницы приводится к [1, число страниц]. Если передан
        message_id, сообщение редактируется на месте.

        Returns:
            Показанный номер страницы (0 если список пуст)
        """
        news_type, empty_text, denied, title = _LISTINGS[kind]
        school_class = await self._viewable_class(ctx, class_id, denied)

        pages = total_pages(await ctx.store.count_news(school_class.id, news_type))
        if pages == 0:
            await self._render(ctx, f"{title} класса {html(school_class.name)}\n\n{empty_text}", None, message_id)
            return 0

        page = clamp_page(page, pages)
        offset, limit = page_bounds(page)
        items = await ctx.store.list_news(school_class.id, news_type, offset, limit)

        if kind == ListingKind.NEWS:
            body = "\n\n".join(format_news_item(offset + i + 1, item) for i, item in enumerate(items))
        else:
            body = "\n\n".join(format_report_item(offset + i + 1, item) for i, item in enumerate(items))
        text = f"<b>{title} класса {html(school_class.name)}</b> (стр. {page}/{pages})\n\n{body}"

        keyboard = []
        if kind == ListingKind.REPORTS:
            keyboard.extend(
                [Button(f"⬇️ {item.title}", DownloadReport(item.id).encode())] for item in items
            )
        navigation = PageCursor(kind, school_class.id, page).navigation(pages)
        if navigation:
            keyboard.append(navigation)

        await self._render(ctx, text, keyboard or None, message_id)
        return page

    async def _render(self, ctx: UpdateContext, text: str, keyboard, message_id: Optional[int]) -> None:
        if message_id is not None:
            try:
                await self.transport.edit_text(ctx.chat_id, message_id, text, keyboard=keyboard, html=True)
                return
            except Exception as e:
                logger.warning("listing_edit_failed", message_id=message_id, error=str(e))
        await self.transport.send_text(ctx.chat_id, text, keyboard=keyboard, html=True)

    async def deliver_report(self, ctx: UpdateContext, report_id: int) -> str:
        """
        Выдать файл отчета.

        Порядок: документ по временной ссылке, затем загрузка файла через
        бота, затем текстовое уведомление. Каждый внешний вызов ограничен
        по времени.

        Returns:
            Способ доставки: "url", "upload" или "text"
        """
        report = await ctx.store.get_news(report_id)
        if report is None or report.type != NewsType.REPORT:
            raise NotFoundError("Отчет не найден.")
        await self._viewable_class(ctx, report.class_id, "Нет доступа к этому отчету.")

        caption = format_report_caption(report)
        if report.file_path and self.blob_store is not None:
            url = await self._bounded(self.blob_store.presigned_url(report.file_path, self.url_ttl_seconds),
                                      "report_presign_failed", report_id)
            if url and url.startswith(("http://", "https://")):
                if await self._bounded(self.transport.send_document_url(ctx.chat_id, url, caption),
                                       "report_send_url_failed", report_id, ok=True):
                    return "url"

            data = await self._bounded(self.blob_store.read(report.file_path), "report_read_failed", report_id)
            if data is not None:
                filename = report.file_name or "report"
                if await self._bounded(self.transport.send_document_bytes(ctx.chat_id, data, filename, caption),
                                       "report_upload_failed", report_id, ok=True):
                    return "upload"

        await self.transport.send_text(
            ctx.chat_id, f"{caption}\n\nФайл сейчас недоступен для скачивания.", html=True
        )
        return "text"

    async def _bounded(self, call, event: str, report_id: int, ok: bool = False):
        """Выполнить внешний вызов с таймаутом. Ошибка логируется и дает None."""
        try:
            result = await asyncio.wait_for(call, timeout=self.timeout_seconds)
            return True if ok else result
        except Exception as e:
            logger.warning(event, report_id=report_id, error=str(e) or type(e).__name__)
            return None
