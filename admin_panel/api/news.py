"""API для новостей и отчетов."""

from io import BytesIO
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status

from admin_panel.core.dependencies import get_blob_store, get_current_user, get_dispatcher, get_store
from admin_panel.schemas import NewsListResponse, NewsResponse, PublishResponse
from schoolbot.core import authorization as policy
from schoolbot.core import operations
from schoolbot.core.dispatcher import NewsDispatcher
from schoolbot.core.report_storage import ReportBlobStore, make_object_key
from schoolbot.core.store import EntityStore
from schoolbot.models import News, User
from schoolbot.utils.enums import NewsType
from schoolbot.utils.exceptions import AuthorizationError, NotFoundError, ValidationError
from schoolbot.utils.logger import get_logger
from schoolbot.utils.validators import NewsInput, NewsUpdateInput

logger = get_logger(__name__)

router = APIRouter()


async def _get_managed_news(store: EntityStore, user: User, news_id: int) -> News:
    news = await store.get_news(news_id)
    if news is None:
        raise NotFoundError("Публикация не найдена.")
    await operations.require_manageable_class(store, user, news.class_id)
    return news


@router.get("", response_model=NewsListResponse)
async def get_news(
    class_id: int = Query(..., gt=0),
    type: Optional[NewsType] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    """Публикации класса, новые первыми."""
    await operations.require_manageable_class(store, current_user, class_id)
    items = await store.list_news(class_id, type, skip, limit)
    if type is None:
        total = await store.count_news(class_id, NewsType.NEWS) + await store.count_news(class_id, NewsType.REPORT)
    else:
        total = await store.count_news(class_id, type)
    return NewsListResponse(items=[NewsResponse.model_validate(n) for n in items], total=total)


@router.post("", response_model=PublishResponse, status_code=status.HTTP_201_CREATED)
async def create_news(
    data: NewsInput,
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
    dispatcher: NewsDispatcher = Depends(get_dispatcher),
):
    """Опубликовать новость и разослать ее участникам класса."""
    school_class = await operations.require_manageable_class(store, current_user, data.class_id)
    if not policy.can_publish(current_user, school_class):
        raise AuthorizationError(operations.NO_RIGHTS)

    news = await store.create_news(
        school_class.id,
        current_user.telegram_user_id,
        data.title.strip(),
        data.content.strip(),
        NewsType.NEWS,
    )
    await store.commit()
    logger.info("news_created", news_id=news.id, class_id=news.class_id, source="admin_panel")

    outcome = await dispatcher.dispatch(news, store)
    return PublishResponse(
        news=NewsResponse.model_validate(news),
        delivery=outcome.mode,
        sent=outcome.sent,
        failed=outcome.failed,
    )


@router.post("/reports", response_model=PublishResponse, status_code=status.HTTP_201_CREATED)
async def upload_report(
    class_id: int = Form(..., gt=0),
    title: str = Form(..., min_length=1, max_length=255),
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
    blob_store: Optional[ReportBlobStore] = Depends(get_blob_store),
):
    """Загрузить файл отчета в хранилище и создать публикацию типа отчет."""
    if blob_store is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Хранилище файлов недоступно")

    school_class = await operations.require_manageable_class(store, current_user, class_id)
    if not policy.can_publish(current_user, school_class):
        raise AuthorizationError(operations.NO_RIGHTS)

    file_name = file.filename or "report"
    payload = await file.read()
    if not payload:
        raise ValidationError("Файл пуст.")

    object_key = make_object_key(school_class.id, file_name)
    await blob_store.upload(
        object_key,
        BytesIO(payload),
        file.content_type or "application/octet-stream",
        len(payload),
    )

    report = await store.create_news(
        school_class.id,
        current_user.telegram_user_id,
        title.strip(),
        "",
        NewsType.REPORT,
        file_path=object_key,
        file_name=file_name,
    )
    await store.commit()
    logger.info("report_uploaded", news_id=report.id, class_id=school_class.id, size=len(payload))
    return PublishResponse(news=NewsResponse.model_validate(report), delivery="pull")


@router.patch("/{news_id}", response_model=NewsResponse)
async def update_news(
    news_id: int,
    data: NewsUpdateInput,
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    """Изменить заголовок, текст, тип или класс публикации."""
    news = await _get_managed_news(store, current_user, news_id)

    if data.class_id is not None and data.class_id != news.class_id:
        await operations.require_manageable_class(store, current_user, data.class_id)
        news.class_id = data.class_id
    if data.title is not None:
        news.title = data.title.strip()
    if data.content is not None:
        news.content = data.content
    if data.type is not None:
        news.type = NewsType(data.type).value

    await store.commit()
    logger.info("news_updated", news_id=news.id, updated_by=current_user.telegram_user_id)
    return news


@router.delete("/{news_id}")
async def delete_news(
    news_id: int,
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
    blob_store: Optional[ReportBlobStore] = Depends(get_blob_store),
):
    """Удалить публикацию. Доступно администратору класса."""
    news = await store.get_news(news_id)
    if news is None:
        raise NotFoundError("Публикация не найдена.")
    await operations.require_owned_class(store, current_user, news.class_id)

    object_key = news.file_path
    await store.delete_news(news)
    await store.commit()

    if object_key and blob_store is not None:
        try:
            await blob_store.delete(object_key)
        except Exception as e:
            logger.warning("report_blob_delete_failed", object_key=object_key, error=str(e))

    logger.info("news_deleted", news_id=news_id, deleted_by=current_user.telegram_user_id)
    return {"status": "ok"}
