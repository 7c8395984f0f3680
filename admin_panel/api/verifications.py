"""API для заявок родителей."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from admin_panel.core.dependencies import get_current_user, get_notifier, get_store
from admin_panel.schemas import VerificationResponse
from schoolbot.core import operations
from schoolbot.core.notifications import NotificationGateway
from schoolbot.core.store import EntityStore
from schoolbot.models import User
from schoolbot.utils.validators import ApproveInput

router = APIRouter()


@router.get("", response_model=List[VerificationResponse])
async def get_verifications(
    class_id: int = Query(..., gt=0),
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    """Ожидающие заявки класса."""
    await operations.require_manageable_class(store, current_user, class_id)
    return await store.list_pending_verifications(class_id)


@router.post("/{verification_id}/approve", response_model=VerificationResponse)
async def approve(
    verification_id: int,
    data: Optional[ApproveInput] = None,
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
    notifier: NotificationGateway = Depends(get_notifier),
):
    """Одобрить заявку."""
    class_id = data.class_id if data is not None else None
    result = await operations.approve_verification(store, current_user, verification_id, class_id)
    await store.commit()
    await notifier.notify(
        result.parent.telegram_user_id,
        f"✅ Ваша заявка одобрена! Вы добавлены в класс '{result.school_class.name}'. Новости класса: /viewnews",
    )
    return result.verification


@router.post("/{verification_id}/reject", response_model=VerificationResponse)
async def reject(
    verification_id: int,
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
    notifier: NotificationGateway = Depends(get_notifier),
):
    """Отклонить заявку."""
    verification = await operations.reject_verification(store, current_user, verification_id)
    await store.commit()
    await notifier.notify(
        verification.telegram_user_id,
        "❌ Ваша заявка на вступление в класс была отклонена. Вы можете подать новую: /requestclass",
    )
    return verification
