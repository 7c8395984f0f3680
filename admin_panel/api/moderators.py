"""API для управления модераторами класса."""

from typing import List

from fastapi import APIRouter, Depends, Query

from admin_panel.core.dependencies import get_current_user, get_notifier, get_store
from admin_panel.schemas import UserResponse
from schoolbot.core import operations
from schoolbot.core.notifications import NotificationGateway
from schoolbot.core.store import EntityStore
from schoolbot.models import User
from schoolbot.utils.validators import ModeratorInput

router = APIRouter()


@router.get("", response_model=List[UserResponse])
async def get_moderators(
    class_id: int = Query(..., gt=0),
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    """Модераторы класса."""
    await operations.require_manageable_class(store, current_user, class_id)
    return await store.list_moderators(class_id)


@router.post("", response_model=UserResponse)
async def add_moderator(
    data: ModeratorInput,
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
    notifier: NotificationGateway = Depends(get_notifier),
):
    """Назначить участника класса модератором."""
    target, school_class = await operations.add_moderator(store, current_user, data.class_id, data.telegram_user_id)
    await store.commit()
    await notifier.notify(
        target.telegram_user_id,
        f"Вам назначены права модератора класса '{school_class.name}'.",
    )
    return target


@router.delete("/{telegram_user_id}", response_model=UserResponse)
async def remove_moderator(
    telegram_user_id: int,
    class_id: int = Query(..., gt=0),
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
    notifier: NotificationGateway = Depends(get_notifier),
):
    """Снять модератора."""
    target, school_class = await operations.remove_moderator(store, current_user, class_id, telegram_user_id)
    await store.commit()
    await notifier.notify(
        target.telegram_user_id,
        f"Ваши права модератора в классе '{school_class.name}' сняты.",
    )
    return target
