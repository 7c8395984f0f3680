"""API для управления участниками класса."""

from typing import List

from fastapi import APIRouter, Depends, Query

from admin_panel.core.dependencies import get_current_user, get_store
from admin_panel.schemas import UserResponse
from schoolbot.core import operations
from schoolbot.core.store import EntityStore
from schoolbot.models import User
from schoolbot.utils.validators import ParentLinkInput, RoleChangeInput

router = APIRouter()


@router.get("", response_model=List[UserResponse])
async def get_parents(
    class_id: int = Query(..., gt=0),
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    """Участники класса: основной класс или привязка."""
    await operations.require_manageable_class(store, current_user, class_id)
    return await store.list_class_members(class_id)


@router.post("", response_model=UserResponse)
async def link_parent(
    data: ParentLinkInput,
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    """Привязать пользователя к классу."""
    target, _ = await operations.link_parent(store, current_user, data.class_id, data.telegram_user_id)
    await store.commit()
    return target


@router.put("/{telegram_user_id}/role", response_model=UserResponse)
async def change_role(
    telegram_user_id: int,
    data: RoleChangeInput,
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    """Сменить роль участника: родитель или модератор."""
    target, _ = await operations.set_member_role(store, current_user, data.class_id, telegram_user_id, data.role)
    await store.commit()
    return target


@router.delete("/{telegram_user_id}", response_model=UserResponse)
async def remove_parent(
    telegram_user_id: int,
    class_id: int = Query(..., gt=0),
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    """Убрать пользователя из класса."""
    target = await operations.remove_parent(store, current_user, class_id, telegram_user_id)
    await store.commit()
    return target
