"""API для управления классами."""

from typing import List

from fastapi import APIRouter, Depends

from admin_panel.core.dependencies import get_current_user, get_store
from admin_panel.schemas import CascadeResponse, ClassResponse
from schoolbot.core import operations
from schoolbot.core.store import EntityStore
from schoolbot.models import User

router = APIRouter()


@router.get("", response_model=List[ClassResponse])
async def get_classes(current_user: User = Depends(get_current_user), store: EntityStore = Depends(get_store)):
    """Классы, которыми управляет пользователь."""
    return await store.list_manageable_classes(current_user)


@router.delete("/{class_id}", response_model=CascadeResponse)
async def delete_class(
    class_id: int,
    current_user: User = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    """Удалить класс со всеми новостями, заявками и привязками."""
    _, summary = await operations.delete_class(store, current_user, class_id)
    await store.commit()
    return CascadeResponse(
        class_id=class_id,
        news=summary.news,
        verifications=summary.verifications,
        links=summary.links,
        detached_users=summary.detached_users,
    )
