"""API для входа в админ-панель."""

from fastapi import APIRouter, Depends, HTTPException, Request, status

from admin_panel.core.dependencies import SESSION_KEY, get_current_user, get_store, limiter
from admin_panel.schemas import UserResponse
from schoolbot.core import authorization as policy
from schoolbot.core.store import EntityStore
from schoolbot.models import User
from schoolbot.utils.logger import get_logger
from schoolbot.utils.validators import LoginInput

logger = get_logger(__name__)

router = APIRouter()


@router.post("/login", response_model=UserResponse)
@limiter.limit("10/minute")
async def login(request: Request, data: LoginInput, store: EntityStore = Depends(get_store)):
    """Вход по Telegram ID. Доступен только администраторам и модераторам."""
    user = await store.get_user(data.telegram_user_id)
    if user is None or not policy.is_manager(user):
        logger.warning("admin_login_denied", telegram_user_id=data.telegram_user_id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Вход доступен только администраторам и модераторам",
        )

    request.session[SESSION_KEY] = user.telegram_user_id
    logger.info("admin_login", telegram_user_id=user.telegram_user_id, role=user.role)
    return user


@router.post("/logout")
async def logout(request: Request):
    """Выход."""
    request.session.clear()
    return {"status": "ok"}


@router.get("/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_user)):
    """Текущий пользователь."""
    return current_user
