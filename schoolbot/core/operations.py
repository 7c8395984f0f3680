"""
Операции над членством в классах.

Общие для бота и админ-панели. Проверяют права через политику доступа,
изменяют данные через EntityStore и не делают коммит.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from schoolbot.core import authorization as policy
from schoolbot.core.store import CascadeSummary, EntityStore
from schoolbot.models import ParentVerification, SchoolClass, User
from schoolbot.utils.enums import UserRole, VerificationStatus
from schoolbot.utils.exceptions import AuthorizationError, FlowAbortedError, NotFoundError
from schoolbot.utils.logger import get_logger

logger = get_logger(__name__)

NO_RIGHTS = "У вас нет прав для этого действия."


@dataclass
class ApprovalResult:
    verification: ParentVerification
    parent: User
    school_class: SchoolClass


async def require_manageable_class(store: EntityStore, actor: User, class_id: int) -> SchoolClass:
    """Класс, которым актор может управлять, иначе NotFoundError или AuthorizationError."""
    school_class = await store.get_class(class_id)
    if school_class is None:
        raise NotFoundError("Класс не найден.")
    if not policy.can_manage_class(actor, school_class):
        raise AuthorizationError("Нет доступа к этому классу.")
    return school_class


async def require_owned_class(store: EntityStore, actor: User, class_id: int) -> SchoolClass:
    """Класс, которым владеет администратор-актор."""
    school_class = await store.get_class(class_id)
    if school_class is None or not policy.owns_class(actor, school_class):
        raise NotFoundError("Класс не найден или вы не являетесь его администратором.")
    return school_class


async def approve_verification(store: EntityStore, actor: User, verification_id: int,
                               class_id: Optional[int] = None) -> ApprovalResult:
    """
    Одобрить заявку родителя.

    Статус перечитывается с блокировкой строки, поэтому повторное или
    параллельное одобрение получает NotFoundError и ничего не меняет.
    Класс заявки изменить нельзя: class_id учитывается только для заявок
    без класса.
    """
    if not policy.is_manager(actor):
        raise AuthorizationError(NO_RIGHTS)

    verification = await store.get_verification(verification_id, for_update=True)
    if verification is None or verification.status != VerificationStatus.PENDING:
        raise NotFoundError("Заявка не найдена или уже обработана.")

    if verification.class_id is not None:
        if class_id is not None and class_id != verification.class_id:
            raise AuthorizationError("Заявка подана в другой класс.")
        target_class_id = verification.class_id
    else:
        target_class_id = class_id or actor.class_id
    if target_class_id is None:
        raise NotFoundError("Не указан класс для заявки.")
    school_class = await require_manageable_class(store, actor, target_class_id)

    parent = await store.get_user(verification.telegram_user_id, for_update=True)
    if parent is None:
        raise NotFoundError("Пользователь заявки не найден.")

    now = datetime.utcnow()
    verification.status = VerificationStatus.APPROVED.value
    verification.processed_at = now
    verification.processed_by_telegram_user_id = actor.telegram_user_id
    verification.class_id = school_class.id

    if parent.role in (UserRole.UNVERIFIED, UserRole.PARENT):
        parent.role = UserRole.PARENT.value
        parent.class_id = school_class.id
    parent.is_verified = True
    parent.verified_at = now
    await store.add_parent_link(parent, school_class.id)

    logger.info(
        "verification_approved",
        verification_id=verification.id,
        class_id=school_class.id,
        processed_by=actor.telegram_user_id,
    )
    return ApprovalResult(verification=verification, parent=parent, school_class=school_class)


async def reject_verification(store: EntityStore, actor: User, verification_id: int) -> ParentVerification:
    """Отклонить заявку. Пользователь не изменяется."""
    if not policy.is_manager(actor):
        raise AuthorizationError(NO_RIGHTS)

    verification = await store.get_verification(verification_id, for_update=True)
    if verification is None or verification.status != VerificationStatus.PENDING:
        raise NotFoundError("Заявка не найдена или уже обработана.")
    if verification.class_id is not None:
        await require_manageable_class(store, actor, verification.class_id)

    verification.status = VerificationStatus.REJECTED.value
    verification.processed_at = datetime.utcnow()
    verification.processed_by_telegram_user_id = actor.telegram_user_id
    logger.info("verification_rejected", verification_id=verification.id, processed_by=actor.telegram_user_id)
    return verification


async def add_moderator(store: EntityStore, actor: User, class_id: int,
                        target_telegram_user_id: int) -> Tuple[User, SchoolClass]:
    """Назначить участника класса модератором."""
    school_class = await require_owned_class(store, actor, class_id)
    target = await store.get_user(target_telegram_user_id, for_update=True)
    if target is None:
        raise NotFoundError("Пользователь с таким ID не найден. Он должен сначала написать боту.")
    if target.role == UserRole.ADMIN:
        raise AuthorizationError("Нельзя изменить роль администратора.")
    if target.role == UserRole.MODERATOR:
        if target.class_id == school_class.id:
            raise FlowAbortedError("Пользователь уже является модератором этого класса.")
        raise FlowAbortedError("Пользователь уже является модератором другого класса.")

    linked = await store.linked_class_ids(target.id)
    if not policy.belongs_to_class(target, school_class, linked):
        raise FlowAbortedError("Пользователь не состоит в этом классе.")
    if not policy.can_change_role(actor, target, school_class, UserRole.MODERATOR, linked):
        raise AuthorizationError(NO_RIGHTS)

    target.role = UserRole.MODERATOR.value
    target.is_verified = True
    target.verified_at = target.verified_at or datetime.utcnow()
    target.class_id = school_class.id
    logger.info("moderator_added", class_id=school_class.id, telegram_user_id=target.telegram_user_id)
    return target, school_class


async def remove_moderator(store: EntityStore, actor: User, class_id: int,
                           target_telegram_user_id: int) -> Tuple[User, SchoolClass]:
    """Снять модератора, роль возвращается к родителю."""
    school_class = await require_owned_class(store, actor, class_id)
    target = await store.get_user(target_telegram_user_id, for_update=True)
    if target is None or target.role != UserRole.MODERATOR or target.class_id != school_class.id:
        raise NotFoundError("Модератор не найден в этом классе.")
    if not policy.can_change_role(actor, target, school_class, UserRole.PARENT):
        raise AuthorizationError(NO_RIGHTS)

    target.role = UserRole.PARENT.value
    logger.info("moderator_removed", class_id=school_class.id, telegram_user_id=target.telegram_user_id)
    return target, school_class


async def set_member_role(store: EntityStore, actor: User, class_id: int, target_telegram_user_id: int,
                          role: UserRole) -> Tuple[User, SchoolClass]:
    """Сделать участника класса модератором или родителем."""
    if UserRole(role) == UserRole.MODERATOR:
        return await add_moderator(store, actor, class_id, target_telegram_user_id)
    if UserRole(role) == UserRole.PARENT:
        target = await store.get_user(target_telegram_user_id)
        if target is not None and target.role == UserRole.PARENT:
            school_class = await require_owned_class(store, actor, class_id)
            return target, school_class
        return await remove_moderator(store, actor, class_id, target_telegram_user_id)
    raise AuthorizationError(NO_RIGHTS)


async def link_parent(store: EntityStore, actor: User, class_id: int,
                      target_telegram_user_id: int) -> Tuple[User, SchoolClass]:
    """Вручную привязать пользователя к классу как подтвержденного родителя."""
    school_class = await require_manageable_class(store, actor, class_id)
    target = await store.get_user(target_telegram_user_id, for_update=True)
    if target is None:
        raise NotFoundError("Пользователь с таким ID не найден.")
    if target.role == UserRole.UNVERIFIED:
        target.role = UserRole.PARENT.value
    if target.role == UserRole.PARENT:
        target.is_verified = True
        target.verified_at = target.verified_at or datetime.utcnow()
        if target.class_id is None:
            target.class_id = school_class.id
    await store.add_parent_link(target, school_class.id)
    logger.info("parent_linked", class_id=school_class.id, telegram_user_id=target.telegram_user_id)
    return target, school_class


async def remove_parent(store: EntityStore, actor: User, class_id: int, target_telegram_user_id: int) -> User:
    """Убрать пользователя из класса: удалить привязку и сбросить основной класс."""
    school_class = await require_manageable_class(store, actor, class_id)
    target = await store.get_user(target_telegram_user_id, for_update=True)
    if target is None:
        raise NotFoundError("Пользователь с таким ID не найден.")
    if target.role == UserRole.ADMIN:
        raise AuthorizationError("Нельзя изменить роль администратора.")
    await store.remove_parent_from_class(target, school_class.id)
    logger.info("parent_removed", class_id=school_class.id, telegram_user_id=target.telegram_user_id)
    return target


async def delete_class(store: EntityStore, actor: User, class_id: int) -> Tuple[SchoolClass, CascadeSummary]:
    """Удалить класс владельцем вместе со всеми зависимыми записями."""
    school_class = await require_owned_class(store, actor, class_id)
    summary = await store.delete_class_cascade(school_class)
    logger.info(
        "class_deleted",
        class_id=class_id,
        news=summary.news,
        verifications=summary.verifications,
        links=summary.links,
        detached_users=summary.detached_users,
    )
    return school_class, summary
