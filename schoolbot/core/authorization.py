"""
Политика доступа.

Чистые предикаты над ролью пользователя, владением классом и членством.
Состояние диалогов здесь не используется.
"""
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

from schoolbot.utils.enums import UserRole

# (из роли, в роль) -> роли, которым разрешен такой переход
ROLE_TRANSITIONS: Dict[Tuple[UserRole, UserRole], FrozenSet[UserRole]] = {
    (UserRole.UNVERIFIED, UserRole.MODERATOR): frozenset({UserRole.ADMIN}),
    (UserRole.PARENT, UserRole.MODERATOR): frozenset({UserRole.ADMIN}),
    (UserRole.MODERATOR, UserRole.PARENT): frozenset({UserRole.ADMIN}),
}

MANAGER_ROLES = frozenset({UserRole.ADMIN, UserRole.MODERATOR})

# Команды, доступные только указанным ролям. Остальные доступны всем.
COMMAND_ROLES: Dict[str, FrozenSet[UserRole]] = {
    "/verifications": frozenset({UserRole.ADMIN}),
    "/parents": frozenset({UserRole.ADMIN}),
    "/moderators": frozenset({UserRole.ADMIN}),
    "/deleteclass": frozenset({UserRole.ADMIN}),
    "/addmoderator": frozenset({UserRole.ADMIN}),
    "/removemoderator": frozenset({UserRole.ADMIN}),
    "/adminpanel": MANAGER_ROLES,
}

# Команды просмотра: менеджеры и подтвержденные родители
VIEWER_COMMANDS = frozenset({"/viewnews", "/viewreports"})

# Команды, требующие права управления хотя бы одним классом
MANAGER_COMMANDS = frozenset({"/createnews"})


def _role(user) -> Optional[UserRole]:
    try:
        return UserRole(user.role)
    except ValueError:
        return None


def owns_class(user, school_class) -> bool:
    """Пользователь - администратор-владелец класса."""
    return (
        _role(user) == UserRole.ADMIN
        and school_class.admin_telegram_user_id == user.telegram_user_id
    )


def can_manage_class(user, school_class) -> bool:
    """Владелец-администратор или модератор этого класса."""
    if school_class is None:
        return False
    if owns_class(user, school_class):
        return True
    return _role(user) == UserRole.MODERATOR and user.class_id == school_class.id


def can_publish(user, school_class) -> bool:
    """Публиковать может тот, кто управляет классом."""
    return can_manage_class(user, school_class)


def can_view_class_content(user, school_class, linked_class_ids: Iterable[int] = ()) -> bool:
    """
    Просмотр новостей и отчетов класса.

    Args:
        user: Пользователь
        school_class: Класс
        linked_class_ids: ID классов из parent_class_links пользователя

    Returns:
        True для менеджеров класса и подтвержденных родителей,
        у которых это основной или привязанный класс
    """
    if can_manage_class(user, school_class):
        return True
    if _role(user) != UserRole.PARENT or not user.is_verified:
        return False
    return user.class_id == school_class.id or school_class.id in set(linked_class_ids)


def belongs_to_class(user, school_class, linked_class_ids: Iterable[int] = ()) -> bool:
    """Основной или привязанный класс пользователя совпадает с указанным."""
    return user.class_id == school_class.id or school_class.id in set(linked_class_ids)


def can_change_role(actor, target, school_class, new_role: UserRole,
                    linked_class_ids: Iterable[int] = ()) -> bool:
    """
    Смена роли участника класса.

    Роль администратора не меняется никем. Переход должен быть в
    ROLE_TRANSITIONS, актор должен владеть классом, а цель состоять в нем.
    """
    current = _role(target)
    if current is None or current == UserRole.ADMIN:
        return False
    allowed = ROLE_TRANSITIONS.get((current, UserRole(new_role)))
    if not allowed or _role(actor) not in allowed:
        return False
    if not owns_class(actor, school_class):
        return False
    return belongs_to_class(target, school_class, linked_class_ids)


def is_manager(user) -> bool:
    """Администратор или модератор."""
    return _role(user) in MANAGER_ROLES


def can_view_any(user) -> bool:
    """Может смотреть новости хотя бы теоретически."""
    return is_manager(user) or (_role(user) == UserRole.PARENT and bool(user.is_verified))


def can_use_command(user, command: str, manages_any_class: bool = False) -> bool:
    """
    Проверка доступа к команде бота.

    Args:
        user: Пользователь
        command: Команда в нижнем регистре, например "/createnews"
        manages_any_class: Управляет ли пользователь хотя бы одним классом
    """
    if command in MANAGER_COMMANDS:
        return manages_any_class
    if command in VIEWER_COMMANDS:
        return can_view_any(user)
    roles = COMMAND_ROLES.get(command)
    if roles is None:
        return True
    return _role(user) in roles
