"""Тесты политики доступа."""
from types import SimpleNamespace

import pytest

from schoolbot.core import authorization as policy
from schoolbot.utils.enums import UserRole


def _user(telegram_user_id, role, class_id=None, is_verified=True):
    return SimpleNamespace(telegram_user_id=telegram_user_id, role=role.value, class_id=class_id,
                           is_verified=is_verified)


CLASS_5A = SimpleNamespace(id=1, admin_telegram_user_id=100)
CLASS_6B = SimpleNamespace(id=2, admin_telegram_user_id=200)


@pytest.mark.unit
def test_owner_admin_manages_only_own_classes():
    admin = _user(100, UserRole.ADMIN, class_id=1)
    assert policy.owns_class(admin, CLASS_5A)
    assert policy.can_manage_class(admin, CLASS_5A)
    assert not policy.can_manage_class(admin, CLASS_6B)
    assert not policy.can_manage_class(admin, None)


@pytest.mark.unit
def test_moderator_manages_home_class():
    moderator = _user(300, UserRole.MODERATOR, class_id=2)
    assert policy.can_manage_class(moderator, CLASS_6B)
    assert policy.can_publish(moderator, CLASS_6B)
    assert not policy.can_manage_class(moderator, CLASS_5A)
    assert not policy.owns_class(moderator, CLASS_6B)


@pytest.mark.unit
def test_parent_views_home_and_linked_classes():
    parent = _user(400, UserRole.PARENT, class_id=1)
    assert policy.can_view_class_content(parent, CLASS_5A)
    assert not policy.can_view_class_content(parent, CLASS_6B)
    assert policy.can_view_class_content(parent, CLASS_6B, linked_class_ids=[2])
    assert not policy.can_publish(parent, CLASS_5A)


@pytest.mark.unit
def test_unverified_parent_sees_nothing():
    parent = _user(400, UserRole.PARENT, class_id=1, is_verified=False)
    assert not policy.can_view_class_content(parent, CLASS_5A, linked_class_ids=[1])
    assert not policy.can_view_any(parent)


@pytest.mark.unit
def test_role_transitions_only_by_owner_admin():
    owner = _user(100, UserRole.ADMIN)
    other_admin = _user(200, UserRole.ADMIN)
    parent = _user(400, UserRole.PARENT, class_id=1)

    assert policy.can_change_role(owner, parent, CLASS_5A, UserRole.MODERATOR)
    assert not policy.can_change_role(other_admin, parent, CLASS_5A, UserRole.MODERATOR)


@pytest.mark.unit
def test_admin_role_never_changes():
    owner = _user(100, UserRole.ADMIN)
    target = _user(500, UserRole.ADMIN, class_id=1)
    assert not policy.can_change_role(owner, target, CLASS_5A, UserRole.PARENT)


@pytest.mark.unit
def test_moderator_cannot_promote():
    moderator = _user(300, UserRole.MODERATOR, class_id=1)
    parent = _user(400, UserRole.PARENT, class_id=1)
    assert not policy.can_change_role(moderator, parent, CLASS_5A, UserRole.MODERATOR)


@pytest.mark.unit
def test_role_change_requires_membership():
    owner = _user(100, UserRole.ADMIN)
    stranger = _user(400, UserRole.PARENT, class_id=2)
    assert not policy.can_change_role(owner, stranger, CLASS_5A, UserRole.MODERATOR)
    assert policy.can_change_role(owner, stranger, CLASS_5A, UserRole.MODERATOR, linked_class_ids=[1])


@pytest.mark.unit
def test_command_gates():
    admin = _user(100, UserRole.ADMIN)
    moderator = _user(300, UserRole.MODERATOR, class_id=1)
    parent = _user(400, UserRole.PARENT, class_id=1)
    guest = _user(500, UserRole.UNVERIFIED, is_verified=False)

    assert policy.can_use_command(admin, "/deleteclass")
    assert not policy.can_use_command(moderator, "/deleteclass")
    assert policy.can_use_command(moderator, "/adminpanel")
    assert not policy.can_use_command(parent, "/adminpanel")

    assert policy.can_use_command(parent, "/viewnews")
    assert not policy.can_use_command(guest, "/viewreports")

    assert policy.can_use_command(moderator, "/createnews", manages_any_class=True)
    assert not policy.can_use_command(admin, "/createnews", manages_any_class=False)

    assert policy.can_use_command(guest, "/register")
    assert policy.can_use_command(guest, "/requestclass")
