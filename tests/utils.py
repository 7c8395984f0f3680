"""Вспомогательные утилиты для тестов."""

from datetime import datetime, timedelta
from typing import Optional

from schoolbot.models import News, ParentClassLink, ParentVerification, SchoolClass, User
from schoolbot.utils.enums import NewsType, UserRole, VerificationStatus


async def make_user(session, telegram_user_id: int, role: UserRole = UserRole.UNVERIFIED,
                    is_verified: bool = False, class_id: Optional[int] = None,
                    full_name: Optional[str] = None, phone_number: Optional[str] = None) -> User:
    user = User(
        telegram_user_id=telegram_user_id,
        role=role.value,
        is_verified=is_verified,
        class_id=class_id,
        full_name=full_name,
        phone_number=phone_number,
    )
    session.add(user)
    await session.flush()
    return user


async def make_admin_with_class(session, telegram_user_id: int, class_name: str):
    """Администратор и его класс."""
    admin = await make_user(session, telegram_user_id, UserRole.ADMIN, is_verified=True,
                            full_name="Иванова Анна Петровна", phone_number="+79990000000")
    school_class = SchoolClass(name=class_name, admin_telegram_user_id=telegram_user_id)
    session.add(school_class)
    await session.flush()
    admin.class_id = school_class.id
    await session.flush()
    return admin, school_class


async def make_parent(session, telegram_user_id: int, class_id: int, linked: bool = False) -> User:
    """Подтвержденный родитель: основной класс или привязка."""
    parent = await make_user(
        session,
        telegram_user_id,
        UserRole.PARENT,
        is_verified=True,
        class_id=None if linked else class_id,
        full_name=f"Родитель {telegram_user_id}",
        phone_number="+79991112233",
    )
    if linked:
        session.add(ParentClassLink(user_id=parent.id, class_id=class_id))
        await session.flush()
    return parent


async def make_verification(session, user: User, class_id: Optional[int]) -> ParentVerification:
    verification = ParentVerification(
        telegram_user_id=user.telegram_user_id,
        full_name=user.full_name,
        phone_number=user.phone_number,
        class_id=class_id,
        status=VerificationStatus.PENDING.value,
    )
    session.add(verification)
    await session.flush()
    return verification


async def make_news(session, class_id: int, count: int, news_type: NewsType = NewsType.NEWS,
                    author: int = 1) -> None:
    """count публикаций с возрастающим временем создания."""
    start = datetime(2026, 9, 1, 8, 0)
    for i in range(count):
        session.add(News(
            class_id=class_id,
            author_telegram_user_id=author,
            title=f"Заголовок {i + 1}",
            content=f"Текст {i + 1}" if news_type == NewsType.NEWS else "",
            type=news_type.value,
            file_path=f"{class_id}/abc_{i + 1}.pdf" if news_type == NewsType.REPORT else None,
            file_name=f"report_{i + 1}.pdf" if news_type == NewsType.REPORT else None,
            created_at=start + timedelta(minutes=i),
        ))
    await session.flush()


async def send(router, user_id: int, text: str) -> None:
    """Отправить роутеру текст от пользователя в личном чате."""
    from schoolbot.core.router import IncomingMessage

    await router.handle_message(IncomingMessage(chat_id=user_id, user_id=user_id, text=text))


async def press(router, user_id: int, data: str, message_id: Optional[int] = None,
                callback_id: str = "cb") -> None:
    """Нажать inline-кнопку."""
    from schoolbot.core.router import IncomingCallback

    await router.handle_callback(IncomingCallback(
        callback_id=callback_id, chat_id=user_id, user_id=user_id, data=data, message_id=message_id
    ))
