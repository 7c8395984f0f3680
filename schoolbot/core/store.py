"""Доступ к данным: все запросы к БД собраны здесь."""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence, Set

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from schoolbot.models import News, ParentClassLink, ParentVerification, SchoolClass, User
from schoolbot.utils.enums import NewsType, UserRole, VerificationStatus
from schoolbot.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class CascadeSummary:
    """Что удалено вместе с классом."""
    news: int = 0
    verifications: int = 0
    links: int = 0
    detached_users: int = 0


class EntityStore:
    """Репозиторий поверх одной сессии. Коммит делает вызывающий код."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()

    # Пользователи

    async def get_user(self, telegram_user_id: int, for_update: bool = False) -> Optional[User]:
        """Найти пользователя по Telegram ID."""
        query = select(User).where(User.telegram_user_id == telegram_user_id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_or_create_user(
        self,
        telegram_user_id: int,
        username: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> User:
        """
        Получить пользователя или создать нового с ролью unverified.

        Имена из профиля Telegram обновляются при каждом обращении.
        """
        user = await self.get_user(telegram_user_id)
        if user is None:
            user = User(
                telegram_user_id=telegram_user_id,
                username=username,
                first_name=first_name,
                last_name=last_name,
                role=UserRole.UNVERIFIED.value,
                is_verified=False,
            )
            self.session.add(user)
            await self.session.flush()
            logger.info("user_created", user_id=user.id, telegram_user_id=telegram_user_id)
            return user

        user.username = username
        user.first_name = first_name
        user.last_name = last_name
        return user

    async def list_managers(self) -> Sequence[User]:
        """Все администраторы и модераторы."""
        result = await self.session.execute(
            select(User).where(User.role.in_([UserRole.ADMIN.value, UserRole.MODERATOR.value]))
        )
        return result.scalars().all()

    async def list_moderators(self, class_id: int) -> Sequence[User]:
        result = await self.session.execute(
            select(User)
            .where(User.role == UserRole.MODERATOR.value, User.class_id == class_id)
            .order_by(User.full_name, User.telegram_user_id)
        )
        return result.scalars().all()

    async def list_class_members(self, class_id: int) -> Sequence[User]:
        """Пользователи, у которых класс основной или привязан."""
        linked = select(ParentClassLink.user_id).where(ParentClassLink.class_id == class_id)
        result = await self.session.execute(
            select(User)
            .where(or_(User.class_id == class_id, User.id.in_(linked)))
            .order_by(User.full_name, User.telegram_user_id)
        )
        return result.scalars().all()

    # Классы

    async def get_class(self, class_id: int) -> Optional[SchoolClass]:
        return await self.session.get(SchoolClass, class_id)

    async def find_class_by_name(self, name: str) -> Optional[SchoolClass]:
        result = await self.session.execute(select(SchoolClass).where(SchoolClass.name == name.strip()))
        return result.scalar_one_or_none()

    async def list_owned_classes(self, telegram_user_id: int) -> Sequence[SchoolClass]:
        result = await self.session.execute(
            select(SchoolClass)
            .where(SchoolClass.admin_telegram_user_id == telegram_user_id)
            .order_by(SchoolClass.name)
        )
        return result.scalars().all()

    async def count_owned_classes(self, telegram_user_id: int) -> int:
        result = await self.session.execute(
            select(func.count(SchoolClass.id)).where(SchoolClass.admin_telegram_user_id == telegram_user_id)
        )
        return result.scalar() or 0

    async def list_manageable_classes(self, user: User) -> List[SchoolClass]:
        """Свои классы администратора и класс модератора."""
        classes: List[SchoolClass] = []
        if user.role == UserRole.ADMIN:
            classes.extend(await self.list_owned_classes(user.telegram_user_id))
        elif user.role == UserRole.MODERATOR and user.class_id:
            school_class = await self.get_class(user.class_id)
            if school_class:
                classes.append(school_class)
        return classes

    async def list_viewable_classes(self, user: User) -> List[SchoolClass]:
        """Классы, новости которых пользователь может читать."""
        classes = {c.id: c for c in await self.list_manageable_classes(user)}
        if user.role == UserRole.PARENT and user.is_verified:
            ids = set(await self.linked_class_ids(user.id))
            if user.class_id:
                ids.add(user.class_id)
            ids -= set(classes)
            if ids:
                result = await self.session.execute(select(SchoolClass).where(SchoolClass.id.in_(ids)))
                for school_class in result.scalars().all():
                    classes[school_class.id] = school_class
        return sorted(classes.values(), key=lambda c: c.name)

    async def create_class(self, owner: User, name: str) -> SchoolClass:
        """Создать класс и сделать создателя его администратором."""
        school_class = SchoolClass(name=name, admin_telegram_user_id=owner.telegram_user_id)
        self.session.add(school_class)
        await self.session.flush()

        owner.role = UserRole.ADMIN.value
        owner.is_verified = True
        owner.verified_at = owner.verified_at or datetime.utcnow()
        owner.class_id = school_class.id
        return school_class

    async def delete_class_cascade(self, school_class: SchoolClass) -> CascadeSummary:
        """
        Удалить класс вместе с новостями, заявками и привязками.

        У пользователей с этим основным классом class_id сбрасывается.
        """
        class_id = school_class.id
        summary = CascadeSummary()
        summary.news = (await self.session.execute(delete(News).where(News.class_id == class_id))).rowcount
        summary.verifications = (
            await self.session.execute(delete(ParentVerification).where(ParentVerification.class_id == class_id))
        ).rowcount
        summary.links = (
            await self.session.execute(delete(ParentClassLink).where(ParentClassLink.class_id == class_id))
        ).rowcount
        members = await self.session.execute(select(User).where(User.class_id == class_id))
        for user in members.scalars().all():
            user.class_id = None
            summary.detached_users += 1
        await self.session.delete(school_class)
        await self.session.flush()
        return summary

    # Привязки родителей

    async def linked_class_ids(self, user_id: int) -> Set[int]:
        result = await self.session.execute(
            select(ParentClassLink.class_id).where(ParentClassLink.user_id == user_id)
        )
        return set(result.scalars().all())

    async def add_parent_link(self, user: User, class_id: int) -> bool:
        """Добавить привязку, если ее нет. Returns True если создана."""
        result = await self.session.execute(
            select(ParentClassLink.id).where(
                ParentClassLink.user_id == user.id, ParentClassLink.class_id == class_id
            )
        )
        if result.scalar_one_or_none() is not None:
            return False
        self.session.add(ParentClassLink(user_id=user.id, class_id=class_id))
        await self.session.flush()
        return True

    async def remove_parent_from_class(self, user: User, class_id: int) -> None:
        await self.session.execute(
            delete(ParentClassLink).where(ParentClassLink.user_id == user.id, ParentClassLink.class_id == class_id)
        )
        if user.class_id == class_id:
            user.class_id = None

    # Заявки

    async def get_verification(self, verification_id: int, for_update: bool = False) -> Optional[ParentVerification]:
        query = select(ParentVerification).where(ParentVerification.id == verification_id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def has_pending_verification(self, telegram_user_id: int, class_id: int) -> bool:
        result = await self.session.execute(
            select(func.count(ParentVerification.id)).where(
                ParentVerification.telegram_user_id == telegram_user_id,
                ParentVerification.class_id == class_id,
                ParentVerification.status == VerificationStatus.PENDING.value,
            )
        )
        return (result.scalar() or 0) > 0

    async def create_verification(self, user: User, school_class: SchoolClass) -> Optional[ParentVerification]:
        """
        Создать заявку, если для (пользователь, класс) нет ожидающей.

        Строка пользователя блокируется, чтобы повторная заявка из
        параллельного запроса увидела первую.

        Returns:
            Новая заявка или None, если ожидающая уже есть
        """
        await self.get_user(user.telegram_user_id, for_update=True)
        if await self.has_pending_verification(user.telegram_user_id, school_class.id):
            return None
        verification = ParentVerification(
            telegram_user_id=user.telegram_user_id,
            full_name=user.full_name,
            phone_number=user.phone_number,
            class_id=school_class.id,
            status=VerificationStatus.PENDING.value,
        )
        self.session.add(verification)
        await self.session.flush()
        return verification

    async def list_pending_verifications(self, class_id: int) -> Sequence[ParentVerification]:
        """Ожидающие заявки класса и старые заявки без класса."""
        result = await self.session.execute(
            select(ParentVerification)
            .where(
                ParentVerification.status == VerificationStatus.PENDING.value,
                or_(ParentVerification.class_id == class_id, ParentVerification.class_id.is_(None)),
            )
            .order_by(ParentVerification.created_at)
        )
        return result.scalars().all()

    # Публикации

    async def create_news(
        self,
        class_id: int,
        author_telegram_user_id: int,
        title: str,
        content: str = "",
        news_type: NewsType = NewsType.NEWS,
        file_path: Optional[str] = None,
        file_name: Optional[str] = None,
    ) -> News:
        news = News(
            class_id=class_id,
            author_telegram_user_id=author_telegram_user_id,
            title=title,
            content=content or "",
            type=NewsType(news_type).value,
            file_path=file_path,
            file_name=file_name,
        )
        self.session.add(news)
        await self.session.flush()
        return news

    async def get_news(self, news_id: int) -> Optional[News]:
        return await self.session.get(News, news_id)

    async def count_news(self, class_id: int, news_type: NewsType) -> int:
        result = await self.session.execute(
            select(func.count(News.id)).where(News.class_id == class_id, News.type == news_type.value)
        )
        return result.scalar() or 0

    async def list_news(self, class_id: int, news_type: Optional[NewsType], offset: int, limit: int) -> Sequence[News]:
        """Публикации класса, новые первыми."""
        query = select(News).where(News.class_id == class_id)
        if news_type is not None:
            query = query.where(News.type == news_type.value)
        query = query.order_by(News.created_at.desc(), News.id.desc()).offset(offset).limit(limit)
        result = await self.session.execute(query)
        return result.scalars().all()

    async def delete_news(self, news: News) -> None:
        await self.session.delete(news)
        await self.session.flush()

    # Получатели рассылки

    async def recipients_for_class(self, class_id: int) -> List[int]:
        """
        Telegram ID получателей новости класса без повторов.

        Подтвержденные родители (основной класс или привязка),
        администраторы класса и его модераторы.
        """
        school_class = await self.get_class(class_id)
        if school_class is None:
            return []

        linked = select(ParentClassLink.user_id).where(ParentClassLink.class_id == class_id)
        parents = (
            select(User.telegram_user_id)
            .where(
                User.role == UserRole.PARENT.value,
                User.is_verified.is_(True),
                or_(User.class_id == class_id, User.id.in_(linked)),
            )
        )
        admins = select(User.telegram_user_id).where(
            User.role == UserRole.ADMIN.value,
            or_(User.class_id == class_id, User.telegram_user_id == school_class.admin_telegram_user_id),
        )
        moderators = select(User.telegram_user_id).where(
            User.role == UserRole.MODERATOR.value, User.class_id == class_id
        )

        recipients: Set[int] = set()
        for query in (parents, admins, moderators):
            result = await self.session.execute(query)
            recipients.update(result.scalars().all())
        return sorted(recipients)
