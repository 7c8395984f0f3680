"""Модель пользователя."""
from sqlalchemy import Column, BigInteger, String, DateTime, Boolean, ForeignKey
from datetime import datetime
from config.database import Base
from schoolbot.models.types import BigIntegerAuto
from schoolbot.utils.enums import UserRole


class User(Base):
    """Пользователь бота."""

    __tablename__ = "users"

    id = Column(BigIntegerAuto, primary_key=True, index=True)
    telegram_user_id = Column(BigInteger, unique=True, nullable=False, index=True)
    username = Column(String(255), nullable=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    full_name = Column(String(255), nullable=True)
    phone_number = Column(String(64), nullable=True)
    role = Column(String(20), default=UserRole.UNVERIFIED.value, nullable=False, index=True)
    is_verified = Column(Boolean, default=False, nullable=False)
    # Основной класс; дополнительные классы через parent_class_links
    class_id = Column(BigInteger, ForeignKey("classes.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    verified_at = Column(DateTime, nullable=True)

    @property
    def is_registered(self) -> bool:
        """Указаны ФИО и телефон."""
        return bool(self.full_name) and bool(self.phone_number)
