"""Модель школьного класса."""
from sqlalchemy import Column, BigInteger, String, DateTime
from datetime import datetime
from config.database import Base
from schoolbot.models.types import BigIntegerAuto


class SchoolClass(Base):
    """Класс, которым владеет администратор."""

    __tablename__ = "classes"

    id = Column(BigIntegerAuto, primary_key=True, index=True)
    name = Column(String(64), unique=True, nullable=False, index=True)
    admin_telegram_user_id = Column(BigInteger, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
