"""Модель заявки родителя на вступление в класс."""
from sqlalchemy import Column, BigInteger, String, DateTime, ForeignKey, Index
from datetime import datetime
from config.database import Base
from schoolbot.models.types import BigIntegerAuto
from schoolbot.utils.enums import VerificationStatus


class ParentVerification(Base):
    """Заявка родителя. ФИО и телефон сохраняются на момент подачи."""

    __tablename__ = "parent_verifications"

    id = Column(BigIntegerAuto, primary_key=True, index=True)
    telegram_user_id = Column(BigInteger, nullable=False, index=True)
    full_name = Column(String(255), nullable=True)
    phone_number = Column(String(64), nullable=True)
    # NULL у старых заявок без выбранного класса
    class_id = Column(BigInteger, ForeignKey("classes.id", ondelete="CASCADE"), nullable=True)
    status = Column(String(20), default=VerificationStatus.PENDING.value, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    processed_at = Column(DateTime, nullable=True)
    processed_by_telegram_user_id = Column(BigInteger, nullable=True)

    __table_args__ = (
        Index("idx_verification_class_status", "class_id", "status"),
    )
