"""Модель привязки родителя к дополнительному классу."""
from sqlalchemy import Column, BigInteger, DateTime, ForeignKey, UniqueConstraint
from datetime import datetime
from config.database import Base
from schoolbot.models.types import BigIntegerAuto


class ParentClassLink(Base):
    """Связь многие-ко-многим между родителями и классами."""

    __tablename__ = "parent_class_links"

    id = Column(BigIntegerAuto, primary_key=True, index=True)
    user_id = Column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    class_id = Column(BigInteger, ForeignKey("classes.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "class_id", name="uq_parent_class_link"),
    )
