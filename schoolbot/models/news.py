"""Модель новости или отчета."""
from sqlalchemy import Column, BigInteger, String, Text, DateTime, ForeignKey, Index
from datetime import datetime
from config.database import Base
from schoolbot.models.types import BigIntegerAuto
from schoolbot.utils.enums import NewsType


class News(Base):
    """Публикация класса: новость рассылается, отчет скачивается по запросу."""

    __tablename__ = "news"

    id = Column(BigIntegerAuto, primary_key=True, index=True)
    class_id = Column(BigInteger, ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    author_telegram_user_id = Column(BigInteger, nullable=False)
    title = Column(String(255), nullable=False)
    content = Column(Text, default="", nullable=False)
    type = Column(String(20), default=NewsType.NEWS.value, nullable=False)
    # Ключ объекта в хранилище и исходное имя файла (только для отчетов)
    file_path = Column(String(512), nullable=True)
    file_name = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_news_class_type_created", "class_id", "type", "created_at"),
    )
