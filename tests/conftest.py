"""Конфигурация pytest."""

import sys
from pathlib import Path
from typing import AsyncGenerator, Dict, List, Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Добавляем корень проекта в путь
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Импортируем Base и модели
from config.database import Base

# Импортируем все модели, чтобы они были зарегистрированы в Base.metadata
from schoolbot.models import News, ParentClassLink, ParentVerification, SchoolClass, User  # noqa: F401
from schoolbot.core.broadcast import BroadcastQueue, QueuedMessage
from schoolbot.core.report_storage import ReportBlobStore
from schoolbot.core.sessions import MemorySessionStore
from schoolbot.core.transport import BotTransport

# Тестовая база данных: SQLite в памяти, одно соединение на тест
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakeTransport(BotTransport):
    """Запоминает все вызовы Bot API."""

    def __init__(self):
        self.sent: List[Dict] = []
        self.edited: List[Dict] = []
        self.deleted: List[int] = []
        self.answers: List[Dict] = []
        self.documents: List[Dict] = []
        self.fail_for = set()
        self.fail_edit = False
        self.fail_document_url = False
        self._next_id = 100

    async def send_text(self, chat_id, text, keyboard=None, html=False):
        if chat_id in self.fail_for:
            raise RuntimeError("Forbidden: bot was blocked by the user")
        self._next_id += 1
        self.sent.append({"chat_id": chat_id, "text": text, "keyboard": keyboard, "message_id": self._next_id})
        return self._next_id

    async def edit_text(self, chat_id, message_id, text, keyboard=None, html=False):
        if self.fail_edit:
            raise RuntimeError("message to edit not found")
        self.edited.append({"chat_id": chat_id, "message_id": message_id, "text": text, "keyboard": keyboard})

    async def delete_message(self, chat_id, message_id):
        self.deleted.append(message_id)

    async def answer_callback(self, callback_id, text=None, alert=False):
        self.answers.append({"callback_id": callback_id, "text": text, "alert": alert})

    async def send_document_url(self, chat_id, url, caption):
        if self.fail_document_url:
            raise RuntimeError("wrong file identifier/HTTP URL specified")
        self.documents.append({"chat_id": chat_id, "url": url, "caption": caption})

    async def send_document_bytes(self, chat_id, data, filename, caption):
        self.documents.append({"chat_id": chat_id, "data": data, "filename": filename, "caption": caption})

    def texts_for(self, chat_id) -> List[str]:
        return [m["text"] for m in self.sent if m["chat_id"] == chat_id]


class FakeQueue(BroadcastQueue):
    """Очередь в памяти."""

    def __init__(self, fail_publish: bool = False):
        self.published: List[bytes] = []
        self.pending: List[QueuedMessage] = []
        self.acked: List[str] = []
        self.fail_publish = fail_publish

    async def publish(self, payload: bytes) -> bool:
        if self.fail_publish:
            return False
        self.published.append(payload)
        self.pending.append(QueuedMessage(message_id=f"{len(self.published)}-0", payload=payload))
        return True

    async def read(self, count: int = 10) -> List[QueuedMessage]:
        batch, self.pending = self.pending[:count], self.pending[count:]
        return batch

    async def ack(self, message_id: str) -> None:
        self.acked.append(message_id)


class FakeBlobStore(ReportBlobStore):
    """Хранилище отчетов в памяти."""

    def __init__(self, url: Optional[str] = "https://files.example.com/report.pdf", fail_read: bool = False):
        self.objects: Dict[str, bytes] = {}
        self.url = url
        self.fail_read = fail_read
        self.deleted: List[str] = []

    async def upload(self, object_key, data, content_type, size):
        self.objects[object_key] = data.read()
        return object_key

    async def presigned_url(self, object_key, ttl_seconds):
        return self.url

    async def read(self, object_key):
        if self.fail_read:
            raise RuntimeError("storage unavailable")
        return self.objects[object_key]

    async def delete(self, object_key):
        self.deleted.append(object_key)
        self.objects.pop(object_key, None)


@pytest.fixture(scope="function")
async def test_engine():
    """Движок SQLite с созданной схемой."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture(scope="function")
def session_maker(test_engine) -> async_sessionmaker:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Фикстура для тестовой сессии БД."""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def fake_queue() -> FakeQueue:
    return FakeQueue()


@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def sessions() -> MemorySessionStore:
    return MemorySessionStore()


@pytest.fixture
def notifier(transport):
    from schoolbot.core.notifications import NotificationGateway

    return NotificationGateway(transport)


@pytest.fixture
def dispatcher(notifier, fake_queue):
    from schoolbot.core.dispatcher import NewsDispatcher
    from schoolbot.utils.enums import DeliveryMode

    return NewsDispatcher(notifier, queue=fake_queue, mode=DeliveryMode.QUEUE)


@pytest.fixture
def bot_router(session_maker, sessions, dispatcher, notifier, transport, blob_store):
    """CommandRouter на фейковом транспорте и SQLite."""
    from schoolbot.core.conversation import ConversationEngine
    from schoolbot.core.listings import ContentBrowser
    from schoolbot.core.router import CommandRouter

    engine = ConversationEngine(sessions, dispatcher, notifier, max_classes_per_admin=10)
    browser = ContentBrowser(transport, blob_store, url_ttl_seconds=60, timeout_seconds=1.0)
    return CommandRouter(
        session_maker, sessions, engine, browser, transport, notifier, admin_panel_url="https://panel.example.com"
    )
