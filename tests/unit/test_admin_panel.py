"""Тесты API админ-панели."""
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from admin_panel.core import dependencies
from admin_panel.core.dependencies import get_blob_store, get_db, get_dispatcher, limiter
from admin_panel.main import app
from schoolbot.core.store import EntityStore
from schoolbot.models import News
from schoolbot.utils.enums import NewsType, UserRole
from tests.utils import make_admin_with_class, make_news, make_parent, make_user, make_verification


@pytest.fixture
async def client(session_maker, dispatcher, blob_store):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    limiter.enabled = False

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as test_client:
        yield test_client

    app.dependency_overrides.clear()
    limiter.enabled = True


@pytest.fixture
async def school(session_maker):
    """Класс 5А с администратором 100, родителем 201 и заявкой от 20."""
    async with session_maker() as session:
        _, school_class = await make_admin_with_class(session, 100, "5А")
        await make_parent(session, 201, school_class.id)
        guest = await make_user(session, 20, UserRole.PARENT, full_name="Смирнова Ольга", phone_number="+7")
        verification = await make_verification(session, guest, school_class.id)
        await session.commit()
        return {"class_id": school_class.id, "verification_id": verification.id}


async def _login(client, telegram_user_id=100):
    response = await client.post("/api/auth/login", json={"telegram_user_id": telegram_user_id})
    assert response.status_code == 200
    return response


@pytest.mark.asyncio
@pytest.mark.unit
async def test_health(client):
    response = await client.get("/health")
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_health_detailed_reports_redis_outage(client):
    with patch("config.database.health_check", AsyncMock(return_value=True)), \
            patch("config.redis_client.health_check", AsyncMock(return_value=False)):
        response = await client.get("/health/detailed")
    body = response.json()
    assert body["status"] == "ok"
    assert body["checks"] == {"database": "ok", "redis": "unavailable"}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_login_only_for_managers(client, school):
    assert (await client.post("/api/auth/login", json={"telegram_user_id": 201})).status_code == 403
    assert (await client.post("/api/auth/login", json={"telegram_user_id": 999})).status_code == 403
    assert (await client.get("/api/auth/me")).status_code == 401

    response = await _login(client)
    assert response.json()["role"] == "admin"

    me = await client.get("/api/auth/me")
    assert me.json()["telegram_user_id"] == 100

    await client.post("/api/auth/logout")
    assert (await client.get("/api/auth/me")).status_code == 401


@pytest.mark.asyncio
@pytest.mark.unit
async def test_demoted_user_loses_access(client, school, session_maker):
    """Роль перечитывается на каждом запросе."""
    await _login(client)
    async with session_maker() as session:
        admin = await EntityStore(session).get_user(100)
        admin.role = UserRole.PARENT.value
        await session.commit()

    assert (await client.get("/api/classes")).status_code == 401


@pytest.mark.asyncio
@pytest.mark.unit
async def test_classes_are_scoped_to_owner(client, school, session_maker):
    async with session_maker() as session:
        await make_admin_with_class(session, 200, "6Б")
        await session.commit()
    await _login(client)

    response = await client.get("/api/classes")

    assert [c["name"] for c in response.json()] == ["5А"]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_news_dispatches(client, school, fake_queue):
    await _login(client)

    response = await client.post(
        "/api/news", json={"class_id": school["class_id"], "title": "Собрание", "content": "В пятницу"}
    )

    assert response.status_code == 201
    body = response.json()
    assert body["delivery"] == "queued"
    assert body["news"]["type"] == "news"
    assert len(fake_queue.published) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_news_in_foreign_class_forbidden(client, school, session_maker):
    async with session_maker() as session:
        _, foreign = await make_admin_with_class(session, 200, "6Б")
        await session.commit()
        foreign_id = foreign.id
    await _login(client)

    response = await client.post("/api/news", json={"class_id": foreign_id, "title": "X", "content": "Y"})

    assert response.status_code == 403
    assert response.json()["detail"] == "Нет доступа к этому классу."


@pytest.mark.asyncio
@pytest.mark.unit
async def test_report_upload_and_delete(client, school, blob_store, session_maker):
    await _login(client)

    response = await client.post(
        "/api/news/reports",
        data={"class_id": str(school["class_id"]), "title": "Итоги четверти"},
        files={"file": ("itogi.pdf", b"%PDF-1.4", "application/pdf")},
    )

    assert response.status_code == 201
    report = response.json()["news"]
    assert report["type"] == "report"
    assert report["file_name"] == "itogi.pdf"
    assert response.json()["delivery"] == "pull"
    [object_key] = blob_store.objects
    assert object_key.startswith(f"{school['class_id']}/")
    assert object_key.endswith("_itogi.pdf")

    deleted = await client.delete(f"/api/news/{report['id']}")
    assert deleted.status_code == 200
    assert blob_store.deleted == [object_key]
    async with session_maker() as session:
        assert await session.get(News, report["id"]) is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_list_and_edit_news(client, school, session_maker):
    async with session_maker() as session:
        await make_news(session, school["class_id"], 3)
        await make_news(session, school["class_id"], 1, NewsType.REPORT)
        await session.commit()
    await _login(client)

    listing = await client.get("/api/news", params={"class_id": school["class_id"], "type": "news"})
    assert listing.json()["total"] == 3
    assert listing.json()["items"][0]["title"] == "Заголовок 3"

    news_id = listing.json()["items"][0]["id"]
    updated = await client.patch(f"/api/news/{news_id}", json={"title": "Новый заголовок", "type": "report"})
    assert updated.status_code == 200
    assert updated.json()["title"] == "Новый заголовок"
    assert updated.json()["type"] == "report"

    everything = await client.get("/api/news", params={"class_id": school["class_id"]})
    assert everything.json()["total"] == 4


@pytest.mark.asyncio
@pytest.mark.unit
async def test_verification_approve_twice(client, school, transport):
    await _login(client)

    pending = await client.get("/api/verifications", params={"class_id": school["class_id"]})
    assert [v["id"] for v in pending.json()] == [school["verification_id"]]

    approved = await client.post(f"/api/verifications/{school['verification_id']}/approve")
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"
    assert transport.texts_for(20)[-1].startswith("✅ Ваша заявка одобрена!")

    again = await client.post(f"/api/verifications/{school['verification_id']}/approve")
    assert again.status_code == 404


@pytest.mark.asyncio
@pytest.mark.unit
async def test_verification_class_cannot_be_overridden(client, school, session_maker, transport):
    async with session_maker() as session:
        _, other_class = await make_admin_with_class(session, 200, "6Б")
        legacy_guest = await make_user(session, 21, UserRole.UNVERIFIED)
        legacy = await make_verification(session, legacy_guest, None)
        await session.commit()
        other_class_id, legacy_id = other_class.id, legacy.id
    await _login(client, 200)

    moved = await client.post(
        f"/api/verifications/{school['verification_id']}/approve", json={"class_id": other_class_id}
    )
    assert moved.status_code == 403
    assert transport.texts_for(20) == []

    adopted = await client.post(f"/api/verifications/{legacy_id}/approve", json={"class_id": other_class_id})
    assert adopted.status_code == 200
    assert adopted.json()["class_id"] == other_class_id


@pytest.mark.asyncio
@pytest.mark.unit
async def test_verification_reject(client, school, transport):
    await _login(client)

    rejected = await client.post(f"/api/verifications/{school['verification_id']}/reject")

    assert rejected.json()["status"] == "rejected"
    assert transport.texts_for(20)[-1].startswith("❌ Ваша заявка на вступление в класс была отклонена.")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_moderator_add_and_remove(client, school, transport):
    await _login(client)

    added = await client.post("/api/moderators", json={"class_id": school["class_id"], "telegram_user_id": 201})
    assert added.status_code == 200
    assert added.json()["role"] == "moderator"

    listing = await client.get("/api/moderators", params={"class_id": school["class_id"]})
    assert [m["telegram_user_id"] for m in listing.json()] == [201]

    removed = await client.delete("/api/moderators/201", params={"class_id": school["class_id"]})
    assert removed.json()["role"] == "parent"
    assert transport.texts_for(201)[-1] == "Ваши права модератора в классе '5А' сняты."


@pytest.mark.asyncio
@pytest.mark.unit
async def test_parents_link_role_and_remove(client, school):
    await _login(client)

    linked = await client.post("/api/parents", json={"class_id": school["class_id"], "telegram_user_id": 20})
    assert linked.json()["is_verified"] is True

    members = await client.get("/api/parents", params={"class_id": school["class_id"]})
    assert {m["telegram_user_id"] for m in members.json()} == {100, 201, 20}

    promoted = await client.put("/api/parents/20/role", json={"class_id": school["class_id"], "role": "moderator"})
    assert promoted.json()["role"] == "moderator"

    cannot_touch_admin = await client.delete("/api/parents/100", params={"class_id": school["class_id"]})
    assert cannot_touch_admin.status_code == 403

    removed = await client.delete("/api/parents/201", params={"class_id": school["class_id"]})
    assert removed.json()["class_id"] is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_delete_class_returns_summary(client, school, session_maker):
    async with session_maker() as session:
        await make_news(session, school["class_id"], 2)
        await session.commit()
    await _login(client)

    response = await client.delete(f"/api/classes/{school['class_id']}")

    assert response.json() == {
        "class_id": school["class_id"],
        "news": 2,
        "verifications": 1,
        "links": 0,
        "detached_users": 2,
    }
    assert (await client.get("/api/classes")).json() == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_services_unavailable_without_startup():
    dependencies.set_services(None, None)
    with pytest.raises(Exception) as exc_info:
        dependencies.get_dispatcher()
    assert exc_info.value.status_code == 503
