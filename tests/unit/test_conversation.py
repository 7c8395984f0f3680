"""Тесты многошаговых диалогов бота."""
import pytest
from sqlalchemy import func, select

from schoolbot.core import texts
from schoolbot.core.sessions import Step
from schoolbot.core.store import EntityStore
from schoolbot.models import News, ParentClassLink, ParentVerification
from schoolbot.utils.enums import UserRole
from tests.utils import make_admin_with_class, make_parent, make_user, press, send


async def _registered_user(session_maker, telegram_user_id):
    async with session_maker() as session:
        await make_user(session, telegram_user_id, UserRole.PARENT,
                        full_name="Петров Петр Петрович", phone_number="+79995554433")
        await session.commit()


@pytest.mark.asyncio
@pytest.mark.unit
async def test_registration_flow(bot_router, sessions, transport, session_maker):
    """ФИО и телефон сохраняются, пользователь становится родителем."""
    await send(bot_router, 10, "/register")
    state = await sessions.get(10)
    assert state.step == Step.WAITING_FOR_FULL_NAME
    assert state.prompt_message_id == transport.sent[-1]["message_id"]

    await send(bot_router, 10, "Иванов")
    assert transport.sent[-1]["text"] == texts.INVALID_FULL_NAME
    assert (await sessions.get(10)).step == Step.WAITING_FOR_FULL_NAME

    await send(bot_router, 10, "Иванов Иван Иванович")
    assert transport.sent[-1]["text"] == texts.ASK_PHONE

    await send(bot_router, 10, "+7 999 123 45 67")
    assert transport.sent[-1]["text"] == texts.REGISTRATION_DONE
    assert await sessions.get(10) is None

    async with session_maker() as session:
        user = await EntityStore(session).get_user(10)
    assert user.full_name == "Иванов Иван Иванович"
    assert user.phone_number == "+7 999 123 45 67"
    assert user.role == UserRole.PARENT
    assert user.is_verified is False


@pytest.mark.asyncio
@pytest.mark.unit
async def test_command_preempts_conversation(bot_router, sessions, transport, session_maker):
    """Команда на шаге телефона сбрасывает регистрацию, ФИО не сохраняется."""
    await send(bot_router, 10, "/register")
    await send(bot_router, 10, "Иванов Иван Иванович")
    state = await sessions.get(10)
    assert state.step == Step.WAITING_FOR_PHONE_NUMBER
    prompt_id = transport.sent[-1]["message_id"]
    assert state.prompt_message_id == prompt_id

    await send(bot_router, 10, "/help")

    assert await sessions.get(10) is None
    async with session_maker() as session:
        assert (await EntityStore(session).get_user(10)).full_name is None
    assert prompt_id in transport.deleted
    assert transport.sent[-1]["text"].startswith("Доступные команды:")

    await send(bot_router, 10, "просто текст")
    assert transport.sent[-1]["text"] == texts.FALLBACK


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unknown_and_forbidden_commands(bot_router, transport, session_maker):
    await send(bot_router, 10, "/whatever")
    assert transport.sent[-1]["text"] == texts.UNKNOWN_COMMAND

    await send(bot_router, 10, "/DeleteClass")
    assert transport.sent[-1]["text"] == texts.NO_PERMISSION

    await send(bot_router, 10, "/createnews")
    assert transport.sent[-1]["text"] == texts.NO_PERMISSION


@pytest.mark.asyncio
@pytest.mark.unit
async def test_start_depends_on_role(bot_router, transport, session_maker):
    await send(bot_router, 10, "/start")
    assert "/register" in transport.sent[-1]["text"]

    async with session_maker() as session:
        await make_admin_with_class(session, 100, "5А")
        await session.commit()
    await send(bot_router, 100, "/start")
    text = transport.sent[-1]["text"]
    assert text.startswith("Здравствуйте, Иванова Анна Петровна!")
    assert "Вы администратор" in text


@pytest.mark.asyncio
@pytest.mark.unit
async def test_my_class_lists_roles(bot_router, transport, session_maker):
    async with session_maker() as session:
        _, first = await make_admin_with_class(session, 100, "5А")
        _, second = await make_admin_with_class(session, 300, "6Б")
        parent = await make_parent(session, 201, first.id)
        session.add(ParentClassLink(user_id=parent.id, class_id=second.id))
        await session.commit()

    await send(bot_router, 201, "/myclass")
    assert transport.sent[-1]["text"] == "Ваши классы:\n• 5А - Родитель\n• 6Б - Родитель"

    await send(bot_router, 100, "/myclass")
    assert transport.sent[-1]["text"] == "Ваши классы:\n• 5А - Админ"

    await send(bot_router, 10, "/myclass")
    assert "/requestclass" in transport.sent[-1]["text"]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_admin_panel_link_for_managers_only(bot_router, transport, session_maker):
    async with session_maker() as session:
        _, school_class = await make_admin_with_class(session, 100, "5А")
        await make_parent(session, 201, school_class.id)
        await session.commit()

    await send(bot_router, 100, "/adminpanel")
    assert "https://panel.example.com" in transport.sent[-1]["text"]
    assert "100" in transport.sent[-1]["text"]

    await send(bot_router, 201, "/adminpanel")
    assert transport.sent[-1]["text"] == texts.NO_PERMISSION


@pytest.mark.asyncio
@pytest.mark.unit
async def test_class_creation_requires_registration(bot_router, transport, sessions):
    await send(bot_router, 10, "/createclass 5А")
    assert transport.sent[-1]["text"] == texts.REGISTER_FIRST
    assert await sessions.get(10) is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_invalid_class_name_keeps_state(bot_router, transport, sessions, session_maker):
    await _registered_user(session_maker, 10)

    await send(bot_router, 10, "/createclass")
    await send(bot_router, 10, "А5")

    assert "название должно начинаться с цифры" in transport.sent[-1]["text"]
    assert (await sessions.get(10)).step == Step.WAITING_FOR_CLASS_NAME_CREATE

    await send(bot_router, 10, "5А")
    assert transport.sent[-1]["text"].startswith("Класс '5А' успешно создан!")
    assert await sessions.get(10) is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_class_limit_per_admin(bot_router, transport, sessions, session_maker):
    """Десятый класс создается, одиннадцатый нет."""
    await _registered_user(session_maker, 10)

    for n in range(1, 11):
        await send(bot_router, 10, f"/createclass {n}А")
        assert "успешно создан" in transport.sent[-1]["text"]

    await send(bot_router, 10, "/createclass 11А")

    assert "максимум 10 классов" in transport.sent[-1]["text"]
    assert await sessions.get(10) is None
    async with session_maker() as session:
        store = EntityStore(session)
        assert await store.count_owned_classes(10) == 10
        assert (await store.get_user(10)).role == UserRole.ADMIN


@pytest.mark.asyncio
@pytest.mark.unit
async def test_duplicate_class_name_rejected(bot_router, transport, sessions, session_maker):
    async with session_maker() as session:
        await make_admin_with_class(session, 100, "5А")
        await session.commit()
    await _registered_user(session_maker, 10)

    await send(bot_router, 10, "/createclass 5А")

    assert transport.sent[-1]["text"] == texts.CLASS_NAME_TAKEN
    assert (await sessions.get(10)).step == Step.WAITING_FOR_CLASS_NAME_CREATE


@pytest.mark.asyncio
@pytest.mark.unit
async def test_duplicate_join_request_creates_one_row(bot_router, transport, session_maker):
    async with session_maker() as session:
        await make_admin_with_class(session, 100, "5А")
        await session.commit()
    await _registered_user(session_maker, 20)

    await send(bot_router, 20, "/requestclass 5А")
    assert transport.sent[-1]["text"] == "Заявка отправлена админу класса '5А'. Ожидайте подтверждения."
    assert any("Новая заявка" in text for text in transport.texts_for(100))

    await send(bot_router, 20, "/requestclass 5А")
    assert transport.sent[-1]["text"] == texts.DUPLICATE_REQUEST

    async with session_maker() as session:
        count = await session.execute(select(func.count(ParentVerification.id)))
    assert count.scalar() == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_join_request_unknown_class_aborts(bot_router, transport, sessions, session_maker):
    await _registered_user(session_maker, 20)

    await send(bot_router, 20, "/requestclass 9Я")

    assert transport.sent[-1]["text"] == texts.CLASS_NOT_FOUND_BY_NAME
    assert await sessions.get(20) is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_member_cannot_request_own_class(bot_router, transport, session_maker):
    async with session_maker() as session:
        _, school_class = await make_admin_with_class(session, 100, "5А")
        await make_parent(session, 201, school_class.id)
        await session.commit()

    await send(bot_router, 201, "/requestclass 5А")

    assert transport.sent[-1]["text"] == texts.ALREADY_MEMBER


@pytest.mark.asyncio
@pytest.mark.unit
async def test_news_authoring_flow(bot_router, transport, sessions, session_maker, fake_queue):
    async with session_maker() as session:
        _, school_class = await make_admin_with_class(session, 100, "5А")
        await session.commit()
        class_id = school_class.id

    await send(bot_router, 100, "/createnews")
    keyboard = transport.sent[-1]["keyboard"]
    assert keyboard[0][0].callback_data == f"news_class_{class_id}"

    await press(bot_router, 100, f"news_class_{class_id}", message_id=transport.sent[-1]["message_id"])
    assert (await sessions.get(100)).step == Step.WAITING_FOR_NEWS_TITLE
    assert transport.answers[-1]["text"] is None

    await send(bot_router, 100, "Собрание")
    assert transport.sent[-1]["text"] == texts.ASK_NEWS_CONTENT

    await send(bot_router, 100, "В пятницу в 18:00")
    assert transport.sent[-1]["text"] == texts.NEWS_QUEUED
    assert await sessions.get(100) is None
    assert len(fake_queue.published) == 1

    async with session_maker() as session:
        stored = (await session.execute(select(News))).scalar_one()
    assert stored.title == "Собрание"
    assert stored.author_telegram_user_id == 100

    # Повторное нажатие кнопки завершенного диалога
    await press(bot_router, 100, f"news_class_{class_id}")
    assert transport.answers[-1] == {"callback_id": "cb", "text": "Сессия устарела. Начните заново.", "alert": True}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_news_class_button_rejects_foreign_class(bot_router, transport, sessions, session_maker):
    async with session_maker() as session:
        await make_admin_with_class(session, 100, "5А")
        _, foreign = await make_admin_with_class(session, 200, "6Б")
        await session.commit()
        foreign_id = foreign.id

    await send(bot_router, 100, "/createnews")
    await press(bot_router, 100, f"news_class_{foreign_id}")

    assert transport.answers[-1]["alert"] is True
    assert await sessions.get(100) is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_add_moderator_flow(bot_router, transport, sessions, session_maker):
    async with session_maker() as session:
        _, school_class = await make_admin_with_class(session, 100, "5А")
        await make_parent(session, 201, school_class.id)
        await session.commit()
        class_id = school_class.id

    await send(bot_router, 100, "/addmoderator")
    await press(bot_router, 100, f"modclass_add_{class_id}")
    assert (await sessions.get(100)).step == Step.WAITING_FOR_MODERATOR_USER_ID_ADD

    await send(bot_router, 100, "abc")
    assert transport.sent[-1]["text"] == "ID должен быть числом."
    assert (await sessions.get(100)).step == Step.WAITING_FOR_MODERATOR_USER_ID_ADD

    await send(bot_router, 100, "201")
    assert transport.sent[-1]["text"] == "Пользователь 201 назначен модератором класса '5А'."
    assert transport.texts_for(201) == ["Вам назначены права модератора класса '5А'."]
    assert await sessions.get(100) is None

    async with session_maker() as session:
        moderator = await EntityStore(session).get_user(201)
    assert moderator.role == UserRole.MODERATOR
    assert moderator.class_id == class_id


@pytest.mark.asyncio
@pytest.mark.unit
async def test_add_moderator_outside_class_aborts(bot_router, transport, sessions, session_maker):
    async with session_maker() as session:
        _, school_class = await make_admin_with_class(session, 100, "5А")
        await make_user(session, 300)
        await session.commit()
        class_id = school_class.id

    await send(bot_router, 100, "/addmoderator")
    await press(bot_router, 100, f"modclass_add_{class_id}")
    await send(bot_router, 100, "300")

    assert transport.sent[-1]["text"] == "Пользователь не состоит в этом классе."
    assert await sessions.get(100) is None
