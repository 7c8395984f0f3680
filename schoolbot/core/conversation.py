"""
Движок многошаговых диалогов.

Каждый шаг проверяет ввод и либо переходит к следующему шагу, либо
выполняет итоговое изменение в БД. Коммит делается до любых уведомлений.
"""

from dataclasses import replace
from typing import Awaitable, Callable, Dict, List, Optional

from aiogram.fsm.state import State
from sqlalchemy.exc import IntegrityError

from schoolbot.core import authorization as policy
from schoolbot.core import operations
from schoolbot.core import texts
from schoolbot.core.context import UpdateContext
from schoolbot.core.dispatcher import NewsDispatcher
from schoolbot.core.intents import ModeratorAction, SelectModeratorClass, SelectNewsClass
from schoolbot.core.notifications import NotificationGateway
from schoolbot.core.replies import Button, Reply, Transition, one_per_row
from schoolbot.core.sessions import ConversationState, PendingAction, SessionStore, Step
from schoolbot.models import SchoolClass
from schoolbot.utils.enums import UserRole
from schoolbot.utils.exceptions import (
    AuthorizationError,
    FlowAbortedError,
    NotFoundError,
    StateExpiredError,
    ValidationError,
)
from schoolbot.utils.logger import get_logger
from schoolbot.utils.text_formatter import html
from schoolbot.utils.validators import (
    CLASS_NAME_ERROR,
    is_valid_class_name,
    is_valid_full_name,
    parse_telegram_id,
)

logger = get_logger(__name__)

StepHandler = Callable[[UpdateContext, ConversationState, str], Awaitable[Transition]]

# Ошибки, после которых диалог завершается
ABORTING_ERRORS = (AuthorizationError, NotFoundError, FlowAbortedError, StateExpiredError)

_MODERATOR_STEPS = {
    ModeratorAction.ADD: (Step.WAITING_FOR_MODERATOR_USER_ID_ADD, texts.ASK_MODERATOR_ADD_ID),
    ModeratorAction.REMOVE: (Step.WAITING_FOR_MODERATOR_USER_ID_REMOVE, texts.ASK_MODERATOR_REMOVE_ID),
}

MODERATOR_PENDING_ACTIONS = {
    ModeratorAction.ADD: PendingAction.ADD_MODERATOR,
    ModeratorAction.REMOVE: PendingAction.REMOVE_MODERATOR,
    ModeratorAction.LIST: PendingAction.LIST_MODERATORS,
}


class ConversationEngine:
    """Состояния диалогов и переходы между шагами."""

    def __init__(self, sessions: SessionStore, dispatcher: NewsDispatcher, notifier: NotificationGateway,
                 max_classes_per_admin: int = 10):
        self.sessions = sessions
        self.dispatcher = dispatcher
        self.notifier = notifier
        self.max_classes_per_admin = max_classes_per_admin
        self._steps: Dict[State, StepHandler] = {
            Step.WAITING_FOR_FULL_NAME: self._on_full_name,
            Step.WAITING_FOR_PHONE_NUMBER: self._on_phone_number,
            Step.WAITING_FOR_CLASS_NAME_CREATE: self._on_class_name_create,
            Step.WAITING_FOR_CLASS_NAME_REQUEST: self._on_class_name_request,
            Step.WAITING_FOR_NEWS_CLASS: self._on_button_step,
            Step.WAITING_FOR_NEWS_TITLE: self._on_news_title,
            Step.WAITING_FOR_NEWS_CONTENT: self._on_news_content,
            Step.WAITING_FOR_MODERATOR_CLASS: self._on_button_step,
            Step.WAITING_FOR_MODERATOR_USER_ID_ADD: self._on_moderator_user_id,
            Step.WAITING_FOR_MODERATOR_USER_ID_REMOVE: self._on_moderator_user_id,
            Step.WAITING_FOR_CLASS_CHOICE: self._on_button_step,
        }

    async def advance(self, ctx: UpdateContext, state: ConversationState, text: Optional[str]) -> Transition:
        """
        Обработать текстовый ввод для текущего шага.

        Ошибка валидации оставляет состояние без изменений. Ошибки прав,
        отсутствующих данных и бизнес-правил завершают диалог.
        """
        handler = self._steps[state.step]
        try:
            transition = await handler(ctx, state, (text or "").strip())
        except ValidationError as e:
            return Transition(state, [Reply(e.message)])
        except ABORTING_ERRORS as e:
            await self.sessions.delete(ctx.user_id)
            logger.info("conversation_aborted", user_id=ctx.user_id, step=state.step_name, reason=type(e).__name__)
            return Transition(None, [Reply(e.message)])

        if transition.state is None:
            await self.sessions.delete(ctx.user_id)
        else:
            await self.sessions.set(ctx.user_id, transition.state)
        return transition

    async def _begin(self, ctx: UpdateContext, state: ConversationState, prompt: Reply,
                     argument: Optional[str] = None) -> Transition:
        await self.sessions.set(ctx.user_id, state)
        logger.info("conversation_started", user_id=ctx.user_id, step=state.step_name)
        if argument:
            return await self.advance(ctx, state, argument)
        return Transition(state, [prompt])

    # Начало диалогов

    async def start_registration(self, ctx: UpdateContext) -> Transition:
        if policy.is_manager(ctx.user):
            return Transition(None, [Reply(texts.ALREADY_MANAGER)])
        state = ConversationState(step=Step.WAITING_FOR_FULL_NAME)
        return await self._begin(ctx, state, Reply(texts.ASK_FULL_NAME, remember_prompt=True))

    async def start_class_creation(self, ctx: UpdateContext, argument: Optional[str] = None) -> Transition:
        if not ctx.user.is_registered:
            return Transition(None, [Reply(texts.REGISTER_FIRST)])
        state = ConversationState(step=Step.WAITING_FOR_CLASS_NAME_CREATE)
        return await self._begin(ctx, state, Reply(texts.ASK_CLASS_NAME_CREATE, remember_prompt=True), argument)

    async def start_join_request(self, ctx: UpdateContext, argument: Optional[str] = None) -> Transition:
        if not ctx.user.is_registered:
            return Transition(None, [Reply(texts.REGISTER_FIRST)])
        state = ConversationState(step=Step.WAITING_FOR_CLASS_NAME_REQUEST)
        return await self._begin(ctx, state, Reply(texts.ASK_CLASS_NAME_REQUEST, remember_prompt=True), argument)

    async def start_news_authoring(self, ctx: UpdateContext, classes: List[SchoolClass]) -> Transition:
        if not classes:
            return Transition(None, [Reply(texts.NO_CLASSES)])
        keyboard = one_per_row([Button(c.name, SelectNewsClass(c.id).encode()) for c in classes])
        state = ConversationState(step=Step.WAITING_FOR_NEWS_CLASS)
        return await self._begin(ctx, state, Reply(texts.ASK_NEWS_CLASS, keyboard=keyboard, remember_prompt=True))

    async def start_moderator_flow(self, ctx: UpdateContext, action: ModeratorAction,
                                   classes: List[SchoolClass]) -> Transition:
        if not classes:
            return Transition(None, [Reply(texts.NO_CLASSES)])
        keyboard = one_per_row([Button(c.name, SelectModeratorClass(action, c.id).encode()) for c in classes])
        state = ConversationState(step=Step.WAITING_FOR_MODERATOR_CLASS, action=MODERATOR_PENDING_ACTIONS[action])
        return await self._begin(
            ctx, state, Reply(texts.ASK_MODERATOR_CLASS, keyboard=keyboard, remember_prompt=True)
        )

    async def start_class_choice(self, ctx: UpdateContext, action: PendingAction, prompt: str,
                                 buttons: List[Button]) -> Transition:
        """Выбор класса кнопкой для списков и удаления."""
        if not buttons:
            return Transition(None, [Reply(texts.NO_CLASSES)])
        state = ConversationState(step=Step.WAITING_FOR_CLASS_CHOICE, action=action)
        return await self._begin(ctx, state, Reply(prompt, keyboard=one_per_row(buttons), remember_prompt=True))

    # Выбор класса кнопкой

    async def select_news_class(self, ctx: UpdateContext, class_id: int) -> Transition:
        """
        Выбор класса для новости.

        Raises:
            StateExpiredError: Пользователь не находится на шаге выбора класса
            AuthorizationError: Нет прав публиковать в класс (диалог завершается)
        """
        state = await self._expect(ctx, Step.WAITING_FOR_NEWS_CLASS)
        school_class = await self._checked(ctx, operations.require_manageable_class(ctx.store, ctx.user, class_id))
        new_state = replace(state, step=Step.WAITING_FOR_NEWS_TITLE, class_id=school_class.id,
                            prompt_message_id=None)
        await self._swap(ctx, Step.WAITING_FOR_NEWS_CLASS, new_state)
        prompt = f"Класс: {school_class.name}\n{texts.ASK_NEWS_TITLE}"
        return Transition(new_state, [Reply(prompt, remember_prompt=True)])

    async def select_moderator_class(self, ctx: UpdateContext, action: ModeratorAction,
                                     class_id: int) -> Transition:
        """Выбор класса для назначения или снятия модератора."""
        state = await self._expect(ctx, Step.WAITING_FOR_MODERATOR_CLASS, MODERATOR_PENDING_ACTIONS[action])
        school_class = await self._checked(ctx, operations.require_owned_class(ctx.store, ctx.user, class_id))
        step, prompt = _MODERATOR_STEPS[action]
        new_state = replace(state, step=step, class_id=school_class.id, prompt_message_id=None)
        await self._swap(ctx, Step.WAITING_FOR_MODERATOR_CLASS, new_state)
        return Transition(new_state, [Reply(prompt, remember_prompt=True)])

    async def finish_class_choice(self, ctx: UpdateContext, step: State, action: PendingAction) -> None:
        """
        Завершить диалог, в котором кнопкой выбирается класс для действия.

        Raises:
            StateExpiredError: Кнопка от другого или уже завершенного диалога,
                состояние пользователя не меняется
        """
        await self._expect(ctx, step, action)
        await self.sessions.delete(ctx.user_id)

    async def _expect(self, ctx: UpdateContext, step: State,
                      action: Optional[PendingAction] = None) -> ConversationState:
        state = await self.sessions.get(ctx.user_id)
        if state is None or state.step != step:
            raise StateExpiredError()
        if action is not None and state.action != action:
            raise StateExpiredError()
        return state

    async def _swap(self, ctx: UpdateContext, expected: State, new_state: ConversationState) -> None:
        if not await self.sessions.replace_if(ctx.user_id, expected, new_state):
            raise StateExpiredError()

    async def _checked(self, ctx: UpdateContext, check: Awaitable[SchoolClass]) -> SchoolClass:
        try:
            return await check
        except (AuthorizationError, NotFoundError):
            await self.sessions.delete(ctx.user_id)
            raise

    # Шаги

    async def _on_button_step(self, ctx: UpdateContext, state: ConversationState, text: str) -> Transition:
        raise ValidationError(texts.CHOOSE_WITH_BUTTONS)

    async def _on_full_name(self, ctx: UpdateContext, state: ConversationState, text: str) -> Transition:
        if not is_valid_full_name(text):
            raise ValidationError(texts.INVALID_FULL_NAME)
        new_state = replace(state, step=Step.WAITING_FOR_PHONE_NUMBER, full_name=text)
        return Transition(new_state, [Reply(texts.ASK_PHONE, remember_prompt=True)])

    async def _on_phone_number(self, ctx: UpdateContext, state: ConversationState, text: str) -> Transition:
        if not text:
            raise ValidationError(texts.INVALID_PHONE)
        user = ctx.user
        user.full_name = state.full_name
        user.phone_number = text
        if not policy.is_manager(user):
            user.role = UserRole.PARENT.value
        await ctx.store.commit()
        logger.info("user_registered", user_id=ctx.user_id)
        return Transition(None, [Reply(texts.REGISTRATION_DONE)])

    async def _on_class_name_create(self, ctx: UpdateContext, state: ConversationState, text: str) -> Transition:
        if not is_valid_class_name(text):
            raise ValidationError(CLASS_NAME_ERROR)
        if await ctx.store.find_class_by_name(text) is not None:
            raise ValidationError(texts.CLASS_NAME_TAKEN)
        if await ctx.store.count_owned_classes(ctx.user_id) >= self.max_classes_per_admin:
            raise FlowAbortedError(
                f"Вы достигли лимита: максимум {self.max_classes_per_admin} классов на одного администратора."
            )

        school_class = await ctx.store.create_class(ctx.user, text)
        try:
            await ctx.store.commit()
        except IntegrityError:
            await ctx.store.rollback()
            raise ValidationError(texts.CLASS_NAME_TAKEN)

        logger.info("class_created", class_id=school_class.id, admin=ctx.user_id)
        return Transition(None, [Reply(
            f"Класс '{school_class.name}' успешно создан! Вы назначены администратором этого класса."
        )])

    async def _on_class_name_request(self, ctx: UpdateContext, state: ConversationState, text: str) -> Transition:
        if not is_valid_class_name(text):
            raise ValidationError(CLASS_NAME_ERROR)
        school_class = await ctx.store.find_class_by_name(text)
        if school_class is None:
            raise NotFoundError(texts.CLASS_NOT_FOUND_BY_NAME)

        linked = await ctx.store.linked_class_ids(ctx.user.id)
        if policy.can_view_class_content(ctx.user, school_class, linked):
            raise FlowAbortedError(texts.ALREADY_MEMBER)

        verification = await ctx.store.create_verification(ctx.user, school_class)
        if verification is None:
            raise FlowAbortedError(texts.DUPLICATE_REQUEST)
        await ctx.store.commit()
        logger.info("verification_requested", verification_id=verification.id, class_id=school_class.id)

        managers = await ctx.store.list_managers()
        await self.notifier.notify_many(
            [m.telegram_user_id for m in managers],
            (
                f"🆕 Новая заявка в класс <b>{html(school_class.name)}</b>\n"
                f"ФИО: {html(verification.full_name)}\n"
                f"Телефон: {html(verification.phone_number)}\n"
                f"Telegram ID: {verification.telegram_user_id}\n\n"
                "Обработать: /verifications"
            ),
            html=True,
        )
        return Transition(None, [Reply(
            f"Заявка отправлена админу класса '{school_class.name}'. Ожидайте подтверждения."
        )])

    async def _on_news_title(self, ctx: UpdateContext, state: ConversationState, text: str) -> Transition:
        if not text:
            raise ValidationError(texts.EMPTY_NEWS_TITLE)
        new_state = replace(state, step=Step.WAITING_FOR_NEWS_CONTENT, news_title=text)
        return Transition(new_state, [Reply(texts.ASK_NEWS_CONTENT, remember_prompt=True)])

    async def _on_news_content(self, ctx: UpdateContext, state: ConversationState, text: str) -> Transition:
        if not text:
            raise ValidationError(texts.EMPTY_NEWS_CONTENT)
        if state.class_id is None or not state.news_title:
            raise StateExpiredError()
        school_class = await operations.require_manageable_class(ctx.store, ctx.user, state.class_id)

        news = await ctx.store.create_news(
            class_id=school_class.id,
            author_telegram_user_id=ctx.user_id,
            title=state.news_title,
            content=text,
        )
        await ctx.store.commit()
        logger.info("news_created", news_id=news.id, class_id=school_class.id, author=ctx.user_id)

        try:
            outcome = await self.dispatcher.dispatch(news, ctx.store)
        except Exception as e:
            logger.error("news_dispatch_failed", news_id=news.id, error=str(e), exc_info=True)
            return Transition(None, [Reply("✅ Новость сохранена, но рассылка не удалась.")])

        if outcome.mode == "queued":
            return Transition(None, [Reply(texts.NEWS_QUEUED)])
        return Transition(None, [Reply(
            f"✅ Новость опубликована. Отправлено: {outcome.sent}, ошибок: {outcome.failed}."
        )])

    async def _on_moderator_user_id(self, ctx: UpdateContext, state: ConversationState, text: str) -> Transition:
        target_id = parse_telegram_id(text)
        if state.class_id is None:
            raise StateExpiredError()

        if state.step == Step.WAITING_FOR_MODERATOR_USER_ID_ADD:
            target, school_class = await operations.add_moderator(ctx.store, ctx.user, state.class_id, target_id)
            await ctx.store.commit()
            await self.notifier.notify(
                target.telegram_user_id, f"Вам назначены права модератора класса '{school_class.name}'."
            )
            reply = f"Пользователь {target_id} назначен модератором класса '{school_class.name}'."
        else:
            target, school_class = await operations.remove_moderator(ctx.store, ctx.user, state.class_id, target_id)
            await ctx.store.commit()
            await self.notifier.notify(
                target.telegram_user_id, f"Ваши права модератора в классе '{school_class.name}' сняты."
            )
            reply = f"Пользователь {target_id} больше не модератор класса '{school_class.name}'."
        return Transition(None, [Reply(reply)])
