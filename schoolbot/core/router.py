"""
Маршрутизация обновлений Telegram.

Команда всегда прерывает текущий диалог. Текст без команды передается
движку диалогов, нажатия кнопок разбираются в намерения.
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from schoolbot.core import authorization as policy
from schoolbot.core import operations
from schoolbot.core import texts
from schoolbot.core.context import UpdateContext
from schoolbot.core.conversation import ConversationEngine
from schoolbot.core.intents import (
    INTENT_TYPES,
    ApproveVerification,
    CallbackIntent,
    DeleteClass,
    DownloadReport,
    ModeratorAction,
    RejectVerification,
    SelectModeratorClass,
    SelectNewsClass,
    ShowParents,
    ShowVerifications,
    TurnPage,
    ViewNewsClass,
    ViewReportsClass,
    decode_callback,
)
from schoolbot.core.listings import ContentBrowser
from schoolbot.core.notifications import NotificationGateway
from schoolbot.core.pagination import ListingKind
from schoolbot.core.replies import Button, Reply, one_per_row
from schoolbot.core.sessions import PendingAction, SessionStore, Step
from schoolbot.core.store import EntityStore
from schoolbot.core.transport import BotTransport
from schoolbot.utils.enums import UserRole
from schoolbot.utils.exceptions import CallbackParseError, NotFoundError, SchoolBotError
from schoolbot.utils.logger import get_logger
from schoolbot.utils.text_formatter import display_name, format_date, html

logger = get_logger(__name__)

MESSAGE_LIMIT = 4000


@dataclass
class IncomingMessage:
    """Текстовое сообщение пользователя."""
    chat_id: int
    user_id: int
    text: Optional[str]
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


@dataclass
class IncomingCallback:
    """Нажатие inline-кнопки."""
    callback_id: str
    chat_id: int
    user_id: int
    data: Optional[str]
    message_id: Optional[int] = None
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


CommandHandler = Callable[[UpdateContext, str], Awaitable[None]]
CallbackHandler = Callable[[UpdateContext, IncomingCallback, CallbackIntent], Awaitable[Optional[str]]]


class CommandRouter:
    """Точка входа для всех обновлений бота."""

    def __init__(
        self,
        session_maker: async_sessionmaker,
        sessions: SessionStore,
        engine: ConversationEngine,
        browser: ContentBrowser,
        transport: BotTransport,
        notifier: NotificationGateway,
        admin_panel_url: str = "",
    ):
        self.session_maker = session_maker
        self.sessions = sessions
        self.engine = engine
        self.browser = browser
        self.transport = transport
        self.notifier = notifier
        self.admin_panel_url = admin_panel_url

        self._commands: Dict[str, CommandHandler] = {
            "/start": self._cmd_start,
            "/help": self._cmd_help,
            "/register": self._cmd_register,
            "/createclass": self._cmd_create_class,
            "/requestclass": self._cmd_request_class,
            "/createnews": self._cmd_create_news,
            "/viewnews": self._cmd_view_news,
            "/viewreports": self._cmd_view_reports,
            "/myclass": self._cmd_my_class,
            "/verifications": self._cmd_verifications,
            "/parents": self._cmd_parents,
            "/moderators": self._cmd_moderators,
            "/deleteclass": self._cmd_delete_class,
            "/addmoderator": self._cmd_add_moderator,
            "/removemoderator": self._cmd_remove_moderator,
            "/adminpanel": self._cmd_admin_panel,
        }
        self._callbacks: Dict[type, CallbackHandler] = {
            ApproveVerification: self._on_approve,
            RejectVerification: self._on_reject,
            SelectNewsClass: self._on_select_news_class,
            TurnPage: self._on_turn_page,
            ViewNewsClass: self._on_view_news_class,
            ViewReportsClass: self._on_view_reports_class,
            DownloadReport: self._on_download_report,
            DeleteClass: self._on_delete_class,
            SelectModeratorClass: self._on_moderator_class,
            ShowParents: self._on_show_parents,
            ShowVerifications: self._on_show_verifications,
        }
        missing = set(INTENT_TYPES) - set(self._callbacks)
        if missing:
            raise RuntimeError(f"Нет обработчиков для кнопок: {sorted(t.__name__ for t in missing)}")

    @property
    def commands(self) -> List[str]:
        return list(self._commands)

    # Точки входа

    async def handle_message(self, message: IncomingMessage) -> None:
        """Обработать текстовое сообщение. Исключения не выходят наружу."""
        try:
            async with self.session_maker() as session:
                ctx = await self._context(session, message)
                text = (message.text or "").strip()

                if text.startswith("/"):
                    await self._preempt(ctx)
                    await self._run_command(ctx, text)
                    return

                state = await self.sessions.get(ctx.user_id)
                if state is not None:
                    transition = await self.engine.advance(ctx, state, text)
                    await self._send(ctx, transition.replies)
                    return

                await self.transport.send_text(ctx.chat_id, texts.FALLBACK)
        except Exception as e:
            logger.error("message_handling_failed", user_id=message.user_id, error=str(e), exc_info=True)
            await self._safe_send(message.chat_id, texts.GENERIC_ERROR)

    async def handle_callback(self, callback: IncomingCallback) -> None:
        """Обработать нажатие кнопки и ответить на него ровно один раз."""
        try:
            intent = decode_callback(callback.data)
        except CallbackParseError as e:
            logger.warning("callback_parse_failed", user_id=callback.user_id, data=callback.data)
            await self._safe_answer(callback.callback_id, e.message, alert=True)
            return

        toast: Optional[str] = None
        alert = False
        try:
            async with self.session_maker() as session:
                ctx = await self._context(session, callback)
                toast = await self._callbacks[type(intent)](ctx, callback, intent)
        except SchoolBotError as e:
            logger.info("callback_rejected", user_id=callback.user_id, intent=type(intent).__name__,
                        reason=type(e).__name__)
            toast, alert = e.message, True
        except Exception as e:
            logger.error("callback_handling_failed", user_id=callback.user_id, data=callback.data,
                         error=str(e), exc_info=True)
            toast, alert = texts.CALLBACK_ERROR, True
        await self._safe_answer(callback.callback_id, toast, alert=alert)

    # Вспомогательные методы

    async def _context(self, session: AsyncSession, update) -> UpdateContext:
        store = EntityStore(session)
        user = await store.get_or_create_user(
            update.user_id, update.username, update.first_name, update.last_name
        )
        await store.commit()
        return UpdateContext(store=store, user=user, chat_id=update.chat_id, user_id=update.user_id)

    async def _preempt(self, ctx: UpdateContext) -> None:
        """Сбросить текущий диалог и удалить его подсказку."""
        state = await self.sessions.pop(ctx.user_id)
        if state is None:
            return
        logger.info("conversation_preempted", user_id=ctx.user_id, step=state.step_name)
        if state.prompt_message_id:
            await self._drop_message(ctx, state.prompt_message_id)

    async def _run_command(self, ctx: UpdateContext, text: str) -> None:
        parts = text.split(maxsplit=1)
        command = parts[0].lower().split("@", 1)[0]
        argument = parts[1].strip() if len(parts) > 1 else ""

        handler = self._commands.get(command)
        if handler is None:
            await self.transport.send_text(ctx.chat_id, texts.UNKNOWN_COMMAND)
            return

        manages_any = False
        if command in policy.MANAGER_COMMANDS:
            manages_any = bool(await ctx.store.list_manageable_classes(ctx.user))
        if not policy.can_use_command(ctx.user, command, manages_any):
            logger.info("command_denied", user_id=ctx.user_id, command=command, role=ctx.user.role)
            await self.transport.send_text(ctx.chat_id, texts.NO_PERMISSION)
            return

        try:
            await handler(ctx, argument)
        except SchoolBotError as e:
            await self.transport.send_text(ctx.chat_id, e.message)

    async def _send(self, ctx: UpdateContext, replies: List[Reply]) -> None:
        for reply in replies:
            message_id = await self.transport.send_text(
                ctx.chat_id, reply.text, keyboard=reply.keyboard, html=reply.html
            )
            if reply.remember_prompt:
                state = await self.sessions.get(ctx.user_id)
                if state is not None:
                    state.prompt_message_id = message_id
                    await self.sessions.set(ctx.user_id, state)

    async def _send_lines(self, ctx: UpdateContext, header: str, lines: List[str]) -> None:
        """Отправить длинный список несколькими сообщениями."""
        chunk = header
        for line in lines:
            if len(chunk) + len(line) + 1 > MESSAGE_LIMIT:
                await self.transport.send_text(ctx.chat_id, chunk, html=True)
                chunk = ""
            chunk = f"{chunk}\n{line}" if chunk else line
        if chunk:
            await self.transport.send_text(ctx.chat_id, chunk, html=True)

    async def _drop_message(self, ctx: UpdateContext, message_id: Optional[int]) -> None:
        if not message_id:
            return
        try:
            await self.transport.delete_message(ctx.chat_id, message_id)
        except Exception as e:
            logger.debug("message_delete_failed", message_id=message_id, error=str(e))

    async def _safe_send(self, chat_id: int, text: str) -> None:
        try:
            await self.transport.send_text(chat_id, text)
        except Exception as e:
            logger.warning("error_reply_failed", chat_id=chat_id, error=str(e))

    async def _safe_answer(self, callback_id: str, text: Optional[str], alert: bool = False) -> None:
        try:
            await self.transport.answer_callback(callback_id, text, alert=alert)
        except Exception as e:
            logger.warning("callback_answer_failed", callback_id=callback_id, error=str(e))

    # Команды

    async def _cmd_start(self, ctx: UpdateContext, argument: str) -> None:
        await self.transport.send_text(ctx.chat_id, texts.start_text(ctx.user))

    async def _cmd_help(self, ctx: UpdateContext, argument: str) -> None:
        await self.transport.send_text(ctx.chat_id, texts.help_text(ctx.user))

    async def _cmd_register(self, ctx: UpdateContext, argument: str) -> None:
        transition = await self.engine.start_registration(ctx)
        await self._send(ctx, transition.replies)

    async def _cmd_create_class(self, ctx: UpdateContext, argument: str) -> None:
        transition = await self.engine.start_class_creation(ctx, argument or None)
        await self._send(ctx, transition.replies)

    async def _cmd_request_class(self, ctx: UpdateContext, argument: str) -> None:
        transition = await self.engine.start_join_request(ctx, argument or None)
        await self._send(ctx, transition.replies)

    async def _cmd_create_news(self, ctx: UpdateContext, argument: str) -> None:
        classes = await ctx.store.list_manageable_classes(ctx.user)
        transition = await self.engine.start_news_authoring(ctx, classes)
        await self._send(ctx, transition.replies)

    async def _cmd_view_news(self, ctx: UpdateContext, argument: str) -> None:
        await self._view(ctx, ListingKind.NEWS, argument)

    async def _cmd_view_reports(self, ctx: UpdateContext, argument: str) -> None:
        await self._view(ctx, ListingKind.REPORTS, argument)

    async def _view(self, ctx: UpdateContext, kind: ListingKind, class_name: str) -> None:
        if class_name:
            school_class = await ctx.store.find_class_by_name(class_name)
            if school_class is None:
                raise NotFoundError(texts.CLASS_NOT_FOUND_BY_NAME)
            await self.browser.show_page(ctx, kind, school_class.id, 1)
            return

        classes = await ctx.store.list_viewable_classes(ctx.user)
        if not classes:
            await self.transport.send_text(ctx.chat_id, "У вас нет доступных классов.")
            return
        intent = ViewNewsClass if kind == ListingKind.NEWS else ViewReportsClass
        keyboard = one_per_row([Button(c.name, intent(c.id).encode()) for c in classes])
        await self.transport.send_text(ctx.chat_id, "Выберите класс:", keyboard=keyboard)

    async def _cmd_my_class(self, ctx: UpdateContext, argument: str) -> None:
        user = ctx.user
        roles: Dict[int, str] = {}
        names: Dict[int, str] = {}
        for school_class in await ctx.store.list_viewable_classes(user):
            names[school_class.id] = school_class.name
            if policy.owns_class(user, school_class):
                roles[school_class.id] = texts.ROLE_TITLES[UserRole.ADMIN]
            elif policy.can_manage_class(user, school_class):
                roles[school_class.id] = texts.ROLE_TITLES[UserRole.MODERATOR]
            else:
                roles[school_class.id] = texts.ROLE_TITLES[UserRole.PARENT]

        if not roles:
            await self.transport.send_text(
                ctx.chat_id, "Вы пока не состоите ни в одном классе. Подайте заявку: /requestclass"
            )
            return
        lines = [f"• {html(names[cid])} - {roles[cid]}" for cid in sorted(names, key=names.get)]
        await self.transport.send_text(ctx.chat_id, "Ваши классы:\n" + "\n".join(lines), html=True)

    async def _owned_buttons(self, ctx: UpdateContext, intent, prefix: str = "") -> List[Button]:
        classes = await ctx.store.list_owned_classes(ctx.user_id)
        return [Button(f"{prefix}{c.name}", intent(c.id).encode()) for c in classes]

    async def _cmd_verifications(self, ctx: UpdateContext, argument: str) -> None:
        buttons = await self._owned_buttons(ctx, ShowVerifications)
        transition = await self.engine.start_class_choice(
            ctx, PendingAction.VERIFICATIONS_INFO, "Выберите класс для просмотра заявок:", buttons
        )
        await self._send(ctx, transition.replies)

    async def _cmd_parents(self, ctx: UpdateContext, argument: str) -> None:
        buttons = await self._owned_buttons(ctx, ShowParents)
        transition = await self.engine.start_class_choice(
            ctx, PendingAction.PARENTS_INFO, "Выберите класс для просмотра участников:", buttons
        )
        await self._send(ctx, transition.replies)

    async def _cmd_delete_class(self, ctx: UpdateContext, argument: str) -> None:
        buttons = await self._owned_buttons(ctx, DeleteClass, prefix="🗑 ")
        transition = await self.engine.start_class_choice(
            ctx,
            PendingAction.DELETE_CLASS,
            "Выберите класс для удаления. Новости, заявки и привязки класса будут удалены:",
            buttons,
        )
        await self._send(ctx, transition.replies)

    async def _moderator_flow(self, ctx: UpdateContext, action: ModeratorAction) -> None:
        classes = await ctx.store.list_owned_classes(ctx.user_id)
        transition = await self.engine.start_moderator_flow(ctx, action, list(classes))
        await self._send(ctx, transition.replies)

    async def _cmd_moderators(self, ctx: UpdateContext, argument: str) -> None:
        await self._moderator_flow(ctx, ModeratorAction.LIST)

    async def _cmd_add_moderator(self, ctx: UpdateContext, argument: str) -> None:
        await self._moderator_flow(ctx, ModeratorAction.ADD)

    async def _cmd_remove_moderator(self, ctx: UpdateContext, argument: str) -> None:
        await self._moderator_flow(ctx, ModeratorAction.REMOVE)

    async def _cmd_admin_panel(self, ctx: UpdateContext, argument: str) -> None:
        await self.transport.send_text(
            ctx.chat_id,
            f"Админ-панель: {self.admin_panel_url}\nДля входа используйте ваш Telegram ID: {ctx.user_id}",
        )

    # Кнопки

    async def _on_approve(self, ctx: UpdateContext, callback: IncomingCallback,
                          intent: ApproveVerification) -> Optional[str]:
        result = await operations.approve_verification(
            ctx.store, ctx.user, intent.verification_id, intent.class_id
        )
        await ctx.store.commit()
        class_name = result.school_class.name
        await self.notifier.notify(
            result.parent.telegram_user_id,
            f"✅ Ваша заявка одобрена! Вы добавлены в класс '{class_name}'. Новости класса: /viewnews",
        )
        await self._mark_processed(
            ctx, callback, f"✅ Заявка #{intent.verification_id} одобрена: "
                           f"{display_name(result.parent)} добавлен(а) в класс '{class_name}'."
        )
        return "Одобрено"

    async def _on_reject(self, ctx: UpdateContext, callback: IncomingCallback,
                         intent: RejectVerification) -> Optional[str]:
        verification = await operations.reject_verification(ctx.store, ctx.user, intent.verification_id)
        await ctx.store.commit()
        await self.notifier.notify(
            verification.telegram_user_id,
            "❌ Ваша заявка на вступление в класс была отклонена. Вы можете подать новую: /requestclass",
        )
        await self._mark_processed(ctx, callback, f"❌ Заявка #{intent.verification_id} отклонена.")
        return "Отклонено"

    async def _mark_processed(self, ctx: UpdateContext, callback: IncomingCallback, text: str) -> None:
        if callback.message_id:
            try:
                await self.transport.edit_text(ctx.chat_id, callback.message_id, text)
                return
            except Exception as e:
                logger.debug("verification_message_edit_failed", error=str(e))
        await self.transport.send_text(ctx.chat_id, text)

    async def _on_select_news_class(self, ctx: UpdateContext, callback: IncomingCallback,
                                    intent: SelectNewsClass) -> Optional[str]:
        transition = await self.engine.select_news_class(ctx, intent.class_id)
        await self._drop_message(ctx, callback.message_id)
        await self._send(ctx, transition.replies)
        return None

    async def _on_turn_page(self, ctx: UpdateContext, callback: IncomingCallback,
                            intent: TurnPage) -> Optional[str]:
        cursor = intent.cursor
        await self.browser.show_page(
            ctx, cursor.kind, cursor.class_id, cursor.target(intent.direction), message_id=callback.message_id
        )
        return None

    async def _on_view_news_class(self, ctx: UpdateContext, callback: IncomingCallback,
                                  intent: ViewNewsClass) -> Optional[str]:
        await self.browser.show_page(ctx, ListingKind.NEWS, intent.class_id, 1)
        await self._drop_message(ctx, callback.message_id)
        return None

    async def _on_view_reports_class(self, ctx: UpdateContext, callback: IncomingCallback,
                                     intent: ViewReportsClass) -> Optional[str]:
        await self.browser.show_page(ctx, ListingKind.REPORTS, intent.class_id, 1)
        await self._drop_message(ctx, callback.message_id)
        return None

    async def _on_download_report(self, ctx: UpdateContext, callback: IncomingCallback,
                                  intent: DownloadReport) -> Optional[str]:
        await self.browser.deliver_report(ctx, intent.report_id)
        return None

    async def _on_delete_class(self, ctx: UpdateContext, callback: IncomingCallback,
                               intent: DeleteClass) -> Optional[str]:
        await self.engine.finish_class_choice(ctx, Step.WAITING_FOR_CLASS_CHOICE, PendingAction.DELETE_CLASS)
        school_class, summary = await operations.delete_class(ctx.store, ctx.user, intent.class_id)
        await ctx.store.commit()
        await self._drop_message(ctx, callback.message_id)
        await self.transport.send_text(
            ctx.chat_id,
            f"Класс '{school_class.name}' удален. Новостей: {summary.news}, "
            f"заявок: {summary.verifications}, привязок: {summary.links}.",
        )
        return "Класс удален"

    async def _on_moderator_class(self, ctx: UpdateContext, callback: IncomingCallback,
                                  intent: SelectModeratorClass) -> Optional[str]:
        if intent.action != ModeratorAction.LIST:
            transition = await self.engine.select_moderator_class(ctx, intent.action, intent.class_id)
            await self._drop_message(ctx, callback.message_id)
            await self._send(ctx, transition.replies)
            return None

        await self.engine.finish_class_choice(ctx, Step.WAITING_FOR_MODERATOR_CLASS, PendingAction.LIST_MODERATORS)
        school_class = await operations.require_owned_class(ctx.store, ctx.user, intent.class_id)
        moderators = await ctx.store.list_moderators(school_class.id)
        await self._drop_message(ctx, callback.message_id)
        if not moderators:
            await self.transport.send_text(ctx.chat_id, f"В классе '{school_class.name}' нет модераторов.")
            return None
        lines = [f"• {html(display_name(m))} | TG ID: {m.telegram_user_id}" for m in moderators]
        await self._send_lines(ctx, f"<b>Модераторы класса {html(school_class.name)}:</b>", lines)
        return None

    async def _on_show_parents(self, ctx: UpdateContext, callback: IncomingCallback,
                               intent: ShowParents) -> Optional[str]:
        await self.engine.finish_class_choice(ctx, Step.WAITING_FOR_CLASS_CHOICE, PendingAction.PARENTS_INFO)
        school_class = await operations.require_owned_class(ctx.store, ctx.user, intent.class_id)
        members = await ctx.store.list_class_members(school_class.id)
        await self._drop_message(ctx, callback.message_id)
        if not members:
            await self.transport.send_text(ctx.chat_id, f"В классе '{school_class.name}' пока нет участников.")
            return None
        lines = [
            f"• {html(display_name(m))} | {html(m.phone_number or 'не указан')} | "
            f"TG ID: {m.telegram_user_id} | роль: {texts.ROLE_TITLES[UserRole(m.role)]}"
            for m in members
        ]
        await self._send_lines(ctx, f"<b>Участники класса {html(school_class.name)}:</b>", lines)
        return None

    async def _on_show_verifications(self, ctx: UpdateContext, callback: IncomingCallback,
                                     intent: ShowVerifications) -> Optional[str]:
        await self.engine.finish_class_choice(ctx, Step.WAITING_FOR_CLASS_CHOICE, PendingAction.VERIFICATIONS_INFO)
        school_class = await operations.require_owned_class(ctx.store, ctx.user, intent.class_id)
        pending = await ctx.store.list_pending_verifications(school_class.id)
        await self._drop_message(ctx, callback.message_id)
        if not pending:
            await self.transport.send_text(ctx.chat_id, f"Нет заявок на рассмотрении в классе '{school_class.name}'.")
            return None

        await self.transport.send_text(
            ctx.chat_id, f"Заявки в класс {html(school_class.name)}: {len(pending)}", html=True
        )
        for verification in pending:
            text = (
                f"<b>Заявка #{verification.id}</b>\n"
                f"ФИО: {html(verification.full_name or 'не указано')}\n"
                f"Телефон: {html(verification.phone_number or 'не указан')}\n"
                f"Telegram ID: {verification.telegram_user_id}\n"
                f"Дата: {format_date(verification.created_at)}"
            )
            keyboard = [[
                Button("✅ Одобрить", ApproveVerification(verification.id, school_class.id).encode()),
                Button("❌ Отклонить", RejectVerification(verification.id).encode()),
            ]]
            await self.transport.send_text(ctx.chat_id, text, keyboard=keyboard, html=True)
        return None
