"""Доставка уведомлений пользователям по Telegram ID."""
from dataclasses import dataclass, field
from typing import Iterable, List

from schoolbot.core.transport import BotTransport
from schoolbot.utils.exceptions import ExternalDeliveryError
from schoolbot.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class DeliveryReport:
    """Итог рассылки."""
    sent: int = 0
    failed_ids: List[int] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failed_ids)


class NotificationGateway:
    """
    Отправка личных сообщений.

    Ошибка доставки одному получателю логируется и не прерывает
    рассылку остальным.
    """

    def __init__(self, transport: BotTransport):
        self.transport = transport

    async def deliver(self, telegram_user_id: int, text: str, html: bool = False) -> None:
        """
        Отправить сообщение одному пользователю.

        Raises:
            ExternalDeliveryError: Транспорт не доставил сообщение
        """
        try:
            await self.transport.send_text(telegram_user_id, text, html=html)
        except Exception as e:
            raise ExternalDeliveryError(f"Сообщение для {telegram_user_id} не доставлено: {e}") from e

    async def notify(self, telegram_user_id: int, text: str, html: bool = False) -> bool:
        """
        Отправить сообщение, не пробрасывая ошибку доставки.

        Returns:
            True если отправлено
        """
        try:
            await self.deliver(telegram_user_id, text, html=html)
            return True
        except ExternalDeliveryError as e:
            logger.warning("notification_failed", telegram_user_id=telegram_user_id, error=str(e.__cause__))
            return False

    async def notify_many(self, telegram_user_ids: Iterable[int], text: str, html: bool = False) -> DeliveryReport:
        """Отправить сообщение всем получателям по очереди."""
        report = DeliveryReport()
        for telegram_user_id in dict.fromkeys(telegram_user_ids):
            if await self.notify(telegram_user_id, text, html=html):
                report.sent += 1
            else:
                report.failed_ids.append(telegram_user_id)
        if report.failed_ids:
            logger.warning("notification_batch_partial", sent=report.sent, failed=report.failed_ids)
        return report
