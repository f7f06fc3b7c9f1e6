import asyncio
import logging
from typing import Callable, List, Optional

from django.conf import settings
from django.utils import timezone

from core.interfaces import Messenger, RecipientStore, TemplateStore
from notifications.rendering import order_placeholders, render
from notifications.schemas import (
    MessageCategory,
    NotificationError,
    NotificationResult,
    PreparedMessage,
    SendOutcome,
)
from notifications.telegram import MessengerError
from utils.rate_limiter import JobScheduler

logger = logging.getLogger(__name__)

RETRY_KEYWORDS = ("rate limit", "network", "timeout", "econnreset", "connection reset")


def should_retry(error: str) -> bool:
    """Retry on rate limits and temporary network issues."""
    text = (error or "").lower()
    return any(keyword in text for keyword in RETRY_KEYWORDS)


def describe_send_failure(exc: Exception) -> str:
    code = getattr(exc, "code", None)
    if code == 403:
        return "User blocked the bot or deleted their account"
    if code == 400:
        return "Invalid message or user not found"
    if code == 429:
        retry_after = getattr(exc, "retry_after", None)
        if retry_after:
            return f"Rate limit exceeded, will retry after {retry_after}s"
        return "Rate limit exceeded, will retry"
    return getattr(exc, "message", None) or str(exc) or "Unknown error"


def build_scheduler(config: Optional[dict] = None) -> JobScheduler:
    cfg = dict(getattr(settings, "NOTIFICATION_RATE_LIMIT", {}) or {})
    cfg.update(config or {})
    return JobScheduler(
        max_concurrent=cfg.get("max_concurrent", 5),
        min_time=cfg.get("min_time", 0.1),
        reservoir=cfg.get("reservoir", 30),
        reservoir_refresh_amount=cfg.get("reservoir_refresh_amount", 30),
        reservoir_refresh_interval=cfg.get("reservoir_refresh_interval", 1.0),
    )


class NotificationDispatcher:
    """
    Fans one order event out to every user whose active subscription covers the
    order's sector, one localized message each, throttled by a JobScheduler.
    """

    def __init__(
        self,
        recipients: RecipientStore,
        templates: TemplateStore,
        messenger: Messenger,
        scheduler: Optional[JobScheduler] = None,
        now: Callable = timezone.now,
        default_lang: Optional[str] = None,
    ):
        self.recipients = recipients
        self.templates = templates
        self.messenger = messenger
        self.scheduler = scheduler or build_scheduler()
        self._now = now
        self.default_lang = default_lang or getattr(settings, "NOTIFICATION_DEFAULT_LANG", "en")
        self.scheduler.on("failed", self._on_job_failed)

    @staticmethod
    def _on_job_failed(error: Exception, info) -> None:
        logger.warning(f"Rate limiter job {info.job_id} failed: {error}")

    async def dispatch(self, order, category) -> NotificationResult:
        try:
            category = MessageCategory(category)
            logger.debug(f"Processing {category.value} notification for order {order.ticket_id} ({order.symbol})")

            if not order.sector:
                logger.debug("Order has no sector, no notifications will be sent")
                return NotificationResult.empty()

            users = await self.eligible_users(order.sector)
            if not users:
                logger.debug(f"No eligible users found for sector: {order.sector}")
                return NotificationResult.empty()
            logger.debug(f"Found {len(users)} eligible users for notification")

            messages = await self.prepare_messages(users, category, order)
            if not messages:
                logger.warning(f"No message templates found for event type: {category.value}")
                return NotificationResult.empty()

            result = await self.send_all(messages)
            logger.info(f"Notification batch completed: {result.sent_count} sent, {result.failed_count} failed")
            return result
        except Exception as e:
            logger.exception(f"Failed to process order notifications: {e}")
            return NotificationResult(
                success=False,
                sent_count=0,
                failed_count=1,
                errors=[NotificationError(telegram_id=0, error=f"System error: {e}", retry=False)],
            )

    async def eligible_users(self, sector: str) -> List:
        subscriptions = await self.recipients.find_subscriptions_by_sector(sector)
        if not subscriptions:
            return []
        now = self._now()
        eligible = []
        seen = set()
        for subscription in subscriptions:
            for user in await self.recipients.find_users_by_subscription(subscription.id):
                expires = user.subscription_expires_at
                if expires is None or expires <= now or user.telegram_id in seen:
                    continue
                seen.add(user.telegram_id)
                eligible.append(user)
        return eligible

    async def prepare_messages(self, users, category: MessageCategory, order) -> List[PreparedMessage]:
        prepared = []
        placeholders = order_placeholders(order)
        for user in users:
            lang = user.lang or self.default_lang
            try:
                template = await self.templates.find_template(category.value, lang)
                if not template:
                    logger.warning(f"No message template found for type: {category.value}, lang: {lang}")
                    continue
                prepared.append(PreparedMessage(
                    telegram_id=user.telegram_id,
                    text=render(template, placeholders),
                    category=category,
                ))
            except Exception as e:
                logger.warning(f"Failed to prepare message for user {user.telegram_id}: {e}")
        return prepared

    async def send_all(self, messages: List[PreparedMessage]) -> NotificationResult:
        outcomes = await asyncio.gather(
            *(
                self.scheduler.schedule(f"notification_{message.telegram_id}", self._send_single, message)
                for message in messages
            ),
            return_exceptions=True,
        )

        errors: List[NotificationError] = []
        sent = 0
        for message, outcome in zip(messages, outcomes):
            if isinstance(outcome, SendOutcome) and outcome.success:
                sent += 1
                logger.debug(f"Notification sent successfully to user {message.telegram_id}")
                continue
            if isinstance(outcome, BaseException):
                error = str(outcome) or outcome.__class__.__name__
            else:
                error = outcome.error
            error = error or "Unknown error"
            errors.append(NotificationError(telegram_id=message.telegram_id, error=error, retry=should_retry(error)))
            logger.warning(f"Failed to send notification to user {message.telegram_id}: {error}")

        return NotificationResult(
            success=not errors,
            sent_count=sent,
            failed_count=len(errors),
            errors=errors,
        )

    async def _send_single(self, message: PreparedMessage) -> SendOutcome:
        try:
            await self.messenger.send(message.telegram_id, message.text)
        except MessengerError as e:
            return SendOutcome(success=False, error=describe_send_failure(e))
        return SendOutcome(success=True)
