import logging
from typing import Optional

from django.conf import settings

from notifications.dispatcher import NotificationDispatcher, build_scheduler
from notifications.repositories import TemplateRepository
from notifications.telegram import TelegramMessenger
from user.repositories import RecipientRepository
from utils.rate_limiter import JobScheduler

logger = logging.getLogger(__name__)

# Process-scoped: one scheduler throttles every outbound send of this worker.
_scheduler: Optional[JobScheduler] = None
_dispatcher: Optional[NotificationDispatcher] = None


def get_scheduler() -> JobScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = build_scheduler(getattr(settings, "NOTIFICATION_RATE_LIMIT", None))
        logger.info(f"Notification scheduler created: {_scheduler.max_concurrent} concurrent, "
                    f"{_scheduler.capacity} per {_scheduler.refresh_interval}s")
    return _scheduler


def get_dispatcher() -> NotificationDispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher(
            recipients=RecipientRepository(),
            templates=TemplateRepository(),
            messenger=TelegramMessenger(),
            scheduler=get_scheduler(),
        )
    return _dispatcher


def reset_dispatcher() -> None:
    """Drops the cached scheduler and dispatcher (settings changes, tests)."""
    global _scheduler, _dispatcher
    _scheduler = None
    _dispatcher = None
