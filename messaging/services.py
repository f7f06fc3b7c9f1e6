import logging
from typing import Any, Callable, Dict, Optional

from asgiref.sync import sync_to_async
from django.conf import settings

from messaging.exceptions import EventProcessingError, EventValidationError
from messaging.normalizer import normalize
from messaging.schemas import CLOSE_KINDS, SLTP_UPDATE_KINDS, EventKind, TradeEvent
from notifications.schemas import MessageCategory, NotificationError, NotificationResult
from trading.services import OrderReconciler
from utils.concurrency import forget, mark_once

logger = logging.getLogger(__name__)


def category_for(event: TradeEvent, order) -> Optional[MessageCategory]:
    """Which notification an event produces, judged on the stored order; None means silent."""
    if event.kind == EventKind.OPEN:
        return MessageCategory.OPEN
    if event.kind in CLOSE_KINDS:
        profit = order.profit if order.profit is not None else 0
        return MessageCategory.CLOSE_PLUS if profit >= 0 else MessageCategory.CLOSE_MINUS
    if event.kind in SLTP_UPDATE_KINDS:
        return MessageCategory.POSITION_SLTP_UPDATE
    return None


def dedupe_key(event: TradeEvent) -> str:
    return f"events:processed:{event.ticket}:{event.kind.value}:{event.timestamp.isoformat()}"


# Process-scoped so the per-key lock spans requests served by the ASGI event loop.
_reconciler: Optional[OrderReconciler] = None


def get_reconciler() -> OrderReconciler:
    global _reconciler
    if _reconciler is None:
        _reconciler = OrderReconciler()
    return _reconciler


def _default_dispatcher():
    from notifications.services import get_dispatcher
    return get_dispatcher()


class TradeEventService:
    """
    Runs one inbound MT5 event through normalisation, reconciliation and
    notification fan-out.
    """

    def __init__(
        self,
        reconciler: Optional[OrderReconciler] = None,
        dispatcher_factory: Callable = _default_dispatcher,
        use_celery: Optional[bool] = None,
        dedupe_enabled: Optional[bool] = None,
    ):
        self.reconciler = reconciler or get_reconciler()
        self.dispatcher_factory = dispatcher_factory
        self.use_celery = (
            use_celery if use_celery is not None else getattr(settings, "NOTIFICATIONS_USE_CELERY", False)
        )
        self.dedupe_enabled = (
            dedupe_enabled if dedupe_enabled is not None else getattr(settings, "MT5_EVENT_DEDUPE_ENABLED", False)
        )
        self.dedupe_ttl = int(getattr(settings, "MT5_EVENT_DEDUPE_TTL_SEC", 24 * 3600))

    async def process(self, raw: Any) -> Dict[str, Any]:
        marked_key = None
        try:
            event = normalize(raw)
            logger.debug(f"Received {event.kind.value} event: ticket={event.ticket} {event.symbol} account={event.account}")

            if self.dedupe_enabled:
                key = dedupe_key(event)
                first_seen = await sync_to_async(mark_once)(key, self.dedupe_ttl)
                if not first_seen:
                    logger.info(f"Duplicate {event.kind.value} event ignored: ticket={event.ticket}")
                    return {"success": True, "event_id": event.ticket, "message": "Duplicate event ignored"}
                marked_key = key

            order = await self.reconciler.reconcile(event)
            marked_key = None
            category = category_for(event, order)
            if category is not None:
                await self._notify(order, category)

            return {
                "success": True,
                "event_id": event.ticket,
                "message": f"Event {event.kind.value} processed successfully",
            }
        except EventValidationError:
            raise
        except Exception as e:
            logger.exception(f"Error processing MT5 event: {e}")
            if marked_key is not None:
                # Let the EA's retry of this event through.
                await sync_to_async(forget)(marked_key)
            raise EventProcessingError() from e

    async def _notify(self, order, category: MessageCategory) -> NotificationResult:
        """Notification trouble is logged and reported, never raised into ingestion."""
        try:
            if self.use_celery:
                from notifications.tasks import dispatch_order_notifications
                await sync_to_async(dispatch_order_notifications.delay)(order.pk, category.value)
                logger.debug(f"Queued {category.value} notifications for order {order.ticket_id}")
                return NotificationResult.empty()
            result = await self.dispatcher_factory().dispatch(order, category)
        except Exception as e:
            logger.exception(f"Notifications for order {order.ticket_id} could not be started: {e}")
            result = NotificationResult(
                success=False,
                failed_count=1,
                errors=[NotificationError(telegram_id=0, error=f"System error: {e}", retry=False)],
            )
        if not result.success:
            logger.warning(
                f"Notifications for order {order.ticket_id} finished with {result.failed_count} failures"
            )
        return result
