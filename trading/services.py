import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional

from django.utils import timezone

from core.interfaces import OrderStore
from messaging.schemas import CLOSE_KINDS, EventKind, TradeEvent
from trading.repositories import OrderKey, OrderKeyConflict, OrderRepository
from utils.concurrency import KeyedLock

logger = logging.getLogger(__name__)


class PatchShape(Enum):
    CLOSE = "close"
    SLTP = "sltp"
    OPEN = "open"
    TOUCH = "touch"


# How an event updates an order that already exists.
PATCH_SHAPES: Dict[EventKind, PatchShape] = {
    EventKind.OPEN: PatchShape.OPEN,
    EventKind.CLOSE: PatchShape.CLOSE,
    EventKind.PARTIAL_CLOSE: PatchShape.CLOSE,
    EventKind.PENDING: PatchShape.TOUCH,
    EventKind.ACTIVATED: PatchShape.TOUCH,
    EventKind.ORDER_STATE_CHANGE: PatchShape.TOUCH,
    EventKind.ORDER_SLTP_UPDATE: PatchShape.SLTP,
    EventKind.POSITION_SLTP_UPDATE: PatchShape.SLTP,
    EventKind.TEST: PatchShape.TOUCH,
}

_uncovered = set(EventKind) - set(PATCH_SHAPES)
if _uncovered:
    raise RuntimeError(f"No patch shape for event kinds: {sorted(k.value for k in _uncovered)}")


def order_key_for(event: TradeEvent) -> OrderKey:
    return OrderKey(account=event.account, ref=event.lookup_ref)


def _provided_or(event: TradeEvent, name: str, fallback: Any) -> Any:
    return getattr(event, name) if event.has(name) else fallback


class OrderReconciler:
    """
    Folds a stream of MT5 events into one order row per (account, ticket/position).

    The first event for a key inserts the row; later events patch it according to
    their kind. Read-then-write is serialised per key within this process.
    """

    def __init__(self, store: Optional[OrderStore] = None, locks: Optional[KeyedLock] = None, now: Callable = timezone.now):
        self.store = store or OrderRepository()
        self.locks = locks or KeyedLock()
        self._now = now

    async def reconcile(self, event: TradeEvent):
        key = order_key_for(event)
        async with self.locks.hold(key):
            existing = await self.store.find_by_key(key)
            if existing is None:
                try:
                    order = await self.store.insert(self.build_new_order(event, key))
                    logger.info(f"Created order {event.ticket} key={key.ref} from {event.kind.value} ({event.symbol})")
                    return order
                except OrderKeyConflict:
                    logger.warning(f"Order for key {key} was created concurrently; applying {event.kind.value} as update")
                    existing = await self.store.find_by_key(key)
                    if existing is None:
                        raise

            patch = self.build_patch(event, existing)
            updated = await self.store.update_by_key(key, patch)
            if updated is None:
                logger.warning(
                    f"No order matched key {key} at update time for {event.kind.value}; returning previously fetched row"
                )
                return existing
            logger.debug(f"Updated order {updated.ticket_id} key={key.ref} with {event.kind.value}: {sorted(patch)}")
            return updated

    def build_new_order(self, event: TradeEvent, key: OrderKey) -> Dict[str, Any]:
        closing = event.kind in CLOSE_KINDS
        return {
            "ticket_id": event.ticket,
            "position_id": event.position_id,
            "lookup_key": key.ref,
            "account": event.account,
            "broker": event.broker,
            "symbol": event.symbol,
            "order_type": event.order_type or "UNKNOWN",
            "lots": event.volume or 0.0,
            "open_price": 0.0 if closing else (event.price or 0.0),
            "close_price": event.close_price if closing else None,
            "close_time": event.timestamp if closing else None,
            "stop_loss": event.sl,
            "take_profit": event.tp,
            "profit": event.profit,
            "swap": event.swap,
            "commission": event.commission,
            "deal_type": event.deal_type,
            "deal_volume": event.deal_volume,
            "deal_profit": event.deal_profit,
            "deal_swap": event.deal_swap,
            "partial_close": event.partial_close,
            "event_type": event.kind.value,
            "event_timestamp": event.timestamp,
            "sector": event.sector,
            "schema_version": event.schema_version,
            "ea_version": event.ea_version,
            "comment": event.comment,
        }

    def build_patch(self, event: TradeEvent, existing) -> Dict[str, Any]:
        shape = PATCH_SHAPES[event.kind]
        builder = {
            PatchShape.CLOSE: self._close_patch,
            PatchShape.SLTP: self._sltp_patch,
            PatchShape.OPEN: self._open_patch,
            PatchShape.TOUCH: self._touch_patch,
        }[shape]
        patch = builder(event, existing)
        patch.update({
            "event_type": event.kind.value,
            "event_timestamp": event.timestamp,
            "updated_at": self._now(),
        })
        return patch

    @staticmethod
    def _close_patch(event: TradeEvent, existing) -> Dict[str, Any]:
        return {
            "close_price": event.close_price,
            "profit": event.profit,
            "close_time": event.timestamp,
            "swap": _provided_or(event, "swap", existing.swap),
            "commission": _provided_or(event, "commission", existing.commission),
            "deal_type": _provided_or(event, "deal_type", existing.deal_type),
            "deal_volume": _provided_or(event, "deal_volume", existing.deal_volume),
            "deal_profit": _provided_or(event, "deal_profit", existing.deal_profit),
            "deal_swap": _provided_or(event, "deal_swap", existing.deal_swap),
            "partial_close": _provided_or(event, "partial_close", existing.partial_close),
        }

    @staticmethod
    def _sltp_patch(event: TradeEvent, existing) -> Dict[str, Any]:
        # Capture the pre-image before overwriting.
        return {
            "old_stop_loss": existing.stop_loss,
            "old_take_profit": existing.take_profit,
            "stop_loss": _provided_or(event, "sl", existing.stop_loss),
            "take_profit": _provided_or(event, "tp", existing.take_profit),
        }

    @staticmethod
    def _open_patch(event: TradeEvent, existing) -> Dict[str, Any]:
        return {
            "order_type": event.order_type or existing.order_type,
            "lots": event.volume if event.volume is not None else existing.lots,
            "open_price": event.price if event.price is not None else existing.open_price,
            "stop_loss": _provided_or(event, "sl", existing.stop_loss),
            "take_profit": _provided_or(event, "tp", existing.take_profit),
        }

    @staticmethod
    def _touch_patch(event: TradeEvent, existing) -> Dict[str, Any]:
        if event.has("comment"):
            return {"comment": event.comment}
        return {}
