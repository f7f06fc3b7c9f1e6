"""messaging/normalizer.py

Turns the heterogeneous JSON an MT5 Expert Advisor posts into one ``TradeEvent``.

Which fields a payload must carry depends on its kind; ``KIND_RULES`` is the
single table of those rules and must cover every ``EventKind``.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal
from typing import Any, Dict, FrozenSet, Mapping, Optional

from django.utils import timezone
from django.utils.dateparse import parse_datetime

from .exceptions import EventValidationError
from .schemas import CLOSE_KINDS, EventKind, OrderType, TradeEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KindRule:
    required: FrozenSet[str] = frozenset()
    # Kinds that carry stop-loss/take-profit; absent values default to 0.
    sltp: bool = False


KIND_RULES: Dict[EventKind, KindRule] = {
    EventKind.OPEN: KindRule(required=frozenset({"order_type", "volume", "price"}), sltp=True),
    EventKind.CLOSE: KindRule(required=frozenset({"order_type", "volume", "price", "profit"})),
    EventKind.PARTIAL_CLOSE: KindRule(required=frozenset({"volume", "price", "profit"})),
    EventKind.PENDING: KindRule(required=frozenset({"order_type", "volume", "price"}), sltp=True),
    EventKind.ACTIVATED: KindRule(required=frozenset({"price"}), sltp=True),
    EventKind.ORDER_STATE_CHANGE: KindRule(),
    EventKind.ORDER_SLTP_UPDATE: KindRule(sltp=True),
    EventKind.POSITION_SLTP_UPDATE: KindRule(sltp=True),
    EventKind.TEST: KindRule(),
}

_uncovered = set(EventKind) - set(KIND_RULES)
if _uncovered:
    raise RuntimeError(f"No normalization rule for event kinds: {sorted(k.value for k in _uncovered)}")

BASE_REQUIRED = ("ticket", "timestamp", "account", "broker", "symbol")

# canonical name -> payload keys, first non-blank wins
FIELD_ALIASES: Dict[str, tuple] = {
    "kind": ("event", "kind"),
    "order_type": ("type", "order_type"),
    "volume": ("volume", "order_volume"),
    "price": ("price", "order_price", "deal_price"),
    # Close kinds only; the deal price is the fill that closed the position.
    "close_price": ("deal_price", "price", "order_price"),
    "sl": ("sl", "order_sl"),
    "tp": ("tp", "order_tp"),
    "profit": ("total_profit", "profit"),
}

OPTIONAL_NUMBERS = ("swap", "commission", "deal_volume", "deal_profit", "deal_swap", "partial_close")
OPTIONAL_TEXT = ("sector", "schema_version", "ea_version", "deal_type", "comment")


class _FieldError(ValueError):
    pass


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _pick(raw: Mapping, name: str, provided: set) -> Any:
    for key in FIELD_ALIASES.get(name, (name,)):
        value = raw.get(key)
        if not _is_blank(value):
            provided.add(name)
            return value
    return None


def to_number(value: Any) -> float:
    if isinstance(value, bool):
        raise _FieldError("must be a number")
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            raise _FieldError(f"'{value}' is not a number")
    else:
        raise _FieldError("must be a number")
    if not math.isfinite(number):
        raise _FieldError("must be a finite number")
    return number


def to_opaque_id(value: Any) -> str:
    """Ticket/position ids stay strings; they are never routed through float."""
    if isinstance(value, bool):
        raise _FieldError("must be a string or integer identifier")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        raise _FieldError("must be a string or integer identifier")
    if isinstance(value, str) and value.strip():
        return value.strip()
    raise _FieldError("must be a string or integer identifier")


def to_text(value: Any) -> str:
    if isinstance(value, bool):
        raise _FieldError("must be a string")
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)):
        return str(value)
    raise _FieldError("must be a string")


def to_instant(value: Any) -> datetime:
    """ISO-8601 strings are parsed as-is; epoch seconds (number or numeric string) become UTC instants."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, bool):
        raise _FieldError("must be an ISO-8601 string or Unix epoch seconds")
    elif isinstance(value, (int, float)):
        parsed = _from_epoch(value)
    elif isinstance(value, str):
        text = value.strip()
        try:
            seconds = float(text)
        except ValueError:
            seconds = None
        if seconds is not None:
            parsed = _from_epoch(seconds)
        else:
            try:
                parsed = parse_datetime(text)
            except ValueError:
                parsed = None
            if parsed is None:
                raise _FieldError(f"'{value}' is not an ISO-8601 datetime or Unix timestamp")
    else:
        raise _FieldError("must be an ISO-8601 string or Unix epoch seconds")
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed, dt_timezone.utc)
    return parsed


def _from_epoch(seconds: float) -> datetime:
    if not math.isfinite(seconds):
        raise _FieldError("must be a finite Unix timestamp")
    try:
        return datetime.fromtimestamp(seconds, tz=dt_timezone.utc)
    except (OverflowError, OSError, ValueError):
        raise _FieldError(f"{seconds} is out of range for a Unix timestamp")


def _parse_kind(raw: Mapping) -> EventKind:
    value = _pick(raw, "kind", set())
    if value is None:
        raise EventValidationError("Event type is required")
    try:
        return EventKind(str(value).strip().upper())
    except ValueError:
        raise EventValidationError(f"Unsupported event type: {value}")


def normalize(raw: Any) -> TradeEvent:
    if not isinstance(raw, Mapping):
        raise EventValidationError("Event payload must be a JSON object")

    kind = _parse_kind(raw)
    rule = KIND_RULES[kind]
    provided: set = set()
    errors: Dict[str, str] = {}
    values: Dict[str, Any] = {}

    def coerce(name: str, converter, required: bool = False, default: Any = None) -> None:
        value = _pick(raw, name, provided)
        if value is None:
            if required:
                errors[name] = "is required"
            values[name] = default
            return
        try:
            values[name] = converter(value)
        except _FieldError as exc:
            errors[name] = str(exc)

    coerce("ticket", to_opaque_id, required=True)
    coerce("position_id", to_opaque_id)
    coerce("timestamp", to_instant, required=True)
    for name in ("account", "broker", "symbol"):
        coerce(name, to_text, required=True)
    for name in OPTIONAL_TEXT:
        coerce(name, to_text)

    coerce("order_type", _to_order_type, required="order_type" in rule.required)
    for name in ("volume", "price", "profit"):
        coerce(name, to_number, required=name in rule.required)
    if kind in CLOSE_KINDS:
        coerce("close_price", to_number)
    for name in OPTIONAL_NUMBERS:
        coerce(name, to_number)

    if rule.sltp:
        coerce("sl", to_number, default=0.0)
        coerce("tp", to_number, default=0.0)

    if errors:
        message = "; ".join(f"{name} {problem}" for name, problem in errors.items())
        logger.debug(f"Rejected {kind.value} event: {message}")
        raise EventValidationError(f"Validation failed: {message}")

    return TradeEvent(kind=kind, provided_fields=frozenset(provided), **values)


def _to_order_type(value: Any) -> str:
    text = to_text(value).upper()
    try:
        return OrderType(text).value
    except ValueError:
        raise _FieldError(f"'{value}' is not a known order type")
