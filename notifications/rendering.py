import re
from datetime import datetime
from typing import Any, Dict, Optional

from django.utils import timezone

_TOKEN = re.compile(r"\{([^}]+)\}")
MISSING = "N/A"


def format_datetime(value: Optional[datetime]) -> str:
    """YYYY.MM.DD HH:mm in the configured TIME_ZONE; empty for missing values."""
    if value is None:
        return ""
    if timezone.is_aware(value):
        value = timezone.localtime(value)
    return value.strftime("%Y.%m.%d %H:%M")


def format_number(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def order_placeholders(order) -> Dict[str, Optional[str]]:
    """Values for every token a template may reference. None leaves the token unresolved."""
    return {
        "symbol": f"#{order.symbol}",
        "order_type": f"#{order.order_type}",
        "lots": format_number(order.lots) or "0",
        "open_price": format_number(order.open_price),
        "close_price": format_number(order.close_price),
        "stop_loss": format_number(order.stop_loss) or "0",
        "take_profit": format_number(order.take_profit) or "0",
        "old_stop_loss": format_number(order.old_stop_loss),
        "old_take_profit": format_number(order.old_take_profit),
        "profit": format_number(order.profit),
        "ticket_id": str(order.ticket_id),
        "ticketId": str(order.ticket_id),
        "sector": order.sector or "",
        "account": order.account,
        "broker": order.broker,
        "created_at": format_datetime(order.created_at),
        "close_time": format_datetime(order.close_time),
    }


def render(template: str, placeholders: Dict[str, Optional[str]]) -> str:
    """Substitutes every {name} token in one pass; unknown tokens and tokens without a value become N/A."""

    def _value(match: re.Match) -> str:
        value = placeholders.get(match.group(1))
        return MISSING if value is None else str(value)

    return _TOKEN.sub(_value, template)
