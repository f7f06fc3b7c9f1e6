from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import FrozenSet, Optional


class EventKind(str, Enum):
    OPEN = "OPEN"
    CLOSE = "CLOSE"
    PARTIAL_CLOSE = "PARTIAL_CLOSE"
    PENDING = "PENDING"
    ACTIVATED = "ACTIVATED"
    ORDER_STATE_CHANGE = "ORDER_STATE_CHANGE"
    ORDER_SLTP_UPDATE = "ORDER_SLTP_UPDATE"
    POSITION_SLTP_UPDATE = "POSITION_SLTP_UPDATE"
    TEST = "TEST"


class OrderType(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    BUY_LIMIT = "BUY_LIMIT"
    SELL_LIMIT = "SELL_LIMIT"
    BUY_STOP = "BUY_STOP"
    SELL_STOP = "SELL_STOP"
    BUY_STOP_LIMIT = "BUY_STOP_LIMIT"
    SELL_STOP_LIMIT = "SELL_STOP_LIMIT"


CLOSE_KINDS = frozenset({EventKind.CLOSE, EventKind.PARTIAL_CLOSE})
SLTP_UPDATE_KINDS = frozenset({EventKind.ORDER_SLTP_UPDATE, EventKind.POSITION_SLTP_UPDATE})


@dataclass
class TradeEvent:
    """Canonical shape of one MT5 Expert Advisor event.

    ``provided_fields`` lists the canonical names the payload actually carried,
    so defaulted values (SL/TP fall back to 0) can be told apart from explicit ones.
    """

    kind: EventKind
    ticket: str
    timestamp: datetime
    account: str
    broker: str
    symbol: str
    position_id: Optional[str] = None
    sector: Optional[str] = None
    schema_version: Optional[str] = None
    ea_version: Optional[str] = None
    order_type: Optional[str] = None
    volume: Optional[float] = None
    price: Optional[float] = None
    close_price: Optional[float] = None
    sl: Optional[float] = None
    tp: Optional[float] = None
    profit: Optional[float] = None
    swap: Optional[float] = None
    commission: Optional[float] = None
    deal_type: Optional[str] = None
    deal_volume: Optional[float] = None
    deal_profit: Optional[float] = None
    deal_swap: Optional[float] = None
    partial_close: Optional[float] = None
    comment: Optional[str] = None
    provided_fields: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def lookup_ref(self) -> str:
        """Position id when the EA sent one, else the ticket."""
        return self.position_id or self.ticket

    def has(self, name: str) -> bool:
        return name in self.provided_fields


# Shape of the inbound JSON (hints)
# OPEN
# {
#   "event": "OPEN", "ticket": "123456", "position_id": "123456",
#   "timestamp": 1718000000 | "2024-06-10T06:13:20Z",
#   "account": "5012345", "broker": "MetaQuotes", "schema_version": "1.0", "ea_version": "2.3",
#   "symbol": "EURUSD", "sector": "forex",
#   "type": "BUY", "volume": 0.1, "price": 1.0712, "sl": 1.065, "tp": 1.08, "comment": "..."
# }
# CLOSE
# { ..., "type": "SELL", "volume": 0.1, "price": 1.0750, "profit": 38.0,
#   "swap": -0.2, "commission": -0.7, "total_profit": 37.1 }
# PENDING
# { ..., "order_type": "BUY_LIMIT", "order_volume": 0.1, "order_price": 1.07, "order_sl": 1.06, "order_tp": 1.09 }
# POSITION_SLTP_UPDATE / ORDER_SLTP_UPDATE
# { ..., "sl": 1.068, "tp": 1.085 }
