from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List


class MessageCategory(str, Enum):
    OPEN = "open"
    CLOSE_PLUS = "close_plus"
    CLOSE_MINUS = "close_minus"
    POSITION_SLTP_UPDATE = "position_sltp_update"
    WEEKLY_REPORT = "weekly_report"
    MONTHLY_REPORT = "monthly_report"


@dataclass
class PreparedMessage:
    telegram_id: int
    text: str
    category: MessageCategory


@dataclass
class SendOutcome:
    success: bool
    error: str = ""


@dataclass
class NotificationError:
    telegram_id: int
    error: str
    retry: bool = False


@dataclass
class NotificationResult:
    success: bool
    sent_count: int = 0
    failed_count: int = 0
    errors: List[NotificationError] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "NotificationResult":
        return cls(success=True)

    def as_dict(self) -> Dict:
        return {
            "success": self.success,
            "sentCount": self.sent_count,
            "failedCount": self.failed_count,
            "errors": [
                {"telegramId": e.telegram_id, "error": e.error, "retry": e.retry}
                for e in self.errors
            ],
        }
