import logging
from typing import Any, Dict, Optional

import httpx
from django.conf import settings

logger = logging.getLogger(__name__)


class MessengerError(Exception):
    """A send the provider refused or could not complete.

    ``code`` mirrors the Bot API ``error_code`` (HTTP-like: 400, 403, 429, ...)
    and is None for transport failures.
    """

    def __init__(self, message: str, code: Optional[int] = None, retry_after: Optional[int] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.retry_after = retry_after


class TelegramMessenger:
    """
    Sends plain notifications through the Telegram Bot API ``sendMessage`` method.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token if token is not None else getattr(settings, "TELEGRAM_BOT_TOKEN", "")
        if not self.token:
            raise RuntimeError("TELEGRAM_BOT_TOKEN is not configured in settings")
        self.base_url = (base_url or getattr(settings, "TELEGRAM_API_BASE_URL", "https://api.telegram.org")).rstrip("/")
        self.timeout = timeout if timeout is not None else getattr(settings, "TELEGRAM_SEND_TIMEOUT_SEC", 15)
        self.transport = transport

    def _url(self, method: str) -> str:
        return f"{self.base_url}/bot{self.token}/{method}"

    async def send(self, chat_id: int, text: str) -> Dict[str, Any]:
        payload = {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": "HTML",
            "link_preview_options": {"is_disabled": True},
        }
        try:
            # Short-lived client per request to avoid cross-event-loop reuse.
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.post(self._url("sendMessage"), json=payload)
        except httpx.TimeoutException as e:
            raise MessengerError(f"Request timeout: {e}") from e
        except httpx.HTTPError as e:
            raise MessengerError(f"Network error: {e}") from e

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if resp.status_code == 200 and data.get("ok"):
            return data.get("result") or {}

        code = data.get("error_code") or resp.status_code
        description = data.get("description") or (resp.text or "")[:200] or f"HTTP {resp.status_code}"
        retry_after = (data.get("parameters") or {}).get("retry_after")
        logger.debug(f"[Telegram] sendMessage chat_id={chat_id} failed status={resp.status_code} code={code}: {description}")
        raise MessengerError(description, code=code, retry_after=retry_after)
