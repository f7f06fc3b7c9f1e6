import itertools
import random
from datetime import timedelta
from types import SimpleNamespace

import fakeredis
import pytest
from django.utils import timezone

from utils import concurrency as concurrency_utils

ORDER_DEFAULTS = {
    "position_id": None,
    "order_type": "UNKNOWN",
    "lots": 0.0,
    "open_price": 0.0,
    "close_price": None,
    "stop_loss": None,
    "take_profit": None,
    "old_stop_loss": None,
    "old_take_profit": None,
    "profit": None,
    "swap": None,
    "commission": None,
    "deal_type": None,
    "deal_volume": None,
    "deal_profit": None,
    "deal_swap": None,
    "partial_close": None,
    "close_time": None,
    "sector": None,
    "schema_version": None,
    "ea_version": None,
    "comment": None,
}


class InMemoryOrderStore:
    """Order store keeping rows as namespaces; records every call for assertions."""

    def __init__(self):
        self.rows = {}
        self.calls = []
        self._ids = itertools.count(1)
        self.fail_next_insert_with_conflict = False
        self.vanish_before_update = False

    async def find_by_key(self, key):
        self.calls.append(("find_by_key", key))
        return self.rows.get(tuple(key))

    async def insert(self, values):
        from trading.repositories import OrderKeyConflict

        self.calls.append(("insert", values))
        key = (values["account"], values["lookup_key"])
        if self.fail_next_insert_with_conflict:
            self.fail_next_insert_with_conflict = False
            raise OrderKeyConflict("duplicate key")
        if key in self.rows:
            raise OrderKeyConflict("duplicate key")
        now = timezone.now()
        row = SimpleNamespace(**{**ORDER_DEFAULTS, **values})
        row.id = row.pk = next(self._ids)
        row.created_at = now
        row.updated_at = now
        self.rows[key] = row
        return row

    async def update_by_key(self, key, patch):
        self.calls.append(("update_by_key", key, patch))
        if self.vanish_before_update:
            self.rows.pop(tuple(key), None)
        row = self.rows.get(tuple(key))
        if row is None:
            return None
        for name, value in patch.items():
            setattr(row, name, value)
        return row

    def seed(self, **values):
        values.setdefault("lookup_key", values.get("position_id") or values["ticket_id"])
        values.setdefault("event_type", "OPEN")
        values.setdefault("event_timestamp", timezone.now())
        key = (values["account"], values["lookup_key"])
        row = SimpleNamespace(**{**ORDER_DEFAULTS, **values})
        row.id = row.pk = next(self._ids)
        row.created_at = row.updated_at = timezone.now()
        self.rows[key] = row
        return row


class InMemoryRecipientStore:
    def __init__(self, subscriptions=(), users=()):
        self.subscriptions = list(subscriptions)
        self.users = list(users)
        self.calls = []

    async def find_subscriptions_by_sector(self, sector):
        self.calls.append(("find_subscriptions_by_sector", sector))
        return [s for s in self.subscriptions if sector in s.scope or "*" in s.scope]

    async def find_users_by_subscription(self, subscription_id):
        self.calls.append(("find_users_by_subscription", subscription_id))
        return [u for u in self.users if u.subscription_id == subscription_id]


class InMemoryTemplateStore:
    def __init__(self, templates=None, rng=None):
        # {(type, lang): [text, ...]}
        self.templates = dict(templates or {})
        self.rng = rng or random.Random(0)
        self.calls = []

    async def find_template(self, message_type, lang):
        self.calls.append((message_type, lang))
        texts = self.templates.get((message_type, lang))
        if not texts:
            return None
        return self.rng.choice(texts)


class FakeMessenger:
    """Records sends; ``failures`` maps chat_id to the MessengerError to raise."""

    def __init__(self, failures=None):
        self.sent = []
        self.failures = dict(failures or {})

    async def send(self, chat_id, text):
        failure = self.failures.get(chat_id)
        if failure is not None:
            raise failure
        self.sent.append((chat_id, text))
        return {"message_id": len(self.sent)}


def make_user(telegram_id, subscription_id=1, lang="en", expires_in=timedelta(days=30)):
    expires = timezone.now() + expires_in if expires_in is not None else None
    return SimpleNamespace(
        telegram_id=telegram_id,
        subscription_id=subscription_id,
        lang=lang,
        subscription_expires_at=expires,
    )


def make_subscription(id=1, scope=("forex",)):
    return SimpleNamespace(id=id, name=f"sub-{id}", scope=list(scope))


@pytest.fixture
def order_store():
    return InMemoryOrderStore()


@pytest.fixture
def fake_messenger():
    return FakeMessenger()


@pytest.fixture
def fake_redis(monkeypatch):
    r = fakeredis.FakeRedis(decode_responses=True)
    monkeypatch.setattr(concurrency_utils, "_redis_client", r)
    monkeypatch.setattr(concurrency_utils, "get_redis_client", lambda: r)
    return r


@pytest.fixture
def mt5_payload():
    """Builds a raw EA payload for ``event`` with overrides."""

    def _build(event="OPEN", **overrides):
        base = {
            "event": event,
            "ticket": 123456,
            "timestamp": "2024-03-01T10:15:00Z",
            "account": "5001",
            "broker": "ICMarkets",
            "symbol": "EURUSD",
            "sector": "forex",
        }
        if event in ("OPEN", "PENDING", "CLOSE"):
            base.update({"type": "BUY", "volume": 0.1, "price": 1.1})
        if event in ("CLOSE", "PARTIAL_CLOSE"):
            base.update({"volume": 0.1, "price": 1.2, "profit": 25.5})
        if event == "ACTIVATED":
            base.update({"price": 1.1})
        base.update(overrides)
        return {k: v for k, v in base.items() if v is not None}

    return _build
