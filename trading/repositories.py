import logging
from collections import namedtuple
from typing import Any, Dict, Optional

from asgiref.sync import sync_to_async
from django.db import IntegrityError, transaction

from trading.models import Order

logger = logging.getLogger(__name__)

OrderKey = namedtuple("OrderKey", ["account", "ref"])


class OrderKeyConflict(Exception):
    """An order row for the same key already exists."""


class OrderRepository:
    """Django ORM implementation of ``core.interfaces.OrderStore``."""

    @staticmethod
    @sync_to_async
    def find_by_key(key: OrderKey) -> Optional[Order]:
        return Order.objects.filter(account=key.account, lookup_key=key.ref).first()

    @staticmethod
    @sync_to_async
    def insert(values: Dict[str, Any]) -> Order:
        try:
            with transaction.atomic():
                return Order.objects.create(**values)
        except IntegrityError as exc:
            raise OrderKeyConflict(str(exc)) from exc

    @staticmethod
    @sync_to_async
    def update_by_key(key: OrderKey, patch: Dict[str, Any]) -> Optional[Order]:
        matched = Order.objects.filter(account=key.account, lookup_key=key.ref).update(**patch)
        if not matched:
            return None
        return Order.objects.filter(account=key.account, lookup_key=key.ref).first()
