from typing import List

from asgiref.sync import sync_to_async

from user.models import Subscription, TelegramUser


class RecipientRepository:
    """Django ORM implementation of ``core.interfaces.RecipientStore``."""

    @staticmethod
    @sync_to_async
    def find_subscriptions_by_sector(sector: str) -> List[Subscription]:
        # Scope is free-form JSON; matching is done in Python so every backend behaves the same.
        return [sub for sub in Subscription.objects.order_by("id") if sub.covers(sector)]

    @staticmethod
    @sync_to_async
    def find_users_by_subscription(subscription_id: int) -> List[TelegramUser]:
        return list(TelegramUser.objects.filter(subscription_id=subscription_id).order_by("telegram_id"))
