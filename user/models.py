from django.db import models
from django.utils import timezone

SCOPE_WILDCARD = "*"


class Subscription(models.Model):
    name = models.CharField(max_length=255)
    # JSON list of sector tags, e.g. ["forex", "metals"]; "*" grants every sector.
    scope = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "subscriptions"

    @property
    def sectors(self) -> set:
        scope = self.scope
        if scope is None:
            return set()
        if isinstance(scope, str):
            return {scope}
        if isinstance(scope, dict):
            scope = scope.get("sectors") or []
        return {str(tag) for tag in scope}

    def covers(self, sector: str) -> bool:
        sectors = self.sectors
        return SCOPE_WILDCARD in sectors or sector in sectors

    def __str__(self):
        return self.name


class TelegramUser(models.Model):
    telegram_id = models.BigIntegerField(primary_key=True)
    username = models.CharField(max_length=100, null=True, blank=True)
    first_name = models.CharField(max_length=255, null=True, blank=True)
    last_name = models.CharField(max_length=255, null=True, blank=True)
    lang = models.CharField(max_length=10, null=True, blank=True)
    is_premium = models.BooleanField(default=False)
    subscription = models.ForeignKey(
        Subscription,
        on_delete=models.SET_NULL,
        related_name="users",
        null=True,
        blank=True,
    )
    subscription_expires_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "users"

    def has_active_subscription(self, now=None) -> bool:
        now = now or timezone.now()
        return self.subscription_expires_at is not None and self.subscription_expires_at > now

    def __str__(self):
        return f"{self.username or self.telegram_id}"
