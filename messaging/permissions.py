import hmac

from django.conf import settings
from rest_framework import permissions


class WebhookSecretPermission(permissions.BasePermission):
    """
    Requires the shared secret in ``X-Webhook-Secret`` when MT5_WEBHOOK_SECRET is set.
    With no secret configured every caller is allowed.
    """
    message = "Invalid or missing webhook secret."

    def has_permission(self, request, view):
        expected = getattr(settings, "MT5_WEBHOOK_SECRET", "")
        if not expected:
            return True
        supplied = request.headers.get("X-Webhook-Secret", "")
        return hmac.compare_digest(str(supplied), str(expected))
