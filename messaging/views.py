import logging

from asgiref.sync import async_to_sync
from django.conf import settings
from django.utils import timezone
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from messaging.permissions import WebhookSecretPermission
from messaging.services import TradeEventService
from notifications.services import get_scheduler

logger = logging.getLogger(__name__)


class MT5EventView(APIView):
    """
    Receives one trading event from the MT5 Expert Advisor.

    Validation problems surface as 400, anything else as a generic 500; both
    are shaped by the project exception handler.
    """
    permission_classes = [WebhookSecretPermission]
    service_class = TradeEventService

    def post(self, request):
        result = async_to_sync(self.service_class().process)(request.data)
        return Response(
            {
                "status": "success",
                "message": result["message"],
                "eventId": result["event_id"],
                "timestamp": timezone.now().isoformat(),
            },
            status=status.HTTP_200_OK,
        )


class HealthView(APIView):
    permission_classes = []

    def get(self, request):
        return Response(
            {
                "status": "healthy",
                "service": getattr(settings, "WEBHOOK_SERVICE_NAME", "signal-relay-webhook"),
                "version": getattr(settings, "WEBHOOK_SERVICE_VERSION", "1.0.0"),
                "timestamp": timezone.now().isoformat(),
                "notifications": get_scheduler().counts(),
            },
            status=status.HTTP_200_OK,
        )


class TestEventView(APIView):
    """Echo endpoint the EA uses to check connectivity before sending real events."""
    permission_classes = [WebhookSecretPermission]

    def post(self, request):
        logger.info(f"MT5 test event received: {request.data}")
        return Response(
            {
                "status": "success",
                "message": "Test event received",
                "received": request.data,
                "timestamp": timezone.now().isoformat(),
            },
            status=status.HTTP_200_OK,
        )
