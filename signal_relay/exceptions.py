from django.utils import timezone
from rest_framework.views import exception_handler
import logging

logger = logging.getLogger(__name__)

def custom_exception_handler(exc, context):
    # Call REST framework's default exception handler first,
    # to get the standard error response.
    response = exception_handler(exc, context)

    # Reshape into the status envelope the MT5 EA understands.
    if response is not None:
        detail = response.data.get("detail", response.data) if isinstance(response.data, dict) else response.data
        response.data = {
            "status": "error",
            "message": str(detail),
            "timestamp": timezone.now().isoformat(),
        }

    if response is not None and response.status_code < 500:
        logger.warning(f"Request rejected: {exc}")
    else:
        logger.error(f"Unhandled exception: {exc}", exc_info=True)

    return response
