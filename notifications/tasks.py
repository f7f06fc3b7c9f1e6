import logging

from asgiref.sync import async_to_sync
from celery import shared_task

from notifications.services import get_dispatcher
from trading.models import Order

logger = logging.getLogger(__name__)


@shared_task(name="notifications.tasks.dispatch_order_notifications")
def dispatch_order_notifications(order_id: int, category: str):
    """
    Fans out notifications for an already reconciled order outside the webhook request.
    """
    order = Order.objects.filter(pk=order_id).first()
    if order is None:
        logger.warning(f"dispatch_order_notifications: order {order_id} no longer exists")
        return {"success": False, "sentCount": 0, "failedCount": 0, "errors": []}

    result = async_to_sync(get_dispatcher().dispatch)(order, category)
    logger.info(f"dispatch_order_notifications: order {order_id} {category}: "
                f"{result.sent_count} sent, {result.failed_count} failed")
    return result.as_dict()
