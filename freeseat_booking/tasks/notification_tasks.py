"""
Celery tasks for background receipt delivery.
"""

import asyncio
import logging

from .celery_app import celery_app
from ..database import close_database, get_session_factory, init_database
from ..services.notification_service import NotificationService
from ..services.reservation_service import ReservationEngine
from ..utils.exceptions import InternalError, OrderNotFoundError

logger = logging.getLogger(__name__)


async def _resend_receipt(order_id: str) -> bool:
    await init_database()
    try:
        engine = ReservationEngine(get_session_factory())
        return await NotificationService(engine).resend(order_id)
    finally:
        await close_database()


@celery_app.task(
    bind=True,
    name="resend_receipt_task",
    max_retries=3,
    default_retry_delay=300,
)
def resend_receipt_task(self, order_id: str):
    """
    Retry receipt delivery for an order whose first delivery failed.

    Args:
        order_id: ID of the committed order
    """
    logger.info(f"Background receipt resend for order {order_id}")

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        sent = loop.run_until_complete(_resend_receipt(order_id))
    except OrderNotFoundError:
        logger.error(f"Order {order_id} not found; dropping background resend")
        return {"order_id": order_id, "status": "not_found"}
    except InternalError as e:
        logger.warning(f"Storage unavailable resending order {order_id}: {e.message}")
        raise self.retry(exc=e)
    finally:
        loop.close()

    if not sent:
        logger.warning(f"Background resend failed for order {order_id}")
        raise self.retry(exc=RuntimeError(f"Receipt delivery failed for {order_id}"))

    logger.info(f"Background resend succeeded for order {order_id}")
    return {"order_id": order_id, "status": "sent"}
