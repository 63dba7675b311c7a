"""
Payment Celery Tasks for the Clothing Store backend
===================================================
"""

from celery import shared_task
import logging

from .services import PaymentService

logger = logging.getLogger(__name__)


@shared_task(name='payments.expire_stale_payments')
def expire_stale_payments_task():
    """
    Expire QR payments whose window has passed.

    Customers who never poll the status endpoint would otherwise keep a
    pending payment forever. Scheduled every 5 minutes via Celery Beat.
    """
    count = PaymentService.expire_stale_payments()

    if count > 0:
        logger.info(f"Expired {count} stale QR payments")

    return {'expired': count}
