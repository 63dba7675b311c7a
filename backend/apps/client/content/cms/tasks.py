"""
CMS Celery Tasks for the Clothing Store backend
===============================================
"""

from celery import shared_task
from django.conf import settings
import logging

from .services import CMSSyncService

logger = logging.getLogger(__name__)


@shared_task(name='cms.sync_backend_data')
def sync_backend_data_task():
    """
    Push categories and public coupons to the CMS.

    Scheduled every 2 hours via Celery Beat. There are no retries; a failed
    run is logged and the next tick tries again.
    """
    config = settings.CMS_SYNC_CONFIG
    if not config.get('ENABLED'):
        logger.debug("CMS sync disabled, skipping")
        return {'skipped': True}

    if not config.get('API_TOKEN'):
        logger.warning("CMS sync enabled without STRAPI_API_TOKEN, skipping")
        return {'skipped': True}

    results = CMSSyncService().sync_all()
    logger.info(f"CMS sync finished: {results}")
    return results
