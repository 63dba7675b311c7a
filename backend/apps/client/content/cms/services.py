"""
CMS Sync Service for the Clothing Store backend
===============================================
Pushes catalogue categories and public coupons to the content CMS so the
storefront pages can reference them.

Records are upserted one at a time keyed by ``backend_id``. A failing record
is counted and logged and the run moves on to the next one.
"""

from decimal import Decimal
from typing import Callable, Dict, Any, Iterable
from django.utils import timezone
import logging

from .client import StrapiClient, CMSClientError

logger = logging.getLogger(__name__)

CATEGORY_COLLECTION = 'categories'
COUPON_COLLECTION = 'coupons'


def _number(value):
    if value is None:
        return None
    return float(Decimal(value))


def _document_id(entry: Dict[str, Any]):
    # Strapi 5 addresses entries by documentId, older versions by id
    return entry.get('documentId') or entry.get('id')


def category_payload(category) -> Dict[str, Any]:
    return {
        'name': category.name or 'Unnamed Category',
        'slug': category.slug or f'category-{category.pk}',
        'description': category.description or '',
        'backend_id': str(category.pk),
        'publishedAt': timezone.now().isoformat(),
    }


def coupon_payload(coupon) -> Dict[str, Any]:
    return {
        'name': coupon.name or coupon.code,
        'code': coupon.code,
        'description': coupon.description or '',
        'discount_type': coupon.discount_type,
        'discount_value': _number(coupon.discount_value),
        'min_order_value': _number(coupon.min_order_value),
        'max_discount': _number(coupon.max_discount),
        'apply_type': coupon.apply_type,
        'visibility': coupon.visibility,
        'start_date': coupon.start_date.isoformat(),
        'end_date': coupon.end_date.isoformat(),
        'backend_id': str(coupon.pk),
        'publishedAt': timezone.now().isoformat(),
    }


class CMSSyncService:
    """Upserts backend records into CMS collections."""

    def __init__(self, client: StrapiClient = None):
        self.client = client or StrapiClient()

    def upsert(self, collection: str, data: Dict[str, Any]) -> str:
        """
        Update the entry with the same ``backend_id`` or create one.

        Returns:
            str: 'created' or 'updated'
        """
        existing = self.client.find_by_backend_id(collection, data['backend_id'])
        if existing:
            self.client.update(collection, _document_id(existing), data)
            return 'updated'
        self.client.create(collection, data)
        return 'created'

    def _sync(self, collection: str, records: Iterable, to_payload: Callable, label: Callable) -> Dict[str, int]:
        summary = {'created': 0, 'updated': 0, 'errors': 0}
        for record in records:
            try:
                outcome = self.upsert(collection, to_payload(record))
            except CMSClientError as e:
                summary['errors'] += 1
                logger.error(f"CMS sync failed for {collection} {label(record)}: {e}")
                continue
            summary[outcome] += 1

        logger.info(
            f"CMS sync {collection}: created={summary['created']} "
            f"updated={summary['updated']} errors={summary['errors']}"
        )
        return summary

    def sync_categories(self) -> Dict[str, int]:
        from apps.business.commerce.products.models import Category

        categories = Category.objects.filter(is_active=True).order_by('order', 'name')
        return self._sync(CATEGORY_COLLECTION, categories, category_payload, lambda c: c.name)

    def sync_coupons(self) -> Dict[str, int]:
        from apps.client.experience.coupons.models import Coupon

        coupons = Coupon.objects.filter(is_active=True, type=Coupon.Type.PUBLIC).order_by('end_date')
        return self._sync(COUPON_COLLECTION, coupons, coupon_payload, lambda c: c.code)

    def sync_all(self) -> Dict[str, Dict[str, int]]:
        return {
            'categories': self.sync_categories(),
            'coupons': self.sync_coupons(),
        }
