"""
Coupon Service for the Clothing Store backend
=============================================
Eligibility evaluation, discount calculation and the redemption ledger.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP, ROUND_DOWN
from typing import TYPE_CHECKING, Optional, Dict, Any, List, Iterable
from django.conf import settings
from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone
import logging

from apps.base.core.system.exceptions import (
    NotFoundError,
    PermissionDeniedError,
    ConflictError,
)
from .exceptions import CouponErrorCode, CouponValidationError, COUPON_ERROR_MESSAGES

if TYPE_CHECKING:
    from .models import Coupon, CouponUsage
    from django.contrib.auth import get_user_model
    User = get_user_model()

logger = logging.getLogger(__name__)

ZERO = Decimal('0')
WHOLE_VND = Decimal('1')


class CartContext:
    """
    What the evaluator needs to know about a cart.

    ``items`` is a list of ``{'product_id': ..., 'category_id': ...}`` dicts;
    either key may be missing or None.
    """

    def __init__(self, subtotal, items: Iterable[Dict[str, Any]] = ()):
        self.subtotal = Decimal(str(subtotal or 0))
        self.items = list(items)

    def __repr__(self):
        return f'CartContext(subtotal={self.subtotal}, items={len(self.items)})'

    @classmethod
    def from_ids(cls, subtotal, category_ids=(), product_ids=()):
        items = [{'product_id': product_id, 'category_id': None} for product_id in product_ids or ()]
        items += [{'product_id': None, 'category_id': category_id} for category_id in category_ids or ()]
        return cls(subtotal, items)

    @property
    def product_ids(self):
        return {str(item['product_id']) for item in self.items if item.get('product_id') is not None}

    @property
    def category_ids(self):
        return {str(item['category_id']) for item in self.items if item.get('category_id') is not None}


def _authenticated(user) -> Optional['User']:
    if user is not None and getattr(user, 'is_authenticated', False):
        return user
    return None


def format_vnd(amount) -> str:
    return f'{Decimal(amount):,.0f}đ'


# =============================================================================
# DISCOUNT CALCULATOR
# =============================================================================

def compute_discount(coupon: 'Coupon', order_value) -> Decimal:
    """
    Discount a coupon grants on an order value.

    Fixed coupons give ``min(value, order_value)``. Percentage coupons give
    ``order_value * value / 100`` capped by a positive ``max_discount`` then by ``order_value``.
    The result is rounded half-up to whole VND and stays within ``[0, order_value]``.

    Args:
        coupon: Coupon instance
        order_value: Order subtotal in VND

    Returns:
        Decimal: Whole-VND discount amount
    """
    order_value = Decimal(str(order_value or 0))
    if order_value <= 0:
        return ZERO

    value = Decimal(str(coupon.discount_value))
    if coupon.discount_type == coupon.DiscountType.FIXED:
        amount = min(value, order_value)
    else:
        amount = order_value * value / Decimal('100')
        # A cap of 0 means uncapped
        if coupon.max_discount and coupon.max_discount > 0:
            amount = min(amount, Decimal(str(coupon.max_discount)))
        amount = min(amount, order_value)

    amount = max(amount, ZERO).quantize(WHOLE_VND, rounding=ROUND_HALF_UP)
    if amount > order_value:
        # Rounding up must not push past a fractional order value
        amount = order_value.quantize(WHOLE_VND, rounding=ROUND_DOWN)
    return amount


# =============================================================================
# USAGE LEDGER
# =============================================================================

class UsageLedger:
    """Append-only redemption log and the guarded ``used_count`` counter."""

    @staticmethod
    def count_user_redemptions(coupon_id, user_id) -> int:
        from .models import CouponUsage

        if user_id is None:
            return 0
        return CouponUsage.objects.filter(coupon_id=coupon_id, user_id=user_id).count()

    @staticmethod
    @transaction.atomic
    def record_redemption(coupon_id, user_id, order_id, amount) -> 'CouponUsage':
        """
        Record one redemption atomically with the ``used_count`` increment.

        The increment only applies while the coupon still has capacity, so the
        total limit is re-checked at write time rather than trusted from an
        earlier evaluation.

        Raises:
            CouponValidationError: COUPON_USAGE_LIMIT_REACHED or USER_USAGE_LIMIT_REACHED
        """
        from .models import Coupon, CouponUsage

        updated = Coupon.objects.filter(pk=coupon_id).filter(
            Q(usage_limit__isnull=True) | Q(used_count__lt=F('usage_limit'))
        ).update(used_count=F('used_count') + 1, updated_at=timezone.now())

        if not updated:
            if not Coupon.objects.filter(pk=coupon_id).exists():
                raise CouponValidationError(CouponErrorCode.NOT_FOUND)
            logger.warning(f"Guarded increment rejected for coupon {coupon_id}: usage limit reached")
            raise CouponValidationError(CouponErrorCode.USAGE_LIMIT_REACHED)

        # The UPDATE above holds the coupon row lock, so concurrent redemptions
        # by the same user are counted in order.
        per_user_limit = Coupon.objects.filter(pk=coupon_id).values_list(
            'usage_limit_per_user', flat=True
        ).get()
        if UsageLedger.count_user_redemptions(coupon_id, user_id) >= per_user_limit:
            raise CouponValidationError(CouponErrorCode.USER_USAGE_LIMIT_REACHED)

        usage = CouponUsage.objects.create(
            coupon_id=coupon_id,
            user_id=user_id,
            order_id=order_id,
            discount_amount=amount
        )
        logger.info(f"Coupon {coupon_id} redeemed by user {user_id} on order {order_id}: {amount}")
        return usage


# =============================================================================
# ELIGIBILITY EVALUATOR
# =============================================================================

class CouponEvaluator:
    """
    Decides whether a coupon may be used by a user on a cart.

    Checks run in a fixed order and the first failure decides the reason code.
    Evaluation never writes.
    """

    @classmethod
    def evaluate(
        cls,
        code: str,
        user=None,
        cart_context: Optional[CartContext] = None,
        now=None
    ) -> Dict[str, Any]:
        try:
            coupon = cls.validate(code, user, cart_context, now)
        except CouponValidationError as exc:
            logger.info(f"Coupon {(code or '').strip().upper()[:50]} rejected: {exc.code}")
            result = {'eligible': False, 'reason': exc.code, 'message': exc.message}
            if exc.extra_data:
                result['details'] = exc.extra_data
            return result
        return {'eligible': True, 'coupon': coupon}

    @classmethod
    def validate(
        cls,
        code: str,
        user=None,
        cart_context: Optional[CartContext] = None,
        now=None
    ) -> 'Coupon':
        """
        Raising form of ``evaluate``.

        Returns:
            Coupon: the eligible coupon

        Raises:
            CouponValidationError: with the first failing reason code
        """
        from .models import Coupon

        now = now or timezone.now()
        user = _authenticated(user)
        cart_context = cart_context or CartContext(0)

        # 1. Lookup
        normalized = Coupon.normalize_code(code)
        coupon = Coupon.objects.filter(code=normalized).first() if normalized else None
        if coupon is None:
            raise CouponValidationError(CouponErrorCode.NOT_FOUND)

        # 2. Kill switch
        if not coupon.is_active:
            raise CouponValidationError(CouponErrorCode.INACTIVE)

        # 3. Validity window, both bounds inclusive
        if not coupon.is_within_window(now):
            raise CouponValidationError(CouponErrorCode.EXPIRED)

        # 4. Global capacity
        if not coupon.has_global_capacity:
            raise CouponValidationError(CouponErrorCode.USAGE_LIMIT_REACHED)

        # 5. Private coupons
        if coupon.type == Coupon.Type.PRIVATE:
            if user is None:
                raise CouponValidationError(CouponErrorCode.AUTH_REQUIRED)
            assigned = coupon.assigned_users.all()
            if assigned.exists() and not assigned.filter(pk=user.pk).exists():
                raise CouponValidationError(CouponErrorCode.NOT_AVAILABLE_FOR_USER)

        # 6. Per-user limit
        if user is not None:
            used = UsageLedger.count_user_redemptions(coupon.pk, user.pk)
            if used >= coupon.usage_limit_per_user:
                raise CouponValidationError(
                    CouponErrorCode.USER_USAGE_LIMIT_REACHED,
                    message=(
                        f'Bạn đã sử dụng mã này {used} lần '
                        f'(tối đa {coupon.usage_limit_per_user})'
                    )
                )

        # 7. Minimum order
        if cart_context.subtotal < coupon.min_order_value:
            shortfall = coupon.min_order_value - cart_context.subtotal
            raise CouponValidationError(
                CouponErrorCode.MIN_ORDER_NOT_MET,
                message=(
                    f'Đơn hàng tối thiểu {format_vnd(coupon.min_order_value)} để sử dụng mã này '
                    f'(còn thiếu {format_vnd(shortfall)})'
                ),
                extra_data={
                    'min_order_value': str(coupon.min_order_value),
                    'shortfall': str(shortfall),
                }
            )

        # 8. Scope
        if not cls._matches_scope(coupon, cart_context):
            raise CouponValidationError(CouponErrorCode.SCOPE_MISMATCH)

        return coupon

    @staticmethod
    def _matches_scope(coupon: 'Coupon', cart_context: CartContext) -> bool:
        apply_type = coupon.apply_type
        if apply_type == coupon.ApplyType.ALL:
            return True

        category_match = False
        product_match = False
        if apply_type in (coupon.ApplyType.CATEGORY, coupon.ApplyType.MIXED):
            allowed = {str(pk) for pk in coupon.applicable_categories.values_list('pk', flat=True)}
            category_match = bool(allowed & cart_context.category_ids)
        if apply_type in (coupon.ApplyType.PRODUCT, coupon.ApplyType.MIXED):
            allowed = {str(pk) for pk in coupon.applicable_products.values_list('pk', flat=True)}
            product_match = bool(allowed & cart_context.product_ids)

        return category_match or product_match


# =============================================================================
# COUPON SERVICE
# =============================================================================

class CouponService:
    """
    Coupon use cases exposed over the API.
    """

    @staticmethod
    def validate_coupon(
        code: str,
        user=None,
        order_value=0,
        category_ids: Iterable = (),
        product_ids: Iterable = (),
        now=None
    ) -> Dict[str, Any]:
        """
        Evaluate a code against an order value and the cart's ids, then price it.

        Returns:
            dict: eligible result with coupon_id, code, discount, final_amount,
            remaining_uses; or the evaluator's rejection
        """
        cart_context = CartContext.from_ids(order_value, category_ids, product_ids)
        result = CouponEvaluator.evaluate(code, user, cart_context, now)
        if not result['eligible']:
            return result

        coupon = result['coupon']
        discount = compute_discount(coupon, cart_context.subtotal)
        user = _authenticated(user)
        remaining_uses = None
        if user is not None:
            remaining_uses = coupon.usage_limit_per_user - UsageLedger.count_user_redemptions(coupon.pk, user.pk)

        logger.info(f"Coupon {coupon.code} validated: discount={discount}")
        return {
            'eligible': True,
            'coupon': coupon,
            'coupon_id': coupon.pk,
            'code': coupon.code,
            'discount': discount,
            'final_amount': max(cart_context.subtotal - discount, ZERO),
            'remaining_uses': remaining_uses,
        }

    @staticmethod
    @transaction.atomic
    def apply_coupon(user, coupon_id, order_id, discount_amount) -> 'CouponUsage':
        """
        Record a redemption for an order the user owns.

        Raises:
            NotFoundError: unknown coupon or order
            PermissionDeniedError: order belongs to someone else
            ConflictError: order already carries a redemption
            CouponValidationError: the guarded increment was rejected
        """
        from .models import Coupon, CouponUsage
        from apps.business.commerce.orders.models import Order

        coupon = Coupon.objects.filter(pk=coupon_id).first()
        if coupon is None:
            raise NotFoundError(COUPON_ERROR_MESSAGES[CouponErrorCode.NOT_FOUND], code=CouponErrorCode.NOT_FOUND)

        order = Order.objects.select_for_update().filter(pk=order_id).first()
        if order is None:
            raise NotFoundError('Không tìm thấy đơn hàng')
        if order.user_id != user.pk:
            raise PermissionDeniedError('Đơn hàng không thuộc về bạn')
        if CouponUsage.objects.filter(order=order).exists():
            raise ConflictError('Đơn hàng đã được áp dụng mã giảm giá')

        discount_amount = Decimal(str(discount_amount))
        if discount_amount < 0 or discount_amount > order.subtotal:
            raise ConflictError('Số tiền giảm không hợp lệ', code='invalid_discount_amount')

        usage = UsageLedger.record_redemption(coupon.pk, user.pk, order.pk, discount_amount)

        if order.coupon_id is None:
            order.coupon = coupon
            order.coupon_code = coupon.code
            order.save(update_fields=['coupon', 'coupon_code', 'updated_at'])
        return usage

    @staticmethod
    def check_availability(code: str, user=None, now=None) -> Dict[str, Any]:
        """
        Lightweight probe without cart context.

        Returns:
            dict: availability, limits and per-reason flags
        """
        from .models import Coupon

        now = now or timezone.now()
        normalized = Coupon.normalize_code(code)
        coupon = Coupon.objects.filter(code=normalized).first() if normalized else None
        if coupon is None:
            raise NotFoundError(COUPON_ERROR_MESSAGES[CouponErrorCode.NOT_FOUND], code=CouponErrorCode.NOT_FOUND)

        user = _authenticated(user)
        user_usage_count = UsageLedger.count_user_redemptions(coupon.pk, user.pk) if user else 0

        reasons = {
            'is_active': coupon.is_active,
            'is_within_date': coupon.is_within_window(now),
            'has_global_limit': coupon.has_global_capacity,
            'has_user_limit': user_usage_count < coupon.usage_limit_per_user,
        }
        available = all(reasons.values())
        if coupon.type == Coupon.Type.PRIVATE:
            available = available and user is not None and (
                not coupon.assigned_users.exists()
                or coupon.assigned_users.filter(pk=user.pk).exists()
            )

        return {
            'available': available,
            'code': coupon.code,
            'discount_type': coupon.discount_type,
            'discount_value': coupon.discount_value,
            'min_order_value': coupon.min_order_value,
            'user_usage_count': user_usage_count,
            'user_usage_limit': coupon.usage_limit_per_user,
            'total_usage': coupon.used_count,
            'total_usage_limit': coupon.usage_limit,
            'reasons': reasons,
        }

    # -------------------------------------------------------------------------
    # Listings
    # -------------------------------------------------------------------------

    @staticmethod
    def active_coupons(now=None):
        """Public, active, in-window coupons with remaining capacity."""
        from .models import Coupon

        now = now or timezone.now()
        return Coupon.objects.filter(
            is_active=True,
            type=Coupon.Type.PUBLIC,
            start_date__lte=now,
            end_date__gte=now
        ).filter(
            Q(usage_limit__isnull=True) | Q(used_count__lt=F('usage_limit'))
        ).order_by('end_date')

    @classmethod
    def featured_coupons(cls, now=None):
        from .models import Coupon
        return cls.active_coupons(now).filter(visibility=Coupon.Visibility.FEATURED)

    @classmethod
    def landing_page_coupons(cls, now=None):
        from .models import Coupon
        return cls.active_coupons(now).filter(visibility=Coupon.Visibility.LANDING_PAGE)

    @classmethod
    def coupons_for_category(cls, category_id, now=None):
        from .models import Coupon
        return cls.active_coupons(now).filter(
            Q(apply_type=Coupon.ApplyType.ALL)
            | Q(
                apply_type__in=[Coupon.ApplyType.CATEGORY, Coupon.ApplyType.MIXED],
                applicable_categories__pk=category_id
            )
        ).distinct()

    @classmethod
    def coupons_for_product(cls, product, now=None):
        from .models import Coupon
        return cls.active_coupons(now).filter(
            Q(apply_type=Coupon.ApplyType.ALL)
            | Q(
                apply_type__in=[Coupon.ApplyType.PRODUCT, Coupon.ApplyType.MIXED],
                applicable_products__pk=product.pk
            )
            | Q(
                apply_type__in=[Coupon.ApplyType.CATEGORY, Coupon.ApplyType.MIXED],
                applicable_categories__pk=product.category_id
            )
        ).distinct()

    @classmethod
    def expiring_soon(cls, days: int = None, now=None):
        now = now or timezone.now()
        days = days if days is not None else settings.STORE_CONFIG['COUPON_EXPIRING_SOON_DAYS']
        return cls.active_coupons(now).filter(end_date__lte=now + timedelta(days=days))

    @staticmethod
    def user_history(user) -> List['CouponUsage']:
        from .models import CouponUsage
        return CouponUsage.objects.filter(user=user).select_related('coupon', 'order').order_by('-used_at')

    # -------------------------------------------------------------------------
    # Admin
    # -------------------------------------------------------------------------

    @staticmethod
    @transaction.atomic
    def delete_coupon(coupon: 'Coupon') -> bool:
        """
        Delete a coupon, or deactivate it when it has redemptions.

        Returns:
            bool: True if the row was deleted
        """
        if coupon.usages.exists():
            coupon.is_active = False
            coupon.save(update_fields=['is_active', 'updated_at'])
            logger.info(f"Coupon {coupon.code} has redemptions; deactivated instead of deleted")
            return False
        code = coupon.code
        coupon.delete()
        logger.info(f"Coupon {code} deleted")
        return True
