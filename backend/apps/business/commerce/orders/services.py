"""
Order Service for the Clothing Store backend
============================================
Checkout orchestration and order lifecycle with inventory locking.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Optional, Dict, Any, List
from django.db import transaction
from django.db.models import F
import logging

from apps.base.core.system.exceptions import (
    CartError,
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    OrderError,
    ValidationError,
    ErrorMessages,
)
from apps.business.partners.shipping.services import ShippingService
from apps.client.experience.coupons.exceptions import CouponValidationError
from apps.client.experience.coupons.services import CouponEvaluator, UsageLedger, compute_discount, format_vnd

if TYPE_CHECKING:
    from .models import Order

logger = logging.getLogger(__name__)

ZERO = Decimal('0')
ADDRESS_FIELDS = ('recipient_name', 'phone_number', 'street_address', 'province')


def resolve_address(user, address_id=None, address: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Shipping address snapshot from a saved address or inline fields.

    Inline fields carry ``province`` and optional ``ward`` as model instances.
    Without either, the user's default address is used.

    Raises:
        NotFoundError: saved address is missing or belongs to someone else
        ValidationError: no usable address was given
    """
    from apps.base.core.users.models import UserAddress

    if address_id is not None:
        saved = UserAddress.objects.select_related('province', 'ward').filter(
            pk=address_id, user=user, is_active=True
        ).first()
        if saved is None:
            raise NotFoundError(ErrorMessages.ADDRESS_NOT_FOUND)
    elif address:
        missing = [field for field in ADDRESS_FIELDS if not address.get(field)]
        if missing:
            raise ValidationError(ErrorMessages.ADDRESS_REQUIRED, extra_data={'missing': missing})
        ward = address.get('ward')
        ward_name = ward.name if ward else ''
        province_name = address['province'].name
        parts = [address['street_address'], ward_name, province_name]
        return {
            'address_id': None,
            'recipient_name': address['recipient_name'],
            'phone_number': address['phone_number'],
            'street_address': address['street_address'],
            'ward_name': ward_name,
            'province_name': province_name,
            'full_address': ', '.join(part for part in parts if part),
        }
    else:
        saved = UserAddress.objects.select_related('province', 'ward').filter(
            user=user, is_active=True, is_default=True
        ).first()
        if saved is None:
            raise ValidationError(ErrorMessages.ADDRESS_REQUIRED)

    return {
        'address_id': saved.pk,
        'recipient_name': saved.recipient_name,
        'phone_number': saved.phone_number,
        'street_address': saved.street_address,
        'ward_name': saved.ward_name,
        'province_name': saved.province_name,
        'full_address': saved.full_address,
    }


class CheckoutService:
    """
    Turns a user's cart into an order.

    The attached coupon is always evaluated again against the live cart;
    an order is only created together with its ledger entry.
    """

    @staticmethod
    def _cart_for(user, lock=False):
        from apps.business.commerce.cart.models import Cart

        queryset = Cart.objects.select_for_update() if lock else Cart.objects
        return queryset.filter(user=user).first()

    @staticmethod
    def _item_errors(items) -> List[Dict[str, Any]]:
        errors = []
        for item in items:
            product = item.product
            if not product.is_available:
                errors.append({
                    'code': 'product_unavailable',
                    'message': f'{ErrorMessages.PRODUCT_UNAVAILABLE}: {product.name}',
                    'product_id': str(product.pk),
                })
            elif not product.has_stock_for(item.quantity):
                errors.append({
                    'code': 'insufficient_stock',
                    'message': f'Sản phẩm {product.name} chỉ còn {product.stock_quantity}',
                    'product_id': str(product.pk),
                })
        return errors

    @staticmethod
    def _totals(subtotal, coupon, address) -> Dict[str, Decimal]:
        shipping_fee = ShippingService.calculate_fee(subtotal, address)
        discount = compute_discount(coupon, subtotal) if coupon else ZERO
        return {
            'subtotal': subtotal,
            'shipping_fee': shipping_fee,
            'discount': discount,
            'total': max(subtotal + shipping_fee - discount, ZERO),
        }

    @classmethod
    def review_order(cls, user, address_id=None, address: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Dry run of checkout.

        Returns:
            dict: {valid, errors, order_summary}; coupon and address problems
            are reported in ``errors`` with their codes instead of raising
        """
        from apps.business.commerce.cart.services import CartService

        cart = cls._cart_for(user)
        items = list(cart.items.select_related('product')) if cart else []
        if not items:
            return {
                'valid': False,
                'errors': [{'code': 'cart_empty', 'message': ErrorMessages.CART_EMPTY}],
                'order_summary': None,
            }

        cart_service = CartService(cart)
        errors = cls._item_errors(items)

        # Stale line prices are re-synced here; checkout refuses them
        for change in cart_service.refresh_prices():
            errors.append({
                'code': 'price_changed',
                'message': (
                    f'Giá sản phẩm {change["product_name"]} đã thay đổi từ '
                    f'{format_vnd(change["old_price"])} thành {format_vnd(change["new_price"])}'
                ),
                'product_id': change['product_id'],
                'old_price': change['old_price'],
                'new_price': change['new_price'],
            })
        cart = cart_service.cart

        coupon = None
        if cart.coupon_code:
            try:
                coupon = CouponEvaluator.validate(cart.coupon_code, user, cart_service.get_context())
            except CouponValidationError as exc:
                errors.append({'code': exc.code, 'message': exc.message, 'field': 'coupon'})

        shipping_address = None
        try:
            shipping_address = resolve_address(user, address_id, address)
        except (NotFoundError, ValidationError) as exc:
            errors.append({'code': exc.code, 'message': exc.message, 'field': 'address'})

        totals = cls._totals(cart.subtotal, coupon, shipping_address)
        estimated_delivery = None
        if shipping_address:
            estimated_delivery = ShippingService.estimate_delivery(shipping_address['province_name'])

        return {
            'valid': not errors,
            'errors': errors,
            'order_summary': {
                'items': [
                    {
                        'product_id': str(item.product_id),
                        'product_name': item.product.name,
                        'quantity': item.quantity,
                        'unit_price': item.unit_price,
                        'current_price': item.product.price,
                        'price_changed': item.unit_price != item.product.price,
                        'total_price': item.product.price * item.quantity,
                    }
                    for item in items
                ],
                **totals,
                'coupon': {'code': coupon.code, 'name': coupon.name} if coupon else None,
                'shipping_address': shipping_address,
                'estimated_delivery': estimated_delivery,
            },
        }

    @classmethod
    @transaction.atomic
    def checkout(
        cls,
        user,
        payment_method: str,
        address_id=None,
        address: Optional[Dict[str, Any]] = None,
        customer_note: str = '',
        ip_address: str = None
    ) -> 'Order':
        """
        Create an order from the cart in a single transaction.

        Raises:
            CartError: cart is empty
            OrderError / InsufficientStockError: an item can no longer be sold
            NotFoundError / ValidationError: address problems
            CouponValidationError: the coupon was rejected at evaluation or at
                ledger write time; nothing is persisted
        """
        from .models import Order, OrderItem, OrderStatusHistory
        from apps.business.commerce.cart.services import CartService
        from apps.business.commerce.products.models import Product

        cart = cls._cart_for(user, lock=True)
        if cart is None:
            raise CartError(ErrorMessages.CART_EMPTY)
        cart_service = CartService(cart).recalculate_totals()
        items = list(cart.items.all())
        if not items:
            raise CartError(ErrorMessages.CART_EMPTY)

        # Lock products in id order to avoid deadlocks between checkouts
        products = {
            product.pk: product
            for product in Product.objects.select_for_update().filter(
                pk__in=[item.product_id for item in items]
            ).order_by('pk')
        }
        for item in items:
            item.product = products[item.product_id]
            if item.unit_price != item.product.price:
                raise OrderError(
                    ErrorMessages.PRICE_CHANGED,
                    code='price_changed',
                    extra_data={
                        'product_id': str(item.product_id),
                        'old_price': str(item.unit_price),
                        'new_price': str(item.product.price),
                    }
                )
        for error in cls._item_errors(items):
            if error['code'] == 'insufficient_stock':
                raise InsufficientStockError(error['message'], extra_data={'product_id': error['product_id']})
            raise OrderError(error['message'], code=error['code'], extra_data={'product_id': error['product_id']})

        shipping_address = resolve_address(user, address_id, address)

        coupon = None
        if cart.coupon_code:
            coupon = CouponEvaluator.validate(cart.coupon_code, user, cart_service.get_context())

        totals = cls._totals(cart.subtotal, coupon, shipping_address)

        order = Order.objects.create(
            user=user,
            email=user.email,
            payment_method=payment_method,
            subtotal=totals['subtotal'],
            shipping_fee=totals['shipping_fee'],
            discount_amount=totals['discount'],
            total=totals['total'],
            coupon=coupon,
            coupon_code=coupon.code if coupon else '',
            shipping_address_id=shipping_address['address_id'],
            shipping_name=shipping_address['recipient_name'],
            shipping_phone=shipping_address['phone_number'],
            shipping_street=shipping_address['street_address'],
            shipping_ward=shipping_address['ward_name'],
            shipping_province=shipping_address['province_name'],
            shipping_address_line=shipping_address['full_address'],
            estimated_delivery=ShippingService.estimate_delivery(shipping_address['province_name']),
            customer_note=customer_note,
            ip_address=ip_address,
        )

        for item in items:
            product = item.product
            OrderItem.objects.create(
                order=order,
                product=product,
                product_name=product.name,
                product_sku=product.sku,
                quantity=item.quantity,
                unit_price=item.unit_price,
            )

            # Guarded decrement: never below zero even if stock changed after the check
            queryset = Product.objects.filter(pk=product.pk)
            if product.track_inventory:
                queryset = queryset.filter(stock_quantity__gte=item.quantity)
            updated = queryset.update(
                stock_quantity=F('stock_quantity') - (item.quantity if product.track_inventory else 0),
                sold_count=F('sold_count') + item.quantity
            )
            if not updated:
                raise InsufficientStockError(
                    f'Sản phẩm {product.name} vừa hết hàng. Vui lòng giảm số lượng hoặc chọn sản phẩm khác.',
                    extra_data={'product_id': str(product.pk)}
                )

        if coupon:
            UsageLedger.record_redemption(coupon.pk, user.pk, order.pk, totals['discount'])

        OrderStatusHistory.objects.create(
            order=order,
            old_status='',
            new_status=order.status,
            note='Đơn hàng được tạo',
            changed_by=user
        )

        cart_service.clear()

        logger.info(
            f"Order {order.order_number} created: total={order.total} "
            f"discount={order.discount_amount} coupon={order.coupon_code or '-'}"
        )
        return order


class OrderService:
    """
    Service class for order lifecycle operations.
    Handles inventory restoration with proper locking.
    """

    def __init__(self, order):
        self.order = order

    def _lock(self) -> 'Order':
        from .models import Order

        self.order = Order.objects.select_for_update().get(pk=self.order.pk)
        return self.order

    def _restore_stock(self, order):
        from apps.business.commerce.products.models import Product

        items = sorted(order.items.select_related('product'), key=lambda item: str(item.product_id))
        for item in items:
            if item.product.track_inventory:
                Product.objects.filter(pk=item.product_id).update(
                    stock_quantity=F('stock_quantity') + item.quantity
                )
            Product.objects.filter(pk=item.product_id, sold_count__gte=item.quantity).update(
                sold_count=F('sold_count') - item.quantity
            )

    def _cancel(self, order, reason, changed_by):
        from apps.business.commerce.payments.models import Payment

        self._restore_stock(order)

        cancelled_payments = Payment.objects.filter(
            order=order, status=Payment.Status.PENDING
        ).update(status=Payment.Status.CANCELLED)

        if not order.is_paid:
            order.payment_status = order.PaymentStatus.CANCELLED
        order.update_status(order.Status.CANCELLED, note=reason, changed_by=changed_by)

        # Coupon redemptions stay in the ledger: a used coupon is spent
        logger.info(
            f"Order {order.order_number} cancelled ({cancelled_payments} pending payments cancelled)"
        )

    @transaction.atomic
    def cancel_order(self, reason: str = '', changed_by=None) -> bool:
        """
        Cancel order and restore inventory.

        Returns:
            bool: True if cancelled, False if the order is past cancellation
        """
        order = self._lock()
        if not order.can_cancel:
            return False

        self._cancel(order, reason, changed_by)
        return True

    @transaction.atomic
    def confirm_cod_payment(self, changed_by=None) -> 'Order':
        """
        Mark a cash-on-delivery order as paid.

        Raises:
            OrderError: not a COD order or already cancelled
            ConflictError: already paid
        """
        order = self._lock()
        if order.payment_method != order.PaymentMethod.COD:
            raise OrderError(ErrorMessages.PAYMENT_METHOD_MISMATCH)
        if order.is_paid:
            raise ConflictError(ErrorMessages.ORDER_ALREADY_PAID)
        if order.status == order.Status.CANCELLED:
            raise OrderError('Đơn hàng đã bị hủy')

        order.mark_paid(note='Xác nhận thanh toán COD', changed_by=changed_by)
        logger.info(f"COD payment confirmed for order {order.order_number}")
        return order

    @transaction.atomic
    def update_status(self, new_status: str, note: str = '', changed_by=None) -> 'Order':
        """
        Staff status change following the allowed transitions.

        Raises:
            OrderError: transition is not allowed
        """
        order = self._lock()
        if not order.can_transition_to(new_status):
            raise OrderError(
                f'Không thể chuyển trạng thái từ {order.status} sang {new_status}',
                code='invalid_transition'
            )

        if new_status == order.Status.CANCELLED:
            self._cancel(order, note, changed_by)
        else:
            order.update_status(new_status, note=note, changed_by=changed_by)
            logger.info(f"Order {order.order_number} moved to {new_status}")
        return order


