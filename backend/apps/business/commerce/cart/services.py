"""
Cart Service for the Clothing Store backend
===========================================
Business logic layer for cart operations with optimized DB queries.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Optional, Dict, Any, List
from django.db import transaction
from django.db.models import Sum
from django.conf import settings
import logging

from apps.base.core.system.exceptions import (
    CartError,
    NotFoundError,
    InsufficientStockError,
    ErrorMessages,
)
from apps.client.experience.coupons.exceptions import CouponValidationError
from apps.client.experience.coupons.services import CartContext, CouponEvaluator, compute_discount

if TYPE_CHECKING:
    from .models import Cart, CartItem

logger = logging.getLogger(__name__)


class CartService:
    """
    Service class for cart operations.
    Separates business logic from models and uses DB aggregation for totals.
    """

    def __init__(self, cart):
        """
        Initialize cart service.

        Args:
            cart: Cart model instance
        """
        self.cart = cart

    @classmethod
    def for_user(cls, user) -> 'CartService':
        from .models import Cart

        cart, _ = Cart.objects.get_or_create(user=user)
        return cls(cart)

    def _lock(self) -> 'Cart':
        self.cart = type(self.cart).objects.select_for_update().get(pk=self.cart.pk)
        return self.cart

    def recalculate_totals(self) -> 'CartService':
        """
        Recalculate cart totals using database aggregation.

        Returns:
            self for method chaining
        """
        from .models import CartItem

        aggregates = CartItem.objects.filter(cart=self.cart).aggregate(
            subtotal=Sum('total_price'),
            item_count=Sum('quantity'),
        )

        self.cart.subtotal = aggregates['subtotal'] or Decimal('0.00')
        self.cart.item_count = aggregates['item_count'] or 0
        self.cart.save(update_fields=['subtotal', 'item_count', 'updated_at'])

        return self

    @transaction.atomic
    def add_item(self, product, quantity: int = 1) -> 'CartItem':
        """
        Add a product to the cart, merging with an existing line.

        Raises:
            NotFoundError: product is not on sale
            InsufficientStockError: requested quantity exceeds stock
            CartError: cart already holds the maximum number of lines
        """
        from .models import CartItem

        cart = self._lock()

        if not product.is_available:
            raise NotFoundError(ErrorMessages.PRODUCT_UNAVAILABLE)

        existing_item = CartItem.objects.filter(cart=cart, product=product).first()
        new_quantity = quantity + (existing_item.quantity if existing_item else 0)

        if not product.has_stock_for(new_quantity):
            raise InsufficientStockError(
                f'Sản phẩm {product.name} chỉ còn {product.stock_quantity}',
                extra_data={'product_id': str(product.pk), 'available': product.stock_quantity}
            )

        if existing_item:
            existing_item.quantity = new_quantity
            existing_item.total_price = existing_item.unit_price * new_quantity
            existing_item.save(update_fields=['quantity', 'total_price', 'updated_at'])
            item = existing_item
        else:
            max_items = settings.STORE_CONFIG.get('MAX_CART_ITEMS', 50)
            if cart.items.count() >= max_items:
                raise CartError(ErrorMessages.MAX_CART_ITEMS_REACHED, extra_data={'max_items': max_items})
            item = CartItem.objects.create(
                cart=cart,
                product=product,
                quantity=quantity,
                unit_price=product.price,
                total_price=product.price * quantity
            )

        self.recalculate_totals()
        return item

    @transaction.atomic
    def update_item_quantity(self, item_id, quantity: int) -> Optional['CartItem']:
        """
        Update cart item quantity with locking.

        Args:
            item_id: CartItem ID
            quantity: New quantity (0 to remove)

        Returns:
            Updated CartItem or None if removed
        """
        from .models import CartItem

        cart = self._lock()

        item = CartItem.objects.select_for_update().select_related('product').filter(
            id=item_id,
            cart=cart
        ).first()
        if item is None:
            raise NotFoundError(ErrorMessages.CART_ITEM_NOT_FOUND)

        if quantity <= 0:
            item.delete()
            self.recalculate_totals()
            return None

        if not item.product.has_stock_for(quantity):
            raise InsufficientStockError(
                f'Sản phẩm {item.product.name} chỉ còn {item.product.stock_quantity}',
                extra_data={'product_id': str(item.product_id), 'available': item.product.stock_quantity}
            )

        item.quantity = quantity
        item.total_price = item.unit_price * quantity
        item.save(update_fields=['quantity', 'total_price', 'updated_at'])

        self.recalculate_totals()
        return item

    @transaction.atomic
    def refresh_prices(self) -> List[Dict[str, Any]]:
        """
        Re-price lines whose stored unit price no longer matches the product.

        Returns:
            list: one ``{product_id, product_name, old_price, new_price}`` per changed line
        """
        from .models import CartItem

        cart = self._lock()
        changes = []
        for item in CartItem.objects.select_for_update().select_related('product').filter(cart=cart):
            current_price = item.product.price
            if item.unit_price == current_price:
                continue
            changes.append({
                'product_id': str(item.product_id),
                'product_name': item.product.name,
                'old_price': item.unit_price,
                'new_price': current_price,
            })
            item.unit_price = current_price
            item.total_price = current_price * item.quantity
            item.save(update_fields=['unit_price', 'total_price', 'updated_at'])

        if changes:
            logger.info(f"Cart {cart.pk}: re-priced {len(changes)} line(s)")
            self.recalculate_totals()
        return changes

    @transaction.atomic
    def remove_item(self, item_id) -> bool:
        """
        Remove item from cart.

        Returns:
            True if removed, False if not found
        """
        from .models import CartItem

        cart = self._lock()
        deleted_count, _ = CartItem.objects.filter(id=item_id, cart=cart).delete()

        if deleted_count > 0:
            self.recalculate_totals()
            return True
        return False

    @transaction.atomic
    def clear(self) -> 'CartService':
        """Remove all items and the attached coupon."""
        cart = self._lock()

        cart.items.all().delete()
        cart.coupon_code = ''
        cart.save(update_fields=['coupon_code', 'updated_at'])

        return self.recalculate_totals()

    def get_context(self) -> CartContext:
        """
        Live view of the cart for coupon evaluation.

        Items carry product_id, category_id, quantity and price.
        """
        items = [
            {
                'product_id': item.product_id,
                'category_id': item.product.category_id,
                'quantity': item.quantity,
                'price': item.unit_price,
            }
            for item in self.cart.items.select_related('product')
        ]
        return CartContext(self.cart.subtotal, items)

    @transaction.atomic
    def attach_coupon(self, code: str, user) -> Dict[str, Any]:
        """
        Validate a coupon against the live cart and remember its code.

        Raises:
            CartError: cart is empty
            CouponValidationError: the coupon was rejected
        """
        cart = self._lock()
        if not cart.items.exists():
            raise CartError(ErrorMessages.CART_EMPTY)

        coupon = CouponEvaluator.validate(code, user, self.get_context())

        cart.coupon_code = coupon.code
        cart.save(update_fields=['coupon_code', 'updated_at'])
        logger.info(f"Coupon {coupon.code} attached to cart {cart.pk}")

        return {
            'coupon_code': coupon.code,
            'discount_amount': compute_discount(coupon, cart.subtotal),
        }

    @transaction.atomic
    def detach_coupon(self) -> 'CartService':
        cart = self._lock()
        cart.coupon_code = ''
        cart.save(update_fields=['coupon_code', 'updated_at'])
        return self

    def get_summary(self, user=None) -> Dict[str, Any]:
        """
        Cart totals with a discount preview for the attached coupon.

        The coupon is evaluated again here, so a code that stopped being valid
        is reported through ``coupon_error`` instead of a discount.
        """
        discount = Decimal('0')
        coupon_error = None
        if self.cart.coupon_code:
            try:
                coupon = CouponEvaluator.validate(self.cart.coupon_code, user, self.get_context())
                discount = compute_discount(coupon, self.cart.subtotal)
            except CouponValidationError as exc:
                coupon_error = {'code': exc.code, 'message': exc.message}

        return {
            'subtotal': self.cart.subtotal,
            'discount_amount': discount,
            'total': max(self.cart.subtotal - discount, Decimal('0')),
            'item_count': self.cart.item_count,
            'currency': self.cart.currency,
            'coupon_code': self.cart.coupon_code or None,
            'coupon_error': coupon_error,
        }
