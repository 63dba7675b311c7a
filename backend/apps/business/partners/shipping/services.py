"""
Shipping Service for the Clothing Store backend
===============================================
Pluggable shipping fee calculation and delivery estimates.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, Optional
from django.conf import settings
from django.utils import timezone
from django.utils.module_loading import import_string
import logging

logger = logging.getLogger(__name__)


class ShippingCalculationError(Exception):
    """Exception raised when shipping calculation fails."""
    pass


# =============================================================================
# SHIPPING FEE CALCULATORS
# =============================================================================

class ShippingFeeCalculator(ABC):
    """Abstract base class for shipping fee calculators."""

    def __init__(self, config: Dict[str, Any] = None):
        self.config = config or {}

    @abstractmethod
    def calculate(self, subtotal: Decimal, address: Optional[Dict[str, Any]] = None) -> Decimal:
        """
        Calculate the shipping fee for an order.

        Args:
            subtotal: Cart subtotal in VND
            address: Shipping address snapshot (recipient, street, ward, province)

        Returns:
            Decimal: Fee in VND, never negative
        """
        pass


class FlatZeroShippingCalculator(ShippingFeeCalculator):
    """Free shipping on every order."""

    def calculate(self, subtotal, address=None):
        return Decimal('0')


class TieredShippingCalculator(ShippingFeeCalculator):
    """
    Subtotal-tiered fee.

    Tiers are (threshold, fee) pairs checked from the highest threshold down;
    orders below every threshold pay ``base_fee``.
    """

    DEFAULT_TIERS = (
        (Decimal('500000'), Decimal('0')),
        (Decimal('300000'), Decimal('20000')),
    )
    DEFAULT_BASE_FEE = Decimal('30000')

    def __init__(self, config: Dict[str, Any] = None):
        super().__init__(config)
        tiers = self.config.get('tiers', self.DEFAULT_TIERS)
        self.tiers = sorted(
            ((Decimal(str(threshold)), Decimal(str(fee))) for threshold, fee in tiers),
            key=lambda tier: tier[0],
            reverse=True
        )
        self.base_fee = Decimal(str(self.config.get('base_fee', self.DEFAULT_BASE_FEE)))

    def calculate(self, subtotal, address=None):
        for threshold, fee in self.tiers:
            if subtotal >= threshold:
                return fee
        return self.base_fee


def get_shipping_calculator(path: str = None) -> ShippingFeeCalculator:
    """
    Instantiate the configured shipping fee calculator.

    Uses STORE_CONFIG['SHIPPING_FEE_CALCULATOR'] unless a dotted path is given.
    """
    path = path or settings.STORE_CONFIG['SHIPPING_FEE_CALCULATOR']
    calculator_class = import_string(path)
    if not issubclass(calculator_class, ShippingFeeCalculator):
        raise ShippingCalculationError(f'{path} is not a ShippingFeeCalculator')
    return calculator_class(settings.STORE_CONFIG.get('SHIPPING_FEE_OPTIONS'))


class ShippingService:
    """Shipping helpers used by checkout."""

    @classmethod
    def calculate_fee(cls, subtotal: Decimal, address: Optional[Dict[str, Any]] = None) -> Decimal:
        calculator = get_shipping_calculator()
        fee = calculator.calculate(subtotal, address)
        if fee < 0:
            logger.error(f"{calculator.__class__.__name__} returned negative fee {fee}")
            raise ShippingCalculationError('Shipping fee cannot be negative')
        return fee

    @staticmethod
    def delivery_days(province_name: str) -> int:
        config = settings.STORE_CONFIG
        fast = {name.casefold() for name in config['FAST_DELIVERY_PROVINCES']}
        if province_name and province_name.strip().casefold() in fast:
            return config['FAST_DELIVERY_DAYS']
        return config['DEFAULT_DELIVERY_DAYS']

    @classmethod
    def estimate_delivery(cls, province_name: str, from_date=None):
        """Return the estimated delivery date for a destination province."""
        from_date = from_date or timezone.localdate()
        return from_date + timedelta(days=cls.delivery_days(province_name))
