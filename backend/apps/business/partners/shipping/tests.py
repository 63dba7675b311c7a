"""
Shipping Tests for the Clothing Store backend
=============================================
"""

from datetime import date
from decimal import Decimal
from django.test import SimpleTestCase, override_settings
from django.conf import settings
from .services import (
    FlatZeroShippingCalculator,
    TieredShippingCalculator,
    ShippingService,
    ShippingCalculationError,
    get_shipping_calculator,
)


class NegativeFeeCalculator(FlatZeroShippingCalculator):
    def calculate(self, subtotal, address=None):
        return Decimal('-1')


class ShippingCalculatorTests(SimpleTestCase):

    def test_default_calculator_is_free(self):
        calculator = get_shipping_calculator()
        self.assertIsInstance(calculator, FlatZeroShippingCalculator)
        self.assertEqual(ShippingService.calculate_fee(Decimal('100000')), Decimal('0'))

    def test_tiered_calculator(self):
        calculator = TieredShippingCalculator()
        self.assertEqual(calculator.calculate(Decimal('500000')), Decimal('0'))
        self.assertEqual(calculator.calculate(Decimal('300000')), Decimal('20000'))
        self.assertEqual(calculator.calculate(Decimal('299999')), Decimal('30000'))

    @override_settings(STORE_CONFIG={
        **settings.STORE_CONFIG,
        'SHIPPING_FEE_CALCULATOR': 'apps.business.partners.shipping.services.TieredShippingCalculator',
    })
    def test_calculator_is_selected_from_settings(self):
        self.assertEqual(ShippingService.calculate_fee(Decimal('100000')), Decimal('30000'))

    @override_settings(STORE_CONFIG={
        **settings.STORE_CONFIG,
        'SHIPPING_FEE_CALCULATOR': 'apps.business.partners.shipping.tests.NegativeFeeCalculator',
    })
    def test_negative_fee_rejected(self):
        with self.assertRaises(ShippingCalculationError):
            ShippingService.calculate_fee(Decimal('100000'))

    def test_non_calculator_path_rejected(self):
        with self.assertRaises(ShippingCalculationError):
            get_shipping_calculator('apps.business.partners.shipping.services.ShippingService')


class DeliveryEstimateTests(SimpleTestCase):

    def test_fast_provinces(self):
        start = date(2026, 1, 10)
        self.assertEqual(ShippingService.estimate_delivery('Hà Nội', start), date(2026, 1, 12))
        self.assertEqual(ShippingService.estimate_delivery('TP. Hồ Chí Minh', start), date(2026, 1, 12))

    def test_other_provinces(self):
        start = date(2026, 1, 10)
        self.assertEqual(ShippingService.estimate_delivery('Đà Nẵng', start), date(2026, 1, 13))
        self.assertEqual(ShippingService.estimate_delivery('', start), date(2026, 1, 13))
