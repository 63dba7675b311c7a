"""
Custom Exception Handlers for the Clothing Store backend
========================================================
Provides consistent error responses across all API endpoints.
"""

from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
from django.core.exceptions import ValidationError as DjangoValidationError
from django.http import Http404
from django.db import IntegrityError
import logging

logger = logging.getLogger(__name__)


class StoreBaseException(Exception):
    """Base exception for all store business errors."""
    default_message = "An error occurred"
    default_code = "error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message=None, code=None, extra_data=None):
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.extra_data = extra_data or {}
        super().__init__(self.message)


class ValidationError(StoreBaseException):
    """Validation errors for business logic."""
    default_message = "Validation failed"
    default_code = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(StoreBaseException):
    """Resource not found errors."""
    default_message = "Resource not found"
    default_code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class PermissionDeniedError(StoreBaseException):
    """Permission denied errors."""
    default_message = "You do not have permission to perform this action"
    default_code = "permission_denied"
    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(StoreBaseException):
    """Conflict errors (e.g., duplicate resources)."""
    default_message = "Resource conflict"
    default_code = "conflict"
    status_code = status.HTTP_409_CONFLICT


# E-commerce Specific Exceptions
class InsufficientStockError(StoreBaseException):
    """Raised when product stock is insufficient."""
    default_message = "Insufficient stock available"
    default_code = "insufficient_stock"
    status_code = status.HTTP_400_BAD_REQUEST


class PaymentError(StoreBaseException):
    """Payment processing errors."""
    default_message = "Payment processing failed"
    default_code = "payment_failed"
    status_code = status.HTTP_400_BAD_REQUEST


class OrderError(StoreBaseException):
    """Order processing errors."""
    default_message = "Order processing failed"
    default_code = "order_failed"
    status_code = status.HTTP_400_BAD_REQUEST


class CartError(StoreBaseException):
    """Cart operation errors."""
    default_message = "Cart operation failed"
    default_code = "cart_error"
    status_code = status.HTTP_400_BAD_REQUEST


def custom_exception_handler(exc, context):
    """
    Custom exception handler for Django REST Framework.
    Every error leaves the API as {'success': False, 'error': {code, message, details}}.
    """
    response = exception_handler(exc, context)

    error_data = {
        'success': False,
        'error': {
            'code': 'unknown_error',
            'message': 'An unexpected error occurred',
            'details': None
        }
    }

    if isinstance(exc, StoreBaseException):
        error_data['error'] = {
            'code': exc.code,
            'message': exc.message,
            'details': exc.extra_data or None
        }
        return Response(error_data, status=exc.status_code)

    # DRF exceptions
    if response is not None:
        error_data['error'] = {
            'code': getattr(exc, 'default_code', 'api_error'),
            'message': str(exc.detail) if hasattr(exc, 'detail') else str(exc),
            'details': response.data if isinstance(response.data, dict) else {'errors': response.data}
        }
        return Response(error_data, status=response.status_code)

    if isinstance(exc, DjangoValidationError):
        error_data['error'] = {
            'code': 'validation_error',
            'message': 'Validation failed',
            'details': exc.message_dict if hasattr(exc, 'message_dict') else {'errors': exc.messages}
        }
        return Response(error_data, status=status.HTTP_400_BAD_REQUEST)

    if isinstance(exc, Http404):
        error_data['error'] = {
            'code': 'not_found',
            'message': str(exc) or 'Resource not found',
            'details': None
        }
        return Response(error_data, status=status.HTTP_404_NOT_FOUND)

    if isinstance(exc, IntegrityError):
        logger.error(f"Database integrity error: {exc}")
        error_data['error'] = {
            'code': 'integrity_error',
            'message': 'Database constraint violated',
            'details': None
        }
        return Response(error_data, status=status.HTTP_409_CONFLICT)

    logger.exception(f"Unhandled exception: {exc}")

    # Don't expose internals for unhandled exceptions
    return Response(error_data, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


class ErrorMessages:
    """Centralized error messages for consistency."""

    # Cart
    CART_EMPTY = "Giỏ hàng trống"
    CART_ITEM_NOT_FOUND = "Không tìm thấy sản phẩm trong giỏ hàng"
    MAX_CART_ITEMS_REACHED = "Giỏ hàng đã đạt số lượng sản phẩm tối đa"

    # Product
    PRODUCT_NOT_FOUND = "Sản phẩm không tồn tại"
    PRODUCT_UNAVAILABLE = "Sản phẩm hiện không được bán"
    PRICE_CHANGED = "Giá sản phẩm đã thay đổi, vui lòng kiểm tra lại đơn hàng"

    # Address
    ADDRESS_NOT_FOUND = "Không tìm thấy địa chỉ giao hàng"
    ADDRESS_REQUIRED = "Vui lòng chọn hoặc nhập địa chỉ giao hàng"

    # Order
    ORDER_NOT_FOUND = "Không tìm thấy đơn hàng"
    ORDER_CANNOT_BE_CANCELLED = "Đơn hàng này không thể hủy"
    ORDER_ALREADY_PAID = "Đơn hàng đã được thanh toán"
    REQUEST_IN_PROGRESS = "Yêu cầu đang được xử lý. Vui lòng đợi."

    # Payment
    PAYMENT_NOT_FOUND = "Không tìm thấy giao dịch thanh toán"
    PAYMENT_NOT_PENDING = "Giao dịch không còn ở trạng thái chờ thanh toán"
    PAYMENT_METHOD_MISMATCH = "Đơn hàng không sử dụng phương thức thanh toán này"
