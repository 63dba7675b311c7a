"""
Coupon rejection codes and messages.

Clients dispatch on ``code``; ``message`` is display text only.
"""

from rest_framework import status
from apps.base.core.system.exceptions import StoreBaseException


class CouponErrorCode:
    NOT_FOUND = 'COUPON_NOT_FOUND'
    INACTIVE = 'COUPON_INACTIVE'
    EXPIRED = 'COUPON_EXPIRED'
    USAGE_LIMIT_REACHED = 'COUPON_USAGE_LIMIT_REACHED'
    AUTH_REQUIRED = 'AUTH_REQUIRED_FOR_PRIVATE_COUPON'
    NOT_AVAILABLE_FOR_USER = 'COUPON_NOT_AVAILABLE_FOR_USER'
    USER_USAGE_LIMIT_REACHED = 'USER_USAGE_LIMIT_REACHED'
    MIN_ORDER_NOT_MET = 'MIN_ORDER_NOT_MET'
    SCOPE_MISMATCH = 'COUPON_SCOPE_MISMATCH'


COUPON_ERROR_MESSAGES = {
    CouponErrorCode.NOT_FOUND: 'Mã giảm giá không tồn tại',
    CouponErrorCode.INACTIVE: 'Mã giảm giá đã bị vô hiệu hóa',
    CouponErrorCode.EXPIRED: 'Mã giảm giá chưa bắt đầu hoặc đã hết hạn',
    CouponErrorCode.USAGE_LIMIT_REACHED: 'Mã giảm giá đã hết lượt sử dụng',
    CouponErrorCode.AUTH_REQUIRED: 'Vui lòng đăng nhập để sử dụng mã giảm giá này',
    CouponErrorCode.NOT_AVAILABLE_FOR_USER: 'Mã giảm giá này không dành cho tài khoản của bạn',
    CouponErrorCode.USER_USAGE_LIMIT_REACHED: 'Bạn đã sử dụng hết lượt cho mã giảm giá này',
    CouponErrorCode.MIN_ORDER_NOT_MET: 'Đơn hàng chưa đạt giá trị tối thiểu',
    CouponErrorCode.SCOPE_MISMATCH: 'Mã giảm giá không áp dụng cho các sản phẩm trong giỏ hàng',
}


class CouponValidationError(StoreBaseException):
    """Raised when a coupon cannot be used; ``code`` is a CouponErrorCode value."""
    default_message = 'Mã giảm giá không hợp lệ'
    default_code = CouponErrorCode.NOT_FOUND
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, code, message=None, extra_data=None):
        super().__init__(
            message=message or COUPON_ERROR_MESSAGES.get(code),
            code=code,
            extra_data=extra_data
        )
