"""
Typed failures raised by the commerce engine.

Every failure carries a stable ErrorCode the presentation layer can translate;
the detail string is secondary. Raising one of these never leaves partial
writes behind: write paths roll back before re-raising.
"""
from enum import Enum
from typing import Any, Dict, Optional
from fastapi import status


class ErrorCode(str, Enum):
    VALIDATION = "validation_error"
    NOT_FOUND = "not_found"
    INVALID_TIER = "invalid_tier"
    TIER_MISMATCH = "tier_mismatch"
    FORBIDDEN = "forbidden"
    INSUFFICIENT_STOCK = "insufficient_stock"
    MINIMUM_ORDER = "minimum_order"
    IMMUTABLE_FIELD = "immutable_field"
    ILLEGAL_TRANSITION = "illegal_transition"
    INTERNAL = "internal_error"


class CommerceError(Exception):
    """Base class for every engine failure"""

    code: ErrorCode = ErrorCode.INTERNAL
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Commerce engine error"

    def __init__(self, detail: Optional[str] = None, **context: Any):
        self.detail = detail or self.default_detail
        self.context = context
        super().__init__(self.detail)

    def to_dict(self) -> Dict[str, Any]:
        payload = {"code": self.code.value, "detail": self.detail}
        payload.update({key: str(value) for key, value in self.context.items()})
        return payload


class ValidationFailedError(CommerceError):
    code = ErrorCode.VALIDATION
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = "Invalid input"


class NotFoundError(CommerceError):
    code = ErrorCode.NOT_FOUND
    http_status = status.HTTP_404_NOT_FOUND
    default_detail = "Resource not found"


class InvalidTierError(CommerceError):
    code = ErrorCode.INVALID_TIER
    http_status = status.HTTP_403_FORBIDDEN
    default_detail = "This tier cannot perform the operation"


class TierMismatchError(CommerceError):
    code = ErrorCode.TIER_MISMATCH
    http_status = status.HTTP_403_FORBIDDEN
    default_detail = "Listing is not offered to the buyer's tier"


class ForbiddenError(CommerceError):
    code = ErrorCode.FORBIDDEN
    http_status = status.HTTP_403_FORBIDDEN
    default_detail = "Access denied"


class InsufficientStockError(CommerceError):
    code = ErrorCode.INSUFFICIENT_STOCK
    http_status = status.HTTP_409_CONFLICT
    default_detail = "Not enough stock"


class MinimumOrderError(CommerceError):
    code = ErrorCode.MINIMUM_ORDER
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = "Quantity is below the minimum order quantity"


class ImmutableFieldError(CommerceError):
    code = ErrorCode.IMMUTABLE_FIELD
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = "Field cannot be changed"


class IllegalTransitionError(CommerceError):
    code = ErrorCode.ILLEGAL_TRANSITION
    http_status = status.HTTP_409_CONFLICT
    default_detail = "Status transition not allowed"


class UnknownTierError(CommerceError):
    """A stored tier value outside the known set. Indicates corrupt data upstream."""
    code = ErrorCode.INTERNAL
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Unrecognized tier value"
