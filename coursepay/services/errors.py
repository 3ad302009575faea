"""Service-layer error taxonomy.

Services raise these; routers translate them to HTTP responses with
``http_error()`` in coursepay.api.dependencies.  Each class carries the
status code it maps to so the translation stays a single lookup.
"""

from __future__ import annotations


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    """Malformed or missing input."""

    status_code = 400


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    status_code = 400


class ForbiddenError(ServiceError):
    status_code = 403


class UpstreamFailure(ServiceError):
    """The payment gateway refused or failed to open a checkout."""

    status_code = 502


# --- Coupon ledger ---


class CouponNotFoundError(NotFoundError):
    reason = "not_found"


class CouponExpiredError(ConflictError):
    reason = "expired"


class CouponLimitReachedError(ConflictError):
    reason = "limit_reached"


class CouponAlreadyUsedError(ConflictError):
    reason = "already_used"


class CouponCodeTakenError(ConflictError):
    status_code = 409


# --- Enrollment ---


class AlreadyEnrolledError(ConflictError):
    pass
