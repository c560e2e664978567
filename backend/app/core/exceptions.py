"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers.

Error families:
- Configuration errors (fatal, 500): pricing data an admin must correct.
- Promo errors (recoverable): the trip proceeds at full fare.
- Input errors (400): rejected before any computation.
"""

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

from backend.app.core.logging_config import get_logger

logger = get_logger("rideon.errors")


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


# Configuration errors

class PricingConfigurationError(AppException):
    """Pricing master data is unusable. Never retried automatically."""

    def __init__(self, message: str, error_code: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=details
        )


class NoBaseRuleConfigured(PricingConfigurationError):
    """Raised when no active base pricing rule applies to a fare request."""

    def __init__(self, vehicle_type: str = None):
        super().__init__(
            message="No active base pricing rule found. Cannot compute fare.",
            error_code="ERR_PRICING_001",
            details={"vehicle_type": vehicle_type}
        )


class InvalidGeometry(PricingConfigurationError):
    """Raised when a zone polygon cannot be used for containment tests."""

    def __init__(self, message: str = "Zone polygon requires at least 3 vertices", zone_id: Any = None):
        super().__init__(
            message=message,
            error_code="ERR_PRICING_002",
            details={"zone_id": zone_id}
        )


# Input errors

class InvalidTripInput(AppException):
    """Raised for negative distance/duration or malformed coordinates."""

    def __init__(self, message: str, field: str = None):
        super().__init__(
            message=message,
            error_code="ERR_INPUT_001",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"field": field}
        )


# Promo errors

class PromoError(AppException):
    """Base class for expected promo rejections."""

    reason = "PROMO_REJECTED"

    def __init__(self, message: str, error_code: str, status_code: int = status.HTTP_422_UNPROCESSABLE_ENTITY,
                 code: str = None):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status_code,
            details={"code": code, "reason": self.reason}
        )


class PromoNotFound(PromoError):
    reason = "PROMO_NOT_FOUND"

    def __init__(self, code: str):
        super().__init__(f"Promo code '{code}' does not exist or is inactive",
                         "ERR_PROMO_001", status.HTTP_404_NOT_FOUND, code)


class PromoNotYetValid(PromoError):
    reason = "PROMO_NOT_YET_VALID"

    def __init__(self, code: str):
        super().__init__(f"Promo code '{code}' is not valid yet", "ERR_PROMO_002", code=code)


class PromoExpired(PromoError):
    reason = "PROMO_EXPIRED"

    def __init__(self, code: str):
        super().__init__(f"Promo code '{code}' has expired", "ERR_PROMO_003", code=code)


class PromoBelowMinimum(PromoError):
    reason = "PROMO_BELOW_MINIMUM"

    def __init__(self, code: str, min_trip_amount):
        super().__init__(f"Minimum trip amount of {min_trip_amount} required for '{code}'",
                         "ERR_PROMO_004", code=code)
        self.details["min_trip_amount"] = str(min_trip_amount)


class PromoNotApplicable(PromoError):
    reason = "PROMO_NOT_APPLICABLE"

    def __init__(self, code: str, vehicle_type: str = None, user_type: str = None):
        if user_type is not None:
            message = f"Promo code '{code}' is not available to {user_type} riders"
        else:
            message = f"Promo code '{code}' is not applicable to {vehicle_type} rides"
        super().__init__(message, "ERR_PROMO_005", code=code)


class PromoUsageExceeded(PromoError):
    reason = "PROMO_USAGE_EXCEEDED"

    def __init__(self, code: str):
        super().__init__(f"Promo code '{code}' has reached its usage limit", "ERR_PROMO_006", code=code)


class PromoUserLimitExceeded(PromoError):
    reason = "PROMO_USER_LIMIT_EXCEEDED"

    def __init__(self, code: str):
        super().__init__(f"You have already used promo code '{code}' the maximum number of times",
                         "ERR_PROMO_007", code=code)


class PromoAlreadyApplied(PromoError):
    reason = "PROMO_ALREADY_APPLIED"

    def __init__(self, code: str, trip_id: Any):
        super().__init__(f"Promo code '{code}' was already applied to trip {trip_id}",
                         "ERR_PROMO_008", status.HTTP_409_CONFLICT, code)


class PromoReservationTimeout(PromoError):
    reason = "PROMO_RESERVATION_TIMEOUT"

    def __init__(self, code: str):
        super().__init__(f"Promo code '{code}' could not be reserved in time",
                         "ERR_PROMO_009", status.HTTP_504_GATEWAY_TIMEOUT, code)


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    if exc.status_code >= 500:
        logger.error(exc.message, extra={"error_code": exc.error_code, "path": request.url.path})
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    # Map status code to error code
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        404: "ERR_NOT_FOUND",
        409: "ERR_CONFLICT",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": jsonable_errors(exc)
            }
        }
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may hold exception instances which are not JSON serializable
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {k: str(v) for k, v in error["ctx"].items()}
        errors.append(error)
    return errors


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception(f"Unhandled exception: {type(exc).__name__}: {str(exc)}")

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
