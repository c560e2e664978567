"""
Promotion API Endpoints.

Promo preview, charge-time redemption and usage counters.
"""

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.core.exceptions import PromoNotFound
from backend.app.domain.pricing.clock import localize, utc_now
from backend.app.domain.pricing.promo_validator import PromoValidator, normalize_code
from backend.app.schemas.pricing import (
    PromoApplyRequest, PromoValidateRequest, PromoQuoteResponse,
    PromoRedemptionResponse, PromoUsageSummary
)
from backend.app.services.fare_service import FareService

router = APIRouter(prefix="/promotions", tags=["Promotions"])


@router.post("/apply", response_model=PromoRedemptionResponse, status_code=status.HTTP_201_CREATED)
async def apply_promo(
    request: PromoApplyRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Redeem a promo for a trip at charge time.

    Must be called at most once per trip. Rejections come back as
    ERR_PROMO_* errors; the trip should then be charged at full fare.
    """
    usage = await FareService.apply_promo(
        db,
        code=request.code,
        user_id=request.user_id,
        trip_id=request.trip_id,
        subtotal=request.subtotal,
        timestamp=request.timestamp,
        vehicle_type=request.vehicle_type.value if request.vehicle_type else None,
        user_type=request.user_type
    )
    return PromoRedemptionResponse(**usage.model_dump())


@router.post("/validate", response_model=PromoQuoteResponse)
async def validate_promo(
    request: PromoValidateRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Preview a promo discount without consuming a usage slot.
    """
    quote = await PromoValidator.validate(
        db,
        request.code,
        request.user_id,
        request.subtotal,
        localize(request.timestamp or utc_now()),
        request.vehicle_type.value if request.vehicle_type else None,
        request.user_type
    )
    return PromoQuoteResponse(**quote.model_dump())


@router.get("/{code}/usage", response_model=PromoUsageSummary)
async def get_promo_usage(
    code: str = Path(..., description="Promo code (any case)"),
    db: AsyncSession = Depends(get_db)
):
    """
    Usage counters of a promo code, for admin display.
    """
    promo = await PromoValidator.find_promo(db, code)
    if promo is None:
        raise PromoNotFound(normalize_code(code))

    remaining = None
    if promo.total_usage_limit is not None:
        remaining = max(promo.total_usage_limit - promo.current_usage_count, 0)

    return PromoUsageSummary(
        code=promo.code,
        is_active=promo.is_active,
        current_usage_count=promo.current_usage_count,
        total_usage_limit=promo.total_usage_limit,
        remaining=remaining,
        max_usage_per_user=promo.max_usage_per_user,
        valid_from=promo.valid_from,
        valid_to=promo.valid_to
    )
