"""
Fare API Endpoints.

Quote-time fare estimation. Read-only: no promo slot is consumed here.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.core.redis_client import get_redis
from backend.app.schemas.pricing import FareEstimateRequest, FareEstimateResponse
from backend.app.services.fare_service import FareService

router = APIRouter(prefix="/fares", tags=["Fares"])


@router.post("/estimate", response_model=FareEstimateResponse)
async def estimate_fare(
    request: FareEstimateRequest,
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis)
):
    """
    Estimate the fare for a trip.

    Returns the full breakdown. `restricted_zone_ids` is non-empty when the
    pickup or dropoff lies in a restricted zone; dispatch policy is up to the
    caller.
    """
    breakdown = await FareService.estimate_fare(
        db,
        redis,
        origin=request.origin.model_dump(),
        destination=request.destination.model_dump(),
        distance_km=request.distance_km,
        duration_min=request.duration_min,
        timestamp=request.timestamp,
        vehicle_type=request.vehicle_type.value if request.vehicle_type else None,
        promo_code=request.promo_code,
        user_id=request.user_id,
        user_type=request.user_type
    )
    return FareEstimateResponse(**breakdown.model_dump())
