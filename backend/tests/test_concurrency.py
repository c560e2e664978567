"""
Concurrency Tests.

Validates that racing promo redemptions never oversubscribe a promo.
"""

import pytest
import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy import select, func

from backend.app.core.exceptions import PromoAlreadyApplied, PromoUsageExceeded, PromoUserLimitExceeded
from backend.app.domain.pricing.entities import ReservedUsage
from backend.app.services.fare_service import FareService
from backend.app.models.promo_code import PromoCode
from backend.app.models.promo_code_usage import PromoCodeUsage


async def reserve_in_own_session(session_factory, code, user_id, trip_id, subtotal=Decimal("20.00")):
    # Each racing request gets its own connection, as it would in production
    async with session_factory() as session:
        return await FareService.apply_promo(
            session, code, user_id, trip_id, subtotal, datetime.now(timezone.utc), timeout=30
        )


async def stored_state(session_factory, code):
    async with session_factory() as session:
        promo = (await session.execute(select(PromoCode).where(PromoCode.code == code))).scalar_one()
        usages = await session.execute(
            select(func.count(PromoCodeUsage.id)).where(PromoCodeUsage.promo_code_id == promo.id)
        )
        return promo.current_usage_count, usages.scalar()


@pytest.mark.asyncio
async def test_concurrent_redemptions_respect_global_limit(session_factory, promo_factory):
    """10 riders race for 3 slots: exactly 3 win."""
    await promo_factory(code="LIMITED", total_usage_limit=3, max_usage_per_user=1)

    results = await asyncio.gather(*[
        reserve_in_own_session(session_factory, "LIMITED", user_id=100 + i, trip_id=2000 + i)
        for i in range(10)
    ], return_exceptions=True)

    reserved = [r for r in results if isinstance(r, ReservedUsage)]
    exhausted = [r for r in results if isinstance(r, PromoUsageExceeded)]

    assert len(reserved) == 3
    assert len(exhausted) == 7
    assert len({r.trip_id for r in reserved}) == 3

    # Counter and usage rows agree
    assert await stored_state(session_factory, "LIMITED") == (3, 3)


@pytest.mark.asyncio
async def test_concurrent_redemptions_by_same_user(session_factory, promo_factory):
    """One rider fires several trips at once: only their per-user allowance succeeds."""
    await promo_factory(code="ONCE", total_usage_limit=100, max_usage_per_user=1)

    results = await asyncio.gather(*[
        reserve_in_own_session(session_factory, "ONCE", user_id=7, trip_id=3000 + i)
        for i in range(5)
    ], return_exceptions=True)

    reserved = [r for r in results if isinstance(r, ReservedUsage)]
    rejected = [r for r in results if isinstance(r, PromoUserLimitExceeded)]

    assert len(reserved) == 1
    assert len(rejected) == 4
    assert await stored_state(session_factory, "ONCE") == (1, 1)


@pytest.mark.asyncio
async def test_concurrent_redemptions_for_same_trip(session_factory, promo_factory):
    """Retried charge requests for one trip redeem the promo at most once."""
    await promo_factory(code="RETRY", total_usage_limit=100, max_usage_per_user=10)

    results = await asyncio.gather(*[
        reserve_in_own_session(session_factory, "RETRY", user_id=9, trip_id=4000)
        for _ in range(4)
    ], return_exceptions=True)

    reserved = [r for r in results if isinstance(r, ReservedUsage)]
    duplicates = [r for r in results if isinstance(r, PromoAlreadyApplied)]

    assert len(reserved) == 1
    assert len(duplicates) == 3
    assert await stored_state(session_factory, "RETRY") == (1, 1)
