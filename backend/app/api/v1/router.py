"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import fares, promotions

router = APIRouter()

# Fare quoting
router.include_router(fares.router)

# Promo preview and redemption
router.include_router(promotions.router)
