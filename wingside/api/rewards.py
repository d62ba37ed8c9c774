"""
Rewards API Endpoints
"""

from fastapi import APIRouter, Depends

from wingside.core.auth import require_auth
from wingside.schemas.points import PointsSummaryResponse
from wingside.services.points_service import PointsService

router = APIRouter()


@router.get("/summary", response_model=PointsSummaryResponse)
async def get_rewards_summary(current_user: dict = Depends(require_auth)):
    """Your points balance, tier and recent points history"""
    return PointsService.summary(current_user["id"])
