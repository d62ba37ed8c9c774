"""
Customer insight API Endpoints
"""

from fastapi import APIRouter, Depends

from wingside.core.auth import require_permission
from wingside.services import analytics_service

router = APIRouter()


@router.get("/segments")
async def get_customer_segments(current_user: dict = Depends(require_permission("crm_analytics", "view"))):
    """Spend/order based segments for every customer, with counts per segment"""
    return analytics_service.customer_segments()
