"""Pydantic schemas for points and rewards"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class PointsAdjustRequest(BaseModel):
    userId: str
    pointsChange: int
    reason: str = Field(..., min_length=1, max_length=500)
    metadata: Optional[Dict] = None


class PointsSummaryResponse(BaseModel):
    user: Dict
    total_points: int
    tier: str
    next_tier: Optional[str] = None
    points_to_next_tier: int = 0
    last_activity_date: Optional[str] = None
    history: List[Dict] = []
