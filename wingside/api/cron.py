"""
Scheduled job endpoints
Called by the hosting platform's cron with `Authorization: Bearer <CRON_SECRET>`.
GET previews a job where that is useful, POST runs it.
"""

import logging

from fastapi import APIRouter, Depends

from wingside.core.auth import verify_cron_secret
from wingside.services.gift_card_service import GiftCardService
from wingside.services.points_service import PointsService
from wingside.services.promo_service import PromoService

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_cron_secret)])


@router.post("/expire-gift-cards")
async def expire_gift_cards():
    expired = GiftCardService.expire_cards()
    return {"success": True, "expired_count": len(expired), "expired": expired}


@router.get("/expire-points")
async def preview_expiring_points():
    rows = PointsService.preview_expiring()
    return {"total_affected": len(rows), "rows": rows}


@router.post("/expire-points")
async def expire_points():
    expired = PointsService.expire_points()
    return {
        "success": True,
        "rows_expired": len(expired),
        "points_expired": sum(row["points_expired"] for row in expired),
        "expired": expired,
    }


@router.get("/expire-promo-codes")
async def preview_expired_promo_codes():
    rows = PromoService.preview_expired()
    return {"total_affected": len(rows), "codes": rows}


@router.post("/expire-promo-codes")
async def expire_promo_codes():
    expired = PromoService.expire_codes()
    return {"success": True, "expired_count": len(expired), "expired": expired}


@router.get("/tier-downgrades")
async def preview_tier_downgrades():
    users = PointsService.preview_downgrades()
    return {"total_affected": len(users), "users": users}


@router.post("/tier-downgrades")
async def process_tier_downgrades():
    downgrades = PointsService.process_tier_downgrades()
    logger.info(f"✅ Processed {len(downgrades)} tier downgrades")
    return {"success": True, "downgrades_processed": len(downgrades), "downgrades": downgrades}
