"""
Admin API Endpoints
Order management, refunds, points adjustments, dashboard analytics,
site settings, gift card management and referral rewards
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from wingside.core.auth import require_permission
from wingside.core.serializers import GIFT_CARD_MONEY_FIELDS, ORDER_MONEY_FIELDS, prepare_response
from wingside.schemas.gift_cards import GiftCardAdminCreate, GiftCardAdminUpdate
from wingside.schemas.orders import RefundRequest, StatusUpdate
from wingside.schemas.points import PointsAdjustRequest, PointsSummaryResponse
from wingside.schemas.settings import SettingsUpdate
from wingside.services import analytics_service, referral_service, site_settings
from wingside.services.gift_card_service import GiftCardService
from wingside.services.orders_service import OrderService
from wingside.services.payments.paystack import PaystackClient, get_paystack
from wingside.services.points_service import PointsService

router = APIRouter()


@router.get("/orders/{order_id}")
async def get_order(order_id: str, current_user: dict = Depends(require_permission("orders", "view"))):
    return {"order": prepare_response(OrderService.get_order(order_id), money_fields=ORDER_MONEY_FIELDS)}


@router.patch("/orders/{order_id}")
async def update_order_status(
    order_id: str,
    payload: StatusUpdate,
    current_user: dict = Depends(require_permission("orders", "edit")),
):
    """
    Move an order along the status machine.

    Kitchen staff can only set preparing/ready and delivery riders
    out_for_delivery/delivered.
    """
    order = OrderService.update_status(order_id, payload.status, current_user, payload.note)
    return {"order": prepare_response(order, money_fields=ORDER_MONEY_FIELDS)}


@router.post("/orders/{order_id}/refund")
async def refund_order(
    order_id: str,
    payload: RefundRequest,
    client: PaystackClient = Depends(get_paystack),
    current_user: dict = Depends(require_permission("orders", "full")),
):
    """Refund through Paystack, reverse earned points and restore any gift card balance"""
    result = await OrderService.refund(order_id, current_user, payload.reason, client, payload.amount)
    return prepare_response(result, money_fields=ORDER_MONEY_FIELDS)


@router.post("/points/adjust")
async def adjust_points(
    payload: PointsAdjustRequest,
    current_user: dict = Depends(require_permission("customers", "full")),
):
    """Positive pointsChange awards, negative deducts"""
    result = PointsService.adjust(payload.userId, payload.pointsChange, payload.reason, current_user["id"], payload.metadata)
    return {**result, "pointsChange": payload.pointsChange, "reason": payload.reason}


@router.get("/points/{user_id}", response_model=PointsSummaryResponse)
async def get_user_points(user_id: str, current_user: dict = Depends(require_permission("customers", "view"))):
    return PointsService.summary(user_id)


@router.get("/dashboard/stats")
async def get_dashboard_stats(current_user: dict = Depends(require_permission("dashboard", "view"))):
    return analytics_service.dashboard_stats()


@router.get("/dashboard/charts")
async def get_dashboard_charts(
    days: int = Query(30, ge=1, le=365),
    current_user: dict = Depends(require_permission("analytics", "view")),
):
    return {"days": days, "revenue": analytics_service.revenue_chart(days)}


@router.get("/settings")
async def get_settings(current_user: dict = Depends(require_permission("settings", "view"))):
    return site_settings.all_settings()


@router.put("/settings")
async def update_settings(payload: SettingsUpdate, current_user: dict = Depends(require_permission("settings", "edit"))):
    """Update settings by key, including the manual accept_orders switch and opening hours"""
    return site_settings.update_settings(payload.settings, current_user["id"])


@router.get("/gift-cards")
async def list_gift_cards(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[str] = None,
    search: Optional[str] = Query(None, max_length=100),
    current_user: dict = Depends(require_permission("gift_cards", "view")),
):
    return prepare_response(GiftCardService.list_cards(page, limit, status, search), money_fields=GIFT_CARD_MONEY_FIELDS)


@router.post("/gift-cards")
async def create_gift_card(payload: GiftCardAdminCreate, current_user: dict = Depends(require_permission("gift_cards", "full"))):
    card = GiftCardService.admin_create(
        current_user,
        payload.initialBalance,
        payload.recipientEmail,
        payload.recipientName,
        payload.message,
        payload.expiryMonths,
    )
    return {"success": True, "giftCard": prepare_response(card, money_fields=GIFT_CARD_MONEY_FIELDS)}


@router.get("/gift-cards/{gift_card_id}")
async def get_gift_card(gift_card_id: str, current_user: dict = Depends(require_permission("gift_cards", "view"))):
    return prepare_response(GiftCardService.get_card(gift_card_id), money_fields=GIFT_CARD_MONEY_FIELDS)


@router.patch("/gift-cards/{gift_card_id}")
async def update_gift_card(
    gift_card_id: str,
    payload: GiftCardAdminUpdate,
    current_user: dict = Depends(require_permission("gift_cards", "edit")),
):
    card = GiftCardService.admin_update(
        gift_card_id,
        current_user,
        is_active=payload.is_active,
        balance_adjustment=payload.balance_adjustment,
        reason=payload.adjustment_reason,
    )
    return {"success": True, "gift_card": prepare_response(card, money_fields=GIFT_CARD_MONEY_FIELDS)}


@router.get("/referral-rewards")
async def list_referral_rewards(
    status: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_user: dict = Depends(require_permission("referrals", "view")),
):
    return referral_service.list_rewards(status, limit, offset)
