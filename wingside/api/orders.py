"""
Orders API Endpoints
Checkout, confirmation lookup, tracking and customer cancellation
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from wingside.core.auth import optional_auth, require_auth
from wingside.core.errors import Unauthorized
from wingside.core.serializers import ORDER_MONEY_FIELDS, prepare_response
from wingside.schemas.orders import OrderCreate
from wingside.services import store_status
from wingside.services.orders_service import OrderService

router = APIRouter()


@router.get("/status")
async def get_order_acceptance():
    """Whether the store is taking orders right now"""
    return store_status.get_status()


@router.post("", status_code=201)
async def create_order(payload: OrderCreate, current_user: Optional[dict] = Depends(optional_auth)):
    """
    Place an order. Guests may order; signed-in users get the order linked to
    their account. Prices are always taken from the menu, never from the client.
    """
    order = OrderService.create_order(payload, current_user)
    return {"order": prepare_response(order, id_fields=["id", "order_id", "product_id"], money_fields=ORDER_MONEY_FIELDS)}


@router.get("")
async def get_orders(
    orderNumber: Optional[str] = Query(None, max_length=50),
    status: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    current_user: Optional[dict] = Depends(optional_auth),
):
    """
    With `orderNumber`: the order confirmation view (public).
    Without: the caller's orders, or every order for staff with orders:view.
    """
    if orderNumber:
        order = OrderService.get_by_number(orderNumber)
        return {"orders": prepare_response([order], money_fields=ORDER_MONEY_FIELDS)}

    if not current_user:
        raise Unauthorized()
    orders = OrderService.list_orders(current_user, limit=limit, status=status)
    return {"orders": prepare_response(orders, money_fields=ORDER_MONEY_FIELDS)}


@router.get("/track/{token}")
async def track_order(token: str):
    """Tracking page data for the token sent in the confirmation email"""
    return prepare_response(OrderService.track(token), money_fields=ORDER_MONEY_FIELDS)


@router.post("/{order_id}/cancel")
async def cancel_order(order_id: str, current_user: dict = Depends(require_auth)):
    """Cancel your own order while it is still pending and unpaid"""
    order = OrderService.cancel_by_customer(order_id, current_user)
    return {"success": True, "order": prepare_response(order, money_fields=ORDER_MONEY_FIELDS)}
