"""
Kitchen live feed
Staff screens subscribe here for order_created / order_paid / order_status events
"""

import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from wingside.core.auth import resolve_token
from wingside.core.events import event_manager
from wingside.core.permissions import has_permission

logger = logging.getLogger(__name__)

router = APIRouter()

POLICY_VIOLATION = 1008


@router.websocket("/ws/kitchen")
async def kitchen_feed(websocket: WebSocket, token: str = Query("")):
    user = resolve_token(token)
    if not user or not has_permission(user["role"], "orders", "view"):
        logger.warning("⚠️ Kitchen feed rejected: missing or unauthorized token")
        await websocket.close(code=POLICY_VIOLATION)
        return

    await event_manager.connect(websocket)
    try:
        while True:
            # Screens only listen; anything they send is a keepalive
            await websocket.receive_text()
    except WebSocketDisconnect:
        event_manager.disconnect(websocket)
