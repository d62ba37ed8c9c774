"""
Gift Card API Endpoints
Purchase (via Paystack), balance check and redemption against an order
"""

from fastapi import APIRouter, Depends, Request

from wingside.core.auth import require_auth
from wingside.core.rate_limit import client_ip, enforce
from wingside.schemas.gift_cards import GiftCardPurchaseRequest, GiftCardRedeemRequest, GiftCardValidateRequest
from wingside.services.gift_card_service import GiftCardService, normalize_code
from wingside.services.payments.paystack import PaystackClient, get_paystack

router = APIRouter()


@router.post("/purchase")
async def purchase_gift_card(
    payload: GiftCardPurchaseRequest,
    request: Request,
    client: PaystackClient = Depends(get_paystack),
    current_user: dict = Depends(require_auth),
):
    """
    Buy a gift card. The card stays inactive until the Paystack payment is
    confirmed by the webhook.
    """
    enforce(f"gift-card-purchase:{current_user['id']}:{client_ip(request)}", limit=3, window=60 * 60, block_duration=2 * 60 * 60)
    return await GiftCardService.purchase(
        current_user,
        denomination=payload.denomination,
        design_image=payload.design_image,
        recipient_name=payload.recipient_name,
        recipient_email=payload.recipient_email,
        paystack=client,
    )


@router.post("/validate")
async def validate_gift_card(payload: GiftCardValidateRequest, request: Request):
    """Balance check; rate limited per IP against code guessing"""
    code = normalize_code(payload.code)
    enforce(f"gift-card-validate:{client_ip(request)}", limit=10, window=60, block_duration=5 * 60)
    return GiftCardService.validate(code)


@router.post("/redeem")
async def redeem_gift_card(payload: GiftCardRedeemRequest, current_user: dict = Depends(require_auth)):
    return GiftCardService.redeem(payload.code, payload.amount, payload.order_id, current_user)
