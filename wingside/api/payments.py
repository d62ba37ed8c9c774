"""
Payment API Endpoints
Paystack and Nomba checkout, verification and webhooks.
Every confirmation path goes through services.reconciliation.
"""

import json
import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, Request

from wingside.core.errors import AppError, Conflict, NotFound, Unauthorized, ValidationFailed
from wingside.core.settings import settings
from wingside.core.supabase import first_row, get_client
from wingside.schemas.payments import (
    NombaInitResponse,
    NombaVerifyRequest,
    PaymentInitRequest,
    PaymentVerifyRequest,
    ReconciliationResponse,
    WebhookAck,
)
from wingside.services.payments import nomba, paystack
from wingside.services.payments.nomba import NombaClient, get_nomba
from wingside.services.payments.paystack import PaystackClient, get_paystack
from wingside.services.reconciliation import FAILURE, SUCCESS, PaymentEvent, amount_due, reconcile

logger = logging.getLogger(__name__)

router = APIRouter()


def _payable_order(order_id: str) -> dict:
    order = first_row(get_client().table("orders").select("*").eq("id", order_id).limit(1).execute())
    if not order:
        raise NotFound("Order not found")
    if order.get("payment_status") in ("paid", "refunded"):
        raise Conflict("Order is already paid")
    if order.get("status") in ("cancelled", "failed"):
        raise Conflict(f"Order is {order['status']}")
    return order


def _attach_reference(order_id: str, reference: str, gateway: str) -> None:
    get_client().table("orders").update({
        "payment_reference": reference,
        "payment_gateway": gateway,
    }).eq("id", order_id).execute()


def _payment_status(order_id) -> Optional[str]:
    if not order_id:
        return None
    row = first_row(get_client().table("orders").select("payment_status").eq("id", order_id).limit(1).execute())
    return row["payment_status"] if row else None


def _response(result) -> ReconciliationResponse:
    return ReconciliationResponse(**result.to_dict(), payment_status=_payment_status(result.order_id))


def _json_body(raw_body: bytes) -> dict:
    try:
        body = json.loads(raw_body)
    except ValueError:
        raise ValidationFailed("Invalid JSON payload")
    if not isinstance(body, dict):
        raise ValidationFailed("Invalid JSON payload")
    return body


def _settle_with_gift_card(order: dict):
    """Orders fully covered by a gift card never reach a provider"""
    return reconcile(PaymentEvent(
        provider="gift_card",
        event_id=f"gift_card:{order['id']}",
        kind=SUCCESS,
        reference=order.get("payment_reference"),
        order_id=order["id"],
        amount=0,
        event_type="gift_card_settlement",
    ))


# ========== PAYSTACK ==========


@router.post("/initialize")
async def initialize_paystack(
    payload: PaymentInitRequest,
    client: PaystackClient = Depends(get_paystack),
):
    """Start a Paystack checkout for an order"""
    order = _payable_order(payload.order_id)
    due = amount_due(order)
    if due <= 0:
        return _response(_settle_with_gift_card(order))

    reference = f"{order['order_number']}_{int(time.time() * 1000)}"
    payment = await client.initialize(
        email=payload.email or order["customer_email"],
        amount_naira=due,
        reference=reference,
        callback_url=f"{settings.APP_URL.rstrip('/')}/payment/callback?order_id={order['id']}",
        metadata={
            "order_id": order["id"],
            "order_number": order["order_number"],
            "customer_name": order.get("customer_name"),
        },
    )
    _attach_reference(order["id"], payment["reference"], "paystack")
    return {**payment, "order_id": order["id"]}


@router.post("/verify", response_model=ReconciliationResponse)
async def verify_paystack(payload: PaymentVerifyRequest, client: PaystackClient = Depends(get_paystack)):
    """Confirm a Paystack payment after the customer returns from checkout"""
    transaction = await client.verify(payload.reference)
    status = transaction.get("status")
    if status not in ("success", "failed"):
        return ReconciliationResponse(outcome=status or "pending")

    metadata = transaction.get("metadata") if isinstance(transaction.get("metadata"), dict) else {}
    result = reconcile(PaymentEvent(
        provider="paystack",
        event_id=f"verify:{payload.reference}:{status}",
        kind=SUCCESS if status == "success" else FAILURE,
        reference=payload.reference,
        order_id=metadata.get("order_id"),
        amount=transaction["amount_naira"],
        event_type=f"verify.{status}",
        metadata=metadata,
    ))
    return _response(result)


@router.post("/webhook", response_model=WebhookAck)
async def paystack_webhook(request: Request):
    """
    Paystack webhook. The signature covers the raw body, so it is read before
    any parsing.
    """
    raw_body = await request.body()

    secret = settings.PAYSTACK_SECRET_KEY
    if not secret:
        logger.error("❌ PAYSTACK_SECRET_KEY not configured, cannot verify webhook")
        raise AppError("Server configuration error", 500)

    signature = request.headers.get("x-paystack-signature")
    if not paystack.verify_signature(raw_body, signature, secret):
        logger.error("❌ Invalid Paystack webhook signature")
        raise Unauthorized("Invalid signature")

    body = _json_body(raw_body)
    event_type = body.get("event")
    data = body.get("data") or {}
    if event_type not in ("charge.success", "charge.failed"):
        logger.info(f"ℹ️ Ignoring Paystack event {event_type}")
        return WebhookAck(received=True, outcome="ignored")

    metadata = data.get("metadata") if isinstance(data.get("metadata"), dict) else {}
    result = reconcile(PaymentEvent(
        provider="paystack",
        event_id=f"{event_type}:{data.get('id') or data.get('reference')}",
        kind=SUCCESS if event_type == "charge.success" else FAILURE,
        reference=data.get("reference"),
        order_id=metadata.get("order_id"),
        amount=paystack.from_kobo(data.get("amount")) if data.get("amount") is not None else None,
        event_type=event_type,
        metadata=metadata,
    ))
    return WebhookAck(received=True, outcome=result.outcome)


# ========== NOMBA ==========


@router.post("/nomba/initialize", response_model=NombaInitResponse)
async def initialize_nomba(
    payload: PaymentInitRequest,
    client: NombaClient = Depends(get_nomba),
):
    """Start a Nomba checkout for an order"""
    order = _payable_order(payload.order_id)
    due = amount_due(order)
    if due <= 0:
        raise ValidationFailed("Order is fully covered by a gift card, use /api/payment/initialize")

    reference = f"WS-{order['order_number']}-{int(time.time() * 1000)}"
    checkout = await client.create_checkout(
        order_reference=reference,
        customer_id=order["id"],
        email=payload.email or order["customer_email"],
        amount=due,
        callback_url=f"{settings.APP_URL.rstrip('/')}/payment/nomba/callback?order_id={order['id']}",
    )
    _attach_reference(order["id"], reference, "nomba")
    return NombaInitResponse(**checkout)


@router.post("/nomba/verify", response_model=ReconciliationResponse)
async def verify_nomba(payload: NombaVerifyRequest, client: NombaClient = Depends(get_nomba)):
    """Confirm a Nomba payment by its order reference"""
    transaction = await client.verify_transaction(payload.transactionRef)
    if not transaction:
        raise NotFound("Transaction not found")

    status = str(transaction.get("status") or "").upper()
    if status not in ("SUCCESSFUL", "FAILED"):
        return ReconciliationResponse(outcome=status.lower() or "pending")

    result = reconcile(PaymentEvent(
        provider="nomba",
        event_id=f"verify:{payload.transactionRef}:{status}",
        kind=SUCCESS if status == "SUCCESSFUL" else FAILURE,
        reference=payload.transactionRef,
        amount=float(transaction["amount"]) if transaction.get("amount") is not None else None,
        event_type=f"verify.{status.lower()}",
    ))
    return _response(result)


@router.post("/nomba/webhook", response_model=WebhookAck)
async def nomba_webhook(request: Request):
    """Nomba webhook; signed with HMAC-SHA256 when NOMBA_WEBHOOK_SECRET is set"""
    raw_body = await request.body()

    secret = settings.NOMBA_WEBHOOK_SECRET
    if secret:
        valid, reason = nomba.verify_signature(raw_body, request.headers, secret)
        if not valid:
            logger.error(f"❌ Invalid Nomba webhook signature: {reason}")
            raise Unauthorized("Invalid signature")
    else:
        logger.warning("⚠️ NOMBA_WEBHOOK_SECRET not configured, webhook signature not checked")

    body = _json_body(raw_body)
    event_type = body.get("event_type")
    data = body.get("data") or {}
    if event_type not in ("payment_success", "payment_failed"):
        logger.info(f"ℹ️ Ignoring Nomba event {event_type}")
        return WebhookAck(received=True, outcome="ignored")

    order_ref = (data.get("order") or {}).get("orderReference")
    transaction = data.get("transaction") or {}
    amount = transaction.get("transactionAmount")
    result = reconcile(PaymentEvent(
        provider="nomba",
        event_id=body.get("requestId") or f"{event_type}:{transaction.get('transactionId') or order_ref}",
        kind=SUCCESS if event_type == "payment_success" else FAILURE,
        reference=order_ref,
        amount=float(amount) if amount is not None else None,
        event_type=event_type,
    ))
    return WebhookAck(received=True, outcome=result.outcome)
