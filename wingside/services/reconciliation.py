"""
Payment reconciliation

Every provider callback (Paystack webhook, Nomba webhook, and both verify
endpoints) is normalised into a PaymentEvent and applied here, so an order
can only be marked paid one way.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from postgrest.exceptions import APIError

from wingside.core.clock import iso, money, utcnow
from wingside.core.events import event_manager
from wingside.core.settings import settings
from wingside.core.supabase import first_row, get_client
from wingside.services import notifications, order_state
from wingside.services.gift_card_service import GiftCardService
from wingside.services.orders_service import OrderService, order_summary
from wingside.services.points_service import PointsService, purchase_points
from wingside.services.promo_service import PromoService

logger = logging.getLogger(__name__)

SUCCESS = "success"
FAILURE = "failure"

GIFT_CARD_PURCHASE = "gift_card_purchase"
UNIQUE_VIOLATION = "23505"
# Provider amounts can differ from ours by rounding
AMOUNT_TOLERANCE = 0.01
CLOSED_STATUSES = ("cancelled", "failed")


@dataclass
class PaymentEvent:
    provider: str
    event_id: str
    kind: str
    reference: Optional[str] = None
    order_id: Optional[str] = None
    amount: Optional[float] = None
    event_type: str = ""
    metadata: Dict = field(default_factory=dict)


@dataclass
class ReconciliationResult:
    outcome: str
    order_id: Optional[str] = None
    side_effects: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "outcome": self.outcome,
            "order_id": self.order_id,
            "side_effects": self.side_effects,
            "errors": self.errors,
        }


def amount_due(order: Dict) -> float:
    """What the customer pays the provider once any gift card is applied"""
    return money(max(0.0, float(order.get("total") or 0) - float(order.get("gift_card_amount") or 0)))


def _record_event(event: PaymentEvent) -> bool:
    """Store the event id; False when it was already processed"""
    client = get_client()
    existing = first_row(
        client.table("webhook_events")
        .select("id")
        .eq("provider", event.provider)
        .eq("event_id", event.event_id)
        .limit(1)
        .execute()
    )
    if existing:
        return False
    try:
        client.table("webhook_events").insert({
            "provider": event.provider,
            "event_id": event.event_id,
            "event_type": event.event_type,
            "reference": event.reference,
            "status": "processing",
            "created_at": iso(utcnow()),
        }).execute()
    except APIError as e:
        if getattr(e, "code", None) == UNIQUE_VIOLATION:
            return False
        raise
    return True


def _finish_event(event: PaymentEvent, outcome: str) -> None:
    try:
        (
            get_client().table("webhook_events")
            .update({"status": outcome, "processed_at": iso(utcnow())})
            .eq("provider", event.provider)
            .eq("event_id", event.event_id)
            .execute()
        )
    except Exception as e:
        logger.error(f"❌ Could not record outcome for {event.provider} event {event.event_id}: {e}")


def _find_order(event: PaymentEvent) -> Optional[Dict]:
    client = get_client()
    if event.order_id:
        order = first_row(client.table("orders").select("*").eq("id", event.order_id).limit(1).execute())
        if order:
            return order
    if event.reference:
        return first_row(client.table("orders").select("*").eq("payment_reference", event.reference).limit(1).execute())
    return None


def _run(result: ReconciliationResult, name: str, action: Callable) -> None:
    """Run one post-payment side effect; failures are logged, never raised"""
    try:
        action()
        result.side_effects.append(name)
    except Exception as e:
        logger.error(f"❌ Side effect {name} failed for order {result.order_id}: {e}")
        result.errors.append(f"{name}: {e}")


def ensure_profile(order: Dict) -> Optional[str]:
    """Profile id for the paying customer, creating a guest profile by email when needed"""
    if order.get("user_id"):
        return order["user_id"]
    email = (order.get("customer_email") or "").lower()
    if not email:
        return None

    client = get_client()
    profile = first_row(client.table("profiles").select("id").eq("email", email).limit(1).execute())
    if profile:
        return profile["id"]

    profile = first_row(client.table("profiles").insert({
        "id": str(uuid.uuid4()),
        "email": email,
        "full_name": order.get("customer_name"),
        "phone": order.get("customer_phone"),
        "role": "customer",
        "total_points": 0,
        "created_at": iso(utcnow()),
    }).execute())
    logger.info(f"👤 Guest profile created for {email}")
    return profile["id"] if profile else None


def award_referral(profile_id: str, order: Dict) -> bool:
    """Reward the referrer when a referred customer's first qualifying order is paid"""
    if float(order.get("total") or 0) < settings.REFERRAL_MIN_ORDER_AMOUNT:
        return False

    client = get_client()
    profile = first_row(client.table("profiles").select("id, referred_by").eq("id", profile_id).limit(1).execute())
    if not profile or not profile.get("referred_by"):
        return False

    already = first_row(client.table("referral_rewards").select("id").eq("referred_id", profile_id).limit(1).execute())
    if already:
        return False

    paid = client.table("orders").select("id").eq("user_id", profile_id).in_("payment_status", ["paid", "refunded"]).execute()
    if len(paid.data or []) > 1:
        return False

    client.table("referral_rewards").insert({
        "referrer_id": profile["referred_by"],
        "referred_id": profile_id,
        "order_id": order["id"],
        "amount": settings.REFERRAL_REWARD_AMOUNT,
        "status": "pending",
        "created_at": iso(utcnow()),
    }).execute()
    logger.info(f"🤝 Referral reward ₦{settings.REFERRAL_REWARD_AMOUNT} recorded for {profile['referred_by']}")
    return True


def _after_payment(order: Dict, result: ReconciliationResult, previous_status: str) -> None:
    profile_id = None

    def link_profile():
        nonlocal profile_id
        profile_id = ensure_profile(order)
        if profile_id and not order.get("user_id"):
            get_client().table("orders").update({"user_id": profile_id}).eq("id", order["id"]).execute()

    _run(result, "profile", link_profile)

    if order.get("promo_code_id"):
        _run(result, "promo_usage", lambda: PromoService.increment_usage(order["promo_code_id"]))

    if profile_id:
        points = purchase_points(order.get("total"))
        if points > 0:
            _run(result, "purchase_points", lambda: PointsService.award(
                profile_id,
                "purchase",
                points,
                amount_spent=float(order.get("total") or 0),
                description=f"Points for order #{order.get('order_number')}",
                metadata={"order_number": order.get("order_number")},
                order_id=order["id"],
            ))
        _run(result, "first_order_bonus", lambda: PointsService.claim_once(
            profile_id,
            "first_order",
            settings.FIRST_ORDER_BONUS_POINTS,
            description="First order bonus",
            metadata={"order_id": order["id"]},
            order_id=order["id"],
        ))
        _run(result, "referral_reward", lambda: award_referral(profile_id, order))

    _run(result, "history", lambda: OrderService.record_history(
        order["id"], previous_status, order["status"], None, f"Payment confirmed via {order.get('payment_gateway')}"
    ))

    def email():
        sent = notifications.send_order_confirmation(order, order.get("items"))
        if not sent.get("success"):
            raise RuntimeError(sent.get("error"))

    _run(result, "confirmation_email", email)
    _run(result, "kitchen_broadcast", lambda: event_manager.publish("order_paid", order_summary(order)))


def _mark_paid(event: PaymentEvent, order: Dict) -> ReconciliationResult:
    result = ReconciliationResult(outcome="paid", order_id=order["id"])

    if order.get("payment_status") in ("paid", "refunded"):
        result.outcome = "already_paid"
        return result

    if event.amount is not None and money(event.amount) + AMOUNT_TOLERANCE < amount_due(order):
        logger.error(
            f"❌ Amount mismatch on order {order.get('order_number')}: "
            f"paid ₦{event.amount:,.2f}, due ₦{amount_due(order):,.2f}"
        )
        result.outcome = "amount_mismatch"
        return result

    previous_status = order.get("status")
    closed = previous_status in CLOSED_STATUSES

    values = {
        "payment_status": "paid",
        "paid_at": iso(utcnow()),
        "payment_gateway": event.provider,
        "updated_at": iso(utcnow()),
    }
    if event.reference:
        values["payment_reference"] = event.reference
    if previous_status == "pending":
        values["status"] = "confirmed"

    updated = first_row(
        get_client().table("orders")
        .update(values)
        .eq("id", order["id"])
        .eq("status", previous_status)
        .in_("payment_status", order_state.payment_sources("paid"))
        .execute()
    )
    if not updated:
        current = OrderService.get_order(order["id"])
        if current.get("payment_status") in order_state.payment_sources("paid") and current.get("status") != previous_status:
            # Status moved under us (a cancel racing the payment); apply against the fresh row
            return _mark_paid(event, current)
        # Another delivery of the same payment got there first
        result.outcome = "already_paid"
        return result

    if closed:
        # Cancelled orders keep their status; staff refund the payment
        logger.warning(
            f"⚠️ Order {updated.get('order_number')} was {previous_status} but got paid via "
            f"{event.provider} ({event.reference}), refund required"
        )
        result.outcome = "paid_after_cancel"
        _run(result, "history", lambda: OrderService.record_history(
            order["id"], previous_status, previous_status, None,
            f"Payment received via {event.provider} after the order was {previous_status}, refund required",
        ))
        return result

    logger.info(f"✅ Order {updated.get('order_number')} paid via {event.provider} ({event.reference})")
    updated["items"] = OrderService.get_order(order["id"]).get("items", [])
    _after_payment(updated, result, previous_status)
    return result


def _mark_failed(event: PaymentEvent, order: Dict) -> ReconciliationResult:
    result = ReconciliationResult(outcome="failed", order_id=order["id"])
    updated = first_row(
        get_client().table("orders")
        .update({"payment_status": "failed", "updated_at": iso(utcnow())})
        .eq("id", order["id"])
        .in_("payment_status", order_state.payment_sources("failed"))
        .execute()
    )
    if not updated:
        result.outcome = "already_paid"
        return result
    logger.warning(f"⚠️ Payment failed for order {order.get('order_number')} ({event.reference})")
    return result


def _gift_card_payment(event: PaymentEvent) -> ReconciliationResult:
    gift_card_id = event.metadata.get("gift_card_id")
    result = ReconciliationResult(outcome="failed")
    if event.kind != SUCCESS:
        logger.warning(f"⚠️ Gift card payment failed ({event.reference})")
        return result
    if not gift_card_id:
        result.outcome = "order_not_found"
        return result

    card = first_row(get_client().table("gift_cards").select("id, initial_balance, is_active").eq("id", gift_card_id).limit(1).execute())
    if not card:
        result.outcome = "order_not_found"
        return result
    if event.amount is not None and money(event.amount) + AMOUNT_TOLERANCE < float(card["initial_balance"]):
        result.outcome = "amount_mismatch"
        return result

    activated = GiftCardService.activate_from_payment(gift_card_id, event.reference)
    if activated:
        result.outcome = "gift_card_activated"
        result.side_effects.append("gift_card_email")
    else:
        result.outcome = "already_paid"
    return result


def reconcile(event: PaymentEvent) -> ReconciliationResult:
    """
    Apply a payment event exactly once.

    Outcomes: paid, paid_after_cancel, failed, duplicate, already_paid,
    amount_mismatch, order_not_found, gift_card_activated.
    """
    if not _record_event(event):
        logger.info(f"ℹ️ Duplicate {event.provider} event {event.event_id}, skipped")
        return ReconciliationResult(outcome="duplicate", order_id=event.order_id)

    try:
        if event.metadata.get("type") == GIFT_CARD_PURCHASE:
            result = _gift_card_payment(event)
        else:
            order = _find_order(event)
            if not order:
                logger.warning(f"⚠️ No order for {event.provider} reference {event.reference}")
                result = ReconciliationResult(outcome="order_not_found", order_id=event.order_id)
            elif event.kind == SUCCESS:
                result = _mark_paid(event, order)
            else:
                result = _mark_failed(event, order)
    except Exception:
        # Forget the event so the provider's retry is processed again
        get_client().table("webhook_events").delete().eq("provider", event.provider).eq("event_id", event.event_id).execute()
        raise

    _finish_event(event, result.outcome)
    return result
