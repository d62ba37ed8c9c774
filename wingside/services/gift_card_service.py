import logging
import math
import re
import secrets
import string
import time
from typing import Dict, List, Optional

from pydantic import EmailStr, TypeAdapter, ValidationError

from wingside.core.clock import add_months, iso, money, parse_ts, utcnow
from wingside.core.errors import Conflict, NotFound, ValidationFailed
from wingside.core.settings import settings
from wingside.core.supabase import first_row, get_client
from wingside.services import notifications, order_state
from wingside.services.payments.paystack import PaystackClient

logger = logging.getLogger(__name__)

DENOMINATIONS = (15000, 20000, 50000)
DESIGNS = (
    "val-01.png", "val-02.png", "val-03.png", "val-04.png",
    "gift-love1.png", "gift-love2.png", "gift-love3.png",
    "gift-love4.png", "gift-love5.png", "gift-love6.png",
)
CODE_LENGTH = 12
CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_PATTERN = re.compile(r"^[A-Z0-9]{12}$")
MAX_CODE_ATTEMPTS = 5
MAX_BALANCE_RETRIES = 3
REDEEMABLE_PAYMENT_STATUSES = order_state.payment_sources("paid")

_email_adapter = TypeAdapter(EmailStr)


def generate_code() -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def normalize_code(code) -> str:
    code = str(code or "").strip().upper()
    if not code:
        raise ValidationFailed("Gift card code is required")
    if not CODE_PATTERN.match(code):
        raise ValidationFailed("Invalid gift card code format. Must be 12 alphanumeric characters.")
    return code


class GiftCardService:
    """
    Gift card purchase, activation, balance checks and the redemption ledger.

    A purchased card stays inactive with a zero balance until its Paystack
    payment is reconciled.
    """

    @staticmethod
    def _by_code(code: str) -> Optional[Dict]:
        return first_row(get_client().table("gift_cards").select("*").eq("code", code).limit(1).execute())

    @staticmethod
    def _unique_code() -> str:
        for _ in range(MAX_CODE_ATTEMPTS):
            code = generate_code()
            if not GiftCardService._by_code(code):
                return code
        raise Conflict("Failed to generate gift card code. Please try again.")

    @staticmethod
    async def purchase(
        user: Dict,
        denomination: int,
        design_image: str,
        recipient_name: str,
        recipient_email: str,
        paystack: PaystackClient,
    ) -> Dict:
        if denomination not in DENOMINATIONS:
            raise ValidationFailed(f"Invalid denomination. Must be one of: {', '.join(str(d) for d in DENOMINATIONS)}")
        if design_image not in DESIGNS:
            raise ValidationFailed(f"Invalid card design. Must be one of: {', '.join(DESIGNS)}")

        name = (recipient_name or "").strip()
        if len(name) < 2 or len(name) > 100:
            raise ValidationFailed("Recipient name must be between 2 and 100 characters")
        try:
            email = _email_adapter.validate_python((recipient_email or "").strip().lower())
        except ValidationError:
            raise ValidationFailed("Invalid recipient email address")

        client = get_client()
        code = GiftCardService._unique_code()
        card = first_row(client.table("gift_cards").insert({
            "code": code,
            "denomination": denomination,
            "initial_balance": denomination,
            "current_balance": 0,
            "recipient_name": name,
            "recipient_email": email,
            "purchased_by": user["id"],
            "design_image": design_image,
            "is_active": False,
            "expires_at": iso(add_months(utcnow(), settings.GIFT_CARD_VALIDITY_MONTHS)),
            "created_at": iso(utcnow()),
        }).execute())
        if not card:
            raise Conflict("Failed to create gift card. Please try again.")

        reference = f"GC_{code}_{int(time.time() * 1000)}"
        callback_url = f"{settings.APP_URL.rstrip('/')}/payment/callback?type=gift_card&gift_card_id={card['id']}"
        try:
            payment = await paystack.initialize(
                email=user.get("email") or email,
                amount_naira=denomination,
                reference=reference,
                callback_url=callback_url,
                metadata={
                    "type": "gift_card_purchase",
                    "gift_card_id": card["id"],
                    "gift_card_code": code,
                    "design_image": design_image,
                    "denomination": denomination,
                    "recipient_name": name,
                    "recipient_email": email,
                    "purchased_by": user["id"],
                },
            )
        except Exception:
            client.table("gift_cards").delete().eq("id", card["id"]).execute()
            logger.error(f"❌ Payment init failed, gift card {card['id']} removed")
            raise

        client.table("gift_cards").update({"payment_reference": reference}).eq("id", card["id"]).execute()
        logger.info(f"🎁 Gift card {code} ({denomination}) pending payment {reference}")
        return {
            "success": True,
            "gift_card_id": card["id"],
            "code": code,
            "authorization_url": payment["authorization_url"],
            "access_code": payment["access_code"],
            "reference": payment["reference"],
        }

    @staticmethod
    def activate_from_payment(gift_card_id, reference: Optional[str] = None) -> Optional[Dict]:
        """
        Activate a paid card. Returns the card when this call activated it,
        None when it was already active or does not exist.
        """
        client = get_client()
        card = first_row(client.table("gift_cards").select("*").eq("id", gift_card_id).limit(1).execute())
        if not card:
            logger.warning(f"⚠️ Gift card {gift_card_id} not found for activation")
            return None
        if card.get("is_active") or card.get("activated_at"):
            logger.info(f"ℹ️ Gift card {card['code']} already activated")
            return None

        values = {
            "is_active": True,
            "current_balance": card["initial_balance"],
            "activated_at": iso(utcnow()),
        }
        if reference:
            values["payment_reference"] = reference
        activated = first_row(
            client.table("gift_cards")
            .update(values)
            .eq("id", gift_card_id)
            .eq("is_active", False)
            .is_("activated_at", "null")
            .execute()
        )
        if not activated:
            return None

        logger.info(f"✅ Gift card {activated['code']} activated")
        notifications.send_gift_card(activated)
        return activated

    @staticmethod
    def validate(code) -> Dict:
        code = normalize_code(code)
        card = GiftCardService._by_code(code)
        GiftCardService._check_usable(card)
        return {
            "valid": True,
            "gift_card": {
                "id": card["id"],
                "code": card["code"],
                "balance": money(card["current_balance"]),
                "expires_at": card.get("expires_at"),
                "recipient_name": card.get("recipient_name"),
                "design_image": card.get("design_image"),
            },
        }

    @staticmethod
    def _check_usable(card: Optional[Dict]) -> None:
        if not card:
            raise NotFound("Invalid gift card code")
        if not card.get("is_active"):
            raise ValidationFailed("Gift card is not active")
        expires_at = parse_ts(card.get("expires_at"))
        if expires_at and expires_at < utcnow():
            raise ValidationFailed("Gift card has expired")
        if float(card.get("current_balance") or 0) <= 0:
            raise ValidationFailed("Gift card has no remaining balance")

    @staticmethod
    def redeem(code, amount, order_id, user: Dict) -> Dict:
        """
        Apply a gift card to an unpaid order.

        The order is claimed with a compare-and-set on its empty gift_card_id
        before the card is debited, so two cards can never both be charged for
        the same order. A failed debit releases the claim.
        """
        code = normalize_code(code)
        try:
            amount = money(amount)
        except (TypeError, ValueError):
            raise ValidationFailed("Invalid amount")
        if amount <= 0:
            raise ValidationFailed("Invalid amount")

        client = get_client()
        order = first_row(
            client.table("orders")
            .select("id, user_id, total, status, payment_status, gift_card_id")
            .eq("id", order_id)
            .limit(1)
            .execute()
        )
        if not order:
            raise NotFound("Order not found")
        if order.get("user_id") and order["user_id"] != user["id"]:
            raise NotFound("Order not found")
        if order.get("payment_status") not in REDEEMABLE_PAYMENT_STATUSES:
            raise Conflict(f"Order is already {order.get('payment_status')}")
        if order.get("status") != "pending":
            raise Conflict(f"Gift cards cannot be applied to a {order.get('status')} order")
        if order.get("gift_card_id"):
            raise Conflict("A gift card has already been applied to this order")
        if amount > float(order.get("total") or 0):
            raise ValidationFailed("Amount exceeds order total")

        card = GiftCardService._by_code(code)
        GiftCardService._check_usable(card)

        claimed = (
            client.table("orders")
            .update({"gift_card_id": card["id"], "gift_card_amount": amount, "updated_at": iso(utcnow())})
            .eq("id", order_id)
            .is_("gift_card_id", "null")
            .eq("status", "pending")
            .in_("payment_status", REDEEMABLE_PAYMENT_STATUSES)
            .execute()
        )
        if not claimed.data:
            raise Conflict("A gift card has already been applied to this order")

        try:
            remaining = GiftCardService._debit(code, amount)
        except Exception:
            client.table("orders").update({
                "gift_card_id": None,
                "gift_card_amount": 0,
                "updated_at": iso(utcnow()),
            }).eq("id", order_id).eq("gift_card_id", card["id"]).execute()
            raise

        client.table("gift_card_transactions").insert({
            "gift_card_id": card["id"],
            "order_id": order_id,
            "user_id": user["id"],
            "type": "redeem",
            "amount": amount,
            "balance_after": remaining,
            "created_at": iso(utcnow()),
        }).execute()

        logger.info(f"🎁 Redeemed ₦{amount:,.2f} from gift card {code} for order {order_id}")
        return {
            "success": True,
            "message": "Gift card redeemed successfully",
            "gift_card_id": card["id"],
            "remaining_balance": remaining,
            "amount_redeemed": amount,
        }

    @staticmethod
    def _debit(code: str, amount: float) -> float:
        """Take `amount` off the card's balance; returns the new balance"""
        client = get_client()
        for _ in range(MAX_BALANCE_RETRIES):
            card = GiftCardService._by_code(code)
            GiftCardService._check_usable(card)
            balance = float(card["current_balance"])
            if amount > balance:
                raise ValidationFailed(f"Insufficient gift card balance. Available: ₦{balance:,.2f}")

            remaining = money(balance - amount)
            updated = (
                client.table("gift_cards")
                .update({"current_balance": remaining, "last_used_at": iso(utcnow())})
                .eq("id", card["id"])
                .eq("current_balance", card["current_balance"])
                .execute()
            )
            if updated.data:
                return remaining
        raise Conflict("Gift card is being used elsewhere, please retry")

    @staticmethod
    def restore_for_order(order: Dict) -> float:
        """Give an order's redeemed amount back to its card; returns the amount restored"""
        gift_card_id = order.get("gift_card_id")
        amount = money(order.get("gift_card_amount"))
        if not gift_card_id or amount <= 0:
            return 0.0

        client = get_client()
        already = first_row(
            client.table("gift_card_transactions")
            .select("id")
            .eq("order_id", order["id"])
            .eq("type", "restore")
            .limit(1)
            .execute()
        )
        if already:
            return 0.0

        for _ in range(MAX_BALANCE_RETRIES):
            card = first_row(client.table("gift_cards").select("*").eq("id", gift_card_id).limit(1).execute())
            if not card:
                logger.warning(f"⚠️ Gift card {gift_card_id} missing, cannot restore ₦{amount}")
                return 0.0
            new_balance = money(float(card.get("current_balance") or 0) + amount)
            updated = (
                client.table("gift_cards")
                .update({"current_balance": new_balance})
                .eq("id", gift_card_id)
                .eq("current_balance", card.get("current_balance"))
                .execute()
            )
            if updated.data:
                break
        else:
            raise Conflict("Gift card balance changed during restore, please retry")

        client.table("gift_card_transactions").insert({
            "gift_card_id": gift_card_id,
            "order_id": order["id"],
            "user_id": order.get("user_id"),
            "type": "restore",
            "amount": amount,
            "balance_after": new_balance,
            "created_at": iso(utcnow()),
        }).execute()
        logger.info(f"↩️ Restored ₦{amount:,.2f} to gift card {card['code']}")
        return amount

    @staticmethod
    def list_cards(page: int = 1, limit: int = 20, status: Optional[str] = None, search: Optional[str] = None) -> Dict:
        """
        Staff listing with status filter, search on code or recipient email,
        and issuance totals over activated cards.
        """
        rows = get_client().table("gift_cards").select("*").order("created_at", desc=True).execute().data or []
        now = utcnow()

        def expired(card):
            expires_at = parse_ts(card.get("expires_at"))
            return bool(expires_at and expires_at <= now)

        filters = {
            "active": lambda c: c.get("is_active") and not expired(c) and float(c.get("current_balance") or 0) > 0,
            "inactive": lambda c: not c.get("is_active"),
            "expired": expired,
            "fully_used": lambda c: c.get("activated_at") and float(c.get("current_balance") or 0) == 0,
        }
        if status and status != "all":
            if status not in filters:
                raise ValidationFailed(f"Unknown status filter: {status}")
            matched = [card for card in rows if filters[status](card)]
        else:
            matched = rows
        if search:
            term = search.strip().lower()
            matched = [
                card for card in matched
                if term in (card.get("code") or "").lower() or term in (card.get("recipient_email") or "").lower()
            ]

        issued = [card for card in rows if card.get("activated_at")]
        total_value = money(sum(float(card.get("initial_balance") or 0) for card in issued))
        remaining = money(sum(float(card.get("current_balance") or 0) for card in issued))
        redeemed = money(total_value - remaining)

        start = (page - 1) * limit
        return {
            "giftCards": matched[start:start + limit],
            "total": len(matched),
            "page": page,
            "limit": limit,
            "totalPages": math.ceil(len(matched) / limit),
            "summary": {
                "total_issued": len(issued),
                "total_value": total_value,
                "remaining_balance": remaining,
                "redeemed_value": redeemed,
                "redemption_rate": round(redeemed / total_value * 100, 2) if total_value else 0,
            },
        }

    @staticmethod
    def get_card(gift_card_id) -> Dict:
        client = get_client()
        card = first_row(client.table("gift_cards").select("*").eq("id", gift_card_id).limit(1).execute())
        if not card:
            raise NotFound("Gift card not found")
        transactions = (
            client.table("gift_card_transactions")
            .select("*")
            .eq("gift_card_id", gift_card_id)
            .order("created_at", desc=True)
            .execute()
        )
        purchaser = None
        if card.get("purchased_by"):
            purchaser = first_row(
                client.table("profiles").select("id, full_name, email").eq("id", card["purchased_by"]).limit(1).execute()
            )
        return {"gift_card": card, "transactions": transactions.data or [], "purchaser": purchaser}

    @staticmethod
    def admin_create(
        actor: Dict,
        initial_balance,
        recipient_email: Optional[str] = None,
        recipient_name: Optional[str] = None,
        message: Optional[str] = None,
        expiry_months: int = 12,
    ) -> Dict:
        """Issue an active card directly (goodwill, promotions); no payment involved"""
        amount = money(initial_balance)
        if amount <= 0:
            raise ValidationFailed("Initial balance must be greater than 0")

        client = get_client()
        code = GiftCardService._unique_code()
        now = utcnow()
        card = first_row(client.table("gift_cards").insert({
            "code": code,
            "denomination": amount,
            "initial_balance": amount,
            "current_balance": amount,
            "recipient_name": recipient_name,
            "recipient_email": recipient_email,
            "message": message,
            "is_active": True,
            "activated_at": iso(now),
            "expires_at": iso(add_months(now, expiry_months)),
            "created_by": actor["id"],
            "created_at": iso(now),
        }).execute())
        if not card:
            raise Conflict("Failed to create gift card. Please try again.")

        client.table("gift_card_transactions").insert({
            "gift_card_id": card["id"],
            "user_id": actor["id"],
            "type": "issue",
            "amount": amount,
            "balance_after": amount,
            "created_at": iso(now),
        }).execute()
        logger.info(f"🎁 Gift card {code} issued for ₦{amount:,.2f} by {actor['id']}")
        return card

    @staticmethod
    def admin_update(
        gift_card_id,
        actor: Dict,
        is_active: Optional[bool] = None,
        balance_adjustment: Optional[float] = None,
        reason: Optional[str] = None,
    ) -> Dict:
        """
        Toggle a card and/or adjust its balance.

        Raises:
            NotFound: no such card
            ValidationFailed: adjustment would take the balance below zero
            Conflict: the balance moved while adjusting
        """
        client = get_client()
        card = first_row(client.table("gift_cards").select("*").eq("id", gift_card_id).limit(1).execute())
        if not card:
            raise NotFound("Gift card not found")

        values = {}
        if is_active is not None:
            values["is_active"] = is_active

        adjustment = money(balance_adjustment) if balance_adjustment else 0.0
        if adjustment:
            new_balance = money(float(card.get("current_balance") or 0) + adjustment)
            if new_balance < 0:
                raise ValidationFailed("Balance adjustment would result in negative balance")
            values["current_balance"] = new_balance

        if not values:
            return card

        query = client.table("gift_cards").update(values).eq("id", gift_card_id)
        if adjustment:
            query = query.eq("current_balance", card.get("current_balance"))
        updated = first_row(query.execute())
        if not updated:
            raise Conflict("Gift card balance changed, reload and try again")

        if adjustment:
            client.table("gift_card_transactions").insert({
                "gift_card_id": gift_card_id,
                "user_id": actor["id"],
                "type": "adjustment",
                "amount": adjustment,
                "balance_after": updated["current_balance"],
                "description": reason or "Admin balance adjustment",
                "created_at": iso(utcnow()),
            }).execute()
        logger.info(f"🎁 Gift card {card['code']} updated by {actor['id']}: {values}")
        return updated

    @staticmethod
    def expire_cards() -> List[Dict]:
        client = get_client()
        response = (
            client.table("gift_cards")
            .select("id, code, current_balance, expires_at")
            .eq("is_active", True)
            .lt("expires_at", iso(utcnow()))
            .execute()
        )
        expired = response.data or []
        if expired:
            client.table("gift_cards").update({"is_active": False}).in_("id", [c["id"] for c in expired]).execute()
            logger.info(f"⏰ Deactivated {len(expired)} expired gift cards")
        return [
            {"code": c["code"], "balance": money(c.get("current_balance")), "expired_at": c.get("expires_at")}
            for c in expired
        ]
