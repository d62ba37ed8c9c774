import logging
import math
from typing import Dict, List

from wingside.core.clock import iso, money, parse_ts, utcnow
from wingside.core.errors import Conflict, NotFound, ValidationFailed
from wingside.core.settings import settings
from wingside.core.supabase import first_row, get_client

logger = logging.getLogger(__name__)

DISCOUNT_TYPES = ("percentage", "fixed")
MAX_USAGE_RETRIES = 3


def normalize_code(code) -> str:
    return str(code or "").strip().upper()


def compute_discount(promo: Dict, amount: float) -> float:
    value = float(promo.get("discount_value") or 0)
    if promo.get("discount_type") == "percentage":
        discount = round(amount * value / 100, 2)
        cap = promo.get("max_discount_amount")
        # A zero cap means no cap
        if cap and discount > float(cap):
            discount = float(cap)
    else:
        discount = value
    return money(min(discount, amount))


class PromoService:
    """
    Promo code validation, usage counting and staff CRUD.
    """

    @staticmethod
    def get_by_code(code: str):
        return first_row(
            get_client().table("promo_codes").select("*").eq("code", normalize_code(code)).limit(1).execute()
        )

    @staticmethod
    def validate(code, order_amount) -> Dict:
        """
        Check a promo code against an order amount.

        Raises:
            ValidationFailed: bad input or a code that cannot be applied
            NotFound: unknown or inactive code
        """
        code = normalize_code(code)
        if not code:
            raise ValidationFailed("Promo code is required")

        try:
            amount = float(order_amount)
        except (TypeError, ValueError):
            raise ValidationFailed("Invalid order amount")
        if math.isnan(amount) or amount <= 0:
            raise ValidationFailed("Invalid order amount")
        if amount > settings.MAX_ORDER_AMOUNT:
            raise ValidationFailed("Order amount exceeds maximum limit")
        amount = money(amount)

        promo = PromoService.get_by_code(code)
        if not promo or not promo.get("is_active"):
            raise NotFound("Invalid or inactive promo code")

        now = utcnow()
        valid_from = parse_ts(promo.get("valid_from"))
        if valid_from and now < valid_from:
            raise ValidationFailed("This promo code is not yet valid")
        valid_until = parse_ts(promo.get("valid_until"))
        if valid_until and now > valid_until:
            raise ValidationFailed("This promo code has expired")

        usage_limit = promo.get("usage_limit")
        if usage_limit is not None and int(promo.get("used_count") or 0) >= int(usage_limit):
            raise ValidationFailed("This promo code has reached its usage limit")

        min_amount = float(promo.get("min_order_amount") or 0)
        if amount < min_amount:
            raise ValidationFailed(f"Minimum order amount of ₦{min_amount:,.0f} required")

        discount = compute_discount(promo, amount)
        return {
            "valid": True,
            "promo_code": {
                "id": promo["id"],
                "code": promo["code"],
                "description": promo.get("description"),
                "discount_type": promo.get("discount_type"),
                "discount_value": promo.get("discount_value"),
            },
            "discount_amount": discount,
            "message": f"Promo code applied! You saved ₦{discount:,.2f}",
        }

    @staticmethod
    def increment_usage(promo_id) -> bool:
        """Bump used_count by compare-and-set; False when every retry lost the race"""
        client = get_client()
        for _ in range(MAX_USAGE_RETRIES):
            row = first_row(client.table("promo_codes").select("id, used_count").eq("id", promo_id).limit(1).execute())
            if not row:
                logger.warning(f"⚠️ Promo code {promo_id} not found for usage increment")
                return False
            current = int(row.get("used_count") or 0)
            response = (
                client.table("promo_codes")
                .update({"used_count": current + 1, "updated_at": iso(utcnow())})
                .eq("id", promo_id)
                .eq("used_count", current)
                .execute()
            )
            if response.data:
                return True
        logger.error(f"❌ Could not increment usage for promo {promo_id} after {MAX_USAGE_RETRIES} attempts")
        return False

    @staticmethod
    def list_codes() -> List[Dict]:
        response = get_client().table("promo_codes").select("*").order("created_at", desc=True).execute()
        return response.data or []

    @staticmethod
    def _clean(values: Dict) -> Dict:
        values = {k: v for k, v in values.items() if v is not None}
        if "code" in values:
            values["code"] = normalize_code(values["code"])
            if not values["code"]:
                raise ValidationFailed("Promo code is required")
        if "discount_type" in values and values["discount_type"] not in DISCOUNT_TYPES:
            raise ValidationFailed("discount_type must be 'percentage' or 'fixed'")
        if "discount_value" in values:
            value = float(values["discount_value"])
            if value <= 0:
                raise ValidationFailed("discount_value must be positive")
            if values.get("discount_type") == "percentage" and value > 100:
                raise ValidationFailed("Percentage discount cannot exceed 100")
        for key in ("valid_from", "valid_until"):
            if key in values and not isinstance(values[key], str):
                values[key] = iso(values[key])
        return values

    @staticmethod
    def create(values: Dict) -> Dict:
        values = PromoService._clean(values)
        if PromoService.get_by_code(values["code"]):
            raise Conflict("A promo code with this code already exists")
        values.setdefault("used_count", 0)
        values.setdefault("is_active", True)
        row = first_row(get_client().table("promo_codes").insert(values).execute())
        logger.info(f"🏷️ Promo code created: {values['code']}")
        return row

    @staticmethod
    def update(promo_id: str, values: Dict) -> Dict:
        values = PromoService._clean(values)
        if not values:
            raise ValidationFailed("No fields to update")
        values["updated_at"] = iso(utcnow())
        row = first_row(get_client().table("promo_codes").update(values).eq("id", promo_id).execute())
        if not row:
            raise NotFound("Promo code not found")
        return row

    @staticmethod
    def delete(promo_id: str) -> None:
        response = get_client().table("promo_codes").delete().eq("id", promo_id).execute()
        if not response.data:
            raise NotFound("Promo code not found")
        logger.info(f"🗑️ Promo code {promo_id} deleted")

    @staticmethod
    def preview_expired() -> List[Dict]:
        now = utcnow()
        response = (
            get_client().table("promo_codes")
            .select("id, code, valid_until")
            .eq("is_active", True)
            .lt("valid_until", iso(now))
            .execute()
        )
        expired = []
        for row in response.data or []:
            until = parse_ts(row.get("valid_until"))
            expired.append({
                "id": row["id"],
                "code": row["code"],
                "valid_until": row.get("valid_until"),
                "days_overdue": (now - until).days if until else 0,
            })
        return expired

    @staticmethod
    def expire_codes() -> List[Dict]:
        expired = PromoService.preview_expired()
        if not expired:
            return []
        get_client().table("promo_codes").update({
            "is_active": False,
            "updated_at": iso(utcnow()),
        }).in_("id", [row["id"] for row in expired]).execute()
        logger.info(f"⏰ Deactivated {len(expired)} expired promo codes")
        return [{k: row[k] for k in ("code", "valid_until", "days_overdue")} for row in expired]
