"""
Points ledger and loyalty tiers

Every change to a balance is a row in `rewards`; `profiles.total_points` holds the
running total and is written with compare-and-set so concurrent awards don't clobber
each other.
"""

import logging
import math
from datetime import timedelta
from typing import Dict, List, Optional

from wingside.core.clock import iso, parse_ts, utcnow
from wingside.core.errors import Conflict, NotFound, ValidationFailed
from wingside.core.settings import settings
from wingside.core.supabase import first_row, get_client

logger = logging.getLogger(__name__)

# (name, lowest points) from the top tier down
TIERS = [
    ("Wingzard", 20000),
    ("Wing Leader", 5001),
    ("Wing Member", 0),
]

# Points a user is left with after dropping out of a tier
DOWNGRADE_POINTS = {
    "Wingzard": 19999,
    "Wing Leader": 5000,
}

MAX_BALANCE_RETRIES = 5


def tier_for(points: int) -> str:
    for name, floor in TIERS:
        if points >= floor:
            return name
    return TIERS[-1][0]


def next_tier(points: int) -> Optional[Dict]:
    current = tier_for(points)
    names = [name for name, _ in TIERS]
    index = names.index(current)
    if index == 0:
        return None
    name, floor = TIERS[index - 1]
    return {"name": name, "points_needed": floor - points}


def purchase_points(total) -> int:
    """One point per NAIRA_PER_POINT spent"""
    return int(math.floor(float(total or 0) / settings.NAIRA_PER_POINT))


class PointsService:

    @staticmethod
    def _profile(user_id) -> Dict:
        row = first_row(
            get_client().table("profiles")
            .select("id, email, full_name, total_points, last_activity_date")
            .eq("id", user_id)
            .limit(1)
            .execute()
        )
        if not row:
            raise NotFound("User not found")
        return row

    @staticmethod
    def _change_balance(user_id, delta: int, allow_negative: bool = False, touch_activity: bool = False) -> int:
        """
        Apply delta to profiles.total_points with compare-and-set.

        Returns the new balance. Without allow_negative a deduction larger than the
        balance is floored at zero.
        """
        client = get_client()
        for _ in range(MAX_BALANCE_RETRIES):
            profile = PointsService._profile(user_id)
            current = int(profile.get("total_points") or 0)
            new_balance = current + delta
            if new_balance < 0 and not allow_negative:
                new_balance = 0

            values = {"total_points": new_balance, "updated_at": iso(utcnow())}
            if touch_activity:
                values["last_activity_date"] = iso(utcnow())

            response = (
                client.table("profiles")
                .update(values)
                .eq("id", user_id)
                .eq("total_points", profile.get("total_points"))
                .execute()
            )
            if response.data:
                return new_balance
        raise Conflict("Points balance is being updated, please retry")

    @staticmethod
    def award(
        user_id,
        reward_type: str,
        points: int,
        amount_spent: float = 0,
        description: str = "",
        metadata: Optional[Dict] = None,
        order_id=None,
    ) -> Dict:
        if points <= 0:
            return {"awarded": 0, "total_points": int(PointsService._profile(user_id).get("total_points") or 0)}

        now = utcnow()
        get_client().table("rewards").insert({
            "user_id": user_id,
            "order_id": order_id,
            "reward_type": reward_type,
            "points": points,
            "amount_spent": amount_spent,
            "description": description,
            "metadata": metadata or {},
            "status": "earned",
            "expires_at": iso(now + timedelta(days=settings.POINTS_EXPIRY_DAYS)),
            "created_at": iso(now),
        }).execute()

        balance = PointsService._change_balance(user_id, points, touch_activity=True)
        logger.info(f"⭐ Awarded {points} points ({reward_type}) to {user_id}, balance {balance}")
        return {"awarded": points, "total_points": balance}

    @staticmethod
    def claim_once(
        user_id,
        reward_type: str,
        points: int,
        description: str = "",
        metadata: Optional[Dict] = None,
        order_id=None,
    ) -> bool:
        """Award a one-time reward; False when the user already claimed it"""
        client = get_client()
        existing = first_row(
            client.table("reward_claims").select("id").eq("user_id", user_id).eq("reward_type", reward_type).limit(1).execute()
        )
        if existing:
            return False

        client.table("reward_claims").insert({
            "user_id": user_id,
            "reward_type": reward_type,
            "points": points,
            "order_id": order_id,
            "metadata": metadata or {},
            "created_at": iso(utcnow()),
        }).execute()
        PointsService.award(user_id, reward_type, points, description=description, metadata=metadata, order_id=order_id)
        return True

    @staticmethod
    def adjust(user_id, change, reason: str, admin_id=None, metadata: Optional[Dict] = None) -> Dict:
        """Manual staff adjustment: positive awards, negative deducts"""
        if isinstance(change, bool) or not isinstance(change, int) or change == 0:
            raise ValidationFailed("pointsChange must be a non-zero integer (positive to award, negative to deduct)")
        if not reason or not reason.strip():
            raise ValidationFailed("reason is required")

        profile = PointsService._profile(user_id)
        current = int(profile.get("total_points") or 0)
        if current + change < 0:
            raise ValidationFailed(f"Cannot deduct {abs(change)} points, user only has {current}")

        action = "admin_award" if change > 0 else "admin_deduct"
        now = utcnow()
        row = {
            "user_id": user_id,
            "reward_type": action,
            "points": change,
            "amount_spent": 0,
            "description": reason.strip(),
            "metadata": {**(metadata or {}), "admin_id": admin_id},
            "status": "earned",
            "created_at": iso(now),
        }
        if change > 0:
            row["expires_at"] = iso(now + timedelta(days=settings.POINTS_EXPIRY_DAYS))
        transaction = first_row(get_client().table("rewards").insert(row).execute()) or {}

        balance = PointsService._change_balance(user_id, change, touch_activity=change > 0)
        logger.info(
            f"✅ Admin {admin_id} {'awarded' if change > 0 else 'deducted'} {abs(change)} points "
            f"{'to' if change > 0 else 'from'} {profile.get('email')}. Reason: {reason}"
        )
        return {
            "success": True,
            "new_total_points": balance,
            "transaction_id": transaction.get("id"),
            "action_type": action,
            "user": {"id": user_id, "email": profile.get("email"), "full_name": profile.get("full_name")},
        }

    @staticmethod
    def reverse_for_order(order_id) -> int:
        """Reverse points earned from an order; returns the points taken back"""
        client = get_client()
        response = (
            client.table("rewards")
            .select("id, user_id, reward_type, points")
            .eq("order_id", order_id)
            .eq("status", "earned")
            .execute()
        )
        reversed_total = 0
        reversed_types = set()
        for row in response.data or []:
            points = int(row.get("points") or 0)
            updated = (
                client.table("rewards")
                .update({"status": "reversed"})
                .eq("id", row["id"])
                .eq("status", "earned")
                .execute()
            )
            if not updated.data or points <= 0:
                continue
            PointsService._change_balance(row["user_id"], -points)
            reversed_total += points
            reversed_types.add(row.get("reward_type"))

        # One-time rewards earned by this order can be earned again
        if reversed_types:
            client.table("reward_claims").delete().eq("order_id", order_id).in_("reward_type", list(reversed_types)).execute()

        if reversed_total:
            logger.info(f"↩️ Reversed {reversed_total} points for order {order_id}")
        return reversed_total

    @staticmethod
    def summary(user_id, history_limit: int = 20) -> Dict:
        profile = PointsService._profile(user_id)
        points = int(profile.get("total_points") or 0)
        history = (
            get_client().table("rewards")
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(history_limit)
            .execute()
        )
        upcoming = next_tier(points)
        return {
            "user": {"id": profile["id"], "email": profile.get("email"), "full_name": profile.get("full_name")},
            "total_points": points,
            "tier": tier_for(points),
            "next_tier": upcoming["name"] if upcoming else None,
            "points_to_next_tier": upcoming["points_needed"] if upcoming else 0,
            "last_activity_date": profile.get("last_activity_date"),
            "history": history.data or [],
        }

    @staticmethod
    def preview_expiring() -> List[Dict]:
        client = get_client()
        response = (
            client.table("rewards")
            .select("id, user_id, points, reward_type, expires_at")
            .eq("status", "earned")
            .gt("points", 0)
            .lt("expires_at", iso(utcnow()))
            .execute()
        )
        rows = response.data or []
        user_ids = list({row["user_id"] for row in rows})
        emails = {}
        if user_ids:
            profiles = client.table("profiles").select("id, email").in_("id", user_ids).execute()
            emails = {p["id"]: p.get("email") for p in (profiles.data or [])}
        return [
            {
                "id": row["id"],
                "user_id": row["user_id"],
                "email": emails.get(row["user_id"]),
                "points_expired": int(row["points"]),
                "reward_type": row.get("reward_type"),
                "expired_at": row.get("expires_at"),
            }
            for row in rows
        ]

    @staticmethod
    def expire_points() -> List[Dict]:
        client = get_client()
        expired = []
        for row in PointsService.preview_expiring():
            updated = (
                client.table("rewards")
                .update({"status": "expired"})
                .eq("id", row["id"])
                .eq("status", "earned")
                .execute()
            )
            if not updated.data:
                continue
            PointsService._change_balance(row["user_id"], -row["points_expired"])
            expired.append({k: row[k] for k in ("email", "points_expired", "reward_type", "expired_at")})

        if expired:
            logger.info(f"⏰ Expired {sum(r['points_expired'] for r in expired)} points across {len(expired)} ledger rows")
        return expired

    @staticmethod
    def preview_downgrades() -> List[Dict]:
        now = utcnow()
        cutoff = now - timedelta(days=settings.TIER_INACTIVITY_DAYS)
        response = (
            get_client().table("profiles")
            .select("id, email, total_points, last_activity_date")
            .lt("last_activity_date", iso(cutoff))
            .gte("total_points", TIERS[1][1])
            .order("total_points", desc=True)
            .execute()
        )
        downgrades = []
        for user in response.data or []:
            points = int(user.get("total_points") or 0)
            old_tier = tier_for(points)
            new_points = DOWNGRADE_POINTS[old_tier]
            last_activity = parse_ts(user.get("last_activity_date"))
            downgrades.append({
                "id": user["id"],
                "email": user.get("email"),
                "old_tier": old_tier,
                "new_tier": tier_for(new_points),
                "old_points": points,
                "new_points": new_points,
                "points_lost": points - new_points,
                "days_inactive": (now - last_activity).days if last_activity else None,
            })
        return downgrades

    @staticmethod
    def process_tier_downgrades() -> List[Dict]:
        client = get_client()
        processed = []
        for item in PointsService.preview_downgrades():
            now = iso(utcnow())
            updated = (
                client.table("profiles")
                .update({"total_points": item["new_points"], "last_activity_date": now, "updated_at": now})
                .eq("id", item["id"])
                .eq("total_points", item["old_points"])
                .execute()
            )
            if not updated.data:
                logger.warning(f"⚠️ Balance changed for {item['email']} during downgrade, skipped")
                continue

            client.table("rewards").insert({
                "user_id": item["id"],
                "reward_type": "tier_downgrade",
                "points": -item["points_lost"],
                "amount_spent": 0,
                "description": f"Inactive {item['days_inactive']} days: {item['old_tier']} → {item['new_tier']}",
                "metadata": {"old_tier": item["old_tier"], "new_tier": item["new_tier"]},
                "status": "earned",
                "created_at": now,
            }).execute()

            logger.info(
                f"📉 {item['email']}: {item['old_tier']} → {item['new_tier']} "
                f"({item['old_points']} → {item['new_points']} pts, inactive {item['days_inactive']} days)"
            )
            processed.append({k: item[k] for k in ("email", "old_tier", "new_tier", "old_points", "new_points", "days_inactive")})
        return processed
