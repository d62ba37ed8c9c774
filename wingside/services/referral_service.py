from typing import Dict, Optional

from wingside.core.errors import ValidationFailed
from wingside.core.supabase import get_client

REWARD_STATUSES = ("pending", "credited", "failed")


def list_rewards(status: Optional[str] = None, limit: int = 50, offset: int = 0) -> Dict:
    """Referral rewards newest first, with both parties' profiles and totals across every row"""
    if status and status != "all" and status not in REWARD_STATUSES:
        raise ValidationFailed(f"Unknown status filter: {status}")

    client = get_client()
    rows = client.table("referral_rewards").select("*").order("created_at", desc=True).execute().data or []

    stats = {
        "total": 0,
        "pending": 0,
        "credited": 0,
        "failed": 0,
        "totalAmount": 0.0,
        "pendingAmount": 0.0,
        "creditedAmount": 0.0,
    }
    for row in rows:
        value = float(row.get("amount") or 0)
        stats["totalAmount"] += value
        if row.get("status") in REWARD_STATUSES:
            stats[row["status"]] += 1
        if row.get("status") in ("pending", "credited"):
            stats[f"{row['status']}Amount"] += value

    if status and status != "all":
        rows = [row for row in rows if row.get("status") == status]
    stats["total"] = len(rows)
    page = rows[offset:offset + limit]

    profile_ids = {row.get(key) for row in page for key in ("referrer_id", "referred_id") if row.get(key)}
    profiles = {}
    if profile_ids:
        response = client.table("profiles").select("id, email, full_name").in_("id", list(profile_ids)).execute()
        profiles = {p["id"]: p for p in (response.data or [])}

    rewards = [
        {**row, "referrer": profiles.get(row.get("referrer_id")), "referred": profiles.get(row.get("referred_id"))}
        for row in page
    ]
    return {
        "rewards": rewards,
        "pagination": {
            "total": len(rows),
            "limit": limit,
            "offset": offset,
            "hasMore": offset + limit < len(rows),
        },
        "stats": stats,
    }
