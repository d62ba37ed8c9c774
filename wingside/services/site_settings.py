"""
Site settings
Admin read/write access to the site_settings key/value table
"""

import logging
import re
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from wingside.core.clock import iso, utcnow
from wingside.core.errors import ValidationFailed
from wingside.core.supabase import get_client
from wingside.services import store_status

logger = logging.getLogger(__name__)

BOOLEAN_KEYS = ("accept_orders", "auto_close_outside_hours")
TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def _category(key: str) -> str:
    return "general" if key in BOOLEAN_KEYS or key == "business_timezone" else "hours"


def _normalize(key: str, value) -> str:
    """Store values as the strings store_status reads back"""
    if key in BOOLEAN_KEYS:
        if isinstance(value, bool):
            return "true" if value else "false"
        text = str(value).strip().lower()
        if text not in ("true", "false"):
            raise ValidationFailed(f"{key} must be true or false")
        return text
    if key == "business_timezone":
        try:
            ZoneInfo(str(value))
        except (ZoneInfoNotFoundError, ValueError):
            raise ValidationFailed(f"Unknown timezone: {value}")
        return str(value)
    if key.endswith("_open") or key.endswith("_close"):
        text = str(value).strip()
        if not TIME_PATTERN.match(text):
            raise ValidationFailed(f"{key} must be a HH:MM time")
        return text
    return "" if value is None else str(value)


def all_settings() -> Dict:
    response = (
        get_client().table("site_settings")
        .select("setting_key, setting_value, category, description")
        .order("category")
        .order("setting_key")
        .execute()
    )
    flat: Dict[str, str] = {}
    by_category: Dict[str, List[Dict]] = {}
    for row in response.data or []:
        value = row.get("setting_value") or ""
        flat[row["setting_key"]] = value
        by_category.setdefault(row.get("category") or "general", []).append({
            "key": row["setting_key"],
            "value": value,
            "description": row.get("description") or "",
        })
    return {"settings": flat, "settingsByCategory": by_category}


def update_settings(values: Dict, actor_id: Optional[str] = None) -> Dict:
    """
    Write settings by key.

    Keys must already exist, except the store-status keys (manual switch,
    timezone and opening hours), which are created on first write.

    Raises:
        ValidationFailed: empty payload, unknown keys or malformed values
    """
    if not values:
        raise ValidationFailed("Invalid settings data")

    client = get_client()
    keys = list(values)
    existing = client.table("site_settings").select("setting_key").in_("setting_key", keys).execute()
    known = {row["setting_key"] for row in (existing.data or [])}
    unknown = [key for key in keys if key not in known and key not in store_status.SETTING_KEYS]
    if unknown:
        raise ValidationFailed("Some settings not found in database", details={"notFound": unknown})

    now = iso(utcnow())
    rows = []
    for key, value in values.items():
        row = {"setting_key": key, "setting_value": _normalize(key, value), "updated_at": now}
        if key not in known:
            row.update({"category": _category(key), "description": "", "created_at": now})
        rows.append(row)

    client.table("site_settings").upsert(rows, on_conflict="setting_key").execute()
    logger.info(f"⚙️ {len(rows)} settings updated by {actor_id}: {', '.join(keys)}")
    return {"success": True, "message": "Settings updated successfully", "updated": len(rows)}
