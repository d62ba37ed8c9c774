"""
Order acceptance
Whether the store takes orders right now (manual switch + opening hours)
"""

import logging
from datetime import datetime
from typing import Dict, Optional, Tuple
from zoneinfo import ZoneInfo

from wingside.core.clock import iso, utcnow
from wingside.core.supabase import get_client

logger = logging.getLogger(__name__)

DAY_NAMES = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
DEFAULT_OPEN = "11:00"
DEFAULT_CLOSE = "22:00"
DEFAULT_TIMEZONE = "Africa/Lagos"

SETTING_KEYS = (
    ["accept_orders", "auto_close_outside_hours", "business_timezone"]
    + [f"{day}_{edge}" for day in DAY_NAMES for edge in ("open", "close")]
)


def _minutes(hhmm: str) -> int:
    hours, mins = hhmm.split(":")[:2]
    return int(hours) * 60 + int(mins)


def is_within_hours(open_time: str, close_time: str, current: datetime) -> bool:
    now_minutes = current.hour * 60 + current.minute
    return _minutes(open_time) <= now_minutes < _minutes(close_time)


def time_until_open(open_time: str, current: datetime) -> Dict[str, int]:
    now_minutes = current.hour * 60 + current.minute
    until = _minutes(open_time) - now_minutes
    if until < 0:
        # Past today's opening: count to tomorrow's
        until += 24 * 60
    return {"hours": until // 60, "minutes": until % 60}


def _plural(value: int, unit: str) -> str:
    return f"{value} {unit}{'' if value == 1 else 's'}"


def _load_settings() -> Dict[str, str]:
    client = get_client()
    response = client.table("site_settings").select("setting_key, setting_value").in_("setting_key", SETTING_KEYS).execute()
    values = {row["setting_key"]: row["setting_value"] for row in (response.data or [])}

    if "accept_orders" not in values:
        now = iso(utcnow())
        client.table("site_settings").insert({
            "setting_key": "accept_orders",
            "setting_value": "true",
            "category": "general",
            "description": "Whether the website is currently accepting orders",
            "created_at": now,
            "updated_at": now,
        }).execute()
        values["accept_orders"] = "true"
    return values


def get_status(now: Optional[datetime] = None) -> Dict:
    """
    Current order acceptance state.

    Defaults to accepting orders when settings cannot be read.
    """
    try:
        values = _load_settings()
    except Exception as e:
        logger.error(f"❌ Could not read store settings, defaulting to open: {e}")
        return {
            "accepting_orders": True,
            "message": "Orders are currently being accepted",
            "countdown": None,
            "auto_close_enabled": False,
            "manually_disabled": False,
        }

    manually_disabled = str(values.get("accept_orders")).lower() != "true"
    auto_close = str(values.get("auto_close_outside_hours")).lower() == "true"

    accepting = not manually_disabled
    message = "Orders are currently being accepted" if accepting else "Orders are currently disabled"
    countdown = None

    if auto_close and not manually_disabled:
        tz = ZoneInfo(values.get("business_timezone") or DEFAULT_TIMEZONE)
        local_now = (now or utcnow()).astimezone(tz)
        day = DAY_NAMES[local_now.weekday()]
        open_time = values.get(f"{day}_open") or DEFAULT_OPEN
        close_time = values.get(f"{day}_close") or DEFAULT_CLOSE

        if not is_within_hours(open_time, close_time, local_now):
            accepting = False
            countdown = time_until_open(open_time, local_now)
            parts = []
            if countdown["hours"]:
                parts.append(_plural(countdown["hours"], "hour"))
            if countdown["minutes"]:
                parts.append(_plural(countdown["minutes"], "minute"))
            message = f"We're currently closed. We'll be back in {' and '.join(parts)}."

    return {
        "accepting_orders": accepting,
        "message": message,
        "countdown": countdown,
        "auto_close_enabled": auto_close,
        "manually_disabled": manually_disabled,
    }


def accepting_orders(now: Optional[datetime] = None) -> Tuple[bool, str]:
    status = get_status(now)
    return status["accepting_orders"], status["message"]
