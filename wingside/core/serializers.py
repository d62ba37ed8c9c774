"""
Response serialization helpers
Supabase returns numerics as str/float depending on column type; normalise before returning
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Optional


def _convert(value: Any, key: Optional[str], id_fields: set, money_fields: set) -> Any:
    if isinstance(value, dict):
        return {k: _convert(v, k, id_fields, money_fields) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_convert(v, None, id_fields, money_fields) for v in value]
    if key in id_fields and value is not None:
        return str(value)
    if key in money_fields and value is not None:
        return round(float(value), 2)
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def prepare_response(data: Any, id_fields: Iterable[str] = (), money_fields: Iterable[str] = ()) -> Any:
    """
    Make a payload JSON-safe.

    Args:
        data: dict, list or scalar from Supabase/services
        id_fields: keys whose values must be returned as strings
        money_fields: keys rounded to 2 decimal places
    """
    return _convert(data, None, set(id_fields), set(money_fields))


ORDER_MONEY_FIELDS = (
    "subtotal",
    "delivery_fee",
    "tax",
    "discount_amount",
    "gift_card_amount",
    "total",
    "unit_price",
    "total_price",
)

GIFT_CARD_MONEY_FIELDS = (
    "denomination",
    "initial_balance",
    "current_balance",
    "amount",
    "balance_after",
)
