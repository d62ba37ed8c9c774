"""
Order status machine
Single source of truth for which order/payment status changes are allowed
"""

from typing import Dict, FrozenSet, List, Optional

from wingside.core.errors import Conflict, Forbidden

ORDER_STATUSES = (
    "pending",
    "confirmed",
    "preparing",
    "ready",
    "out_for_delivery",
    "delivered",
    "completed",
    "cancelled",
    "failed",
)

PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded")

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "pending": frozenset({"confirmed", "cancelled", "failed"}),
    "confirmed": frozenset({"preparing", "cancelled"}),
    "preparing": frozenset({"ready", "cancelled"}),
    "ready": frozenset({"out_for_delivery", "completed"}),
    "out_for_delivery": frozenset({"delivered"}),
    "delivered": frozenset({"completed"}),
    "completed": frozenset(),
    "cancelled": frozenset(),
    "failed": frozenset(),
}

PAYMENT_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "pending": frozenset({"paid", "failed"}),
    "failed": frozenset({"paid", "failed"}),
    "paid": frozenset({"refunded"}),
    "refunded": frozenset(),
}

# Floor roles only move orders through their own stage
ROLE_STATUS_SCOPE: Dict[str, FrozenSet[str]] = {
    "kitchen_staff": frozenset({"preparing", "ready"}),
    "delivery": frozenset({"out_for_delivery", "delivered"}),
}

# Statuses the customer gets an email about
CUSTOMER_VISIBLE_STATUSES = frozenset({"preparing", "ready", "out_for_delivery", "delivered", "cancelled"})

STATUS_MESSAGES = {
    "pending": "Order received and being prepared",
    "confirmed": "Order confirmed and in preparation",
    "preparing": "Your delicious wings are being prepared",
    "ready": "Order ready for pickup/delivery",
    "out_for_delivery": "Out for delivery - arriving soon!",
    "delivered": "Order delivered - enjoy your meal!",
    "completed": "Order completed",
    "cancelled": "Order cancelled",
    "failed": "Order failed - please contact support",
}


def is_terminal(status: str) -> bool:
    return status in TRANSITIONS and not TRANSITIONS[status]


def can_transition(current: str, new: str) -> bool:
    if new == current:
        return True
    return new in TRANSITIONS.get(current, frozenset())


def can_transition_payment(current: str, new: str) -> bool:
    return new in PAYMENT_TRANSITIONS.get(current, frozenset())


def payment_sources(new: str) -> List[str]:
    """Payment statuses an order may move to `new` from, for compare-and-set filters"""
    return [s for s in PAYMENT_STATUSES if can_transition_payment(s, new)]


def check_transition(current: str, new: str, role: Optional[str] = None) -> None:
    """
    Raise when a status change is not allowed.

    Raises:
        Conflict: unknown status or transition not in the machine
        Forbidden: role may not set this status
    """
    if new not in ORDER_STATUSES:
        raise Conflict(f"Unknown order status: {new}")
    if role in ROLE_STATUS_SCOPE and new != current and new not in ROLE_STATUS_SCOPE[role]:
        raise Forbidden(f"Role {role} cannot set orders to {new}")
    if not can_transition(current, new):
        raise Conflict(
            f"Cannot move order from {current} to {new}",
            details={"allowed": sorted(TRANSITIONS.get(current, frozenset()))},
        )


def status_message(status: str, payment_status: str) -> str:
    if payment_status == "pending":
        return "Waiting for payment confirmation"
    return STATUS_MESSAGES.get(status, "Processing your order")


def can_cancel(order: dict) -> bool:
    return order.get("status") == "pending" and order.get("payment_status") != "paid"


def can_reorder(order: dict) -> bool:
    return order.get("status") in ("completed", "delivered")
