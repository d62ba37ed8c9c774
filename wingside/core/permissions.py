"""
Role-Based Access Control
Maps every staff role to a permission level per admin area.
To change what a role can do, edit ROLE_PERMISSIONS.
"""

from typing import Dict, List

ROLES = (
    "customer",
    "admin",
    "super_admin",
    "csr",
    "kitchen_staff",
    "shift_manager",
    "delivery",
    "sales_marketing",
)

CATEGORIES = (
    "dashboard",
    "analytics",
    "orders",
    "products",
    "categories",
    "delivery_areas",
    "promo_codes",
    "customers",
    "gift_cards",
    "referrals",
    "crm_analytics",
    "settings",
    "users",
)

LEVELS = ("none", "view", "edit", "full")


def _all(level: str) -> Dict[str, str]:
    return {category: level for category in CATEGORIES}


def _grant(**levels: str) -> Dict[str, str]:
    perms = _all("none")
    perms.update(levels)
    return perms


ROLE_PERMISSIONS: Dict[str, Dict[str, str]] = {
    "customer": _all("none"),
    # Legacy role kept for existing accounts
    "admin": _all("full"),
    "super_admin": _all("full"),
    "csr": _grant(
        dashboard="view",
        orders="edit",
        products="view",
        delivery_areas="view",
        promo_codes="view",
        customers="edit",
        gift_cards="edit",
        referrals="view",
    ),
    "kitchen_staff": _grant(
        dashboard="view",
        orders="edit",
        products="view",
    ),
    "shift_manager": _grant(
        dashboard="full",
        analytics="view",
        orders="full",
        products="full",
        categories="edit",
        delivery_areas="edit",
        promo_codes="edit",
        customers="edit",
        gift_cards="edit",
        referrals="view",
        crm_analytics="view",
    ),
    "delivery": _grant(
        dashboard="view",
        orders="edit",
        delivery_areas="view",
        customers="view",
    ),
    "sales_marketing": _grant(
        dashboard="view",
        analytics="full",
        orders="view",
        products="view",
        promo_codes="full",
        customers="view",
        gift_cards="full",
        referrals="full",
        crm_analytics="full",
    ),
}

ROLE_NAMES = {
    "customer": "Customer",
    "admin": "Admin",
    "super_admin": "Super Admin",
    "csr": "Customer Service",
    "kitchen_staff": "Kitchen Staff",
    "shift_manager": "Shift Manager",
    "delivery": "Delivery",
    "sales_marketing": "Sales & Marketing",
}


def permission_level(role: str, category: str) -> str:
    """Get a role's permission level for a category ('none' when unknown)"""
    return ROLE_PERMISSIONS.get(role, {}).get(category, "none")


def has_permission(role: str, category: str, required_level: str = "view") -> bool:
    """Check if a role reaches the required level for a category"""
    if required_level not in LEVELS:
        raise ValueError(f"Unknown permission level: {required_level}")
    return LEVELS.index(permission_level(role, category)) >= LEVELS.index(required_level)


def can_access_admin(role: str) -> bool:
    return role in ROLE_PERMISSIONS and role != "customer"


def role_name(role: str) -> str:
    return ROLE_NAMES.get(role, role)


def staff_roles() -> List[str]:
    return [r for r in ROLES if r not in ("customer", "super_admin")]
