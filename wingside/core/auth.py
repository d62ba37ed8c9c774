"""
Authentication dependencies
Tokens are Supabase access tokens issued to the frontend; roles live in profiles.role
"""

import hmac
import logging
from typing import Optional

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from wingside.core.context import user_id_var
from wingside.core.errors import AppError, Forbidden, Unauthorized
from wingside.core.permissions import can_access_admin, has_permission
from wingside.core.settings import settings
from wingside.core.supabase import first_row, get_client

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def resolve_token(token: str) -> Optional[dict]:
    """
    Resolve a Supabase access token to the current user dict.

    Returns None when the token is missing, expired or unknown.
    """
    if not token:
        return None

    client = get_client()
    try:
        response = client.auth.get_user(token)
    except Exception as e:
        logger.warning(f"⚠️ Token verification failed: {e}")
        return None

    user = getattr(response, "user", None)
    if user is None:
        return None

    profile = first_row(
        client.table("profiles")
        .select("id, email, full_name, phone, role")
        .eq("id", user.id)
        .limit(1)
        .execute()
    ) or {}

    current_user = {
        "id": user.id,
        "email": profile.get("email") or getattr(user, "email", None),
        "full_name": profile.get("full_name"),
        "phone": profile.get("phone"),
        "role": profile.get("role") or "customer",
    }
    user_id_var.set(current_user["id"])
    return current_user


async def optional_auth(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[dict]:
    """Current user when a valid bearer token is sent, otherwise None"""
    if not credentials:
        return None
    return resolve_token(credentials.credentials)


async def require_auth(
    current_user: Optional[dict] = Depends(optional_auth),
) -> dict:
    """Current user; 401 when not authenticated"""
    if not current_user:
        raise Unauthorized()
    return current_user


async def require_staff(current_user: dict = Depends(require_auth)) -> dict:
    """Any role allowed into the admin area"""
    if not can_access_admin(current_user["role"]):
        raise Forbidden()
    return current_user


def require_permission(category: str, level: str = "view"):
    """
    Build a dependency that requires a permission level on an admin category.

    Usage:
        current_user: dict = Depends(require_permission("orders", "edit"))
    """
    async def dependency(current_user: dict = Depends(require_staff)) -> dict:
        if not has_permission(current_user["role"], category, level):
            raise Forbidden(f"No permission to {level} {category.replace('_', ' ')}")
        return current_user

    return dependency


async def verify_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    """
    Guard for scheduled job endpoints.

    With CRON_SECRET set the header must be `Bearer <secret>`. Without it the
    jobs run in development only.
    """
    secret = settings.CRON_SECRET
    if not secret:
        if settings.is_production:
            logger.error("❌ CRON_SECRET not configured in production")
            raise AppError("Server configuration error", 500)
        logger.warning("⚠️ CRON_SECRET not configured - allowing cron job for development")
        return

    expected = f"Bearer {secret}"
    if not authorization or not hmac.compare_digest(authorization, expected):
        logger.error("❌ Unauthorized cron request - invalid or missing secret")
        raise Unauthorized()
