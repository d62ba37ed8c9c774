"""
Authentication API Endpoints
Current user info (login itself is handled by the frontend with Supabase Auth)
"""

from typing import Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from wingside.core.auth import optional_auth, require_auth, require_staff
from wingside.core.permissions import ROLE_PERMISSIONS, can_access_admin, role_name, staff_roles

router = APIRouter()


class UserResponse(BaseModel):
    """User information response model"""
    id: str
    email: Optional[str]
    full_name: Optional[str] = None
    phone: Optional[str] = None
    role: str
    role_name: str
    can_access_admin: bool
    permissions: Dict[str, str] = {}


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(current_user: dict = Depends(require_auth)):
    """
    Get current authenticated user information, role and permission matrix.

    **Requires authentication**
    """
    role = current_user["role"]
    return UserResponse(
        **current_user,
        role_name=role_name(role),
        can_access_admin=can_access_admin(role),
        permissions=ROLE_PERMISSIONS.get(role, {}),
    )


@router.get("/status")
async def auth_status(current_user: Optional[dict] = Depends(optional_auth)):
    """
    Whether the caller is signed in. Does NOT raise 401.
    """
    if not current_user:
        return {"authenticated": False}
    return {"authenticated": True, "email": current_user.get("email"), "role": current_user["role"]}


@router.get("/roles")
async def list_staff_roles(current_user: dict = Depends(require_staff)):
    """Staff roles and their permission matrix (for the role management screen)"""
    return [
        {"role": role, "name": role_name(role), "permissions": ROLE_PERMISSIONS[role]}
        for role in staff_roles()
    ]
