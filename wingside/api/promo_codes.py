"""
Promo Code API Endpoints
Public validation plus staff management
"""

from fastapi import APIRouter, Depends, Request

from wingside.core.auth import require_permission
from wingside.core.rate_limit import client_ip, enforce
from wingside.schemas.promo import PromoCodeIn, PromoCodeUpdate, PromoValidateRequest
from wingside.services.promo_service import PromoService

router = APIRouter()


@router.post("/validate")
async def validate_promo_code(payload: PromoValidateRequest, request: Request):
    """Check a code against the current basket total"""
    enforce(f"promo-validate:{client_ip(request)}", limit=20, window=60)
    return PromoService.validate(payload.code, payload.orderAmount)


@router.get("")
async def list_promo_codes(current_user: dict = Depends(require_permission("promo_codes", "view"))):
    return {"promo_codes": PromoService.list_codes()}


@router.post("", status_code=201)
async def create_promo_code(payload: PromoCodeIn, current_user: dict = Depends(require_permission("promo_codes", "edit"))):
    return {"promo_code": PromoService.create(payload.model_dump())}


@router.patch("/{promo_id}")
async def update_promo_code(
    promo_id: str,
    payload: PromoCodeUpdate,
    current_user: dict = Depends(require_permission("promo_codes", "edit")),
):
    return {"promo_code": PromoService.update(promo_id, payload.model_dump(exclude_unset=True))}


@router.delete("/{promo_id}")
async def delete_promo_code(promo_id: str, current_user: dict = Depends(require_permission("promo_codes", "full"))):
    PromoService.delete(promo_id)
    return {"success": True}
