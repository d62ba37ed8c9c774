"""
Catalog API Endpoints
Public menu and delivery areas; staff CRUD gated by the matching permission
"""

from typing import Optional, Type

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from wingside.core.auth import require_permission
from wingside.schemas.catalog import (
    CategoryIn,
    CategoryUpdate,
    DeliveryAreaIn,
    DeliveryAreaUpdate,
    ProductIn,
    ProductUpdate,
)
from wingside.services.catalog_service import CatalogService

router = APIRouter()


@router.get("/products")
async def list_products(category_id: Optional[str] = Query(None)):
    return {"products": CatalogService.list_active("products", category_id)}


@router.get("/categories")
async def list_categories():
    return {"categories": CatalogService.list_active("categories")}


@router.get("/delivery-areas")
async def list_delivery_areas():
    return {"delivery_areas": CatalogService.list_active("delivery_areas")}


def _register_crud(path: str, table: str, create_schema: Type[BaseModel], update_schema: Type[BaseModel]):
    """Staff create/update/delete routes for one catalog table (permission category == table)"""

    @router.post(path, status_code=201, name=f"create_{table}")
    async def create_item(payload: create_schema, current_user: dict = Depends(require_permission(table, "edit"))):
        return CatalogService.create(table, payload.model_dump())

    @router.patch(f"{path}/{{item_id}}", name=f"update_{table}")
    async def update_item(
        item_id: str,
        payload: update_schema,
        current_user: dict = Depends(require_permission(table, "edit")),
    ):
        return CatalogService.update(table, item_id, payload.model_dump(exclude_unset=True))

    @router.delete(f"{path}/{{item_id}}", name=f"delete_{table}")
    async def delete_item(item_id: str, current_user: dict = Depends(require_permission(table, "full"))):
        CatalogService.delete(table, item_id)
        return {"success": True}


_register_crud("/products", "products", ProductIn, ProductUpdate)
_register_crud("/categories", "categories", CategoryIn, CategoryUpdate)
_register_crud("/delivery-areas", "delivery_areas", DeliveryAreaIn, DeliveryAreaUpdate)
