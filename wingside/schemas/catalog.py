"""Pydantic schemas for menu and delivery areas"""

from typing import List, Optional

from pydantic import BaseModel, Field


class SizeOption(BaseModel):
    name: str = Field(..., min_length=1)
    price: float = Field(..., gt=0)


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    slug: str = Field(..., min_length=1, max_length=100, pattern=r"^[a-z0-9-]+$")
    sort_order: int = 0
    is_active: bool = True


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    slug: Optional[str] = Field(None, pattern=r"^[a-z0-9-]+$")
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None


class ProductIn(BaseModel):
    category_id: str
    name: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = None
    price: float = Field(..., gt=0)
    sizes: List[SizeOption] = []
    image_url: Optional[str] = None
    is_active: bool = True


class ProductUpdate(BaseModel):
    category_id: Optional[str] = None
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = None
    price: Optional[float] = Field(None, gt=0)
    sizes: Optional[List[SizeOption]] = None
    image_url: Optional[str] = None
    is_active: Optional[bool] = None


class DeliveryAreaIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    delivery_fee: float = Field(..., ge=0)
    is_active: bool = True


class DeliveryAreaUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    delivery_fee: Optional[float] = Field(None, ge=0)
    is_active: Optional[bool] = None
