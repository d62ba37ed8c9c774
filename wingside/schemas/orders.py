"""Pydantic schemas for orders"""

from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


class OrderItemIn(BaseModel):
    product_id: str
    size: Optional[str] = None
    flavors: List[str] = []
    addons: List[str] = []
    quantity: int = Field(1, ge=1, le=50)


class OrderCreate(BaseModel):
    customer_name: str = Field(..., min_length=2, max_length=100)
    customer_email: EmailStr
    customer_phone: str = Field(..., min_length=7, max_length=20)
    fulfillment: Literal["delivery", "pickup"] = "delivery"
    delivery_area_id: Optional[str] = None
    delivery_address_text: Optional[str] = Field(None, max_length=500)
    payment_method: str = "paystack"
    promo_code: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=1000)
    items: List[OrderItemIn] = Field(..., min_length=1)

    @field_validator("customer_email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.lower()


class StatusUpdate(BaseModel):
    status: str
    note: Optional[str] = Field(None, max_length=500)


class RefundRequest(BaseModel):
    amount: Optional[float] = Field(None, gt=0)
    reason: str = Field(..., min_length=3, max_length=500)
