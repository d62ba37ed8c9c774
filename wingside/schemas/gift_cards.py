"""Pydantic schemas for gift cards"""

from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class GiftCardPurchaseRequest(BaseModel):
    denomination: int
    design_image: str
    recipient_name: str
    recipient_email: str


class GiftCardValidateRequest(BaseModel):
    code: str = Field(..., min_length=1)


class GiftCardRedeemRequest(BaseModel):
    code: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0)
    order_id: str


class GiftCardAdminCreate(BaseModel):
    initialBalance: float = Field(..., gt=0, le=1_000_000)
    recipientEmail: Optional[EmailStr] = None
    recipientName: Optional[str] = Field(None, max_length=100)
    message: Optional[str] = Field(None, max_length=500)
    expiryMonths: int = Field(12, ge=1, le=60)


class GiftCardAdminUpdate(BaseModel):
    is_active: Optional[bool] = None
    balance_adjustment: Optional[float] = None
    adjustment_reason: Optional[str] = Field(None, max_length=500)
