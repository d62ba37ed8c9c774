"""Pydantic schemas for payment endpoints"""

from typing import Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field


class PaymentInitRequest(BaseModel):
    order_id: str
    email: Optional[EmailStr] = None


class PaymentVerifyRequest(BaseModel):
    reference: str = Field(..., min_length=1)


class NombaInitResponse(BaseModel):
    checkout_url: str
    order_reference: str


class NombaVerifyRequest(BaseModel):
    transactionRef: str = Field(..., min_length=1)


class ReconciliationResponse(BaseModel):
    outcome: str
    order_id: Optional[str] = None
    payment_status: Optional[str] = None
    side_effects: List[str] = []
    errors: List[str] = []


class WebhookAck(BaseModel):
    received: bool
    outcome: Optional[str] = None
    details: Optional[Dict] = None
