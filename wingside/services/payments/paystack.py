"""
Paystack gateway
Amounts cross this boundary in Naira; Paystack itself works in kobo
"""

import hashlib
import hmac
import logging
from typing import Dict, Optional

import httpx

from wingside.core.errors import AppError, GatewayError
from wingside.core.settings import settings

logger = logging.getLogger(__name__)


def to_kobo(amount_naira) -> int:
    return int(round(float(amount_naira) * 100))


def from_kobo(amount_kobo) -> float:
    return round(int(amount_kobo or 0) / 100, 2)


def verify_signature(raw_body: bytes, signature: Optional[str], secret: str) -> bool:
    """HMAC-SHA512 hex digest of the raw request body, compared in constant time"""
    if not signature or not secret:
        return False
    expected = hmac.new(secret.encode(), raw_body, hashlib.sha512).hexdigest()
    return hmac.compare_digest(expected, signature.strip().lower())


class PaystackClient:

    def __init__(self, secret_key: Optional[str] = None, base_url: Optional[str] = None, transport=None):
        self.secret_key = secret_key if secret_key is not None else settings.PAYSTACK_SECRET_KEY
        self.base_url = (base_url or settings.PAYSTACK_BASE_URL).rstrip("/")
        self.transport = transport

    async def _request(self, method: str, path: str, json: Optional[Dict] = None) -> Dict:
        if not self.secret_key:
            logger.error("❌ PAYSTACK_SECRET_KEY not configured")
            raise AppError("Payment gateway not configured", 500)

        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=settings.HTTP_TIMEOUT_SECONDS) as client:
                response = await client.request(
                    method,
                    f"{self.base_url}{path}",
                    json=json,
                    headers={
                        "Authorization": f"Bearer {self.secret_key}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.HTTPError as e:
            logger.error(f"❌ Paystack request {path} failed: {e}")
            raise GatewayError("Payment provider unavailable")

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400 or not body.get("status"):
            logger.error(f"❌ Paystack {path} returned {response.status_code}: {body or response.text}")
            raise GatewayError(body.get("message") or "Payment provider rejected the request", details={"provider": "paystack"})
        return body.get("data") or {}

    async def initialize(
        self,
        email: str,
        amount_naira,
        reference: str,
        callback_url: Optional[str] = None,
        metadata: Optional[Dict] = None,
    ) -> Dict:
        payload = {
            "email": email,
            "amount": to_kobo(amount_naira),
            "reference": reference,
            "metadata": metadata or {},
        }
        if callback_url:
            payload["callback_url"] = callback_url

        logger.info(f"💳 Initializing Paystack payment {reference}: {payload['amount']} kobo")
        data = await self._request("POST", "/transaction/initialize", payload)
        return {
            "authorization_url": data.get("authorization_url"),
            "access_code": data.get("access_code"),
            "reference": data.get("reference") or reference,
        }

    async def verify(self, reference: str) -> Dict:
        """Transaction data for a reference; `amount_naira` is added for convenience"""
        data = await self._request("GET", f"/transaction/verify/{reference}")
        data["amount_naira"] = from_kobo(data.get("amount"))
        return data

    async def refund(self, reference: str, amount_naira=None) -> Dict:
        payload = {"transaction": reference}
        if amount_naira is not None:
            payload["amount"] = to_kobo(amount_naira)
        data = await self._request("POST", "/refund", payload)
        logger.info(f"↩️ Paystack refund queued for {reference}")
        return data


def get_paystack() -> PaystackClient:
    """FastAPI dependency; tests override it with a client on a mock transport"""
    return PaystackClient()
