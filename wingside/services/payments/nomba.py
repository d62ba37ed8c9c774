"""
Nomba checkout gateway
Responses carry `code`; "00" is success, anything else is a provider error
"""

import base64
import hashlib
import hmac
import logging
import time
from typing import Dict, Mapping, Optional, Tuple

import httpx

from wingside.core.clock import parse_ts
from wingside.core.errors import AppError, GatewayError
from wingside.core.settings import settings

logger = logging.getLogger(__name__)

SUCCESS_CODE = "00"
SIGNATURE_ALGORITHM = "HmacSHA256"
SIGNATURE_VERSION = "1.0.0"
# Refresh the token this many seconds before it expires
TOKEN_EXPIRY_MARGIN = 60


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None


def _timestamp_seconds(value: str) -> Optional[float]:
    try:
        number = float(value)
    except ValueError:
        parsed = parse_ts(value)
        return parsed.timestamp() if parsed else None
    # Millisecond timestamps
    return number / 1000 if number > 1e11 else number


def verify_signature(raw_body: bytes, headers: Mapping[str, str], secret: str, now: Optional[float] = None) -> Tuple[bool, str]:
    """
    Check a Nomba webhook signature.

    Returns (valid, reason). The signature is base64 HMAC-SHA256 of the raw body,
    and the timestamp header must be within WEBHOOK_TOLERANCE_SECONDS of now.
    """
    if not secret:
        return False, "webhook secret not configured"

    signature = _header(headers, "nomba-signature") or _header(headers, "nomba-sig-value")
    if not signature:
        return False, "missing signature"

    algorithm = _header(headers, "nomba-signature-algorithm")
    if algorithm and algorithm != SIGNATURE_ALGORITHM:
        return False, f"unsupported algorithm {algorithm}"

    version = _header(headers, "nomba-signature-version")
    if version and version != SIGNATURE_VERSION:
        return False, f"unsupported signature version {version}"

    timestamp = _header(headers, "nomba-timestamp")
    if not timestamp:
        return False, "missing timestamp"
    sent_at = _timestamp_seconds(timestamp)
    if sent_at is None:
        return False, "invalid timestamp"
    current = time.time() if now is None else now
    if abs(current - sent_at) > settings.WEBHOOK_TOLERANCE_SECONDS:
        return False, "timestamp outside tolerance"

    digest = hmac.new(secret.encode(), raw_body, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode()
    if not hmac.compare_digest(expected, signature.strip()):
        return False, "signature mismatch"
    return True, "ok"


class NombaClient:

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        account_id: Optional[str] = None,
        base_url: Optional[str] = None,
        transport=None,
    ):
        self.client_id = client_id if client_id is not None else settings.NOMBA_CLIENT_ID
        self.client_secret = client_secret if client_secret is not None else settings.NOMBA_CLIENT_SECRET
        self.account_id = account_id if account_id is not None else settings.NOMBA_ACCOUNT_ID
        self.base_url = (base_url or settings.NOMBA_BASE_URL).rstrip("/")
        self.transport = transport
        self._token: Optional[str] = None
        self._token_expires_at: float = 0

    def _check_configured(self):
        if not (self.client_id and self.client_secret and self.account_id):
            logger.error("❌ Nomba credentials not configured")
            raise AppError("Payment gateway not configured", 500)

    async def _post(self, path: str, payload: Dict, token: Optional[str] = None) -> Dict:
        headers = {"Content-Type": "application/json", "accountId": self.account_id}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=settings.HTTP_TIMEOUT_SECONDS) as client:
                response = await client.post(f"{self.base_url}{path}", json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"❌ Nomba request {path} failed: {e}")
            raise GatewayError("Payment provider unavailable")

        try:
            body = response.json()
        except ValueError:
            body = {}

        if body.get("code") != SUCCESS_CODE:
            logger.error(f"❌ Nomba {path} returned {response.status_code}: {body or response.text}")
            raise GatewayError(body.get("description") or "Payment provider rejected the request", details={"provider": "nomba"})
        return body.get("data") or {}

    async def access_token(self) -> str:
        self._check_configured()
        if self._token and time.time() < self._token_expires_at - TOKEN_EXPIRY_MARGIN:
            return self._token

        data = await self._post("/v1/auth/token/issue", {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        })
        token = data.get("access_token")
        if not token:
            raise GatewayError("Failed to authenticate with payment gateway")

        expires_at = parse_ts(data.get("expiresAt"))
        self._token = token
        self._token_expires_at = expires_at.timestamp() if expires_at else time.time() + 300
        return token

    async def create_checkout(self, order_reference: str, customer_id: str, email: str, amount, callback_url: str) -> Dict:
        token = await self.access_token()
        data = await self._post("/v1/checkout/order", {
            "order": {
                "orderReference": order_reference,
                "customerId": customer_id,
                "callbackUrl": callback_url,
                "customerEmail": email,
                "amount": f"{float(amount):.2f}",
                "currency": "NGN",
            },
            "tokenizeCard": False,
        }, token=token)

        if not data.get("checkoutLink"):
            raise GatewayError("Failed to initialize payment")
        logger.info(f"💳 Nomba checkout created for {order_reference}")
        return {"checkout_url": data["checkoutLink"], "order_reference": order_reference}

    async def verify_transaction(self, transaction_ref: str) -> Optional[Dict]:
        """First transaction result for the reference, or None when Nomba has none"""
        token = await self.access_token()
        data = await self._post("/v1/transactions/accounts", {"transactionRef": transaction_ref}, token=token)
        results = data.get("results") or []
        return results[0] if results else None


nomba_client = NombaClient()


def get_nomba() -> NombaClient:
    return nomba_client
