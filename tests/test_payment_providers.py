import asyncio
import base64
import hashlib
import hmac

import httpx
import pytest

from conftest import PAYSTACK_SECRET, ProviderStub, paystack_signature
from wingside.core.errors import AppError, GatewayError
from wingside.services.payments import nomba, paystack

BODY = b'{"event":"charge.success"}'


def test_kobo_conversion():
    assert paystack.to_kobo(1234.56) == 123456
    assert paystack.from_kobo(123456) == 1234.56
    assert paystack.from_kobo(None) == 0


def test_paystack_signature():
    signature = paystack_signature(BODY)
    assert paystack.verify_signature(BODY, signature, PAYSTACK_SECRET)
    assert paystack.verify_signature(BODY, signature.upper(), PAYSTACK_SECRET)
    assert not paystack.verify_signature(BODY + b" ", signature, PAYSTACK_SECRET)
    assert not paystack.verify_signature(BODY, None, PAYSTACK_SECRET)
    assert not paystack.verify_signature(BODY, signature, "")


def test_paystack_initialize_sends_kobo(paystack_stub):
    result = asyncio.run(paystack_stub.client.initialize("ada@example.com", 4500.5, "REF1", metadata={"order_id": "o1"}))
    assert result["authorization_url"] == "https://checkout.paystack.com/abc"

    request = paystack_stub.requests[0]
    assert request["json"]["amount"] == 450050
    assert request["headers"]["authorization"] == f"Bearer {PAYSTACK_SECRET}"


def test_paystack_verify_adds_naira():
    stub = ProviderStub({"/transaction/verify/REF1": (200, {"status": True, "data": {"status": "success", "amount": 500000}})})
    client = paystack.PaystackClient(secret_key="sk", base_url="https://api.paystack.test", transport=httpx.MockTransport(stub))
    data = asyncio.run(client.verify("REF1"))
    assert data["amount_naira"] == 5000


def test_paystack_errors():
    stub = ProviderStub({"/transaction/verify": (400, {"status": False, "message": "Transaction reference not found"})})
    client = paystack.PaystackClient(secret_key="sk", base_url="https://api.paystack.test", transport=httpx.MockTransport(stub))
    with pytest.raises(GatewayError, match="Transaction reference not found"):
        asyncio.run(client.verify("missing"))

    unconfigured = paystack.PaystackClient(secret_key="", transport=httpx.MockTransport(stub))
    with pytest.raises(AppError) as excinfo:
        asyncio.run(unconfigured.verify("REF1"))
    assert excinfo.value.status_code == 500


def test_paystack_network_failure():
    def broken(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = paystack.PaystackClient(secret_key="sk", base_url="https://api.paystack.test", transport=httpx.MockTransport(broken))
    with pytest.raises(GatewayError):
        asyncio.run(client.refund("REF1"))


def _nomba_headers(body: bytes, secret: str, timestamp: str):
    signature = base64.b64encode(hmac.new(secret.encode(), body, hashlib.sha256).digest()).decode()
    return {
        "nomba-signature": signature,
        "nomba-signature-algorithm": "HmacSHA256",
        "nomba-signature-version": "1.0.0",
        "nomba-timestamp": timestamp,
    }


def test_nomba_signature():
    headers = _nomba_headers(BODY, "whsec", "1700000000")
    assert nomba.verify_signature(BODY, headers, "whsec", now=1700000100) == (True, "ok")
    assert nomba.verify_signature(BODY, headers, "whsec", now=1700001000) == (False, "timestamp outside tolerance")
    assert nomba.verify_signature(BODY, headers, "other", now=1700000100) == (False, "signature mismatch")
    assert nomba.verify_signature(BODY, {}, "whsec") == (False, "missing signature")
    assert nomba.verify_signature(BODY, headers, "") == (False, "webhook secret not configured")


def test_nomba_signature_accepts_millisecond_and_iso_timestamps():
    millis = _nomba_headers(BODY, "whsec", "1700000000000")
    assert nomba.verify_signature(BODY, millis, "whsec", now=1700000010)[0]
    iso_headers = _nomba_headers(BODY, "whsec", "2023-11-14T22:13:20Z")
    assert nomba.verify_signature(BODY, iso_headers, "whsec", now=1700000010)[0]


def test_nomba_token_is_cached(nomba_stub):
    async def run():
        await nomba_stub.client.create_checkout("WS-1", "cust", "ada@example.com", 5000, "https://wingside.ng/cb")
        await nomba_stub.client.create_checkout("WS-2", "cust", "ada@example.com", 5000, "https://wingside.ng/cb")

    asyncio.run(run())
    paths = [r["path"] for r in nomba_stub.requests]
    assert paths == ["/v1/auth/token/issue", "/v1/checkout/order", "/v1/checkout/order"]

    checkout = nomba_stub.requests[1]
    assert checkout["headers"]["authorization"] == "Bearer nomba-token"
    assert checkout["headers"]["accountid"] == "account"
    assert checkout["json"]["order"]["amount"] == "5000.00"


def test_nomba_error_code(nomba_stub):
    nomba_stub.routes["/v1/transactions/accounts"] = (200, {"code": "400", "description": "Bad reference"})
    with pytest.raises(GatewayError, match="Bad reference"):
        asyncio.run(nomba_stub.client.verify_transaction("bad"))


def test_nomba_verify_returns_first_result(nomba_stub):
    nomba_stub.routes["/v1/transactions/accounts"] = (200, {
        "code": "00",
        "data": {"results": [{"status": "SUCCESS", "amount": 5000, "orderReference": "WS-1"}]},
    })
    assert asyncio.run(nomba_stub.client.verify_transaction("tx-1"))["status"] == "SUCCESS"


def test_nomba_unconfigured():
    client = nomba.NombaClient(client_id="", client_secret="", account_id="")
    with pytest.raises(AppError):
        asyncio.run(client.access_token())
