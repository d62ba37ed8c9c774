import hashlib
import hmac
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from fakes import FakeSupabase
from wingside.core import supabase as supabase_module
from wingside.core.clock import iso, utcnow
from wingside.core.rate_limit import limiter
from wingside.core.settings import settings
from wingside.main import app
from wingside.services import notifications
from wingside.services.payments.nomba import NombaClient, get_nomba
from wingside.services.payments.paystack import PaystackClient, get_paystack

PAYSTACK_SECRET = "sk_test_wingside"


@pytest.fixture(autouse=True)
def db(monkeypatch):
    fake = FakeSupabase()
    supabase_module.set_client(fake)
    limiter.clear()

    monkeypatch.setattr(settings, "PAYSTACK_SECRET_KEY", PAYSTACK_SECRET)
    monkeypatch.setattr(settings, "NOMBA_WEBHOOK_SECRET", "")
    monkeypatch.setattr(settings, "CRON_SECRET", "cron-secret")
    monkeypatch.setattr(settings, "RESEND_API_KEY", "")
    monkeypatch.setattr(settings, "ENVIRONMENT", "test")

    yield fake

    supabase_module.set_client(None)
    app.dependency_overrides.clear()


@pytest.fixture
def sent_emails(monkeypatch):
    """Capture outgoing email instead of calling Resend"""
    sent = []

    def fake_send(to, subject, html_body, reply_to=None):
        sent.append({"to": to, "subject": subject, "html": html_body})
        return {"success": True, "id": f"email-{len(sent)}"}

    monkeypatch.setattr(notifications, "send_email", fake_send)
    return sent


@pytest.fixture
def client():
    return TestClient(app)


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def customer(db):
    return db.add_user("customer-token", role="customer", full_name="Ada Obi", email="ada@example.com")


@pytest.fixture
def admin(db):
    return db.add_user("admin-token", role="admin", full_name="Admin", email="admin@wingside.ng")


@pytest.fixture
def menu(db):
    """One category, two products and a delivery area"""
    category = db.seed("categories", {"name": "Wings", "slug": "wings", "is_active": True, "sort_order": 1})
    wings = db.seed("products", {
        "category_id": category["id"],
        "name": "Classic Wings",
        "price": 2500,
        "sizes": [{"name": "6 pcs", "price": 2500}, {"name": "12 pcs", "price": 4800}],
        "is_active": True,
    })
    fries = db.seed("products", {"category_id": category["id"], "name": "Fries", "price": 1200, "sizes": [], "is_active": True})
    retired = db.seed("products", {"category_id": category["id"], "name": "Old Combo", "price": 3000, "sizes": [], "is_active": False})
    area = db.seed("delivery_areas", {"name": "Lekki", "delivery_fee": 1500, "is_active": True})
    return {"category": category, "wings": wings, "fries": fries, "retired": retired, "area": area}


def make_order(db, **overrides):
    now = iso(utcnow())
    order = {
        "order_number": "WS20261017000001",
        "user_id": None,
        "customer_name": "Ada Obi",
        "customer_email": "ada@example.com",
        "customer_phone": "08030000000",
        "fulfillment": "pickup",
        "status": "pending",
        "payment_status": "pending",
        "payment_reference": "WS20261017000001_1700000000000",
        "payment_gateway": "paystack",
        "subtotal": 5000,
        "delivery_fee": 0,
        "tax": 0,
        "discount_amount": 0,
        "promo_code_id": None,
        "gift_card_id": None,
        "gift_card_amount": 0,
        "total": 5000,
        "tracking_token": "t" * 43,
        "created_at": now,
        "updated_at": now,
    }
    order.update(overrides)
    return db.seed("orders", order)


def paystack_signature(raw_body: bytes, secret: str = PAYSTACK_SECRET) -> str:
    return hmac.new(secret.encode(), raw_body, hashlib.sha512).hexdigest()


def paystack_event(event, reference, amount_kobo, metadata=None, transaction_id=1001):
    return json.dumps({
        "event": event,
        "data": {
            "id": transaction_id,
            "reference": reference,
            "amount": amount_kobo,
            "status": "success" if event == "charge.success" else "failed",
            "metadata": metadata or {},
        },
    }).encode()


class ProviderStub:
    """Records requests and answers from a path -> (status, json) table"""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        self.requests.append({"method": request.method, "path": request.url.path, "json": body, "headers": request.headers})
        for prefix, (status, payload) in self.routes.items():
            if request.url.path.startswith(prefix):
                return httpx.Response(status, json=payload)
        return httpx.Response(404, json={"status": False, "message": "not found"})


@pytest.fixture
def paystack_stub():
    """Paystack API on an httpx.MockTransport, wired into the app"""
    stub = ProviderStub({
        "/transaction/initialize": (200, {
            "status": True,
            "message": "Authorization URL created",
            "data": {"authorization_url": "https://checkout.paystack.com/abc", "access_code": "abc"},
        }),
        "/refund": (200, {"status": True, "message": "Refund has been queued for processing", "data": {"status": "pending"}}),
    })
    stub.client = PaystackClient(secret_key=PAYSTACK_SECRET, base_url="https://api.paystack.test", transport=httpx.MockTransport(stub))
    app.dependency_overrides[get_paystack] = lambda: stub.client
    return stub


@pytest.fixture
def nomba_stub():
    stub = ProviderStub({
        "/v1/auth/token/issue": (200, {
            "code": "00",
            "description": "Success",
            "data": {"access_token": "nomba-token", "expiresAt": "2099-01-01T00:00:00Z"},
        }),
        "/v1/checkout/order": (200, {
            "code": "00",
            "description": "Success",
            "data": {"checkoutLink": "https://checkout.nomba.com/pay/xyz", "orderReference": "ignored"},
        }),
    })
    stub.client = NombaClient(
        client_id="client",
        client_secret="secret",
        account_id="account",
        base_url="https://api.nomba.test",
        transport=httpx.MockTransport(stub),
    )
    app.dependency_overrides[get_nomba] = lambda: stub.client
    return stub
