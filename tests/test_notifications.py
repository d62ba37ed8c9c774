import resend

from wingside.core.settings import settings
from wingside.services import notifications


def test_skips_when_not_configured(monkeypatch):
    calls = []
    monkeypatch.setattr(resend.Emails, "send", lambda params: calls.append(params))
    result = notifications.send_email("ada@example.com", "Hi", "<p>hi</p>")
    assert result == {"success": False, "error": "Email service not configured"}
    assert calls == []


def test_sends_through_resend(monkeypatch):
    monkeypatch.setattr(settings, "RESEND_API_KEY", "re_test")
    calls = []

    def fake_send(params):
        calls.append(params)
        return {"id": "email-123"}

    monkeypatch.setattr(resend.Emails, "send", fake_send)
    result = notifications.send_email("ada@example.com", "Hi", "<p>hi</p>")

    assert result == {"success": True, "id": "email-123"}
    assert calls[0]["to"] == ["ada@example.com"]
    assert calls[0]["from"] == settings.FROM_EMAIL
    assert calls[0]["reply_to"] == settings.ADMIN_EMAIL


def test_provider_errors_are_returned(monkeypatch):
    monkeypatch.setattr(settings, "RESEND_API_KEY", "re_test")

    def failing_send(params):
        raise RuntimeError("resend is down")

    monkeypatch.setattr(resend.Emails, "send", failing_send)
    assert notifications.send_email("ada@example.com", "Hi", "<p>hi</p>") == {"success": False, "error": "resend is down"}


def test_order_confirmation_escapes_and_links(sent_emails):
    order = {
        "order_number": "WS20261017000001",
        "customer_name": "<Ada>",
        "customer_email": "ada@example.com",
        "total": 6000,
        "tracking_token": "tok",
    }
    items = [{"quantity": 2, "product_name": "Classic Wings", "total_price": 5000}]
    notifications.send_order_confirmation(order, items)

    email = sent_emails[0]
    assert email["subject"] == "Order #WS20261017000001 confirmed"
    assert "&lt;Ada&gt;" in email["html"]
    assert "₦6,000.00" in email["html"]
    assert f"{settings.APP_URL}/track/tok" in email["html"]


def test_order_without_email_is_skipped(sent_emails):
    assert notifications.send_order_status_update({"order_number": "WS1"}, "ready")["success"] is False
    assert sent_emails == []
