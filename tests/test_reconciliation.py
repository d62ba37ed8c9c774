import pytest
from postgrest.exceptions import APIError

from conftest import make_order
from wingside.services import reconciliation
from wingside.services.orders_service import OrderService
from wingside.services.points_service import PointsService
from wingside.services.reconciliation import FAILURE, SUCCESS, PaymentEvent, amount_due, reconcile

REFERENCE = "WS20261017000001_1700000000000"


def _event(event_id="evt-1", kind=SUCCESS, amount=5000, **overrides):
    values = {
        "provider": "paystack",
        "event_id": event_id,
        "kind": kind,
        "reference": REFERENCE,
        "amount": amount,
        "event_type": "charge.success" if kind == SUCCESS else "charge.failed",
    }
    values.update(overrides)
    return PaymentEvent(**values)


def test_amount_due_subtracts_gift_card():
    assert amount_due({"total": 5000, "gift_card_amount": 2000}) == 3000
    assert amount_due({"total": 5000, "gift_card_amount": 6000}) == 0
    assert amount_due({"total": 5000, "gift_card_amount": None}) == 5000


def test_success_marks_order_paid_once(db, customer, sent_emails):
    order = make_order(db, user_id=customer["id"])

    result = reconcile(_event())
    assert result.outcome == "paid"
    assert result.errors == []
    assert {"purchase_points", "first_order_bonus", "history", "confirmation_email", "kitchen_broadcast"} <= set(result.side_effects)

    stored = db.one("orders", id=order["id"])
    assert stored["payment_status"] == "paid"
    assert stored["status"] == "confirmed"
    assert stored["paid_at"] is not None
    assert db.one("profiles", id=customer["id"])["total_points"] == 50 + 15
    history = db.one("order_status_history", order_id=order["id"])
    assert (history["from_status"], history["to_status"]) == ("pending", "confirmed")
    assert db.one("webhook_events", event_id="evt-1")["status"] == "paid"
    assert len(sent_emails) == 1

    assert reconcile(_event()).outcome == "duplicate"
    assert reconcile(_event("evt-2")).outcome == "already_paid"
    assert db.one("profiles", id=customer["id"])["total_points"] == 65
    assert len(sent_emails) == 1


def test_amount_mismatch_leaves_order_pending(db):
    order = make_order(db)
    assert reconcile(_event(amount=4000)).outcome == "amount_mismatch"
    assert db.one("orders", id=order["id"])["payment_status"] == "pending"


def test_gift_card_covers_part_of_total(db, sent_emails):
    order = make_order(db, gift_card_amount=2000, gift_card_id="card-1")
    assert reconcile(_event(amount=3000)).outcome == "paid"
    assert db.one("orders", id=order["id"])["payment_status"] == "paid"


def test_lookup_by_order_id(db, sent_emails):
    order = make_order(db, payment_reference=None)
    result = reconcile(_event(order_id=order["id"], reference="NEW_REF"))
    assert result.outcome == "paid"
    assert db.one("orders", id=order["id"])["payment_reference"] == "NEW_REF"


def test_failure_then_success(db, sent_emails):
    order = make_order(db)
    assert reconcile(_event("evt-fail", kind=FAILURE)).outcome == "failed"
    assert db.one("orders", id=order["id"])["payment_status"] == "failed"

    assert reconcile(_event("evt-ok")).outcome == "paid"
    assert db.one("orders", id=order["id"])["payment_status"] == "paid"


def test_failure_does_not_undo_payment(db, sent_emails):
    order = make_order(db, payment_status="paid", status="confirmed")
    assert reconcile(_event(kind=FAILURE)).outcome == "already_paid"
    assert db.one("orders", id=order["id"])["payment_status"] == "paid"


def test_payment_after_customer_cancel_only_records_payment(db, customer, sent_emails):
    order = make_order(db, user_id=customer["id"])
    OrderService.cancel_by_customer(order["id"], customer)
    emails_before = len(sent_emails)

    result = reconcile(_event())
    assert result.outcome == "paid_after_cancel"
    assert result.side_effects == ["history"]

    stored = db.one("orders", id=order["id"])
    assert stored["payment_status"] == "paid"
    assert stored["status"] == "cancelled"
    assert db.one("profiles", id=customer["id"])["total_points"] == 0
    assert db.rows("rewards") == []
    assert db.rows("reward_claims") == []
    assert len(sent_emails) == emails_before

    note = db.rows("order_status_history", order_id=order["id"])[-1]
    assert (note["from_status"], note["to_status"]) == ("cancelled", "cancelled")
    assert "refund required" in note["note"]

    assert reconcile(_event("evt-2")).outcome == "already_paid"


def test_cancel_landing_mid_reconcile(db, customer, sent_emails, monkeypatch):
    order = make_order(db, user_id=customer["id"])
    find = reconciliation._find_order

    def cancelled_meanwhile(event):
        found = find(event)
        db.one("orders", id=order["id"])["status"] = "cancelled"
        return found

    monkeypatch.setattr(reconciliation, "_find_order", cancelled_meanwhile)

    assert reconcile(_event()).outcome == "paid_after_cancel"
    stored = db.one("orders", id=order["id"])
    assert (stored["status"], stored["payment_status"]) == ("cancelled", "paid")
    assert db.rows("rewards") == []


def test_refund_reverses_first_order_bonus(db, customer, sent_emails):
    order = make_order(db, user_id=customer["id"])
    reconcile(_event())
    assert db.one("profiles", id=customer["id"])["total_points"] == 65
    assert db.one("reward_claims", user_id=customer["id"])["order_id"] == order["id"]

    assert PointsService.reverse_for_order(order["id"]) == 65
    assert db.one("profiles", id=customer["id"])["total_points"] == 0
    assert db.rows("reward_claims", user_id=customer["id"]) == []

    # The next paid order earns the bonus again
    make_order(db, order_number="WS20261017000002", payment_reference="REF-2", user_id=customer["id"])
    reconcile(_event("evt-2", reference="REF-2"))
    assert db.one("profiles", id=customer["id"])["total_points"] == 65


def test_unknown_reference(db):
    assert reconcile(_event(reference="NOPE")).outcome == "order_not_found"


def test_guest_order_gets_profile_and_points(db, sent_emails):
    order = make_order(db, customer_email="guest@example.com", customer_name="Guest")
    result = reconcile(_event())
    assert result.outcome == "paid"

    profile = db.one("profiles", email="guest@example.com")
    assert profile["total_points"] == 65
    assert db.one("orders", id=order["id"])["user_id"] == profile["id"]


def test_guest_order_reuses_existing_profile(db, customer, sent_emails):
    order = make_order(db)
    reconcile(_event())
    assert db.one("orders", id=order["id"])["user_id"] == customer["id"]
    assert len(db.rows("profiles", email="ada@example.com")) == 1


def test_promo_usage_counted_on_payment(db, sent_emails):
    promo = db.seed("promo_codes", {"code": "WINGS10", "used_count": 4, "is_active": True})
    make_order(db, promo_code_id=promo["id"])
    assert "promo_usage" in reconcile(_event()).side_effects
    assert db.one("promo_codes", id=promo["id"])["used_count"] == 5


def test_referral_reward_on_first_paid_order(db, sent_emails):
    referrer = db.add_user("referrer-token", email="ref@example.com")
    friend = db.add_user("friend-token", email="friend@example.com", referred_by=referrer["id"])
    order = make_order(db, user_id=friend["id"], customer_email="friend@example.com")

    reconcile(_event())
    reward = db.one("referral_rewards", referred_id=friend["id"])
    assert reward["referrer_id"] == referrer["id"]
    assert reward["order_id"] == order["id"]
    assert reward["status"] == "pending"

    make_order(
        db,
        order_number="WS20261017000002",
        payment_reference="REF-2",
        user_id=friend["id"],
        customer_email="friend@example.com",
    )
    reconcile(_event("evt-2", reference="REF-2"))
    assert len(db.rows("referral_rewards")) == 1


def test_side_effect_failure_does_not_block_payment(db, customer, sent_emails):
    order = make_order(db, user_id=customer["id"])
    db.fail_on.add(("rewards", "insert"))

    result = reconcile(_event())
    assert result.outcome == "paid"
    assert any(error.startswith("purchase_points") for error in result.errors)
    assert "confirmation_email" in result.side_effects
    assert db.one("orders", id=order["id"])["payment_status"] == "paid"


def test_core_failure_forgets_event_for_retry(db):
    make_order(db)
    db.fail_on.add(("orders", "select"))
    with pytest.raises(APIError):
        reconcile(_event())
    assert db.rows("webhook_events") == []

    db.fail_on.clear()
    assert reconcile(_event()).outcome == "paid"


def test_gift_card_purchase_activation(db, sent_emails):
    card = db.seed("gift_cards", {
        "code": "ABCD1234EFGH",
        "initial_balance": 15000,
        "current_balance": 0,
        "recipient_name": "Chi",
        "recipient_email": "chi@wingside.ng",
        "is_active": False,
        "activated_at": None,
        "expires_at": "2027-04-17T00:00:00+00:00",
    })
    metadata = {"type": "gift_card_purchase", "gift_card_id": card["id"]}

    short = reconcile(_event("evt-short", amount=10000, reference="GC_1", metadata=metadata))
    assert short.outcome == "amount_mismatch"

    result = reconcile(_event("evt-gc", amount=15000, reference="GC_1", metadata=metadata))
    assert result.outcome == "gift_card_activated"
    stored = db.one("gift_cards", id=card["id"])
    assert stored["is_active"] is True
    assert stored["current_balance"] == 15000
    assert sent_emails[0]["to"] == "chi@wingside.ng"

    assert reconcile(_event("evt-gc-2", amount=15000, reference="GC_1", metadata=metadata)).outcome == "already_paid"


def test_gift_card_purchase_failure(db):
    metadata = {"type": "gift_card_purchase", "gift_card_id": "card-1"}
    assert reconcile(_event(kind=FAILURE, metadata=metadata)).outcome == "failed"
