from datetime import timedelta

from conftest import bearer
from wingside.core.clock import iso, utcnow
from wingside.services import analytics_service


def _order(db, user_id=None, total=5000, status="confirmed", payment_status="paid", days_ago=0):
    return db.seed("orders", {
        "user_id": user_id,
        "customer_name": "Ada",
        "customer_email": "ada@example.com",
        "total": total,
        "status": status,
        "payment_status": payment_status,
        "created_at": iso(utcnow() - timedelta(days=days_ago)),
    })


def test_dashboard_stats(db, customer, menu):
    _order(db, total=5000)
    _order(db, total=3000, status="cancelled")
    _order(db, total=2000, status="pending", payment_status="pending")
    _order(db, total=4000, payment_status="refunded", days_ago=20)

    stats = analytics_service.dashboard_stats()
    assert stats["total_orders"] == 4
    assert stats["pending_orders"] == 1
    assert stats["total_revenue"] == 5000
    assert stats["recent_orders"] == 3
    assert stats["total_products"] == 3
    assert stats["total_customers"] == 1
    assert len(stats["recent_orders_data"]) == 4


def test_revenue_chart_is_zero_filled(db):
    _order(db, total=5000)
    _order(db, total=2500)
    _order(db, total=2000, days_ago=1)
    _order(db, total=9999, days_ago=10)

    chart = analytics_service.revenue_chart(3)
    assert len(chart) == 3
    assert chart[-1]["date"] == utcnow().strftime("%Y-%m-%d")
    assert (chart[-1]["revenue"], chart[-1]["orders"]) == (7500, 2)
    assert (chart[-2]["revenue"], chart[-2]["orders"]) == (2000, 1)
    assert (chart[0]["revenue"], chart[0]["orders"]) == (0, 0)


def test_customer_segments(db):
    vip = db.seed("profiles", {"role": "customer", "email": "vip@example.com", "created_at": iso(utcnow() - timedelta(days=200))})
    fresh = db.seed("profiles", {"role": "customer", "email": "new@example.com", "created_at": iso(utcnow() - timedelta(days=5))})
    regular = db.seed("profiles", {"role": "customer", "email": "reg@example.com", "created_at": iso(utcnow() - timedelta(days=400))})
    db.seed("profiles", {"role": "admin", "email": "staff@wingside.ng", "created_at": iso(utcnow())})

    _order(db, user_id=vip["id"], total=120000, days_ago=100)
    for _ in range(10):
        _order(db, user_id=regular["id"], total=1000, days_ago=70)
    _order(db, user_id=regular["id"], total=50000, status="cancelled", days_ago=1)

    result = analytics_service.customer_segments()
    by_email = {c["email"]: c for c in result["customers"]}

    assert result["total"] == 3
    assert set(by_email["vip@example.com"]["segments"]) == {"vip", "churned", "big-spender", "one-time"}
    assert by_email["new@example.com"]["segments"] == ["new"]
    assert by_email["new@example.com"]["last_order_date"] is None
    assert set(by_email["reg@example.com"]["segments"]) == {"regular", "at-risk"}
    assert by_email["reg@example.com"]["total_spent"] == 10000
    assert result["counts"]["emerging"] == 0
    assert result["counts"]["vip"] == 1
    assert fresh["id"] in {c["id"] for c in result["customers"]}


def test_analytics_endpoints_need_permission(client, db, customer, admin):
    assert client.get("/api/admin/dashboard/stats", headers=bearer("customer-token")).status_code == 403
    assert client.get("/api/admin/dashboard/stats", headers=bearer("admin-token")).status_code == 200

    charts = client.get("/api/admin/dashboard/charts", params={"days": 7}, headers=bearer("admin-token")).json()
    assert charts["days"] == 7
    assert len(charts["revenue"]) == 7

    assert client.get("/api/customers/segments", headers=bearer("admin-token")).status_code == 200


def test_customers_who_never_ordered_are_not_churned(db):
    dormant = db.seed("profiles", {"role": "customer", "email": "quiet@example.com", "created_at": iso(utcnow() - timedelta(days=120))})
    db.seed("profiles", {"role": "customer", "email": "older@example.com", "created_at": iso(utcnow() - timedelta(days=75))})
    _order(db, total=3000, days_ago=2)

    result = analytics_service.customer_segments()
    by_email = {c["email"]: c for c in result["customers"]}

    assert by_email["quiet@example.com"]["segments"] == ["emerging"]
    assert by_email["older@example.com"]["segments"] == ["emerging"]
    assert result["counts"]["churned"] == 0
    assert result["counts"]["at-risk"] == 0
    assert by_email["quiet@example.com"]["id"] == dormant["id"]
