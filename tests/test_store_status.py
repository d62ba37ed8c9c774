from datetime import datetime, timezone

from wingside.services import store_status

# 2026-10-19 is a Monday; Lagos is UTC+1
MONDAY_0830_UTC = datetime(2026, 10, 19, 8, 30, tzinfo=timezone.utc)
MONDAY_1200_UTC = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def _settings(db, **values):
    for key, value in values.items():
        db.seed("site_settings", {"setting_key": key, "setting_value": value})


def test_seeds_accept_orders_when_missing(db):
    status = store_status.get_status(MONDAY_1200_UTC)
    assert status["accepting_orders"] is True
    assert db.one("site_settings", setting_key="accept_orders")["setting_value"] == "true"


def test_manual_switch(db):
    _settings(db, accept_orders="false")
    status = store_status.get_status(MONDAY_1200_UTC)
    assert status["accepting_orders"] is False
    assert status["manually_disabled"] is True
    assert status["message"] == "Orders are currently disabled"


def test_closed_outside_hours_with_countdown(db):
    _settings(db, accept_orders="true", auto_close_outside_hours="true", monday_open="11:00", monday_close="22:00")
    status = store_status.get_status(MONDAY_0830_UTC)
    assert status["accepting_orders"] is False
    assert status["countdown"] == {"hours": 1, "minutes": 30}
    assert status["message"] == "We're currently closed. We'll be back in 1 hour and 30 minutes."


def test_open_inside_hours(db):
    _settings(db, accept_orders="true", auto_close_outside_hours="true")
    accepting, message = store_status.accepting_orders(MONDAY_1200_UTC)
    assert accepting
    assert message == "Orders are currently being accepted"


def test_hours_ignored_without_auto_close(db):
    _settings(db, accept_orders="true", monday_open="11:00")
    assert store_status.get_status(MONDAY_0830_UTC)["accepting_orders"] is True


def test_defaults_open_when_settings_unreadable(db):
    db.fail_on.add(("site_settings", "select"))
    status = store_status.get_status(MONDAY_0830_UTC)
    assert status["accepting_orders"] is True


def test_time_until_open_wraps_to_tomorrow():
    late = datetime(2026, 10, 19, 23, 15)
    assert store_status.time_until_open("11:00", late) == {"hours": 11, "minutes": 45}
