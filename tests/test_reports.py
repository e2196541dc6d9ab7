"""Owner sales reports."""

from datetime import date, datetime

import pytest

from app.core.errors import APIError
from app.services.sales import period_label, resolve_report_range


def _order(client, headers, menu, quantities):
    items = [{"menuId": menu[i]["id"], "quantity": q} for i, q in quantities.items()]
    response = client.post("/api/orders", json={"tableNumber": 1, "items": items}, headers=headers)
    assert response.status_code == 201
    return response.json()["data"]


def _accept(client, headers, order_id, new_status="accepted"):
    response = client.put(f"/api/orders/{order_id}/status", json={"status": new_status}, headers=headers)
    assert response.status_code == 200


def test_daily_report_counts_accepted_orders(client, owner_headers, menu):
    first = _order(client, owner_headers, menu, {0: 2})        # 50000
    second = _order(client, owner_headers, menu, {0: 1, 1: 3})  # 85000
    _order(client, owner_headers, menu, {1: 1})                 # stays pending
    cancelled = _order(client, owner_headers, menu, {1: 5})
    _accept(client, owner_headers, first["id"])
    _accept(client, owner_headers, second["id"], "completed")
    _accept(client, owner_headers, cancelled["id"], "cancelled")

    response = client.get("/api/owner/reports/sales", headers=owner_headers)

    assert response.status_code == 200
    report = response.json()["data"]
    summary = report["summary"]
    assert summary["period"] == "daily"
    assert summary["totalOrders"] == 2
    assert summary["totalRevenue"] == 135000
    assert summary["averageOrderValue"] == 67500

    assert len(report["periods"]) == 1
    assert report["periods"][0]["period"] == date.today().isoformat()
    assert report["periods"][0]["orderCount"] == 2

    top = report["topSellingItems"]
    assert sorted((t["name"], t["quantity"]) for t in top) == [("Mie Ayam", 3), ("Nasi Goreng", 3)]
    revenue = {t["name"]: t["totalRevenue"] for t in top}
    assert revenue == {"Nasi Goreng": 75000, "Mie Ayam": 60000}


def test_empty_report(client, owner_headers):
    report = client.get(
        "/api/owner/reports/sales",
        params={"period": "monthly", "start": "2020-02-10"},
        headers=owner_headers,
    ).json()["data"]

    assert report["summary"]["totalOrders"] == 0
    assert report["summary"]["averageOrderValue"] == 0
    assert report["summary"]["startDate"].startswith("2020-02-01")
    assert report["summary"]["endDate"].startswith("2020-02-29")
    assert report["periods"] == []
    assert report["topSellingItems"] == []


def test_custom_report_needs_both_dates(client, owner_headers):
    response = client.get(
        "/api/owner/reports/sales",
        params={"period": "custom", "start": "2024-01-01"},
        headers=owner_headers,
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Start and end dates are required for custom range"


def test_unknown_period(client, owner_headers):
    response = client.get("/api/owner/reports/sales", params={"period": "hourly"}, headers=owner_headers)
    assert response.status_code == 422


def test_reports_are_owner_only(client, staff_headers):
    assert client.get("/api/owner/reports/sales", headers=staff_headers).status_code == 403
    assert client.get("/api/owner/reports/daily-stats", headers=staff_headers).status_code == 403


def test_daily_stats_count_created_orders(client, owner_headers, menu, guest_order):
    _order(client, owner_headers, menu, {0: 1})

    stats = client.get("/api/owner/reports/daily-stats", headers=owner_headers).json()["data"]

    assert len(stats) == 1
    assert stats[0]["date"] == date.today().isoformat()
    assert stats[0]["totalOrders"] == 2
    assert stats[0]["totalRevenue"] == 0


def test_weekly_range_starts_on_monday():
    start, end = resolve_report_range("weekly", "2024-05-16")  # a Thursday

    assert start == datetime(2024, 5, 13)
    assert end.date() == date(2024, 5, 19)


def test_custom_range_is_inclusive():
    start, end = resolve_report_range("custom", "2024-01-01", "2024-01-31")

    assert start == datetime(2024, 1, 1)
    assert end.date() == date(2024, 1, 31)
    assert end.hour == 23


def test_unparseable_dates_fall_back_to_today():
    today = date(2024, 3, 5)
    start, end = resolve_report_range("daily", "not-a-date", today=today)

    assert start == datetime(2024, 3, 5)
    assert end.date() == today


def test_missing_custom_dates_raise():
    with pytest.raises(APIError):
        resolve_report_range("custom", None, "2024-01-31")


def test_period_labels():
    moment = datetime(2024, 12, 30, 12, 0)

    assert period_label(moment, "daily") == "2024-12-30"
    assert period_label(moment, "weekly") == "2025-01"
    assert period_label(moment, "monthly") == "2024-12"
