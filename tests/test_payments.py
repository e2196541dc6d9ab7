"""Staff payments, guest payments and the guards in front of them."""

import time
import uuid

from app.services.excel_manager import ExcelManager


def _pay(client, headers, order_id, amount, method="cash", **extra_headers):
    return client.post(
        "/api/payments",
        json={"orderId": order_id, "amount": amount, "paymentMethod": method},
        headers={**headers, **extra_headers},
    )


def test_cash_payment_is_pending(client, staff_headers, guest_order):
    response = _pay(client, staff_headers, guest_order["id"], 70000)

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["orderId"] == guest_order["id"]
    assert data["amount"] == 70000
    assert data["status"] == "pending"
    assert data["midtrans"] is None


def test_process_alias(client, staff_headers, guest_order):
    response = client.post(
        "/api/payments/process",
        json={"orderId": guest_order["id"], "amount": 70000},
        headers=staff_headers,
    )
    assert response.status_code == 201


def test_qris_payment_creates_snap_transaction(client, staff_headers, guest_order):
    response = _pay(client, staff_headers, guest_order["id"], 70000, method="qris")

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["status"] == "processing"
    assert data["midtrans"]["token"].startswith("mock-snap-")
    assert data["midtrans"]["orderId"].startswith(f"order-{guest_order['id']}-")

    payment = client.get(f"/api/payments/{data['paymentId']}", headers=staff_headers).json()["data"]
    assert payment["provider"] == "midtrans"
    assert payment["providerRef"] == data["midtrans"]["orderId"]


def test_payment_requires_staff(client, guest_order):
    response = client.post("/api/payments", json={"orderId": guest_order["id"], "amount": 70000})
    assert response.status_code == 401


def test_payment_for_unknown_order(client, staff_headers, menu):
    response = _pay(client, staff_headers, 9999, 1000)

    assert response.status_code == 404
    assert response.json()["message"] == "Order not found"


def test_amount_within_tolerance_is_accepted(client, staff_headers, guest_order):
    # 10% of 70000
    assert _pay(client, staff_headers, guest_order["id"], 63000).status_code == 201
    assert _pay(client, staff_headers, guest_order["id"], 77000).status_code == 201


def test_amount_mismatch_is_rejected(client, staff_headers, guest_order):
    response = _pay(client, staff_headers, guest_order["id"], 50000)

    assert response.status_code == 400
    assert response.json()["message"] == "Payment amount does not match order total"

    payments = client.get("/api/payments", headers=staff_headers).json()["data"]
    assert payments["totalItems"] == 0


def test_idempotency_key_replays_response(client, staff_headers, guest_order):
    key = str(uuid.uuid4())

    first = _pay(client, staff_headers, guest_order["id"], 70000, **{"Idempotency-Key": key})
    second = _pay(client, staff_headers, guest_order["id"], 70000, **{"Idempotency-Key": key})

    assert first.status_code == 201
    assert second.json() == first.json()

    payments = client.get("/api/payments", headers=staff_headers).json()["data"]
    assert payments["totalItems"] == 1


def test_replayed_nonce_is_rejected(client, staff_headers, guest_order):
    headers = {"X-Nonce": "abc123", "X-Timestamp": str(int(time.time() * 1000))}

    first = _pay(client, staff_headers, guest_order["id"], 70000, **headers)
    second = _pay(client, staff_headers, guest_order["id"], 70000, **headers)

    assert first.status_code == 201
    assert second.status_code == 400
    assert second.json()["message"] == "Duplicate request detected"


def test_stale_timestamp_is_rejected(client, staff_headers, guest_order):
    stale = str(int((time.time() - 6 * 60) * 1000))

    response = _pay(client, staff_headers, guest_order["id"], 70000, **{"X-Nonce": "n1", "X-Timestamp": stale})

    assert response.status_code == 400
    assert response.json()["message"] == "Request expired"


def test_payment_rate_limit(client, staff_headers, guest_order):
    statuses = [_pay(client, staff_headers, guest_order["id"], 70000).status_code for _ in range(11)]

    assert statuses[:10] == [201] * 10
    assert statuses[10] == 429

    response = _pay(client, staff_headers, guest_order["id"], 70000)
    assert response.json()["message"] == "Too many payment attempts, please try again later."
    assert "retry-after" in response.headers

    # Other endpoints are still reachable
    assert client.get("/api/payments", headers=staff_headers).status_code == 200


def test_list_payments_is_paged(client, staff_headers, guest_order):
    for _ in range(3):
        _pay(client, staff_headers, guest_order["id"], 70000)

    data = client.get("/api/payments", params={"limit": 2}, headers=staff_headers).json()["data"]
    assert data["totalItems"] == 3
    assert data["totalPages"] == 2
    assert data["currentPage"] == 1
    assert len(data["payments"]) == 2

    data = client.get("/api/payments", params={"limit": 2, "page": 2}, headers=staff_headers).json()["data"]
    assert len(data["payments"]) == 1


def test_staff_marks_payment_paid(client, staff_headers, owner_headers, guest_order):
    payment_id = _pay(client, staff_headers, guest_order["id"], 70000).json()["data"]["paymentId"]

    response = client.put(
        f"/api/payments/{payment_id}/status",
        json={"status": "paid"},
        headers=staff_headers,
    )

    assert response.status_code == 200
    payment = response.json()["data"]
    assert payment["status"] == "paid"
    assert payment["paidAt"] is not None

    order = client.get(f"/api/orders/{guest_order['id']}", headers=staff_headers).json()["data"]
    assert order["status"] == "completed"

    ledger = ExcelManager.get_all_payments()
    assert [row["payment_id"] for row in ledger] == [payment_id]
    assert ledger[0]["amount"] == 70000
    assert ledger[0]["table_number"] == 5

    # Marking it paid again does not count it twice
    client.put(f"/api/payments/{payment_id}/status", json={"status": "paid"}, headers=staff_headers)
    assert len(ExcelManager.get_all_payments()) == 1

    stats = client.get("/api/owner/reports/daily-stats", headers=owner_headers).json()["data"]
    assert stats[-1]["totalRevenue"] == 70000
    assert stats[-1]["totalPaidPayments"] == 1
    assert stats[-1]["totalOrders"] == 1


def test_invalid_status_override(client, staff_headers, guest_order):
    payment_id = _pay(client, staff_headers, guest_order["id"], 70000).json()["data"]["paymentId"]

    response = client.put(
        f"/api/payments/{payment_id}/status",
        json={"status": "refunded"},
        headers=staff_headers,
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid payment status"


def test_guest_manual_payment_is_reused(client, guest_order):
    first = client.post("/api/payments/guest/manual", json={"orderId": guest_order["id"]})
    second = client.post("/api/payments/guest/manual", json={"orderId": guest_order["id"]})

    assert first.status_code == second.status_code == 200
    payment = first.json()["data"]["payment"]
    assert payment["status"] == "pending"
    assert payment["paymentMethod"] == "manual"
    assert payment["amount"] == 70000
    assert second.json()["data"]["payment"]["id"] == payment["id"]


def test_staff_confirms_manual_payment(client, staff_headers, guest_order):
    client.post("/api/payments/guest/manual", json={"orderId": guest_order["id"]})
    url = f"/api/staff/payments/manual/{guest_order['id']}/confirm"

    response = client.post(url, headers=staff_headers)

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "paid"
    order = client.get(f"/api/orders/guest/{guest_order['id']}").json()["data"]
    assert order["status"] == "completed"
    assert len(ExcelManager.get_all_payments()) == 1

    response = client.post(url, headers=staff_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Payment already processed"


def test_confirm_without_manual_payment(client, staff_headers, guest_order):
    response = client.post(f"/api/staff/payments/manual/{guest_order['id']}/confirm", headers=staff_headers)

    assert response.status_code == 404
    assert response.json()["message"] == "Manual payment not found"


def test_guest_digital_payment(client, guest_order):
    response = client.post(
        "/api/payments/guest/pay",
        json={"orderId": guest_order["id"], "customer": {"first_name": "Budi", "phone": "08123"}},
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["payment"]["status"] == "pending"
    assert data["payment"]["paymentMethod"] == "midtrans_qris"
    assert data["payment"]["providerRef"] == data["midtrans"]["orderId"]
    assert data["midtrans"]["redirectUrl"].startswith("https://app.sandbox.midtrans.com/")


def test_guest_digital_payment_unknown_order(client, menu):
    response = client.post("/api/payments/guest/pay", json={"orderId": 9999})
    assert response.status_code == 404
