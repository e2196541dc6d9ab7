"""Excel payments ledger."""

import pytest
from filelock import FileLock, Timeout

from app.services.excel_manager import LEDGER_FILE, LEDGER_LOCK, ExcelManager
from app.tasks import export_payment_to_ledger


def _row(payment_id, amount=70000):
    return {
        "payment_id": payment_id,
        "order_id": 10,
        "paid_at": "2024-05-01T12:00:00",
        "table_number": 4,
        "customer_name": "Budi",
        "order_source": "guest",
        "items": "2x Nasi Goreng",
        "order_total": 70000,
        "amount": amount,
        "payment_method": "manual",
        "provider": None,
        "provider_ref": None,
        "provider_status": None,
    }


def test_export_creates_ledger():
    result = ExcelManager.export_payment(_row(1))

    assert result["success"] is True
    assert result["exported_at"] is not None
    assert LEDGER_FILE.exists()

    rows = ExcelManager.get_all_payments()
    assert len(rows) == 1
    assert rows[0]["customer_name"] == "Budi"
    assert list(rows[0].keys()) == ExcelManager.LEDGER_COLUMNS


def test_same_payment_is_written_once():
    ExcelManager.export_payment(_row(1))
    ExcelManager.export_payment(_row(2, amount=30000))
    again = ExcelManager.export_payment(_row(1))

    assert again["success"] is True
    assert "already in ledger" in again["message"]
    assert sorted(r["payment_id"] for r in ExcelManager.get_all_payments()) == [1, 2]


def test_clear_all():
    ExcelManager.export_payment(_row(1))

    assert ExcelManager.clear_all() is True
    assert ExcelManager.get_all_payments() == []


def test_task_runs_eagerly():
    result = export_payment_to_ledger.delay(_row(7)).get()

    assert result["success"] is True
    assert "processing_time_seconds" in result
    assert [r["payment_id"] for r in ExcelManager.get_all_payments()] == [7]


@pytest.fixture
def held_ledger_lock(monkeypatch):
    monkeypatch.setattr(ExcelManager, "LOCK_TIMEOUT", 0.1)
    ExcelManager._ensure_data_dir()
    with FileLock(str(LEDGER_LOCK)):
        yield


def test_export_raises_while_ledger_is_locked(held_ledger_lock):
    with pytest.raises(Timeout):
        ExcelManager.export_payment(_row(3))

    assert ExcelManager.get_all_payments() == []


def test_task_retries_while_ledger_is_locked(held_ledger_lock, monkeypatch):
    attempts = []
    export = ExcelManager.export_payment

    def counting_export(payment_data):
        attempts.append(payment_data["payment_id"])
        return export(payment_data)

    monkeypatch.setattr(ExcelManager, "export_payment", counting_export)

    result = export_payment_to_ledger.apply(args=(_row(3),))

    assert result.state in ("RETRY", "FAILURE")
    assert len(attempts) > 1
    assert ExcelManager.get_all_payments() == []
