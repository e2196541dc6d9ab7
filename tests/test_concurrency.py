"""Two database sessions working on the same rows.

Each session loads its copy before the other one writes, the way two
overlapping requests would.
"""

from sqlalchemy import select

from app.database import async_session_maker
from app.models import Payment, SalesStat
from app.services.reconciliation import mark_paid
from app.services.sales import date_key, record_created_order, record_paid_payment


def _today_stats(client, owner_headers):
    stats = client.get("/api/owner/reports/daily-stats", headers=owner_headers).json()["data"]
    assert len(stats) == 1
    return stats[0]


def test_payment_settled_by_two_sessions_is_counted_once(client, owner_headers, guest_order):
    payment = client.post("/api/payments/guest/manual", json={"orderId": guest_order["id"]})
    payment_id = payment.json()["data"]["payment"]["id"]

    async def settle_twice():
        async with async_session_maker() as first, async_session_maker() as second:
            mine = await first.get(Payment, payment_id)
            theirs = await second.get(Payment, payment_id)
            assert mine.paid_at is None and theirs.paid_at is None

            counted_first = await mark_paid(first, mine)
            await first.commit()
            counted_second = await mark_paid(second, theirs)
            await second.commit()

            assert theirs.paid_at is not None
            return counted_first, counted_second

    assert client.portal.call(settle_twice) == (True, False)

    stats = _today_stats(client, owner_headers)
    assert stats["totalPaidPayments"] == 1
    assert stats["totalRevenue"] == 70000


def test_order_counters_do_not_lose_increments(client, owner_headers, guest_order):
    async def count_in_two_sessions():
        async with async_session_maker() as first, async_session_maker() as second:
            for session in (first, second):
                result = await session.execute(select(SalesStat).where(SalesStat.date == date_key()))
                assert result.scalar_one().total_orders == 1

            await record_created_order(first)
            await first.commit()
            await record_created_order(second)
            await second.commit()

    client.portal.call(count_in_two_sessions)

    assert _today_stats(client, owner_headers)["totalOrders"] == 3


def test_first_counters_of_the_day_from_two_sessions(client, owner_headers):
    async def pay_in_two_sessions():
        async with async_session_maker() as first, async_session_maker() as second:
            await record_paid_payment(first, 25000)
            await first.commit()
            await record_paid_payment(second, 20000)
            await second.commit()

    client.portal.call(pay_in_two_sessions)

    stats = _today_stats(client, owner_headers)
    assert stats["totalPaidPayments"] == 2
    assert stats["totalRevenue"] == 45000
    assert stats["totalOrders"] == 0
