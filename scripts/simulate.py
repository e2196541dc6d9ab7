"""
Rush Hour Simulation Script

Simulates a busy service: many tables ordering from the QR menu at once,
paying at the cashier or through Midtrans, with Midtrans notifications
arriving for the digital payments.
Run from project root: python scripts/simulate.py

The API must run in development mode so the mock gateway signs with the
mock server key (or pass --server-key).
"""

import argparse
import asyncio
import os
import random
import sys
import time
from datetime import datetime
from typing import Any

import httpx
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.services.payment.base import compute_signature

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = "http://localhost:5000"
TOTAL_ORDERS = 50
MOCK_SERVER_KEY = "SB-Mid-server-mock"

CUSTOMER_NAMES = ["Budi", "Siti", "Agus", "Dewi", "Rina", "Andi", "Putri", "Joko", "Wati", "Eko"]
TABLES = list(range(1, 21))


def generate_guest_order_payload(menu_ids: list[int]) -> dict[str, Any]:
    """Random QR menu order for a random table."""
    picked = random.sample(menu_ids, k=min(len(menu_ids), random.randint(1, 4)))
    return {
        "tableNumber": random.choice(TABLES),
        "customerName": random.choice(CUSTOMER_NAMES),
        "items": [{"menuId": menu_id, "quantity": random.randint(1, 3)} for menu_id in picked],
    }


async def fetch_menu_ids(client: httpx.AsyncClient) -> list[int]:
    response = await client.get(f"{API_BASE_URL}/api/menu", timeout=10.0)
    response.raise_for_status()
    items = response.json()["data"]["items"]
    return [item["id"] for item in items if item.get("isAvailable")]


# =============================================================================
# GUEST FLOWS
# =============================================================================

async def send_settlement(
    client: httpx.AsyncClient,
    order_ref: str,
    gross_amount: str,
    server_key: str,
) -> httpx.Response:
    """POST a signed settlement notification the way Midtrans would."""
    status_code = "200"
    payload = {
        "order_id": order_ref,
        "status_code": status_code,
        "gross_amount": gross_amount,
        "signature_key": compute_signature(order_ref, status_code, gross_amount, server_key),
        "transaction_status": "settlement",
        "fraud_status": "accept",
        "payment_type": "qris",
        "transaction_id": f"sim-{random.randint(100000, 999999)}",
    }
    return await client.post(f"{API_BASE_URL}/api/payments/midtrans-webhook", json=payload, timeout=30.0)


async def run_guest_flow(
    client: httpx.AsyncClient,
    order_num: int,
    menu_ids: list[int],
    mode: str,
    server_key: str,
) -> dict[str, Any]:
    """Place a guest order, then pay it at the cashier or through Midtrans."""
    start_time = time.time()
    result: dict[str, Any] = {"order_num": order_num, "mode": mode, "success": False}

    try:
        response = await client.post(
            f"{API_BASE_URL}/api/orders/guest",
            json=generate_guest_order_payload(menu_ids),
            timeout=30.0,
        )
        if response.status_code != 201:
            result["error"] = f"order HTTP {response.status_code}: {response.text[:100]}"
            return result

        order = response.json()["data"]
        result["order_id"] = order["id"]
        result["total"] = order["totalAmount"]

        if mode == "manual":
            response = await client.post(
                f"{API_BASE_URL}/api/payments/guest/manual",
                json={"orderId": order["id"]},
                timeout=30.0,
            )
            if response.status_code not in (200, 201):
                result["error"] = f"manual HTTP {response.status_code}: {response.text[:100]}"
                return result
        else:
            response = await client.post(
                f"{API_BASE_URL}/api/payments/guest/pay",
                json={"orderId": order["id"]},
                timeout=30.0,
            )
            if response.status_code != 200:
                result["error"] = f"pay HTTP {response.status_code}: {response.text[:100]}"
                return result

            data = response.json()["data"]
            order_ref = data["midtrans"]["orderId"]
            gross_amount = str(int(round(data["payment"]["amount"])))

            # Midtrans retries notifications, so the settlement is delivered twice
            for _ in range(2):
                response = await send_settlement(client, order_ref, gross_amount, server_key)
                if response.status_code != 200:
                    result["error"] = f"webhook HTTP {response.status_code}: {response.text[:100]}"
                    return result

        result["success"] = True
        return result

    except httpx.TimeoutException:
        result["error"] = "Timeout"
        return result
    except httpx.HTTPError as e:
        result["error"] = str(e)
        return result
    finally:
        result["time"] = round(time.time() - start_time, 3)


# =============================================================================
# MAIN SIMULATION
# =============================================================================

async def run_simulation(num_orders: int, mode: str, server_key: str) -> dict:
    """
    Run the rush hour simulation.

    Args:
        num_orders: Number of guest orders to place
        mode: "manual", "digital", or "both"
        server_key: Key used to sign the simulated notifications
    """
    print("=" * 70)
    print("RUSH HOUR SIMULATION - CONCURRENT GUEST ORDERS")
    print("=" * 70)
    print(f"Total Orders: {num_orders}")
    print(f"Target: {API_BASE_URL}")
    print(f"Mode: {mode}")
    print(f"Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()

    async with httpx.AsyncClient() as client:
        menu_ids = await fetch_menu_ids(client)
        if not menu_ids:
            print("\nNo available menu items. Create some with the owner account first.")
            return {"total": num_orders, "successful": 0, "failed": num_orders, "results": []}

        tasks = []
        for i in range(num_orders):
            if mode == "both":
                flow = "manual" if i % 2 == 0 else "digital"
            else:
                flow = mode
            tasks.append(run_guest_flow(client, i + 1, menu_ids, flow, server_key))

        print(f"\nFiring {num_orders} guest orders...\n")
        results = await asyncio.gather(*tasks)

    total_time = round(time.time() - start_time, 2)

    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]

    print("\n" + "=" * 70)
    print("SIMULATION RESULTS")
    print("=" * 70)

    print(f"\nSuccessful Flows: {len(successful)}/{num_orders}")
    print(f"Failed Flows: {len(failed)}/{num_orders}")
    print(f"Total Time: {total_time}s")

    for flow in ("manual", "digital"):
        flow_results = [r for r in results if r["mode"] == flow]
        if flow_results:
            flow_success = len([r for r in flow_results if r["success"]])
            print(f"   {flow.capitalize()}: {flow_success}/{len(flow_results)} successful")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        total_revenue = sum(r.get("total", 0) for r in successful)
        digital_revenue = sum(r.get("total", 0) for r in successful if r["mode"] == "digital")

        print("\nPerformance Metrics:")
        print(f"   Average Flow: {avg_time}s")
        print(f"   Fastest: {min(r['time'] for r in successful)}s")
        print(f"   Slowest: {max(r['time'] for r in successful)}s")
        print(f"   Ordered: Rp {total_revenue:,.0f}")
        print(f"   Settled via Midtrans: Rp {digital_revenue:,.0f}")

    if failed:
        print("\nFailed Flow Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Order #{f['order_num']} [{f['mode']}]: {f.get('error', 'Unknown error')}")

    print("\n" + "=" * 70)
    print("VERIFICATION STEPS")
    print("=" * 70)
    print("1. Check the Celery terminal - every ledger export should complete")
    print("2. Run: python scripts/verify.py")
    print("3. Each digital payment must appear exactly once in the ledger")
    print("4. Confirm the manual payments as staff, then run verify.py again")
    print("=" * 70)

    return {
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "total_time": total_time,
        "results": results,
    }


async def test_single_flows() -> bool:
    """Check the API is reachable before the rush."""
    print("\n" + "=" * 70)
    print("TESTING INDIVIDUAL FLOWS")
    print("=" * 70)

    async with httpx.AsyncClient() as client:
        print("\n1. Health Check...")
        response = await client.get(f"{API_BASE_URL}/health")
        if response.status_code == 200:
            data = response.json()
            print(f"   Status: {data.get('status')}")
            print(f"   Database: {data.get('database')}")
            print(f"   Redis: {data.get('redis')}")
            print(f"   Gateway: {data.get('payment_gateway')}")
        else:
            print(f"   Failed: {response.text}")
            return False

        print("\n2. Menu...")
        menu_ids = await fetch_menu_ids(client)
        print(f"   {len(menu_ids)} available items")
        if not menu_ids:
            return False

        print("\n3. Single guest order...")
        response = await client.post(
            f"{API_BASE_URL}/api/orders/guest",
            json=generate_guest_order_payload(menu_ids),
        )
        if response.status_code == 201:
            data = response.json()["data"]
            print(f"   Order #{data['id']} created for table {data['tableNumber']}")
            print(f"   Total: Rp {data['totalAmount']:,.0f}")
        else:
            print(f"   Response: {response.text[:100]}")
            return False

    print("\n" + "=" * 70)
    return True


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Rush Hour Simulation Script")
    parser.add_argument("--manual", action="store_true", help="Cashier payments only")
    parser.add_argument("--digital", action="store_true", help="Midtrans payments only")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    parser.add_argument("--server-key", default=MOCK_SERVER_KEY, help="Key to sign notifications with")
    parser.add_argument("--base-url", default=API_BASE_URL, help="API base URL")
    parser.add_argument("--skip-tests", action="store_true", help="Skip individual tests")
    args = parser.parse_args()

    API_BASE_URL = args.base_url.rstrip("/")

    if args.manual:
        mode = "manual"
    elif args.digital:
        mode = "digital"
    else:
        mode = "both"

    if not args.skip_tests:
        success = asyncio.run(test_single_flows())
        if not success:
            print("\nPre-flight tests failed. Fix issues before running simulation.")
            sys.exit(1)

        print("\nPre-flight tests passed!")
        input("\nPress Enter to start the rush...")

    asyncio.run(run_simulation(args.orders, mode, args.server_key))
