"""
Dining Room Simulation Script

Simulates a busy service against a running API:
    1. Creates tables and generates their QR codes
    2. Fires concurrent guest orders from random tables
    3. Races staff updates on the same orders to show that conflicting
       transitions are rejected (409) instead of both being applied

Run from project root: python scripts/simulate.py

Author: Khalil_Bannouri
Version: 1.0.0
"""

import asyncio
import sys
import os
import random
import time
import argparse
from datetime import datetime
from typing import Any

import httpx
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = "http://localhost:8001"
TOTAL_ORDERS = 50
TABLE_COUNT = 8

GUEST_NAMES = [None, "John", "Jane", "Mike", "Sarah", "Tom", "Emma", "David", "Lisa"]
STAFF_IDS = ["staff-anna", "staff-ben", "staff-carla"]
MENU_ITEMS = [
    {"menu_item_id": "m-margherita", "name": "Pizza Margherita", "unit_price": 14.99},
    {"menu_item_id": "m-pepperoni", "name": "Pepperoni Pizza", "unit_price": 16.99},
    {"menu_item_id": "m-caesar", "name": "Caesar Salad", "unit_price": 8.99},
    {"menu_item_id": "m-garlic", "name": "Garlic Bread", "unit_price": 5.99},
    {"menu_item_id": "m-carbonara", "name": "Pasta Carbonara", "unit_price": 13.99},
    {"menu_item_id": "m-tiramisu", "name": "Tiramisu", "unit_price": 7.99},
    {"menu_item_id": "m-coke", "name": "Coke", "unit_price": 2.99},
]


def generate_random_items() -> list[dict]:
    """Generate random order items."""
    items = []
    for _ in range(random.randint(1, 4)):
        item = random.choice(MENU_ITEMS).copy()
        item["quantity"] = random.randint(1, 3)
        items.append(item)
    return items


# =============================================================================
# SETUP
# =============================================================================

async def ensure_tables(client: httpx.AsyncClient) -> list[str]:
    """Create the simulation tables (or reuse them) and bind their QR codes."""
    response = await client.get(f"{API_BASE_URL}/api/tables")
    response.raise_for_status()
    existing = {t["number"]: t for t in response.json()}

    table_ids = []
    for number in range(1, TABLE_COUNT + 1):
        table = existing.get(str(number))
        if table is None:
            response = await client.post(
                f"{API_BASE_URL}/api/tables",
                json={"number": str(number), "capacity": random.choice([2, 4, 6])},
            )
            response.raise_for_status()
            table = response.json()

        if not table.get("access_code_id"):
            response = await client.post(f"{API_BASE_URL}/api/tables/{table['id']}/qrcode")
            if response.status_code != 200:
                print(f"   ⚠️ QR for table {number} failed: {response.text[:100]}")

        table_ids.append(table["id"])

    return table_ids


# =============================================================================
# GUEST ORDERS
# =============================================================================

async def send_guest_order(
    client: httpx.AsyncClient,
    order_num: int,
    table_ids: list[str],
) -> dict[str, Any]:
    """Place one order from a random table."""
    payload = {
        "table_id": random.choice(table_ids),
        "items": generate_random_items(),
        "customer_name": random.choice(GUEST_NAMES),
        "notes": random.choice([None, "No onions", "Extra napkins", "Birthday!"]),
    }
    start_time = time.time()

    try:
        response = await client.post(f"{API_BASE_URL}/api/orders", json=payload, timeout=30.0)
        elapsed = round(time.time() - start_time, 3)

        if response.status_code == 201:
            data = response.json()
            return {
                "order_num": order_num,
                "success": True,
                "order_id": data["id"],
                "total": data["total"],
                "time": elapsed,
            }
        return {
            "order_num": order_num,
            "success": False,
            "error": response.text[:100],
            "time": elapsed,
        }
    except httpx.HTTPError as e:
        return {
            "order_num": order_num,
            "success": False,
            "error": str(e)[:100],
            "time": round(time.time() - start_time, 3),
        }


# =============================================================================
# STAFF RACE
# =============================================================================

async def race_status_updates(client: httpx.AsyncClient, order_id: str) -> dict[str, int]:
    """
    Send conflicting transitions for one order at the same time.

    From pending only one of "preparing" / "cancelled" may win.
    """
    async def put(status: str) -> int:
        response = await client.put(
            f"{API_BASE_URL}/api/orders/{order_id}/status",
            json={"status": status},
            headers={"X-Staff-Id": random.choice(STAFF_IDS)},
        )
        return response.status_code

    codes = await asyncio.gather(put("preparing"), put("cancelled"), put("preparing"))
    return {
        "accepted": sum(1 for c in codes if c == 200),
        "rejected": sum(1 for c in codes if c == 409),
    }


async def walk_order(client: httpx.AsyncClient, order_id: str) -> None:
    """Serve, complete and mark an order paid."""
    staff = random.choice(STAFF_IDS)
    for status in ("served", "completed"):
        await client.put(
            f"{API_BASE_URL}/api/orders/{order_id}/status",
            json={"status": status},
            headers={"X-Staff-Id": staff},
        )
    await client.put(
        f"{API_BASE_URL}/api/orders/{order_id}/payment",
        json={"paymentStatus": "paid"},
    )


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def run_simulation(num_orders: int = TOTAL_ORDERS) -> dict[str, Any]:
    print("=" * 70)
    print("🔥 DINING ROOM SIMULATION")
    print("=" * 70)
    print(f"📋 Total Orders: {num_orders}")
    print(f"🎯 Target: {API_BASE_URL}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()

    async with httpx.AsyncClient() as client:
        print("\n🪑 Preparing tables and QR codes...")
        table_ids = await ensure_tables(client)
        print(f"   ✅ {len(table_ids)} tables ready")

        print("\n🚀 Firing guest orders...\n")
        results = await asyncio.gather(*[
            send_guest_order(client, i + 1, table_ids) for i in range(num_orders)
        ])

        successful = [r for r in results if r["success"]]
        failed = [r for r in results if not r["success"]]

        print("\n⚔️  Racing staff updates...")
        race_totals = {"accepted": 0, "rejected": 0}
        for result in successful[:10]:
            outcome = await race_status_updates(client, result["order_id"])
            race_totals["accepted"] += outcome["accepted"]
            race_totals["rejected"] += outcome["rejected"]

        print("\n🍽️  Serving and settling orders...")
        await asyncio.gather(*[walk_order(client, r["order_id"]) for r in successful[10:20]])

        board = (await client.get(f"{API_BASE_URL}/api/orders/summary")).json()

    total_time = round(time.time() - start_time, 2)

    print("\n" + "=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)
    print(f"\n✅ Successful Orders: {len(successful)}/{num_orders}")
    print(f"❌ Failed Orders: {len(failed)}/{num_orders}")
    print(f"⏱️  Total Time: {total_time}s")
    print(f"\n⚔️  Race: {race_totals['accepted']} accepted, {race_totals['rejected']} rejected")
    print(f"   (at most one transition per order should win)")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        total_revenue = sum(r.get("total", 0) for r in successful)
        print(f"\n📈 Average Response: {avg_time}s")
        print(f"   💰 Ordered Value: ${total_revenue:.2f}")

    print(f"\n📋 Board: {board.get('by_status')}")

    if failed:
        print(f"\n⚠️  Failed Order Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Order #{f['order_num']}: {f.get('error', 'Unknown error')}")

    print("\n" + "=" * 70)
    print("🔍 VERIFICATION STEPS")
    print("=" * 70)
    print("1. Check Celery terminal - export tasks should complete")
    print("2. Run: python scripts/verify.py")
    print("=" * 70)

    return {
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "total_time": total_time,
        "race": race_totals,
    }


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Dining Room Simulation Script")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    args = parser.parse_args()

    asyncio.run(run_simulation(num_orders=args.orders))
