#!/usr/bin/env python3
"""Manual smoke run against a running CleanCar API (seeded demo data, mock payments)."""

import sys
from datetime import date, timedelta

import httpx


BASE_URL = "http://127.0.0.1:8000"
USER = {"X-User-Id": "demo-user"}


def check_booking() -> None:
    print("=" * 60)
    print("POST /api/v1/appointments")
    print("=" * 60)

    day = date.today() + timedelta(days=7)
    quote = httpx.get(
        f"{BASE_URL}/api/v1/appointments/quote",
        params={"service_type": "basic", "appointment_date": day.isoformat()},
    )
    print(f"Quote: {quote.json()['price_breakdown']}")

    response = httpx.post(
        f"{BASE_URL}/api/v1/appointments",
        json={"service_type": "basic", "appointment_date": day.isoformat(), "location": "Vesterbrogade 1"},
        headers=USER,
        timeout=10.0,
    )
    if response.status_code != 201:
        print(f"❌ Booking failed ({response.status_code}): {response.text}")
        return

    appointment = response.json()["appointment"]
    print(f"✅ Booked {appointment['time_slot']} on {appointment['appointment_date']}")
    print(f"   Points remaining: {response.json()['points_remaining']}")

    cancelled = httpx.put(f"{BASE_URL}/api/v1/appointments/{appointment['id']}/cancel", headers=USER)
    print(f"✅ Cancelled, refunded {cancelled.json()['refunded_points']} points")


def check_purchase() -> None:
    print("=" * 60)
    print("POST /api/v1/packs/purchase")
    print("=" * 60)

    packs = httpx.get(f"{BASE_URL}/api/v1/packs").json()["packs"]
    for pack in packs:
        print(f"  {pack['name']}: {pack['total_points']} points, saves {pack['savings']}")

    response = httpx.post(f"{BASE_URL}/api/v1/packs/purchase", json={"pack_id": "standard"}, headers=USER)
    response.raise_for_status()
    intent_id = response.json()["payment_intent_id"]
    print(f"✅ Payment intent {intent_id}")

    confirm = httpx.post(f"{BASE_URL}/api/v1/packs/confirm", json={"payment_intent_id": intent_id}, headers=USER)
    # the mock provider never settles on its own, so 202 is expected here
    print(f"Confirm: {confirm.status_code} {confirm.json()}")


def main():
    print("\n🚀 CleanCar API smoke run\n")

    try:
        httpx.get(f"{BASE_URL}/health", timeout=5.0)
        print("✅ Server is running\n")
    except httpx.HTTPError:
        print("❌ Server is not running!")
        print("   Please start it with: uvicorn cleancar.main:app --reload")
        sys.exit(1)

    check_booking()
    check_purchase()

    points = httpx.get(f"{BASE_URL}/api/v1/points", headers=USER).json()
    print(f"\nBalance: {points['points_balance']}")


if __name__ == "__main__":
    main()
