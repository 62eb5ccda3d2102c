#!/usr/bin/env python3
"""
Seed the configured store with the pack catalog and a few demo users.

Usage:
  STORE_PROVIDER=json python3 scripts/seed_store.py
"""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from cleancar.core.config import settings
from cleancar.domain.entities.appointment import ServiceType
from cleancar.domain.entities.pack import Pack, ServiceCredit
from cleancar.domain.entities.user import Role, User
from cleancar.wiring.dependencies import get_store


PACKS = [
    Pack(
        id="basic",
        name="Basic Pack",
        description="1000 points for your car washes",
        price=1000,
        points_included=1000,
    ),
    Pack(
        id="standard",
        name="Standard Pack",
        description="2800 points plus 500 bonus points",
        price=2800,
        points_included=2800,
        bonus_points=500,
    ),
    Pack(
        id="premium",
        name="Premium Pack",
        description="5600 points plus one free basic wash",
        price=5600,
        points_included=5600,
        free_services=(ServiceCredit(ServiceType.basic, 1),),
    ),
]

USERS = [
    User(id="demo-user", email="demo@cleancar.com", first_name="Demo", last_name="User", points_balance=2000),
    User(id="demo-admin", email="admin@cleancar.com", first_name="Admin", role=Role.admin),
]


def main() -> None:
    store = get_store()
    for pack in PACKS:
        store.add_pack(pack)
        print(f"✅ Pack {pack.id}: {pack.total_points} points for {pack.price} {settings.PAYMENT_CURRENCY.upper()}")
    for user in USERS:
        if store.get_user(user.id) is None:
            store.add_user(user)
            print(f"✅ User {user.id} ({user.role.value})")
        else:
            print(f"• User {user.id} already exists, skipped")

    if settings.STORE_PROVIDER.lower() != "json":
        print("⚠️  STORE_PROVIDER is not 'json'; seeded data lives only in this process")


if __name__ == "__main__":
    main()
