"""Seed balance rows for the database backend.

Run with:  python -m pto_bot.seed U012ABCDEF U034GHIJKL
Existing rows are left untouched; new rows get PTO_ANNUAL_ALLOWANCE days.
"""

from __future__ import annotations

import asyncio
import sys

from pto_bot.config import get_settings
from pto_bot.db import create_tables, dispose_engine, get_engine, get_session_factory
from pto_bot.services.sql_store import SqlBalanceStore


async def seed_balances(store: SqlBalanceStore, user_ids: list[str], allowance: int) -> None:
    for user_id in user_ids:
        created = await store.seed(user_id, allowance, overwrite=False)
        if created:
            print(f"  [OK] {user_id}: allowance {allowance}")
        else:
            print(f"  [SKIP] {user_id}: balance row already exists")


async def main(user_ids: list[str]) -> None:
    settings = get_settings()
    if settings.store_backend != "database":
        print("ERROR: seeding only applies to STORE_BACKEND=database")
        sys.exit(1)
    if not user_ids:
        print("Usage: python -m pto_bot.seed <slack-user-id> [<slack-user-id> ...]")
        sys.exit(1)

    print("=" * 60)
    print(f"  {settings.app_name} — Balance Seed Script")
    print("=" * 60)

    await create_tables(get_engine())
    try:
        await seed_balances(SqlBalanceStore(get_session_factory()), user_ids, settings.pto_annual_allowance)
    finally:
        await dispose_engine()

    print("\n  Seeding complete!")


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1:]))
