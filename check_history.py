# check_history.py
"""
Compare every active asset's stored state with its latest history entry.

Usage:
    python check_history.py            # Report only
    python check_history.py --repair   # Overwrite stored state from history

Exit code is 1 when mismatches remain.
"""
import argparse
import asyncio
import sys

from config import settings
from core.logging_config import configure_logging
from db import AsyncSessionLocal, engine as db_engine
from api.history import db_manager as history_db


async def check(repair: bool) -> int:
    async with AsyncSessionLocal() as db:
        mismatches = await history_db.find_state_mismatches(db)

        if not mismatches:
            print("[OK] Every active asset matches its history")
            return 0

        print(f"Found {len(mismatches)} mismatched assets:")
        for m in mismatches:
            print(f"  {m.asset_number}: stored={m.stored_state} history={m.history_state or '-'}")

        if not repair:
            return 1

        remaining = 0
        for m in mismatches:
            if m.history_state is None:
                # Nothing to restore from
                print(f"  [SKIP] {m.asset_number} has no history")
                remaining += 1
                continue
            if await history_db.repair_state_from_history(db, m.asset_id):
                print(f"  [FIXED] {m.asset_number} -> {m.history_state}")
        return 1 if remaining else 0


async def main(repair: bool) -> int:
    try:
        return await check(repair)
    finally:
        await db_engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Check asset states against history")
    parser.add_argument("--repair", action="store_true", help="Restore stored state from history")
    args = parser.parse_args()

    configure_logging(settings.LOG_LEVEL)

    print("=" * 60)
    print("ASSET HISTORY CONSISTENCY CHECK")
    print("=" * 60)

    sys.exit(asyncio.run(main(args.repair)))
