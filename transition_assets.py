# transition_assets.py
"""
Maintenance tool: move assets to a target state, walking every intermediate
state so each step is recorded in history.

Usage:
    python transition_assets.py ISSUED 04-00001 04-00002
    python transition_assets.py AVAILABLE 05-00001 --actor 1 --reason "Stock count"

All assets move or none do. Without --actor the history names the system.
"""
import argparse
import asyncio
import sys

from config import settings
from core.exceptions import AssetLifecycleError
from core.lifecycle import get_transition_rules
from core.logging_config import configure_logging
from db import AsyncSessionLocal, engine as db_engine
from api.bulk.db_manager import BulkOperationCoordinator
from api.transitions.db_manager import TransitionEngine


async def run(target_state: str, asset_numbers: list[str], actor_id: int | None, reason: str | None) -> int:
    coordinator = BulkOperationCoordinator(TransitionEngine(get_transition_rules()))

    async with AsyncSessionLocal() as db:
        try:
            result = await coordinator.execute_all_or_nothing(
                db,
                asset_numbers,
                target_state,
                actor_id=actor_id,
                reason=reason or f"Maintenance move to {target_state}",
            )
        except AssetLifecycleError as exc:
            print(f"[ERROR] {exc}")
            print("No assets were changed.")
            return 1

    print(f"[OK] {result.affected_count} assets moved to {target_state}")
    for asset in result.updated_assets:
        print(f"  {asset.asset_number}  {asset.type:<13} {asset.state}  v{asset.version}")
    skipped = len(set(asset_numbers)) - result.affected_count
    if skipped:
        print(f"  ({skipped} already in {target_state})")
    return 0


async def main(args: argparse.Namespace) -> int:
    try:
        return await run(args.target_state.upper(), args.asset_numbers, args.actor, args.reason)
    finally:
        await db_engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Advance assets through their lifecycle")
    parser.add_argument("target_state", help="State to move every asset to, e.g. ISSUED")
    parser.add_argument("asset_numbers", nargs="+", help="Asset numbers, e.g. 04-00001")
    parser.add_argument("--actor", type=int, default=None, help="User id to record (default: system)")
    parser.add_argument("--reason", default=None, help="Reason stored on each history entry")
    args = parser.parse_args()

    configure_logging(settings.LOG_LEVEL)
    sys.exit(asyncio.run(main(args)))
