"""
Re-align agencies and cars with their commission state after an interrupted
block/unblock. The commission_state record is taken as the source of truth.
"""
import asyncio
import argparse

from app.config.database import db_config, Collections
from app.database.db_operations import db_ops, to_object_id


async def main(dry_run: bool = True):
    await db_config.connect_db()
    states = await db_ops.find(Collections.COMMISSION_STATE, {})
    print(f"Checking {len(states)} commission state record(s)")

    fixes = 0
    for state in states:
        agency_id = state.get("agency_id")
        blocked = bool(state.get("blocked"))
        disabled = list(state.get("disabled_cars") or [])

        agency = await db_ops.get_by_id(Collections.AGENCIES, agency_id)
        if agency is None:
            print(f"- {agency_id}: agency no longer exists, skipped")
            continue

        if bool(agency.get("blacklisted")) != blocked:
            print(f"- {agency_id}: blacklisted={agency.get('blacklisted')} but blocked={blocked}")
            fixes += 1
            if not dry_run:
                await db_ops.update(Collections.AGENCIES, agency_id, {"blacklisted": blocked})

        if blocked and disabled:
            still_available = await db_ops.count(
                Collections.CARS,
                {"_id": {"$in": [to_object_id(d) for d in disabled if to_object_id(d)]}, "available": True},
            )
            if still_available:
                print(f"- {agency_id}: {still_available} suspended car(s) are still available")
                fixes += 1
                if not dry_run:
                    await db_ops.set_many(Collections.CARS, disabled, {"available": False})

        if not blocked and disabled:
            print(f"- {agency_id}: unblocked but still lists {len(disabled)} disabled car(s)")
            fixes += 1
            if not dry_run:
                await db_ops.set_many(Collections.CARS, disabled, {"available": True})
                await db_ops.update(Collections.COMMISSION_STATE, state["_id"], {"disabled_cars": []})

    if fixes and dry_run:
        print(f"Dry run enabled: {fixes} issue(s) found, nothing changed. Use --apply to repair.")
    elif fixes:
        print(f"Repaired {fixes} issue(s)")
    else:
        print("Nothing to repair")

    await db_config.close_db()


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Repair agencies and cars left inconsistent by a failed block/unblock')
    parser.add_argument('--apply', dest='apply', action='store_true', help='Perform updates (otherwise dry-run)')
    args = parser.parse_args()

    asyncio.run(main(dry_run=not args.apply))
