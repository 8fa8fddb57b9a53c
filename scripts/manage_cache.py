"""Utility CLI for inspecting, exporting and resetting the snapshot cache."""
from __future__ import annotations

import argparse
import asyncio
from pathlib import Path

from hotel_intel.config.settings import Settings
from hotel_intel.storage import SnapshotCache, export_date_csv, export_json
from hotel_intel.storage.exporter import default_export_name


async def _status(cache: SnapshotCache, settings: Settings) -> None:
    coverage = await cache.data_coverage()
    last = await cache.last_collection_at()
    print(f"Cache: {settings.cache_path}")
    if not coverage.total_dates:
        print("  no data collected yet")
    else:
        print(
            f"  {coverage.total_dates} dates ({coverage.first_date} to {coverage.last_date}), "
            f"{coverage.partial_dates} partial, coverage {coverage.kind}"
        )
        print(f"  {await cache.count_unique_hotels()} unique hotels")
    print(f"  last collection: {last.isoformat() if last else 'never'}")
    due = await cache.is_update_due(settings.update_interval_days)
    if due:
        print("  update due now")
    else:
        print(f"  next update in {await cache.days_until_update(settings.update_interval_days)} day(s)")


async def _history(cache: SnapshotCache) -> None:
    entries = await cache.api_history()
    if not entries:
        print("No API calls recorded.")
        return
    for entry in entries:
        status = "ok" if entry.success else f"failed ({entry.error or 'unknown'})"
        print(
            f"{entry.logged_at:%Y-%m-%d %H:%M} | {entry.action:14} | {status:24} | "
            f"credits {entry.credits_used:3} | dates {entry.dates_processed:3} | {entry.details}"
        )


async def main_async(args: argparse.Namespace, settings: Settings) -> None:
    async with SnapshotCache(settings.cache_path) as cache:
        if args.command == "status":
            await _status(cache, settings)
        elif args.command == "history":
            if args.clear:
                await cache.clear_api_history()
                print("API history cleared.")
            else:
                await _history(cache)
        elif args.command == "export-json":
            target = args.output or settings.export_dir / default_export_name("json")
            snapshots = await cache.snapshots()
            export_json(snapshots, target, last_update=await cache.last_collection_at())
            print(f"Exported {len(snapshots)} dates to {target}")
        elif args.command == "export-csv":
            snapshot = await cache.get(args.date)
            if snapshot is None:
                print(f"No cached data for {args.date}")
                return
            target = args.output or settings.export_dir / default_export_name("csv", args.date)
            export_date_csv(snapshot, target)
            print(f"Exported {len(snapshot.quotes)} hotels to {target}")
        elif args.command == "reset":
            if not args.yes:
                print("Refusing to reset without --yes; this deletes every cached snapshot.")
                return
            await cache.reset()
            print("Cache cleared.")


def main() -> None:
    parser = argparse.ArgumentParser(description="Inspect and maintain the snapshot cache.")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("status", help="Show coverage and update schedule")
    history = sub.add_parser("history", help="Show the recent API call log")
    history.add_argument("--clear", action="store_true", help="Clear the API call log")
    export_all = sub.add_parser("export-json", help="Export every cached date as JSON")
    export_all.add_argument("--output", type=Path, default=None)
    export_one = sub.add_parser("export-csv", help="Export one date as CSV")
    export_one.add_argument("date", help="ISO date to export")
    export_one.add_argument("--output", type=Path, default=None)
    reset = sub.add_parser("reset", help="Delete all cached snapshots")
    reset.add_argument("--yes", action="store_true", help="Confirm the reset")
    args = parser.parse_args()

    settings = Settings()
    settings.ensure_directories()
    asyncio.run(main_async(args, settings))


if __name__ == "__main__":
    main()
