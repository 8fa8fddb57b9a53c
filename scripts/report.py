"""Print market analytics computed from the local snapshot cache."""
from __future__ import annotations

import argparse
import asyncio
import json
from typing import Optional

from hotel_intel.analysis import (
    AnalyticsEngine,
    pricing_recommendations,
    revenue_scenarios,
)
from hotel_intel.analysis.analytics import round_currency
from hotel_intel.config.settings import Settings
from hotel_intel.storage import SnapshotCache


def _money(value: Optional[float]) -> str:
    return "-" if value is None else f"${round_currency(value)}"


def _print_date(engine: AnalyticsEngine, day: str) -> None:
    stats = engine.date_stats(day)
    if stats is None:
        print(f"No cached data for {day}")
        return
    print(f"Market on {day}: {stats.count} hotels")
    print(
        f"  lowest {_money(stats.lowest)} ({stats.lowest_quote.name}), "
        f"highest {_money(stats.highest)} ({stats.highest_quote.name})"
    )
    print(f"  average {_money(stats.average)}, median {_money(stats.median)}, spread {_money(stats.spread)}")
    for entry in engine.own_property_positions(day):
        if entry.position is None:
            print(f"  {entry.property_name}: not listed")
        else:
            print(f"  {entry.property_name}: #{entry.position} of {entry.market_size} at {_money(entry.quote.price)}")
    recommendations = pricing_recommendations(engine, day) or []
    for item in recommendations:
        print(f"  -> {item.hotel}: {item.suggestion} ({_money(item.suggested_price)}). {item.reason}")


def _print_changes(engine: AnalyticsEngine, date_a: str, date_b: str, limit: int) -> None:
    changes = engine.rate_changes(date_a, date_b)
    if not changes:
        print(f"No rate changes between {date_a} and {date_b}")
        return
    print(f"Rate changes {date_a} -> {date_b}:")
    for change in changes[:limit]:
        marker = "*" if change.is_own else " "
        print(
            f" {marker} {change.name:40} {_money(change.old_price):>7} -> {_money(change.new_price):>7} "
            f"({change.percent_change:+.1f}%)"
        )


def _print_overview(engine: AnalyticsEngine, settings: Settings) -> None:
    dates = engine.dates()
    if not dates:
        print("The cache is empty; run scripts/run_collection.py first.")
        return
    print(f"{len(dates)} dates cached ({dates[0]} to {dates[-1]})")

    alerts = engine.price_alerts(settings.alert_window_dates, settings.alert_threshold_pct)
    print(f"\nPrice alerts (>= {settings.alert_threshold_pct:g}% over the last {settings.alert_window_dates} dates):")
    if not alerts:
        print("  none")
    for alert in alerts:
        print(
            f"  {alert.name}: {_money(alert.old_price)} -> {_money(alert.new_price)} "
            f"({alert.percent_change:+.1f}%) {alert.from_date} -> {alert.to_date}"
        )

    print("\nHigh-demand dates:")
    demand = engine.high_demand_dates()
    if not demand:
        print("  none")
    for item in demand:
        print(f"  {item.date}: average {_money(item.average)} ({item.ratio:.2f}x the overall mean)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Report on cached hotel market data")
    parser.add_argument("--date", help="Show market statistics for one date")
    parser.add_argument(
        "--compare",
        nargs=2,
        metavar=("DATE_A", "DATE_B"),
        help="List rate changes between two dates",
    )
    parser.add_argument("--month", help="Summarise a month given as YYYY-MM")
    parser.add_argument("--limit", type=int, default=20, help="Maximum rows for rate-change listings")
    parser.add_argument(
        "--revenue",
        nargs=4,
        type=float,
        metavar=("ROOMS", "RATE", "OCCUPANCY_PCT", "DAYS"),
        help="Project revenue scenarios for rate changes of -10%%..+10%%",
    )
    parser.add_argument("--json", action="store_true", help="Emit JSON where supported")
    return parser


async def _load(settings: Settings) -> AnalyticsEngine:
    async with SnapshotCache(settings.cache_path) as cache:
        snapshots = await cache.snapshots()
    return AnalyticsEngine(snapshots, settings.property_matcher())


def main() -> None:
    args = build_parser().parse_args()
    settings = Settings()

    if args.revenue:
        rooms, rate, occupancy, days = args.revenue
        scenarios = revenue_scenarios(int(rooms), rate, occupancy, int(days))
        if args.json:
            print(json.dumps([scenario.to_dict() for scenario in scenarios], indent=2))
            return
        for scenario in scenarios:
            data = scenario.to_dict()
            print(
                f"{data['label']:>8}: rate {_money(scenario.rate)}, occupancy {data['occupancy_pct']}%, "
                f"revenue ${data['revenue']:,} ({data['difference']:+,})"
            )
        return

    engine = asyncio.run(_load(settings))

    if args.date:
        if args.json:
            stats = engine.date_stats(args.date)
            print(json.dumps(stats.to_dict() if stats else None, indent=2))
        else:
            _print_date(engine, args.date)
    elif args.compare:
        date_a, date_b = args.compare
        if args.json:
            print(json.dumps([change.to_dict() for change in engine.rate_changes(date_a, date_b)], indent=2))
        else:
            _print_changes(engine, date_a, date_b, args.limit)
    elif args.month:
        year, month = (int(part) for part in args.month.split("-", 1))
        summary = engine.month_summary(year, month)
        if summary is None:
            print(f"No cached data for {args.month}")
        elif args.json:
            print(json.dumps(summary.to_dict(), indent=2))
        else:
            data = summary.to_dict()
            print(
                f"{data['month']}: {data['days_with_data']} days, market average {_money(summary.market_average)}, "
                f"own average {_money(summary.own_average)}, range {_money(summary.lowest_rate)}"
                f" - {_money(summary.highest_rate)}"
            )
    else:
        _print_overview(engine, settings)


if __name__ == "__main__":
    main()
