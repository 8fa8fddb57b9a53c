"""Entry point for collection runs against the pricing provider."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from hotel_intel.collection import (
    CollectOptions,
    CollectionProgress,
    CollectionResult,
    FetchOrchestrator,
    QuotaTracker,
    RunState,
)
from hotel_intel.config.run_config import RunConfig
from hotel_intel.config.settings import Settings
from hotel_intel.core.logging import configure_logging
from hotel_intel.services import InvalidCredential, PriceProviderClient, ProviderError
from hotel_intel.storage import ApiCallEntry, SnapshotCache
from hotel_intel.tasks.date_window import collection_window, missing_dates

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_HALTED = 1
EXIT_CREDENTIAL = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Collect hotel price snapshots into the local cache")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help=(
            "Path to a TOML run configuration file "
            "(defaults to config/run_config.toml when present)"
        ),
    )
    parser.add_argument(
        "--no-config",
        action="store_true",
        help="Ignore config/run_config.toml even if it exists",
    )
    parser.add_argument(
        "--dates",
        default=None,
        help="Comma-separated ISO dates to collect instead of the configured window",
    )
    parser.add_argument(
        "--missing-only",
        action="store_true",
        help="Only collect dates that have no cached snapshot yet",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Collect even if the update interval has not elapsed",
    )
    parser.add_argument(
        "--full-fetch",
        action="store_true",
        help="Follow provider pagination for every date (costs more credits)",
    )
    parser.add_argument(
        "--skip-account-check",
        action="store_true",
        help="Do not query the account endpoint before collecting",
    )
    parser.add_argument(
        "--override",
        action="append",
        metavar="KEY=VALUE",
        help="Override a Settings attribute (repeatable). Values accept JSON literals.",
    )
    return parser


def _decode_override(value: str) -> object:
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        pass
    lower = value.strip().lower()
    if lower in {"true", "false"}:
        return lower == "true"
    try:
        return float(value)
    except ValueError:
        return value


def _apply_overrides(settings: Settings, overrides: dict[str, object]) -> None:
    for key, raw in overrides.items():
        if not hasattr(settings, key):
            logger.warning("Ignoring unknown override '%s'", key)
            continue
        setattr(settings, key, raw)
        logger.info("Override: set %s=%r", key, raw)


def _log_progress(progress: CollectionProgress) -> None:
    if progress.error:
        logger.info(
            "[%s/%s] %s failed: %s", progress.completed, progress.total, progress.current_date, progress.error
        )
    else:
        logger.info(
            "[%s/%s] %s done (%s%%)", progress.completed, progress.total, progress.current_date, progress.percentage
        )


def _history_entry(result: CollectionResult) -> ApiCallEntry:
    return ApiCallEntry(
        action="Collection",
        details=result.summary(),
        success=not result.halted and not result.errors,
        credits_used=result.calls_used,
        hotels_found=sum(len(snapshot.quotes) for snapshot in result.accepted),
        dates_processed=result.dates_completed,
        error=result.halt_reason,
    )


async def run(settings: Settings, dates: list[str], args: argparse.Namespace) -> int:
    cache = SnapshotCache(settings.cache_path)
    await cache.initialize()
    try:
        if not args.force and not await cache.is_update_due(settings.update_interval_days):
            days = await cache.days_until_update(settings.update_interval_days)
            print(f"Cache is fresh; next update due in {days} day(s). Use --force to collect anyway.")
            return EXIT_OK

        if args.missing_only:
            dates = missing_dates(dates, await cache.list_dates())
        if not dates:
            print("Nothing to collect.")
            return EXIT_OK

        quota = QuotaTracker()
        async with PriceProviderClient.from_settings(settings) as client:
            if not args.skip_account_check:
                try:
                    status = await quota.check_account_status(client)
                except InvalidCredential as exc:
                    logger.error("Account check rejected the API credential: %s", exc)
                    await cache.log_api_call(
                        ApiCallEntry(action="Account check", success=False, error=exc.reason)
                    )
                    print("The provider rejected the API credential; update HOTEL_INTEL_API_KEY and retry.")
                    return EXIT_CREDENTIAL
                except ProviderError as exc:
                    logger.warning("Account check failed, collecting without a known budget: %s", exc)
                else:
                    await cache.log_api_call(
                        ApiCallEntry(
                            action="Account check",
                            details=f"{status.remaining} of {status.plan_limit} credits remaining",
                        )
                    )

            orchestrator = FetchOrchestrator(
                client,
                quota,
                matcher=settings.property_matcher(),
                on_progress=_log_progress,
                cache=cache,
            )
            options = CollectOptions(
                full_fetch=settings.full_fetch,
                stop_on_limit=settings.stop_on_limit,
                concurrency=settings.concurrency,
                inter_call_delay_ms=settings.inter_call_delay_ms,
                max_pages=settings.max_pages,
            )
            result = await orchestrator.collect(dates, options)

        merged = result.merged
        if merged:
            await cache.set_last_collection()
        await cache.log_api_call(_history_entry(result))

        print(result.summary())
        for error in result.errors:
            print(f"  {error.date}: {error.reason}")
        logger.info("Merged %s snapshots into %s", merged, settings.cache_path)

        if result.state is RunState.CREDENTIAL_FAILED:
            return EXIT_CREDENTIAL
        return EXIT_HALTED if result.halted else EXIT_OK
    finally:
        await cache.close()


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    settings = Settings()
    config_path: Optional[Path] = None
    run_config: Optional[RunConfig] = None
    overrides: dict[str, object] = {}

    if not args.no_config:
        if args.config:
            config_path = args.config
            if not config_path.exists():
                raise FileNotFoundError(f"Config file not found: {config_path}")
        else:
            default_path = Path("config/run_config.toml")
            if default_path.exists():
                config_path = default_path

    if config_path:
        run_config = RunConfig.load(config_path)
        run_config.apply_to(settings, base_dir=config_path.parent)

    if args.override:
        for entry in args.override:
            if "=" not in entry:
                parser.error(f"Override must be in KEY=VALUE form (got '{entry}')")
            key, value = entry.split("=", 1)
            overrides[key.strip()] = _decode_override(value.strip())
    if overrides:
        _apply_overrides(settings, overrides)
    if args.full_fetch:
        settings.full_fetch = True

    configure_logging(settings.log_level, settings.log_dir)
    settings.ensure_directories()

    if args.dates:
        dates = [item.strip() for item in args.dates.split(",") if item.strip()]
    elif run_config:
        dates = run_config.collection_dates(settings)
    else:
        dates = collection_window(
            settings.window_start_month, settings.window_start_year, settings.window_months
        )

    if run_config:
        suffix = f" ({run_config.title})" if run_config.title else ""
        logger.info("Loaded run profile '%s'%s from %s", run_config.profile, suffix, config_path)
        if run_config.notes:
            logger.info("Profile notes: %s", run_config.notes)
    else:
        logger.info("Running with environment-based settings (no run_config applied)")

    estimate = QuotaTracker.estimate_calls(len(dates), settings.max_pages if settings.full_fetch else 1)
    logger.info("Planning %s dates, up to %s provider calls", len(dates), estimate)

    sys.exit(asyncio.run(run(settings, dates, args)))


if __name__ == "__main__":
    main()
