"""Quota-aware orchestration of per-date price collection."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Callable, Dict, List, Optional, Protocol, Sequence

from hotel_intel.hotels.matching import PropertyMatcher, normalize_name
from hotel_intel.hotels.models import DateSnapshot, HotelQuote, PageResult
from hotel_intel.services.provider_client import (
    InvalidCredential,
    ProviderError,
    QuotaExhausted,
    TransientFetchError,
)
from hotel_intel.utils.throttling import politeness_delay

from .quota import QuotaTracker

logger = logging.getLogger(__name__)

REASON_QUOTA = QuotaExhausted.reason
REASON_CREDENTIAL = InvalidCredential.reason


class PageFetcher(Protocol):
    async def fetch_page(self, check_in: str, page: int = 0) -> PageResult: ...


class SnapshotSink(Protocol):
    async def merge(self, snapshot: DateSnapshot) -> bool: ...


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    QUOTA_HALTED = "quota-halted"
    CREDENTIAL_FAILED = "credential-failed"


_TERMINAL_FOR = {
    QuotaExhausted: RunState.QUOTA_HALTED,
    InvalidCredential: RunState.CREDENTIAL_FAILED,
}


@dataclass(frozen=True)
class CollectOptions:
    """Knobs for one collection run."""

    full_fetch: bool = False
    stop_on_limit: bool = True
    concurrency: int = 1
    inter_call_delay_ms: int = 500
    max_pages: int = 5

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if self.max_pages < 1:
            raise ValueError("max_pages must be at least 1")
        if self.inter_call_delay_ms < 0:
            raise ValueError("inter_call_delay_ms must be non-negative")

    @property
    def pages_per_date(self) -> int:
        return self.max_pages if self.full_fetch else 1


@dataclass(frozen=True)
class DateError:
    date: str
    reason: str


@dataclass(frozen=True)
class CollectionProgress:
    completed: int
    total: int
    current_date: str
    percentage: int
    error: Optional[str] = None


@dataclass
class CollectionResult:
    """Outcome of one run; partial success is reported, never raised."""

    dates_requested: int
    accepted: List[DateSnapshot] = field(default_factory=list)
    errors: List[DateError] = field(default_factory=list)
    empty_dates: List[str] = field(default_factory=list)
    state: RunState = RunState.IDLE
    halt_reason: Optional[str] = None
    calls_used: int = 0
    merged: int = 0

    @property
    def halted(self) -> bool:
        return self.state in (RunState.QUOTA_HALTED, RunState.CREDENTIAL_FAILED)

    @property
    def quota_halted(self) -> bool:
        return self.state is RunState.QUOTA_HALTED

    @property
    def dates_completed(self) -> int:
        return len(self.accepted)

    @property
    def dates_skipped(self) -> int:
        return self.dates_requested - self.dates_completed

    def summary(self) -> str:
        text = f"Collected {self.dates_completed} of {self.dates_requested} requested dates"
        details = [f"{self.calls_used} calls used"]
        if self.errors:
            details.append(f"{len(self.errors)} errors")
        if self.empty_dates:
            details.append(f"{len(self.empty_dates)} empty")
        text = f"{text} ({', '.join(details)})"
        if self.state is RunState.QUOTA_HALTED:
            text += "; stopped early because the provider quota was reached"
        elif self.state is RunState.CREDENTIAL_FAILED:
            text += "; stopped because the provider rejected the API credential"
        return text


class _Run:
    """Mutable per-run bookkeeping shared by the date workers."""

    def __init__(self, dates: Sequence[str], options: CollectOptions) -> None:
        self.options = options
        self.result = CollectionResult(dates_requested=len(dates), state=RunState.RUNNING)
        self.halt_error: Optional[ProviderError] = None
        self.finished = 0

    @property
    def halted(self) -> bool:
        return self.halt_error is not None

    def should_stop(self) -> bool:
        if isinstance(self.halt_error, InvalidCredential):
            return True
        return self.halted and self.options.stop_on_limit

    def halt(self, error: ProviderError) -> None:
        # First classified halt wins; later ones in the same batch are only recorded.
        if self.halt_error is None:
            self.halt_error = error
            logger.warning("Halting collection: %s", error)

    def finish(self) -> CollectionResult:
        if self.halt_error is None:
            self.result.state = RunState.COMPLETED
        else:
            self.result.state = _TERMINAL_FOR[type(self.halt_error)]
            self.result.halt_reason = self.halt_error.reason
        return self.result


def _quote_key(quote: HotelQuote) -> str:
    return quote.stable_id or normalize_name(quote.name)


def merge_page_quotes(accumulated: Dict[str, HotelQuote], quotes: Sequence[HotelQuote]) -> None:
    """Fold one page into the date's quotes; a hotel seen twice keeps its lowest price."""
    for quote in quotes:
        key = _quote_key(quote)
        existing = accumulated.get(key)
        if existing is None or quote.price < existing.price:
            accumulated[key] = quote


class FetchOrchestrator:
    """Drives the provider client over a list of dates within a credit budget."""

    def __init__(
        self,
        client: PageFetcher,
        quota: Optional[QuotaTracker] = None,
        *,
        matcher: Optional[PropertyMatcher] = None,
        on_progress: Optional[Callable[[CollectionProgress], None]] = None,
        cache: Optional[SnapshotSink] = None,
    ) -> None:
        self.client = client
        self.cache = cache
        self.quota = quota or QuotaTracker()
        self.matcher = matcher
        self.on_progress = on_progress
        self.state = RunState.IDLE

    async def collect(self, dates: Sequence[str], options: Optional[CollectOptions] = None) -> CollectionResult:
        options = options or CollectOptions()
        run = _Run(dates, options)
        self.quota.start_session()
        self.state = RunState.RUNNING
        logger.info(
            "Starting collection for %s dates (full_fetch=%s, concurrency=%s, estimated calls=%s, remaining=%s)",
            len(dates),
            options.full_fetch,
            options.concurrency,
            self.quota.estimate_calls(len(dates), options.pages_per_date),
            self.quota.remaining(),
        )
        valid_dates: List[str] = []
        for day in dates:
            try:
                date.fromisoformat(day)
            except (TypeError, ValueError):
                run.result.errors.append(DateError(str(day), f"invalid date: {day!r}"))
                continue
            valid_dates.append(day)

        if options.concurrency == 1:
            await self._collect_sequential(run, valid_dates)
        else:
            await self._collect_batched(run, valid_dates)

        result = run.finish()
        self.state = result.state
        logger.info(result.summary())
        return result

    async def _collect_sequential(self, run: _Run, dates: Sequence[str]) -> None:
        for index, day in enumerate(dates):
            if run.should_stop():
                break
            if run.options.stop_on_limit and not self.quota.can_afford(1):
                self._refuse(run, day)
                break
            if index > 0:
                await politeness_delay(run.options.inter_call_delay_ms)
            await self._collect_date(run, day)

    async def _collect_batched(self, run: _Run, dates: Sequence[str]) -> None:
        size = run.options.concurrency
        for start in range(0, len(dates), size):
            if run.should_stop():
                break
            batch = list(dates[start : start + size])
            if run.options.stop_on_limit:
                affordable = self.quota.affordable_dates(len(batch))
                if affordable == 0:
                    self._refuse(run, batch[0])
                    break
                if affordable < len(batch):
                    logger.info("Truncating batch from %s to %s dates to fit the budget", len(batch), affordable)
                    batch = batch[:affordable]
            if start > 0:
                await politeness_delay(run.options.inter_call_delay_ms)
            await asyncio.gather(*(self._collect_date(run, day) for day in batch))

    def _refuse(self, run: _Run, day: str) -> None:
        logger.warning("Budget exhausted before %s (remaining=%s)", day, self.quota.remaining())
        run.result.errors.append(DateError(day, REASON_QUOTA))
        run.halt(QuotaExhausted(f"Credit budget exhausted before {day}"))
        self._report(run, day, REASON_QUOTA)

    async def _fetch(self, run: _Run, day: str, page: int) -> PageResult:
        result = await self.client.fetch_page(day, page)
        self.quota.record_usage(1)
        run.result.calls_used += 1
        return result

    async def _collect_date(self, run: _Run, day: str) -> None:
        try:
            snapshot = await self._fetch_date(run, day)
        except (QuotaExhausted, InvalidCredential) as exc:
            if isinstance(exc, QuotaExhausted):
                self.quota.mark_exhausted()
            run.halt(exc)
            run.result.errors.append(DateError(day, exc.reason))
            self._report(run, day, exc.reason)
            return
        except TransientFetchError as exc:
            logger.warning("Skipping %s: %s", day, exc)
            run.result.errors.append(DateError(day, str(exc)))
            self._report(run, day, str(exc))
            return
        except Exception as exc:
            logger.exception("Unexpected failure while collecting %s", day)
            run.result.errors.append(DateError(day, str(exc) or type(exc).__name__))
            self._report(run, day, str(exc))
            return

        if snapshot.is_empty:
            logger.info("No priced quotes for %s; not emitting a snapshot", day)
            run.result.empty_dates.append(day)
        else:
            run.result.accepted.append(snapshot)
            await self._persist(run, snapshot)
        self._report(run, day, None)

    async def _persist(self, run: _Run, snapshot: DateSnapshot) -> None:
        if self.cache is None:
            return
        try:
            if await self.cache.merge(snapshot):
                run.result.merged += 1
        except Exception as exc:
            logger.exception("Could not store the snapshot for %s", snapshot.date)
            run.result.errors.append(DateError(snapshot.date, f"cache write failed: {exc}"))

    async def _fetch_date(self, run: _Run, day: str) -> DateSnapshot:
        options = run.options
        accumulated: Dict[str, HotelQuote] = {}
        first = await self._fetch(run, day, 0)
        merge_page_quotes(accumulated, first.quotes)

        partial = not options.full_fetch
        if options.full_fetch:
            total_pages = first.pagination.total_pages if first.pagination else None
            last_page = min(total_pages, options.max_pages) if total_pages else 1
            partial = total_pages is not None and total_pages > options.max_pages
            page = 1
            while page < last_page:
                if run.should_stop() or not self.quota.can_afford(1):
                    logger.info("Stopping pagination for %s at page %s", day, page)
                    partial = True
                    break
                await politeness_delay(options.inter_call_delay_ms)
                try:
                    result = await self._fetch(run, day, page)
                except TransientFetchError as exc:
                    logger.warning("Page %s of %s failed, keeping earlier pages: %s", page, day, exc)
                    partial = True
                    break
                if not result.quotes and not result.raw_records:
                    break
                merge_page_quotes(accumulated, result.quotes)
                page += 1

        quotes = list(accumulated.values())
        if self.matcher is not None:
            quotes = self.matcher.categorize(quotes)
        return DateSnapshot(date=day, quotes=quotes, partial=partial)

    def _report(self, run: _Run, day: str, error: Optional[str]) -> None:
        run.finished += 1
        if self.on_progress is None:
            return
        total = run.result.dates_requested
        self.on_progress(
            CollectionProgress(
                completed=run.finished,
                total=total,
                current_date=day,
                percentage=round(run.finished / total * 100) if total else 100,
                error=error,
            )
        )
