"""Derived market statistics computed from cached date snapshots.

Everything here is a pure read over a ``date -> DateSnapshot`` mapping; the
engine never mutates the snapshots it is given. Values are kept unrounded
internally so that ranking and threshold checks are not skewed by display
rounding; ``to_dict`` methods round for presentation.
"""
from __future__ import annotations

import calendar
import math
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Mapping, Optional, Sequence, Union

from hotel_intel.hotels.matching import OwnProperty, PropertyMatcher, normalize_name
from hotel_intel.hotels.models import DateSnapshot, HotelQuote

PropertyRef = Union[str, OwnProperty]

DEFAULT_ALERT_THRESHOLD_PCT = 15.0
DEFAULT_DEMAND_RATIO = 1.2


def raw_percent_change(old: Optional[float], new: Optional[float]) -> Optional[Decimal]:
    """Unrounded percent change from ``old`` to ``new``, or None without two prices."""
    if not old or not new:
        return None
    return (Decimal(str(new)) - Decimal(str(old))) / Decimal(str(old)) * 100


def percent_change(old: Optional[float], new: Optional[float]) -> Optional[float]:
    """Percent change from ``old`` to ``new`` rounded half-up to one decimal."""
    raw = raw_percent_change(old, new)
    if raw is None:
        return None
    return float(raw.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def round_currency(value: Optional[float]) -> Optional[int]:
    """Round half-up to a whole currency unit for display."""
    if value is None:
        return None
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _mean(values: Sequence[float]) -> Optional[float]:
    return sum(values) / len(values) if values else None


@dataclass(frozen=True)
class DerivedStats:
    date: str
    count: int
    lowest: float
    highest: float
    average: float
    median: float
    spread: float
    lowest_quote: HotelQuote
    highest_quote: HotelQuote

    def to_dict(self) -> dict[str, object]:
        return {
            "date": self.date,
            "count": self.count,
            "lowest": self.lowest,
            "highest": self.highest,
            "average": round_currency(self.average),
            "median": self.median,
            "spread": self.spread,
            "lowest_hotel": self.lowest_quote.name,
            "highest_hotel": self.highest_quote.name,
        }


@dataclass(frozen=True)
class OwnPropertyPosition:
    property_name: str
    quote: Optional[HotelQuote]
    position: Optional[int]
    market_size: int

    @property
    def percentile(self) -> Optional[float]:
        if self.position is None or not self.market_size:
            return None
        return self.position / self.market_size * 100


@dataclass(frozen=True)
class RateChange:
    name: str
    stable_id: Optional[str]
    old_price: float
    new_price: float
    percent_change: float
    is_own: bool = False
    # Unrounded change used for thresholds and ordering.
    raw_change: float = field(default=0.0, repr=False, compare=False)

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "stable_id": self.stable_id,
            "old_price": self.old_price,
            "new_price": self.new_price,
            "percent_change": self.percent_change,
            "is_own": self.is_own,
        }


@dataclass(frozen=True)
class PriceAlert:
    name: str
    from_date: str
    to_date: str
    old_price: float
    new_price: float
    percent_change: float
    is_own: bool = False

    @property
    def direction(self) -> str:
        return "up" if self.percent_change > 0 else "down"


@dataclass(frozen=True)
class DemandDate:
    date: str
    average: float
    ratio: float


@dataclass(frozen=True)
class MonthSummary:
    year: int
    month: int
    days_with_data: int
    market_average: Optional[float]
    own_average: Optional[float]
    lowest_rate: Optional[float]
    highest_rate: Optional[float]

    def to_dict(self) -> dict[str, object]:
        return {
            "month": f"{self.year}-{self.month:02d}",
            "days_with_data": self.days_with_data,
            "market_average": round_currency(self.market_average),
            "own_average": round_currency(self.own_average),
            "lowest_rate": self.lowest_rate,
            "highest_rate": self.highest_rate,
        }


@dataclass(frozen=True)
class MonthComparison:
    first: MonthSummary
    second: MonthSummary
    market_average_change: Optional[float]
    own_average_change: Optional[float]


@dataclass(frozen=True)
class TrendPoint:
    date: str
    market_average: Optional[float]
    lowest: Optional[float]
    own_average: Optional[float]


@dataclass(frozen=True)
class PriceBin:
    lower: int
    upper: int
    count: int = 0
    contains_own: bool = False


@dataclass
class PositionSeries:
    dates: List[str] = field(default_factory=list)
    ranks: Dict[str, List[Optional[int]]] = field(default_factory=dict)


class AnalyticsEngine:
    """Read-only analytics over a snapshot mapping."""

    def __init__(self, snapshots: Mapping[str, DateSnapshot], matcher: Optional[PropertyMatcher] = None) -> None:
        self._snapshots = snapshots
        self.matcher = matcher or PropertyMatcher()

    # ------------------------------------------------------------------
    # per-date views

    def dates(self) -> List[str]:
        return sorted(day for day, snapshot in self._snapshots.items() if not snapshot.is_empty)

    def quotes_for(self, day: str) -> List[HotelQuote]:
        snapshot = self._snapshots.get(day)
        if snapshot is None:
            return []
        # Snapshots are already price-sorted; re-sort in case a caller built one by hand.
        return sorted((q for q in snapshot.quotes if q.price and q.price > 0), key=lambda q: q.price)

    def date_stats(self, day: str) -> Optional[DerivedStats]:
        quotes = self.quotes_for(day)
        if not quotes:
            return None
        prices = [quote.price for quote in quotes]
        return DerivedStats(
            date=day,
            count=len(quotes),
            lowest=prices[0],
            highest=prices[-1],
            average=sum(prices) / len(prices),
            median=prices[len(prices) // 2],
            spread=prices[-1] - prices[0],
            lowest_quote=quotes[0],
            highest_quote=quotes[-1],
        )

    def _resolve(self, prop: PropertyRef) -> OwnProperty:
        if isinstance(prop, OwnProperty):
            return prop
        known = self.matcher.own_property_for(prop)
        return known or OwnProperty(name=prop)

    def market_position(self, day: str, prop: PropertyRef) -> Optional[int]:
        """1-based rank of ``prop`` in the price-ascending market, or ``None``."""
        target = self._resolve(prop)
        for index, quote in enumerate(self.quotes_for(day), start=1):
            if target.matches(quote.name):
                return index
        return None

    def own_property_positions(self, day: str) -> List[OwnPropertyPosition]:
        quotes = self.quotes_for(day)
        positions: List[OwnPropertyPosition] = []
        for prop in self.matcher.own_properties:
            match: Optional[HotelQuote] = None
            rank: Optional[int] = None
            for index, quote in enumerate(quotes, start=1):
                if prop.matches(quote.name):
                    match, rank = quote, index
                    break
            positions.append(
                OwnPropertyPosition(property_name=prop.name, quote=match, position=rank, market_size=len(quotes))
            )
        return positions

    def own_quotes(self, day: str) -> List[HotelQuote]:
        return [quote for quote in self.quotes_for(day) if self.matcher.is_own(quote.name)]

    # ------------------------------------------------------------------
    # cross-date views

    def _by_name(self, day: str) -> Dict[str, HotelQuote]:
        indexed: Dict[str, HotelQuote] = {}
        for quote in self.quotes_for(day):
            # Cheapest quote per name wins since the list is price-ascending.
            indexed.setdefault(normalize_name(quote.name), quote)
        return indexed

    def rate_changes(self, date_a: str, date_b: str) -> List[RateChange]:
        before = self._by_name(date_a)
        after = self._by_name(date_b)
        changes: List[RateChange] = []
        for key, new in after.items():
            old = before.get(key)
            if old is None:
                continue
            if old.price == new.price:
                continue
            raw = raw_percent_change(old.price, new.price)
            if raw is None:
                continue
            changes.append(
                RateChange(
                    name=new.name,
                    stable_id=new.stable_id or old.stable_id,
                    old_price=old.price,
                    new_price=new.price,
                    percent_change=percent_change(old.price, new.price),
                    is_own=self.matcher.is_own(new.name),
                    raw_change=float(raw),
                )
            )
        changes.sort(key=lambda item: abs(item.raw_change), reverse=True)
        return changes

    def price_alerts(
        self, window: int = 7, threshold_pct: float = DEFAULT_ALERT_THRESHOLD_PCT
    ) -> List[PriceAlert]:
        """Day-over-day moves of at least ``threshold_pct`` among the latest ``window`` dates."""
        if window < 2:
            return []
        recent = self.dates()[-window:]
        alerts: List[PriceAlert] = []
        for earlier, later in zip(recent, recent[1:]):
            for change in self.rate_changes(earlier, later):
                if abs(change.raw_change) >= threshold_pct:
                    alerts.append(
                        PriceAlert(
                            name=change.name,
                            from_date=earlier,
                            to_date=later,
                            old_price=change.old_price,
                            new_price=change.new_price,
                            percent_change=change.percent_change,
                            is_own=change.is_own,
                        )
                    )
        return alerts

    def high_demand_dates(self, ratio: float = DEFAULT_DEMAND_RATIO, top_n: int = 5) -> List[DemandDate]:
        averages: Dict[str, float] = {}
        for day in self.dates():
            stats = self.date_stats(day)
            if stats is not None:
                averages[day] = stats.average
        overall = _mean(list(averages.values()))
        if not overall:
            return []
        flagged = [
            DemandDate(date=day, average=average, ratio=average / overall)
            for day, average in averages.items()
            if average > overall * ratio
        ]
        flagged.sort(key=lambda item: item.average, reverse=True)
        return flagged[:top_n]

    # ------------------------------------------------------------------
    # monthly and chart-oriented views

    def month_summary(self, year: int, month: int) -> Optional[MonthSummary]:
        days = self.month_dates(year, month)
        if not days:
            return None
        market: List[float] = []
        own: List[float] = []
        lowest = math.inf
        highest = 0.0
        for day in days:
            stats = self.date_stats(day)
            if stats is None:
                continue
            market.append(stats.average)
            lowest = min(lowest, stats.lowest)
            highest = max(highest, stats.highest)
            own_prices = [quote.price for quote in self.own_quotes(day)]
            if own_prices:
                own.append(sum(own_prices) / len(own_prices))
        return MonthSummary(
            year=year,
            month=month,
            days_with_data=len(market),
            market_average=_mean(market),
            own_average=_mean(own),
            lowest_rate=None if lowest is math.inf else lowest,
            highest_rate=highest or None,
        )

    def compare_months(self, first: tuple[int, int], second: tuple[int, int]) -> Optional[MonthComparison]:
        a = self.month_summary(*first)
        b = self.month_summary(*second)
        if a is None or b is None:
            return None
        return MonthComparison(
            first=a,
            second=b,
            market_average_change=percent_change(a.market_average, b.market_average),
            own_average_change=percent_change(a.own_average, b.own_average),
        )

    def trend_series(self, limit: int = 62) -> List[TrendPoint]:
        points: List[TrendPoint] = []
        for day in self.dates()[-limit:]:
            stats = self.date_stats(day)
            own_prices = [quote.price for quote in self.own_quotes(day)]
            points.append(
                TrendPoint(
                    date=day,
                    market_average=stats.average if stats else None,
                    lowest=stats.lowest if stats else None,
                    own_average=_mean(own_prices),
                )
            )
        return points

    def position_series(self, limit: int = 31) -> PositionSeries:
        series = PositionSeries(ranks={prop.name: [] for prop in self.matcher.own_properties})
        for day in self.dates()[-limit:]:
            series.dates.append(day)
            for entry in self.own_property_positions(day):
                series.ranks[entry.property_name].append(entry.position)
        return series

    def price_distribution(self, day: str, bin_width: int = 25) -> List[PriceBin]:
        if bin_width <= 0:
            raise ValueError("bin_width must be positive")
        quotes = self.quotes_for(day)
        if not quotes:
            return []
        low = int(math.floor(quotes[0].price / bin_width)) * bin_width
        high = int(math.ceil(quotes[-1].price / bin_width)) * bin_width
        if high == low:
            high = low + bin_width
        counts: Dict[int, int] = {edge: 0 for edge in range(low, high, bin_width)}
        own_bins: set[int] = set()
        for quote in quotes:
            edge = low + int((quote.price - low) // bin_width) * bin_width
            # The maximum lands on the upper edge when it is an exact multiple.
            edge = min(edge, high - bin_width)
            counts[edge] += 1
            if self.matcher.is_own(quote.name):
                own_bins.add(edge)
        return [
            PriceBin(lower=edge, upper=edge + bin_width, count=count, contains_own=edge in own_bins)
            for edge, count in counts.items()
        ]

    def month_dates(self, year: int, month: int) -> List[str]:
        """Cached dates that fall inside the given calendar month."""
        _, last = calendar.monthrange(year, month)
        start, end = f"{year}-{month:02d}-01", f"{year}-{month:02d}-{last:02d}"
        return [day for day in self.dates() if start <= day <= end]
