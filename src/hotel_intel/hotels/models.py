"""Dataclasses for normalised hotel quotes and per-date market snapshots."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional, Tuple

CATEGORY_OWN = "own"
CATEGORY_DIRECT = "direct-competitor"
CATEGORY_TRACKED = "tracked-competitor"
CATEGORY_MARKET = "market"

CATEGORIES = (CATEGORY_OWN, CATEGORY_DIRECT, CATEGORY_TRACKED, CATEGORY_MARKET)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if not value:
        return _utc_now()
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(slots=True)
class HotelQuote:
    """One observed nightly price for one property on one stay date."""

    name: str
    price: float
    stable_id: Optional[str] = None
    vendor: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    category: str = CATEGORY_MARKET
    coordinates: Optional[Tuple[float, float]] = None
    phone: Optional[str] = None
    address: Optional[str] = None

    def is_valid(self) -> bool:
        return bool(self.name and self.name.strip()) and self.price is not None and self.price > 0

    def with_category(self, category: str) -> "HotelQuote":
        return replace(self, category=category)

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "stable_id": self.stable_id,
            "price": self.price,
            "vendor": self.vendor,
            "rating": self.rating,
            "review_count": self.review_count,
            "category": self.category,
            "coordinates": list(self.coordinates) if self.coordinates else None,
            "phone": self.phone,
            "address": self.address,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HotelQuote":
        coordinates = data.get("coordinates")
        return cls(
            name=data["name"],
            price=float(data["price"]),
            stable_id=data.get("stable_id"),
            vendor=data.get("vendor"),
            rating=data.get("rating"),
            review_count=data.get("review_count"),
            category=data.get("category") or CATEGORY_MARKET,
            coordinates=(float(coordinates[0]), float(coordinates[1])) if coordinates else None,
            phone=data.get("phone"),
            address=data.get("address"),
        )


def sort_quotes(quotes: Iterable[HotelQuote]) -> List[HotelQuote]:
    """Drop invalid quotes and order the rest ascending by price (stable)."""
    return sorted((quote for quote in quotes if quote.is_valid()), key=lambda quote: quote.price)


@dataclass(slots=True)
class DateSnapshot:
    """The full market observed for one calendar date.

    ``quotes`` is always kept sorted ascending by price; quotes without a
    name or a positive price are discarded on construction.
    """

    date: str
    quotes: List[HotelQuote] = field(default_factory=list)
    fetched_at: datetime = field(default_factory=_utc_now)
    partial: bool = False

    def __post_init__(self) -> None:
        self.quotes = sort_quotes(self.quotes)

    @property
    def is_empty(self) -> bool:
        return not self.quotes

    def to_dict(self) -> dict[str, object]:
        return {
            "date": self.date,
            "fetched_at": self.fetched_at.isoformat(),
            "partial": self.partial,
            "quotes": [quote.to_dict() for quote in self.quotes],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DateSnapshot":
        return cls(
            date=data["date"],
            quotes=[HotelQuote.from_dict(item) for item in data.get("quotes") or []],
            fetched_at=_parse_timestamp(data.get("fetched_at")),
            partial=bool(data.get("partial", False)),
        )


@dataclass(slots=True)
class Pagination:
    """Pagination metadata recovered from the provider's trailing sentinel."""

    current_page: int
    total_pages: Optional[int] = None
    total_results: Optional[int] = None

    def has_more(self) -> bool:
        if self.total_pages is None:
            return False
        return self.current_page + 1 < self.total_pages


@dataclass(slots=True)
class PageResult:
    """One provider page: the raw records plus normalised quotes."""

    date: str
    page: int
    raw_records: List[dict[str, Any]] = field(default_factory=list)
    quotes: List[HotelQuote] = field(default_factory=list)
    pagination: Optional[Pagination] = None
    dropped_records: int = 0
