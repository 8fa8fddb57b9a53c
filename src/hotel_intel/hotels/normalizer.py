"""Utilities to transform raw pricing-provider payloads into normalised quotes.

The provider does not commit to a single schema, so extraction runs through
declared priority lists: a field-alias table for scalar attributes and an
ordered list of named price strategies where the first match wins.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

from .models import HotelQuote, PageResult, Pagination

logger = logging.getLogger(__name__)

NAME_FIELDS: tuple[str, ...] = ("name", "hotelName", "hotel_name", "title")
ID_FIELDS: tuple[str, ...] = ("hotelId", "hotel_id", "id", "property_token")
RATING_FIELDS: tuple[str, ...] = ("rating", "stars", "overall_rating", "reviewRating")
REVIEW_COUNT_FIELDS: tuple[str, ...] = ("reviewCount", "review_count", "reviews", "totalReviews")
PHONE_FIELDS: tuple[str, ...] = ("phone", "telephone")
ADDRESS_FIELDS: tuple[str, ...] = ("address", "hotelAddress")

VENDOR_PAIR_COUNT = 4
NESTED_RATE_FIELDS: tuple[str, ...] = ("rates", "offers", "prices")
NESTED_PRICE_FIELDS: tuple[str, ...] = ("price", "rate", "amount", "extracted_price")
NESTED_VENDOR_FIELDS: tuple[str, ...] = ("vendor", "source", "name")
SINGLE_PRICE_FIELDS: tuple[str, ...] = ("price", "rate", "lowest_price")

TOTAL_PAGES_KEYS: tuple[str, ...] = ("totalpageCount", "totalPageCount", "total_pages")
TOTAL_RESULTS_KEYS: tuple[str, ...] = ("totalHotelCount", "totalhotelCount", "total_results")

_PRICE_CLEANER = re.compile(r"[^0-9.]")


class MalformedRecord(ValueError):
    """Raised when a single provider record cannot be normalised."""


@dataclass(frozen=True)
class PriceCandidate:
    price: float
    vendor: Optional[str]


def parse_price(value: Any) -> Optional[float]:
    """Coerce provider price values (numbers or strings like ``"$1,234"``)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        cleaned = _PRICE_CLEANER.sub("", value)
        if not cleaned:
            return None
        try:
            return float(cleaned)
        except ValueError:
            return None
    return None


def first_present(record: dict[str, Any], fields: Iterable[str]) -> Any:
    for key in fields:
        value = record.get(key)
        if value not in (None, ""):
            return value
    return None


def _to_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, str):
        value = value.replace(",", "").strip()
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _lowest(candidates: Iterable[PriceCandidate]) -> Optional[PriceCandidate]:
    # Strictly lower wins so equal prices keep the provider's vendor order.
    best: Optional[PriceCandidate] = None
    for candidate in candidates:
        if candidate.price <= 0:
            continue
        if best is None or candidate.price < best.price:
            best = candidate
    return best


def _vendor_price_pairs(record: dict[str, Any]) -> Optional[PriceCandidate]:
    candidates: List[PriceCandidate] = []
    for index in range(1, VENDOR_PAIR_COUNT + 1):
        price = parse_price(record.get(f"price{index}"))
        if price is None:
            continue
        candidates.append(PriceCandidate(price=price, vendor=record.get(f"vendor{index}")))
    return _lowest(candidates)


def _nested_rates(record: dict[str, Any]) -> Optional[PriceCandidate]:
    for key in NESTED_RATE_FIELDS:
        entries = record.get(key)
        if not isinstance(entries, list):
            continue
        candidates: List[PriceCandidate] = []
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            price = parse_price(first_present(entry, NESTED_PRICE_FIELDS))
            if price is None:
                continue
            candidates.append(PriceCandidate(price=price, vendor=first_present(entry, NESTED_VENDOR_FIELDS)))
        best = _lowest(candidates)
        if best is not None:
            return best
    return None


def _single_price(record: dict[str, Any]) -> Optional[PriceCandidate]:
    for key in SINGLE_PRICE_FIELDS:
        value = record.get(key)
        if isinstance(value, dict):
            value = first_present(value, ("extracted_lowest", "lowest", "amount", "value"))
        price = parse_price(value)
        if price is not None and price > 0:
            return PriceCandidate(price=price, vendor=record.get("vendor"))
    return None


PriceStrategy = Callable[[dict[str, Any]], Optional[PriceCandidate]]

PRICE_STRATEGIES: tuple[tuple[str, PriceStrategy], ...] = (
    ("vendor-price-pairs", _vendor_price_pairs),
    ("nested-rates", _nested_rates),
    ("single-price", _single_price),
)


def extract_price(
    record: dict[str, Any],
    strategies: Sequence[tuple[str, PriceStrategy]] = PRICE_STRATEGIES,
) -> Tuple[Optional[PriceCandidate], Optional[str]]:
    """Run the price strategies in order and return the first match and its name."""
    for name, strategy in strategies:
        candidate = strategy(record)
        if candidate is not None:
            return candidate, name
    return None, None


def _coordinate_pair(record: dict[str, Any]) -> Optional[Tuple[float, float]]:
    coordinates = record.get("coordinates")
    if isinstance(coordinates, (list, tuple)) and len(coordinates) == 2:
        lat, lon = _to_float(coordinates[0]), _to_float(coordinates[1])
        if lat is not None and lon is not None:
            return lat, lon
    if isinstance(coordinates, dict):
        lat = _to_float(coordinates.get("latitude") or coordinates.get("lat"))
        lon = _to_float(coordinates.get("longitude") or coordinates.get("lon") or coordinates.get("lng"))
        if lat is not None and lon is not None:
            return lat, lon
    lat, lon = _to_float(record.get("latitude")), _to_float(record.get("longitude"))
    if lat is not None and lon is not None:
        return lat, lon
    for key in ("geo", "gps_coordinates", "geoLocation"):
        nested = record.get(key)
        if not isinstance(nested, dict):
            continue
        lat = _to_float(nested.get("lat") if nested.get("lat") is not None else nested.get("latitude"))
        lon = _to_float(nested.get("lon") if nested.get("lon") is not None else nested.get("longitude"))
        if lat is not None and lon is not None:
            return lat, lon
    return None


def _address_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, dict):
        parts = [str(part).strip() for part in value.values() if part]
        return ", ".join(part for part in parts if part) or None
    return str(value)


def build_quote(record: Any) -> HotelQuote:
    """Normalise one raw provider record, raising ``MalformedRecord`` on failure."""
    if not isinstance(record, dict):
        raise MalformedRecord(f"Expected a mapping, got {type(record).__name__}")
    name = first_present(record, NAME_FIELDS)
    if not isinstance(name, str) or not name.strip():
        raise MalformedRecord("Record has no usable name")
    candidate, _ = extract_price(record)
    if candidate is None:
        raise MalformedRecord(f"No positive price for '{name}'")
    stable_id = first_present(record, ID_FIELDS)
    return HotelQuote(
        name=name.strip(),
        price=candidate.price,
        stable_id=str(stable_id) if stable_id is not None else None,
        vendor=candidate.vendor or "Unknown",
        rating=_to_float(first_present(record, RATING_FIELDS)),
        review_count=_to_int(first_present(record, REVIEW_COUNT_FIELDS)),
        coordinates=_coordinate_pair(record),
        phone=first_present(record, PHONE_FIELDS),
        address=_address_text(first_present(record, ADDRESS_FIELDS)),
    )


def _sentinel_value(entry: Any, keys: Iterable[str]) -> Optional[int]:
    if isinstance(entry, dict):
        for key in keys:
            if key in entry:
                return _to_int(entry[key])
        return None
    if isinstance(entry, list):
        for item in entry:
            value = _sentinel_value(item, keys)
            if value is not None:
                return value
    return None


def _is_sentinel(entry: Any) -> bool:
    keys = TOTAL_PAGES_KEYS + TOTAL_RESULTS_KEYS
    if isinstance(entry, list):
        return any(_is_sentinel(item) for item in entry)
    if isinstance(entry, dict):
        return any(key in entry for key in keys) and not first_present(entry, NAME_FIELDS)
    return False


def split_pagination(payload: List[Any], page: int) -> Tuple[List[Any], Optional[Pagination]]:
    """Strip the provider's trailing pagination sentinel from a raw page."""
    if not payload or not _is_sentinel(payload[-1]):
        return list(payload), None
    sentinel = payload[-1]
    pagination = Pagination(
        current_page=page,
        total_pages=_sentinel_value(sentinel, TOTAL_PAGES_KEYS),
        total_results=_sentinel_value(sentinel, TOTAL_RESULTS_KEYS),
    )
    return list(payload[:-1]), pagination


def build_page_result(payload: Any, *, date: str, page: int) -> PageResult:
    """Normalise a whole provider page; malformed records are dropped quietly."""
    if not isinstance(payload, list):
        logger.warning("Unexpected provider payload for %s page %s: %s", date, page, type(payload).__name__)
        return PageResult(date=date, page=page)

    records, pagination = split_pagination(payload, page)
    quotes: List[HotelQuote] = []
    dropped = 0
    for record in records:
        try:
            quotes.append(build_quote(record))
        except MalformedRecord as exc:
            dropped += 1
            logger.debug("Dropping record on %s page %s: %s", date, page, exc)
    return PageResult(
        date=date,
        page=page,
        raw_records=[record for record in records if isinstance(record, dict)],
        quotes=quotes,
        pagination=pagination,
        dropped_records=dropped,
    )
