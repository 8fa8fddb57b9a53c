"""Hotel quote models, normalisation and property matching."""

from .matching import OwnProperty, PropertyMatcher, normalize_name
from .models import (
    CATEGORY_DIRECT,
    CATEGORY_MARKET,
    CATEGORY_OWN,
    CATEGORY_TRACKED,
    DateSnapshot,
    HotelQuote,
    PageResult,
    Pagination,
)
from .normalizer import (
    MalformedRecord,
    build_page_result,
    build_quote,
    extract_price,
    parse_price,
)

__all__ = [
    "CATEGORY_DIRECT",
    "CATEGORY_MARKET",
    "CATEGORY_OWN",
    "CATEGORY_TRACKED",
    "DateSnapshot",
    "HotelQuote",
    "MalformedRecord",
    "OwnProperty",
    "PageResult",
    "Pagination",
    "PropertyMatcher",
    "build_page_result",
    "build_quote",
    "extract_price",
    "normalize_name",
    "parse_price",
]
