"""Own-property and competitor matching by hotel name."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from .models import (
    CATEGORY_DIRECT,
    CATEGORY_MARKET,
    CATEGORY_OWN,
    CATEGORY_TRACKED,
    HotelQuote,
)


def normalize_name(value: Optional[str]) -> str:
    return (value or "").strip().lower()


@dataclass(frozen=True)
class OwnProperty:
    """A hotel the operator controls, identified by name plus known aliases."""

    name: str
    aliases: tuple[str, ...] = ()
    stable_id: Optional[str] = None

    def matches(self, hotel_name: Optional[str]) -> bool:
        normalized = normalize_name(hotel_name)
        if not normalized:
            return False
        if normalized == normalize_name(self.name):
            return True
        return any(alias and alias in normalized for alias in (normalize_name(a) for a in self.aliases))


@dataclass
class PropertyMatcher:
    """Classifies quotes as own, direct competitor, tracked competitor or market."""

    own_properties: Sequence[OwnProperty] = ()
    direct_competitors: Sequence[str] = ()
    tracked_competitors: Sequence[str] = ()
    _direct: tuple[str, ...] = field(init=False, repr=False)
    _tracked: tuple[str, ...] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.own_properties = tuple(self.own_properties)
        self._direct = tuple(normalize_name(item) for item in self.direct_competitors if item.strip())
        self._tracked = tuple(normalize_name(item) for item in self.tracked_competitors if item.strip())

    def own_property_for(self, hotel_name: Optional[str]) -> Optional[OwnProperty]:
        for prop in self.own_properties:
            if prop.matches(hotel_name):
                return prop
        return None

    def is_own(self, hotel_name: Optional[str]) -> bool:
        return self.own_property_for(hotel_name) is not None

    def is_direct_competitor(self, hotel_name: Optional[str]) -> bool:
        normalized = normalize_name(hotel_name)
        return bool(normalized) and any(fragment in normalized for fragment in self._direct)

    def is_tracked_competitor(self, hotel_name: Optional[str]) -> bool:
        normalized = normalize_name(hotel_name)
        return bool(normalized) and any(fragment in normalized for fragment in self._tracked)

    def category(self, hotel_name: Optional[str]) -> str:
        if self.is_own(hotel_name):
            return CATEGORY_OWN
        if self.is_direct_competitor(hotel_name):
            return CATEGORY_DIRECT
        if self.is_tracked_competitor(hotel_name):
            return CATEGORY_TRACKED
        return CATEGORY_MARKET

    def categorize(self, quotes: Iterable[HotelQuote]) -> List[HotelQuote]:
        return [quote.with_category(self.category(quote.name)) for quote in quotes]

    def resolve(self, name_or_property: "str | OwnProperty") -> OwnProperty:
        """Look up a configured own property by name, or wrap an ad-hoc name."""
        if isinstance(name_or_property, OwnProperty):
            return name_or_property
        for prop in self.own_properties:
            if normalize_name(prop.name) == normalize_name(name_or_property):
                return prop
        return OwnProperty(name=name_or_property)
