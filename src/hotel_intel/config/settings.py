"""Runtime configuration for the collector.

Relies on pydantic-settings so that environment variables (prefixed with
``HOTEL_INTEL_``) can override defaults. See `.env.example` for common values.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, Optional, Tuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from hotel_intel.hotels.matching import OwnProperty, PropertyMatcher


DEFAULT_OWN_PROPERTIES: tuple[dict[str, object], ...] = (
    {"name": "Riviera Motel", "aliases": ("riviera", "riviera motel")},
    {
        "name": "American Boutique Inn",
        "aliases": ("american boutique", "american boutique inn", "american boutique inn lakeview"),
    },
)

DEFAULT_TRACKED_COMPETITORS: tuple[str, ...] = (
    "Super 8",
    "Lighthouse View",
    "Days Inn",
    "Comfort Inn",
    "Quality Inn",
    "Baymont",
    "Holiday Inn",
    "Clarion",
    "Best Western",
    "Clearwater",
    "Ramada",
    "Bridge Vista",
    "Bayside",
)


def _split_csv(value: object, field_name: str) -> Tuple[str, ...]:
    if value is None or value == "":
        return ()
    if isinstance(value, (tuple, list)):
        return tuple(str(item).strip() for item in value if str(item).strip())
    if isinstance(value, str):
        parts = [part.strip() for part in value.split(",")]
        return tuple(part for part in parts if part)
    raise TypeError(f"{field_name} must be provided as a comma-separated string or list")


def parse_own_properties(value: object) -> Tuple[dict[str, object], ...]:
    """Normalise own-property definitions given as JSON, names or dicts."""
    if value in (None, "", ()):
        return ()
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as exc:
            raise ValueError("own_properties must be valid JSON") from exc
    if isinstance(value, dict):
        value = [value]
    if not isinstance(value, (list, tuple)):
        raise TypeError("own_properties must be a sequence of property definitions")
    properties: list[dict[str, object]] = []
    for entry in value:
        if isinstance(entry, str):
            entry = {"name": entry}
        if not isinstance(entry, dict) or not str(entry.get("name", "")).strip():
            raise ValueError("Each own property needs a non-empty 'name'")
        aliases = entry.get("aliases") or ()
        if isinstance(aliases, str):
            aliases = [aliases]
        properties.append(
            {
                "name": str(entry["name"]).strip(),
                "aliases": tuple(str(alias).strip() for alias in aliases if str(alias).strip()),
                "stable_id": entry.get("stable_id"),
            }
        )
    return tuple(properties)


class Settings(BaseSettings):
    """Captures runtime configuration for collection, caching and analytics."""

    provider_url: str = Field(
        default="https://api.makcorps.com/city",
        description="Metered pricing endpoint (or the proxy that hides the key)",
    )
    account_url: str = Field(
        default="https://api.makcorps.com/account",
        description="Account-status endpoint reporting plan limit and usage",
    )
    api_key: Optional[str] = Field(default=None, description="Provider API key; omit when using a proxy")
    city_id: str = Field(default="42424", description="Provider city identifier")
    currency: str = Field(default="USD")
    adults: int = Field(default=2, ge=1)
    rooms: int = Field(default=1, ge=1)
    http_timeout_s: float = Field(default=30.0, gt=0)

    own_properties: Tuple[dict[str, object], ...] = Field(
        default=DEFAULT_OWN_PROPERTIES,
        description="Own properties as JSON: [{\"name\": ..., \"aliases\": [...]}]",
    )
    direct_competitors: Annotated[Tuple[str, ...], NoDecode] = Field(
        default=(), description="Name fragments of the closest competitors; comma-separated via env"
    )
    tracked_competitors: Annotated[Tuple[str, ...], NoDecode] = Field(
        default=DEFAULT_TRACKED_COMPETITORS,
        description="Name fragments of monitored competitors; comma-separated via env",
    )

    window_start_month: int = Field(default=5, ge=1, le=12)
    window_start_year: int = Field(default=2026, ge=2000)
    window_months: int = Field(default=6, ge=1)

    full_fetch: bool = Field(default=False, description="Follow provider pagination for every date")
    max_pages: int = Field(default=5, ge=1, description="Hard page cap per date when full_fetch is on")
    concurrency: int = Field(default=1, ge=1, description="1 = sequential, N = bounded parallel batches")
    inter_call_delay_ms: int = Field(default=500, ge=0)
    stop_on_limit: bool = True

    cache_path: Path = Field(default=Path("data/storage/snapshots.sqlite3"))
    export_dir: Path = Field(default=Path("data/exports"))
    update_interval_days: int = Field(default=15, ge=1)
    alert_threshold_pct: float = Field(default=15.0, gt=0)
    alert_window_dates: int = Field(default=7, ge=2)

    log_level: str = Field(default="INFO")
    log_dir: Path = Field(default=Path("data/logs"))

    model_config = SettingsConfigDict(
        env_prefix="HOTEL_INTEL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("cache_path", "export_dir", "log_dir", mode="before")
    def _expand_paths(cls, value: str | Path) -> Path:
        if isinstance(value, Path):
            return value.expanduser()
        return Path(value).expanduser()

    @field_validator("direct_competitors", "tracked_competitors", mode="before")
    def _parse_fragments(cls, value: object) -> Tuple[str, ...]:
        return _split_csv(value, "competitor fragments")

    @field_validator("own_properties", mode="before")
    def _parse_own_properties(cls, value: object) -> Tuple[dict[str, object], ...]:
        return parse_own_properties(value)

    def ensure_directories(self) -> None:
        """Create directories that must exist at runtime."""
        self.cache_path.parent.mkdir(parents=True, exist_ok=True)
        self.log_dir.mkdir(parents=True, exist_ok=True)

    def own_property_list(self) -> list[OwnProperty]:
        return [
            OwnProperty(
                name=str(entry["name"]),
                aliases=tuple(entry.get("aliases") or ()),  # type: ignore[arg-type]
                stable_id=entry.get("stable_id"),  # type: ignore[arg-type]
            )
            for entry in self.own_properties
        ]

    def property_matcher(self) -> PropertyMatcher:
        return PropertyMatcher(
            own_properties=self.own_property_list(),
            direct_competitors=self.direct_competitors,
            tracked_competitors=self.tracked_competitors,
        )

    def provider_params(self) -> dict[str, str]:
        """Static query parameters sent with every pricing request."""
        params = {
            "cityid": self.city_id,
            "cur": self.currency,
            "rooms": str(self.rooms),
            "adults": str(self.adults),
        }
        if self.api_key:
            params["api_key"] = self.api_key
        return params
