"""User-friendly run configuration loader for manual collection runs."""
from __future__ import annotations

import tomllib
from datetime import date
from pathlib import Path
from typing import Iterable, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from hotel_intel.config.settings import Settings, parse_own_properties
from hotel_intel.tasks.date_window import collection_window


def _coerce_string_list(value: object) -> list[str]:
    if value in (None, "", ()):
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    if isinstance(value, Iterable):
        result: list[str] = []
        for item in value:
            text = str(item).strip()
            if text:
                result.append(text)
        return result
    raise TypeError("Expected string or list of strings")


class WindowSection(BaseModel):
    """Date window overrides; explicit ``dates`` win over the month window."""

    start_month: Optional[int] = Field(default=None, ge=1, le=12)
    start_year: Optional[int] = Field(default=None, ge=2000)
    months: Optional[int] = Field(default=None, ge=1)
    dates: list[str] = Field(default_factory=list)

    @field_validator("dates", mode="before")
    @classmethod
    def _coerce_dates(cls, value: object) -> list[str]:
        return _coerce_string_list(value)


class FetchSection(BaseModel):
    """Collection knobs decoded from the run config."""

    full_fetch: Optional[bool] = None
    max_pages: Optional[int] = Field(default=None, ge=1)
    concurrency: Optional[int] = Field(default=None, ge=1)
    inter_call_delay_ms: Optional[int] = Field(default=None, ge=0)
    stop_on_limit: Optional[bool] = None
    log_level: Optional[str] = None


class StorageSection(BaseModel):
    """Cache and export location overrides."""

    cache_path: Optional[str] = Field(default=None, description="Override the SQLite cache path")
    export_dir: Optional[str] = None
    update_interval_days: Optional[int] = Field(default=None, ge=1)


class PropertiesSection(BaseModel):
    """Own-property and competitor overrides."""

    own: list[dict[str, object]] = Field(default_factory=list)
    direct_competitors: Optional[list[str]] = None
    tracked_competitors: Optional[list[str]] = None

    @field_validator("direct_competitors", "tracked_competitors", mode="before")
    @classmethod
    def _coerce_fragments(cls, value: object) -> Optional[list[str]]:
        if value is None:
            return None
        return _coerce_string_list(value)


class RunConfig(BaseModel):
    """Top-level configuration decoded from TOML."""

    profile: str = Field(default="default", description="Human label used for logging")
    title: Optional[str] = None
    notes: Optional[str] = None
    window: WindowSection = Field(default_factory=WindowSection)
    fetch: FetchSection = Field(default_factory=FetchSection)
    storage: Optional[StorageSection] = None
    properties: Optional[PropertiesSection] = None

    @model_validator(mode="after")
    def _validate_dates(self) -> "RunConfig":
        for day in self.window.dates:
            try:
                date.fromisoformat(day)
            except ValueError as exc:
                raise ValueError(f"Invalid date '{day}' in window.dates; use YYYY-MM-DD") from exc
        return self

    @classmethod
    def load(cls, path: Path) -> "RunConfig":
        """Load a config from a TOML file."""
        data = tomllib.loads(path.read_text())
        return cls.model_validate(data)

    # Public API -----------------------------------------------------------------

    def apply_to(self, settings: Settings, *, base_dir: Optional[Path] = None) -> None:
        """Apply overrides to an existing Settings instance."""
        self._apply_window(settings)
        self._apply_fetch(settings)
        self._apply_storage(settings, base_dir)
        self._apply_properties(settings)

    def collection_dates(self, settings: Settings) -> list[str]:
        if self.window.dates:
            return list(self.window.dates)
        return collection_window(
            settings.window_start_month, settings.window_start_year, settings.window_months
        )

    # Internal helpers -----------------------------------------------------------

    def _apply_window(self, settings: Settings) -> None:
        window = self.window
        if window.start_month is not None:
            settings.window_start_month = window.start_month
        if window.start_year is not None:
            settings.window_start_year = window.start_year
        if window.months is not None:
            settings.window_months = window.months

    def _apply_fetch(self, settings: Settings) -> None:
        fetch = self.fetch
        if fetch.full_fetch is not None:
            settings.full_fetch = fetch.full_fetch
        if fetch.max_pages is not None:
            settings.max_pages = fetch.max_pages
        if fetch.concurrency is not None:
            settings.concurrency = fetch.concurrency
        if fetch.inter_call_delay_ms is not None:
            settings.inter_call_delay_ms = fetch.inter_call_delay_ms
        if fetch.stop_on_limit is not None:
            settings.stop_on_limit = fetch.stop_on_limit
        if fetch.log_level:
            settings.log_level = fetch.log_level

    def _apply_storage(self, settings: Settings, base_dir: Optional[Path]) -> None:
        storage = self.storage
        if not storage:
            return
        if storage.cache_path:
            settings.cache_path = _resolve_path(storage.cache_path, base_dir)
        if storage.export_dir:
            settings.export_dir = _resolve_path(storage.export_dir, base_dir)
        if storage.update_interval_days is not None:
            settings.update_interval_days = storage.update_interval_days

    def _apply_properties(self, settings: Settings) -> None:
        props = self.properties
        if not props:
            return
        if props.own:
            settings.own_properties = parse_own_properties(props.own)
        if props.direct_competitors is not None:
            settings.direct_competitors = tuple(props.direct_competitors)
        if props.tracked_competitors is not None:
            settings.tracked_competitors = tuple(props.tracked_competitors)


def _resolve_path(raw: str, base_dir: Optional[Path]) -> Path:
    path = Path(raw).expanduser()
    if not path.is_absolute() and base_dir:
        return (base_dir / path).resolve()
    return path


__all__ = ["RunConfig"]
