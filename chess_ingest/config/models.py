"""Pydantic models used across the ingestion configuration flow."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from ..pages import PageKey, PageKeyRange

DEFAULT_USER_AGENT = "ChessTournamentScraper/1.0"
# Nominatim usage policy: at most one request per second.
MIN_GEOCODE_INTERVAL = 1.0


class ScraperVariant(str, Enum):
    """How listing pages are retrieved."""

    HTTP = "http"
    BROWSER = "browser"


class RunMode(str, Enum):
    """Single page vs. whole configured range."""

    SINGLE = "single"
    FULL = "full"


class PageRange(BaseModel):
    """Inclusive year/month range of calendar pages to ingest."""

    start_year: int = 2025
    start_month: int = 1
    end_year: int = 2028
    end_month: int = 12

    @model_validator(mode="after")
    def _validate_range(self) -> "PageRange":
        for month in (self.start_month, self.end_month):
            if not 1 <= month <= 12:
                raise ValueError(f"Months must be within 1..12, got {month}")
        if (self.end_year, self.end_month) < (self.start_year, self.start_month):
            raise ValueError("Page range end must not precede its start")
        return self

    @property
    def start(self) -> PageKey:
        return PageKey(self.start_year, self.start_month)

    @property
    def end(self) -> PageKey:
        return PageKey(self.end_year, self.end_month)

    def keys(self) -> PageKeyRange:
        return PageKeyRange(self.start, self.end)


class ListingSelectors(BaseModel):
    """CSS selectors locating one listing block and its sub-fields."""

    item: str = ".calItem"
    name: str = ".weblink"
    city: str = ".city"
    country: str = ".country"
    start_date: str = ".startdate"
    end_date: str = ".endDate2"
    source_link: str = ".source a"

    @model_validator(mode="after")
    def _validate_item(self) -> "ListingSelectors":
        if not self.item.strip():
            raise ValueError("item selector cannot be empty")
        return self


class SourceConfig(BaseModel):
    """Remote calendar endpoint and scraping parameters."""

    base_url: str = "https://chess-calendar.eu/index.php"
    user_agent: str = DEFAULT_USER_AGENT
    timeout: float = 20.0
    page_range: PageRange = Field(default_factory=PageRange)
    selectors: ListingSelectors = Field(default_factory=ListingSelectors)
    prefetch: bool = True

    @field_validator("timeout")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeout must be > 0")
        return value


class GeocodingConfig(BaseModel):
    """Geocoding provider settings."""

    enabled: bool = True
    endpoint: str = "https://nominatim.openstreetmap.org/search"
    user_agent: str = DEFAULT_USER_AGENT
    timeout: float = 10.0
    min_interval: float = MIN_GEOCODE_INTERVAL

    @field_validator("min_interval")
    @classmethod
    def _respect_rate_floor(cls, value: float) -> float:
        if value < MIN_GEOCODE_INTERVAL:
            raise ValueError(
                f"min_interval must be >= {MIN_GEOCODE_INTERVAL}s to respect the provider rate limit"
            )
        return value

    @field_validator("timeout")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeout must be > 0")
        return value


class StorageConfig(BaseModel):
    """Where tournaments are persisted."""

    backend: Literal["sqlite", "csv", "json"] = "sqlite"
    path: Path = Field(default=Path("tournaments.db"))
    timeout: float = 5.0

    @field_validator("path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        return Path(value)

    def resolved_path(self, base_dir: Path) -> Path:
        """Return storage path relative to the project data directory."""

        if not self.path.is_absolute():
            return (base_dir / self.path).resolve()
        return self.path


class IngestConfig(BaseModel):
    """Top-level configuration document."""

    source: SourceConfig = Field(default_factory=SourceConfig)
    geocoding: GeocodingConfig = Field(default_factory=GeocodingConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    enable_progress_bar: bool = True


__all__ = [
    "DEFAULT_USER_AGENT",
    "GeocodingConfig",
    "IngestConfig",
    "ListingSelectors",
    "MIN_GEOCODE_INTERVAL",
    "PageRange",
    "RunMode",
    "ScraperVariant",
    "SourceConfig",
    "StorageConfig",
]
