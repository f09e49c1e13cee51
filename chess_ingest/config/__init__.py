"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import (
    GeocodingConfig,
    IngestConfig,
    ListingSelectors,
    PageRange,
    RunMode,
    ScraperVariant,
    SourceConfig,
    StorageConfig,
)

__all__ = [
    "ConfigLocator",
    "ConfigRepository",
    "GeocodingConfig",
    "IngestConfig",
    "ListingSelectors",
    "PageRange",
    "RunMode",
    "ScraperVariant",
    "SourceConfig",
    "StorageConfig",
]
