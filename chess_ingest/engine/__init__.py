"""Engine components: fetch → parse → normalise → dedup → geocode → persist."""

from .dedup import DedupIndex, IdentityKey
from .fetcher import BrowserPageFetcher, FetchResponse, PageFetcher
from .geocoder import Coordinates, GeoResolver, RateLimiter, haversine_km
from .normalizer import (
    Discarded,
    NormalizedTournament,
    RecordNormalizer,
    TournamentCategory,
    TournamentStatus,
)
from .parser import ListingParser, RawListing
from .thread_pool import PagePrefetcher, PageResult

__all__ = [
    "BrowserPageFetcher",
    "Coordinates",
    "DedupIndex",
    "Discarded",
    "FetchResponse",
    "GeoResolver",
    "IdentityKey",
    "ListingParser",
    "NormalizedTournament",
    "PageFetcher",
    "PagePrefetcher",
    "PageResult",
    "RateLimiter",
    "RawListing",
    "RecordNormalizer",
    "TournamentCategory",
    "TournamentStatus",
    "haversine_km",
]
