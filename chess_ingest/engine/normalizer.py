"""Normalisation of raw listings into canonical tournament records."""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any

from ..errors import ParseAnomaly
from ..pages import PageKey
from .dedup import IdentityKey
from .geocoder import Coordinates
from .parser import RawListing

_DATE_PATTERN = re.compile(r"^\d{2}\.\d{2}\.\d{4}$")
# Ongoing tournaments are kept until the day after they end.
GRACE_PERIOD = timedelta(days=1)


class TournamentCategory(str, Enum):
    CLASSICAL = "classical"
    RAPID = "rapid"
    BLITZ = "blitz"


class TournamentStatus(str, Enum):
    UPCOMING = "upcoming"
    ONGOING = "ongoing"


# Column order of the flat storage row shared by every sink.
ROW_FIELDS = (
    "name",
    "tournament_type",
    "time_control",
    "start_date",
    "end_date",
    "country",
    "city",
    "venue_name",
    "latitude",
    "longitude",
    "max_players",
    "entry_fee",
    "currency",
    "website",
    "source_url",
    "status",
    "page_key",
)

# Checked in order; the first keyword found in the name wins.
_CATEGORY_KEYWORDS = (
    ("rapid", TournamentCategory.RAPID),
    ("blitz", TournamentCategory.BLITZ),
)


def parse_listing_date(text: str) -> date:
    """Parse a strict ``DD.MM.YYYY`` date."""

    candidate = text.strip()
    if not _DATE_PATTERN.match(candidate):
        raise ParseAnomaly(f"Expected DD.MM.YYYY, got {text!r}")
    try:
        return datetime.strptime(candidate, "%d.%m.%Y").date()
    except ValueError as exc:
        raise ParseAnomaly(f"Not a calendar date: {text!r}") from exc


def infer_category(name: str) -> TournamentCategory:
    lowered = name.lower()
    for keyword, category in _CATEGORY_KEYWORDS:
        if keyword in lowered:
            return category
    return TournamentCategory.CLASSICAL


def clean_location(text: str) -> str:
    """Trim and drop the trailing comma the source leaves after city/country."""

    cleaned = text.strip()
    if cleaned.endswith(","):
        cleaned = cleaned[:-1].rstrip()
    return cleaned


@dataclass(frozen=True, slots=True)
class NormalizedTournament:
    name: str
    start_date: date
    end_date: date
    country: str = ""
    city: str = ""
    category: TournamentCategory = TournamentCategory.CLASSICAL
    status: TournamentStatus = TournamentStatus.UPCOMING
    coordinates: Coordinates | None = None
    source_url: str | None = None
    page_key: PageKey | None = None
    # Not published by the calendar listing; kept so every store shares one row shape.
    time_control: str = ""
    max_players: int | None = None
    entry_fee: float | None = None
    currency: str = "EUR"
    website: str = ""

    @property
    def identity(self) -> IdentityKey:
        return IdentityKey(self.name, self.start_date)

    @property
    def venue_name(self) -> str:
        return self.city

    def with_coordinates(self, coordinates: Coordinates | None) -> "NormalizedTournament":
        return replace(self, coordinates=coordinates)

    def as_row(self) -> dict[str, Any]:
        latitude = self.coordinates.latitude if self.coordinates else None
        longitude = self.coordinates.longitude if self.coordinates else None
        return {
            "name": self.name,
            "tournament_type": self.category.value,
            "time_control": self.time_control,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "country": self.country,
            "city": self.city,
            "venue_name": self.venue_name,
            "latitude": latitude,
            "longitude": longitude,
            "max_players": self.max_players,
            "entry_fee": self.entry_fee,
            "currency": self.currency,
            "website": self.website,
            "source_url": self.source_url,
            "status": self.status.value,
            "page_key": self.page_key.token if self.page_key else None,
        }


@dataclass(frozen=True, slots=True)
class Discarded:
    """A listing that did not make it into the normalised stream."""

    reason: str
    listing: RawListing
    detail: str | None = None


class RecordNormalizer:
    """Pure conversion of ``RawListing`` to ``NormalizedTournament``."""

    def normalize(
        self,
        listing: RawListing,
        reference_date: date,
        page_key: PageKey | None = None,
    ) -> NormalizedTournament | Discarded:
        name = listing.name.strip()
        if not name:
            return Discarded("missing_name", listing)
        try:
            start_date = parse_listing_date(listing.start_date_text)
        except ParseAnomaly as exc:
            return Discarded("invalid_start_date", listing, detail=str(exc))
        try:
            end_date = parse_listing_date(listing.end_date_text)
        except ParseAnomaly:
            end_date = start_date
        if end_date < start_date:
            end_date = start_date
        if end_date < reference_date - GRACE_PERIOD:
            return Discarded("already_ended", listing, detail=end_date.isoformat())
        status = (
            TournamentStatus.UPCOMING if start_date > reference_date else TournamentStatus.ONGOING
        )
        source_url = (listing.source_url or "").strip() or None
        return NormalizedTournament(
            name=name,
            start_date=start_date,
            end_date=end_date,
            country=clean_location(listing.country_text),
            city=clean_location(listing.city_text),
            category=infer_category(name),
            status=status,
            source_url=source_url,
            page_key=page_key,
        )


__all__ = [
    "Discarded",
    "GRACE_PERIOD",
    "NormalizedTournament",
    "ROW_FIELDS",
    "RecordNormalizer",
    "TournamentCategory",
    "TournamentStatus",
    "clean_location",
    "infer_category",
    "parse_listing_date",
]
