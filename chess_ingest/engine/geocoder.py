"""Rate-limited geocoding of tournament locations."""

from __future__ import annotations

import math
import time
from typing import Callable, NamedTuple

import httpx
import structlog

from ..config import GeocodingConfig

EARTH_RADIUS_KM = 6371.0


class Coordinates(NamedTuple):
    latitude: float
    longitude: float


def haversine_km(a: Coordinates, b: Coordinates) -> float:
    """Great-circle distance between two points in kilometres."""

    lat1, lon1 = math.radians(a.latitude), math.radians(a.longitude)
    lat2, lon2 = math.radians(b.latitude), math.radians(b.longitude)
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(h)))


class RateLimiter:
    """Enforce a minimum spacing between consecutive calls (no bursting)."""

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._last: float | None = None

    def wait(self) -> float:
        """Block until the next call is allowed; return the seconds slept."""

        waited = 0.0
        if self._last is not None:
            remaining = self.min_interval - (self._clock() - self._last)
            if remaining > 0:
                self._sleep(remaining)
                waited = remaining
        self._last = self._clock()
        return waited


class GeoResolver:
    """Resolve ``city, country`` to coordinates; ``None`` means unresolved.

    Failures never propagate: an unreachable provider, a malformed payload or
    an empty result all leave the tournament without coordinates.
    """

    def __init__(
        self,
        config: GeocodingConfig,
        client: httpx.Client | None = None,
        limiter: RateLimiter | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config
        self.limiter = limiter or RateLimiter(config.min_interval)
        self.logger = logger or structlog.get_logger("chess_ingest.geocoder")
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=config.timeout,
            headers={"User-Agent": config.user_agent},
        )
        self._cache: dict[str, Coordinates | None] = {}
        self.calls = 0

    def __enter__(self) -> "GeoResolver":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    @staticmethod
    def build_query(city: str, country: str) -> str:
        city, country = city.strip(), country.strip()
        if city and country:
            return f"{city}, {country}"
        return city or country

    def resolve(self, city: str, country: str) -> Coordinates | None:
        query = self.build_query(city, country)
        if not query:
            return None
        if query in self._cache:
            return self._cache[query]
        self.limiter.wait()
        self.calls += 1
        try:
            response = self._client.get(
                self.config.endpoint,
                params={"q": query, "format": "json", "limit": 1},
                headers={"User-Agent": self.config.user_agent},
                timeout=self.config.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            self.logger.warning("geocode_error", query=query, error=str(exc))
            return None
        coordinates = self._extract(payload, query)
        self._cache[query] = coordinates
        return coordinates

    def _extract(self, payload: object, query: str) -> Coordinates | None:
        if not isinstance(payload, list) or not payload:
            self.logger.info("geocode_no_match", query=query)
            return None
        best = payload[0]
        if not isinstance(best, dict):
            return None
        try:
            return Coordinates(float(best["lat"]), float(best["lon"]))
        except (KeyError, TypeError, ValueError):
            self.logger.warning("geocode_malformed", query=query, result=best)
            return None


__all__ = ["Coordinates", "EARTH_RADIUS_KM", "GeoResolver", "RateLimiter", "haversine_km"]
