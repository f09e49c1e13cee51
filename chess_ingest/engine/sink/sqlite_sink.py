"""Persist tournaments into the SQLite ``tournaments`` table."""

from __future__ import annotations

import math
import sqlite3
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Iterator

import structlog

from ...errors import PersistenceFailure
from ...infra.storage import SQLiteManager
from ..dedup import IdentityKey
from ..geocoder import Coordinates, haversine_km
from ..normalizer import ROW_FIELDS, NormalizedTournament
from .base import PersistenceSink, UpsertResult

_COLUMNS = ROW_FIELDS
# Kilometres per degree of latitude.
_KM_PER_DEGREE = 111.0


@dataclass(slots=True)
class NearbyTournament:
    row: dict[str, Any]
    distance_km: float


class SQLiteSink(PersistenceSink):
    """Upsert normalised tournaments; conflicts on identity are no-ops."""

    def __init__(self, manager: SQLiteManager, path: Path) -> None:
        self.manager = manager
        self.path = path
        self.logger = structlog.get_logger("chess_ingest.sink.sqlite")
        self._conn = self.manager.connect(path)

    def upsert(self, record: NormalizedTournament) -> UpsertResult:
        row = record.as_row()
        placeholders = ", ".join("?" for _ in _COLUMNS)
        try:
            cur = self._conn.execute(
                f"INSERT INTO tournaments ({', '.join(_COLUMNS)}) VALUES ({placeholders}) "
                "ON CONFLICT (name, start_date) DO NOTHING",
                tuple(row[column] for column in _COLUMNS),
            )
            self._conn.commit()
        except sqlite3.Error as exc:
            raise PersistenceFailure(f"Storing {record.identity} failed: {exc}") from exc
        return UpsertResult.INSERTED if cur.rowcount == 1 else UpsertResult.EXISTS

    def lookup(self, key: IdentityKey) -> bool:
        try:
            cur = self._conn.execute(
                "SELECT 1 FROM tournaments WHERE name = ? AND start_date = ?",
                (key.name, key.start_date.isoformat()),
            )
            return cur.fetchone() is not None
        except sqlite3.Error as exc:
            raise PersistenceFailure(f"Lookup of {key} failed: {exc}") from exc

    def existing_keys(self) -> Iterator[IdentityKey]:
        try:
            rows = self._conn.execute("SELECT name, start_date FROM tournaments").fetchall()
        except sqlite3.Error as exc:
            raise PersistenceFailure(f"Reading identity keys failed: {exc}") from exc
        for row in rows:
            try:
                start_date = date.fromisoformat(row["start_date"])
            except (TypeError, ValueError):
                self.logger.warning(
                    "stored_row_skipped", name=row["name"], start_date=row["start_date"]
                )
                continue
            yield IdentityKey(row["name"], start_date)

    def iter_rows(self) -> Iterator[dict[str, Any]]:
        cur = self._conn.execute(
            f"SELECT {', '.join(_COLUMNS)} FROM tournaments ORDER BY start_date, name"
        )
        for row in cur:
            yield dict(row)

    def nearby(
        self,
        latitude: float,
        longitude: float,
        radius_km: float = 100.0,
        reference_date: date | None = None,
    ) -> list[NearbyTournament]:
        """Tournaments within ``radius_km``, nearest first.

        A bounding box narrows the SQL scan; the exact great-circle distance
        decides membership. With ``reference_date`` only tournaments that have
        not ended before it are returned.
        """

        if radius_km <= 0:
            raise ValueError("radius_km must be > 0")
        lat_delta = radius_km / _KM_PER_DEGREE
        clauses = [
            "latitude IS NOT NULL",
            "longitude IS NOT NULL",
            "latitude BETWEEN ? AND ?",
        ]
        params: list[Any] = [latitude - lat_delta, latitude + lat_delta]
        cos_lat = math.cos(math.radians(latitude))
        if cos_lat > 1e-6:
            lon_delta = radius_km / (_KM_PER_DEGREE * cos_lat)
            if lon_delta < 180:
                west, east = longitude - lon_delta, longitude + lon_delta
                # A box crossing the antimeridian wraps to the opposite edge.
                if west < -180:
                    clauses.append("(longitude >= ? OR longitude <= ?)")
                    params.extend([west + 360, east])
                elif east > 180:
                    clauses.append("(longitude >= ? OR longitude <= ?)")
                    params.extend([west, east - 360])
                else:
                    clauses.append("longitude BETWEEN ? AND ?")
                    params.extend([west, east])
        if reference_date is not None:
            clauses.append("end_date >= ?")
            params.append(reference_date.isoformat())
        cur = self._conn.execute(
            f"SELECT {', '.join(_COLUMNS)} FROM tournaments WHERE {' AND '.join(clauses)}",
            params,
        )
        origin = Coordinates(latitude, longitude)
        matches: list[NearbyTournament] = []
        for row in cur:
            distance = haversine_km(origin, Coordinates(row["latitude"], row["longitude"]))
            if distance <= radius_km:
                matches.append(NearbyTournament(row=dict(row), distance_km=round(distance, 2)))
        matches.sort(key=lambda item: item.distance_km)
        return matches

    def statistics(self) -> dict[str, int]:
        row = self._conn.execute(
            "SELECT COUNT(*) AS total, COUNT(latitude) AS with_coords FROM tournaments"
        ).fetchone()
        total, with_coords = row["total"], row["with_coords"]
        return {
            "total": total,
            "with_coords": with_coords,
            "without_coords": total - with_coords,
        }

    def flush(self) -> None:
        self._conn.commit()

    def close(self) -> None:
        self._conn.commit()
        self.manager.close(self.path)


__all__ = ["NearbyTournament", "SQLiteSink"]
