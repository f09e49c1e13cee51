"""File based sink: a CSV or JSON export that doubles as the store."""

from __future__ import annotations

import csv
import json
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Iterator

import structlog

from ...errors import PersistenceFailure, StorageUnavailable
from ..dedup import IdentityKey
from ..normalizer import ROW_FIELDS, NormalizedTournament
from .base import PersistenceSink, UpsertResult

FIELDNAMES = ROW_FIELDS
METADATA_FILENAME = "last-updated.json"


def _coerce_float(value: Any) -> float | None:
    if value in (None, ""):
        return None
    return float(value)


def _coerce_int(value: Any) -> int | None:
    if value in (None, ""):
        return None
    return int(value)


class FileSink(PersistenceSink):
    """Keep all rows in memory; ``flush`` rewrites the file sorted by start date.

    Rows of a prior export are loaded on open so that their identity keys
    seed deduplication.
    """

    def __init__(self, path: Path, fmt: str, load_existing: bool = True) -> None:
        if fmt not in {"csv", "json"}:
            raise ValueError(f"Unsupported file format: {fmt}")
        self.path = path
        self.format = fmt
        self.logger = structlog.get_logger("chess_ingest.sink.file")
        self._rows: dict[IdentityKey, dict[str, Any]] = {}
        self._dirty = False
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageUnavailable(f"Cannot create export directory for {path}: {exc}") from exc
        if load_existing and self.path.exists():
            self._load()

    def _load(self) -> None:
        try:
            with self.path.open("r", encoding="utf-8", newline="") as stream:
                if self.format == "csv":
                    rows = list(csv.DictReader(stream))
                else:
                    rows = json.load(stream) or []
        except (OSError, ValueError) as exc:
            raise StorageUnavailable(f"Cannot read prior export {self.path}: {exc}") from exc
        for row in rows:
            try:
                key = IdentityKey(row["name"], date.fromisoformat(row["start_date"]))
                row["latitude"] = _coerce_float(row.get("latitude"))
                row["longitude"] = _coerce_float(row.get("longitude"))
                row["entry_fee"] = _coerce_float(row.get("entry_fee"))
                row["max_players"] = _coerce_int(row.get("max_players"))
            except (KeyError, TypeError, ValueError):
                self.logger.warning("export_row_skipped", path=str(self.path), row=row)
                continue
            self._rows[key] = {field: row.get(field) for field in FIELDNAMES}

    def upsert(self, record: NormalizedTournament) -> UpsertResult:
        if record.identity in self._rows:
            return UpsertResult.EXISTS
        self._rows[record.identity] = record.as_row()
        self._dirty = True
        return UpsertResult.INSERTED

    def add_row(self, row: dict[str, Any]) -> UpsertResult:
        """Add an already flattened storage row (used when exporting)."""

        key = IdentityKey(row["name"], date.fromisoformat(str(row["start_date"])))
        if key in self._rows:
            return UpsertResult.EXISTS
        self._rows[key] = {field: row.get(field) for field in FIELDNAMES}
        self._dirty = True
        return UpsertResult.INSERTED

    def lookup(self, key: IdentityKey) -> bool:
        return key in self._rows

    def existing_keys(self) -> Iterator[IdentityKey]:
        return iter(list(self._rows))

    def rows(self) -> list[dict[str, Any]]:
        return sorted(self._rows.values(), key=lambda row: (row["start_date"], row["name"]))

    def flush(self) -> None:
        if not self._dirty:
            return
        rows = self.rows()
        try:
            with self.path.open("w", encoding="utf-8", newline="") as stream:
                if self.format == "csv":
                    writer = csv.DictWriter(stream, fieldnames=FIELDNAMES)
                    writer.writeheader()
                    for row in rows:
                        writer.writerow({k: "" if v is None else v for k, v in row.items()})
                else:
                    json.dump(rows, stream, indent=2, ensure_ascii=False)
            metadata = {
                "lastUpdated": datetime.now(timezone.utc).isoformat(timespec="seconds"),
                "totalTournaments": len(rows),
            }
            (self.path.parent / METADATA_FILENAME).write_text(
                json.dumps(metadata, indent=2), encoding="utf-8"
            )
        except OSError as exc:
            raise PersistenceFailure(f"Writing {self.path} failed: {exc}") from exc
        self._dirty = False

    def close(self) -> None:
        self.flush()


__all__ = ["FIELDNAMES", "FileSink", "METADATA_FILENAME"]
