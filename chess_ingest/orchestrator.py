"""Ingestion pipeline wiring fetching, parsing, dedup, geocoding and persistence."""

from __future__ import annotations

from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Iterable

import structlog

from .config import IngestConfig, ScraperVariant
from .engine import (
    BrowserPageFetcher,
    DedupIndex,
    Discarded,
    GeoResolver,
    ListingParser,
    NormalizedTournament,
    PageFetcher,
    PagePrefetcher,
    PageResult,
    RecordNormalizer,
)
from .engine.sink import FileSink, PersistenceSink, SQLiteSink, UpsertResult
from .errors import IdentityConflict, PersistenceFailure, StorageUnavailable
from .infra import SQLiteManager
from .logging_conf import component_logger
from .pages import PageKey
from .ui import ProgressReporter


class PageState(str, Enum):
    PENDING = "pending"
    FETCHED = "fetched"
    PARSED = "parsed"
    FILTERED = "filtered"
    ENRICHED = "enriched"
    PERSISTED = "persisted"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(slots=True)
class FailureRecord:
    page: str
    reason: str
    identity: str | None = None


@dataclass(slots=True)
class PageReport:
    page: str
    state: PageState = PageState.PENDING
    found: int = 0
    discarded: int = 0
    imported: int = 0
    skipped: int = 0
    failed: int = 0

    def finish(self) -> None:
        if self.imported:
            self.state = PageState.PERSISTED
        elif self.failed:
            self.state = PageState.FAILED
        else:
            self.state = PageState.SKIPPED


@dataclass
class RunStatistics:
    """Aggregated outcome of one run over the page range."""

    imported: int = 0
    skipped: int = 0
    failed: int = 0
    discarded: int = 0
    geocoded: int = 0
    unresolved: int = 0
    pages_total: int = 0
    pages_failed: int = 0
    discard_reasons: Counter = field(default_factory=Counter)
    pages: list[PageReport] = field(default_factory=list)
    failures: list[FailureRecord] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "imported": self.imported,
            "skipped": self.skipped,
            "failed": self.failed,
            "discarded": self.discarded,
            "geocoded": self.geocoded,
            "unresolved": self.unresolved,
            "pages_total": self.pages_total,
            "pages_failed": self.pages_failed,
            "discard_reasons": dict(self.discard_reasons),
            "failures": [asdict(failure) for failure in self.failures],
        }


class IngestionPipeline:
    """Drive one sequential pass over a page range.

    Pages may be fetched one ahead on a background worker; every record is
    normalised, deduplicated, geocoded and persisted on the calling thread,
    one at a time, so the dedup index and statistics have a single writer.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        sink: PersistenceSink,
        geocoder: GeoResolver | None = None,
        parser: ListingParser | None = None,
        normalizer: RecordNormalizer | None = None,
        dedup: DedupIndex | None = None,
        prefetch: bool = True,
        progress: ProgressReporter | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.sink = sink
        self.geocoder = geocoder
        self.parser = parser or ListingParser(fetcher.source.selectors)
        self.normalizer = normalizer or RecordNormalizer()
        self.dedup = dedup
        self.prefetch = prefetch
        self.progress = progress
        self.logger = logger or component_logger("pipeline")

    def load_dedup(self) -> DedupIndex:
        """Seed the dedup index from storage; unreachable storage is fatal."""

        try:
            index = DedupIndex(self.sink.existing_keys())
        except PersistenceFailure as exc:
            raise StorageUnavailable(f"Cannot load existing tournaments: {exc}") from exc
        self.logger.info("dedup_loaded", known=len(index))
        return index

    def run(self, pages: Iterable[PageKey], reference_date: date) -> RunStatistics:
        if self.dedup is None:
            self.dedup = self.load_dedup()
        keys = list(pages)
        stats = RunStatistics(pages_total=len(keys))
        self.logger.info(
            "run_started",
            pages=len(keys),
            first=keys[0].token if keys else None,
            last=keys[-1].token if keys else None,
            reference_date=reference_date.isoformat(),
        )
        if self.progress is not None:
            self.progress.start(len(keys))
        prefetch = self.prefetch and getattr(self.fetcher, "supports_prefetch", True)
        if self.prefetch and not prefetch:
            self.logger.info("prefetch_disabled", fetcher=type(self.fetcher).__name__)
        prefetcher = PagePrefetcher(self.fetcher.fetch, enabled=prefetch)
        try:
            for result in prefetcher.iter_pages(keys):
                report = self._process_page(result, reference_date, stats)
                stats.pages.append(report)
                if self.progress is not None:
                    self.progress.advance(
                        report.page,
                        imported=report.imported,
                        skipped=report.skipped,
                        failed=report.failed,
                    )
        finally:
            if self.progress is not None:
                self.progress.close()
        try:
            self.sink.flush()
        except PersistenceFailure as exc:
            stats.failed += 1
            stats.failures.append(FailureRecord(page="*", reason=str(exc)))
            self.logger.error("sink_flush_failed", error=str(exc))
        self.logger.info("run_finished", **{k: v for k, v in stats.as_dict().items() if k != "failures"})
        return stats

    def _process_page(
        self, result: PageResult, reference_date: date, stats: RunStatistics
    ) -> PageReport:
        report = PageReport(page=result.page.token)
        if not result.ok:
            report.state = PageState.FAILED
            report.failed += 1
            stats.failed += 1
            stats.pages_failed += 1
            stats.failures.append(FailureRecord(page=report.page, reason=str(result.error)))
            self.logger.error("page_failed", page=report.page, error=str(result.error))
            return report
        report.state = PageState.FETCHED
        response = result.response
        candidates: list[NormalizedTournament] = []
        for listing in self.parser.parse(response.text, response.url):
            report.found += 1
            outcome = self.normalizer.normalize(listing, reference_date, result.page)
            if isinstance(outcome, Discarded):
                report.discarded += 1
                stats.discarded += 1
                stats.discard_reasons[outcome.reason] += 1
                self.logger.debug(
                    "listing_discarded", page=report.page, name=listing.name, reason=outcome.reason
                )
                continue
            candidates.append(outcome)
        report.state = PageState.PARSED
        self.logger.info(
            "page_parsed", page=report.page, found=report.found, upcoming=len(candidates)
        )

        for record in candidates:
            try:
                self._ingest_record(record, report, stats)
            except IdentityConflict:
                report.skipped += 1
                stats.skipped += 1
                self.logger.debug("duplicate_skipped", page=report.page, name=record.name)
            except Exception as exc:  # noqa: BLE001
                report.failed += 1
                stats.failed += 1
                stats.failures.append(
                    FailureRecord(page=report.page, reason=str(exc), identity=str(record.identity))
                )
                self.logger.error(
                    "record_failed", page=report.page, name=record.name, error=str(exc)
                )
        report.finish()
        return report

    def _ingest_record(
        self, record: NormalizedTournament, report: PageReport, stats: RunStatistics
    ) -> None:
        key = record.identity
        if self.dedup.check_and_record(key):
            raise IdentityConflict(str(key))
        report.state = PageState.FILTERED

        if self.geocoder is not None:
            coordinates = self.geocoder.resolve(record.city, record.country)
            if coordinates is None:
                stats.unresolved += 1
            else:
                stats.geocoded += 1
            record = record.with_coordinates(coordinates)
        report.state = PageState.ENRICHED

        if self.sink.upsert(record) is UpsertResult.EXISTS:
            raise IdentityConflict(str(key))
        report.imported += 1
        stats.imported += 1
        self.logger.info(
            "tournament_imported",
            page=report.page,
            name=record.name,
            start_date=record.start_date.isoformat(),
            category=record.category.value,
            geocoded=record.coordinates is not None,
        )


class PipelineFactory:
    """Build pipeline collaborators from configuration."""

    @staticmethod
    def build_fetcher(config: IngestConfig, variant: ScraperVariant) -> PageFetcher:
        if variant is ScraperVariant.BROWSER:
            return BrowserPageFetcher(config.source)
        return PageFetcher(config.source)

    @staticmethod
    def build_sink(config: IngestConfig, path: Path, storage: SQLiteManager) -> PersistenceSink:
        if config.storage.backend == "sqlite":
            return SQLiteSink(storage, path)
        return FileSink(path, config.storage.backend)

    @staticmethod
    def build_geocoder(config: IngestConfig, enabled: bool = True) -> GeoResolver | None:
        if not (enabled and config.geocoding.enabled):
            return None
        return GeoResolver(config.geocoding)


__all__ = [
    "FailureRecord",
    "IngestionPipeline",
    "PageReport",
    "PageState",
    "PipelineFactory",
    "RunStatistics",
]
