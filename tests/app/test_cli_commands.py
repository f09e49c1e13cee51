from __future__ import annotations

import csv
import json
from datetime import date
from pathlib import Path

import httpx
import pytest
from rich.console import Console
from typer.testing import CliRunner

from chess_ingest.app import AppState, app
from chess_ingest.config import StorageConfig
from chess_ingest.engine import GeoResolver, PageFetcher
from chess_ingest.engine.geocoder import Coordinates
from chess_ingest.engine.normalizer import NormalizedTournament
from chess_ingest.engine.sink import SQLiteSink
from chess_ingest.errors import PersistenceFailure
from chess_ingest.infra import SQLiteManager

BERLIN = [{"lat": "52.52", "lon": "13.405"}]


@pytest.fixture
def state(temp_config_repository, ingest_config) -> AppState:
    return AppState(repository=temp_config_repository, config=ingest_config, storage=SQLiteManager())


@pytest.fixture
def cli(monkeypatch: pytest.MonkeyPatch, state: AppState):
    monkeypatch.setattr("chess_ingest.app.build_state", lambda verbose: state)
    monkeypatch.setattr("chess_ingest.app.console", Console(width=200))
    runner = CliRunner()

    def _invoke(*args: str):
        return runner.invoke(app, list(args))

    return _invoke


@pytest.fixture
def stub_remote(monkeypatch, mock_client, geocode_handler, instant_limiter, listing_html, page_html):
    requested: list[str] = []

    def calendar(request: httpx.Request) -> httpx.Response:
        token = request.url.params["page"]
        requested.append(token)
        if token == "2025-10":
            return httpx.Response(500)
        return httpx.Response(
            200,
            text=page_html(
                listing_html(name=f"Open {token}", start="20.11.2025"),
                listing_html(name="Berlin Rapid Open", start="10.11.2025", end="10.11.2025"),
            ),
        )

    monkeypatch.setattr(
        "chess_ingest.orchestrator.PipelineFactory.build_fetcher",
        staticmethod(lambda config, variant: PageFetcher(config.source, client=mock_client(calendar))),
    )
    monkeypatch.setattr(
        "chess_ingest.orchestrator.PipelineFactory.build_geocoder",
        staticmethod(
            lambda config, enabled=True: GeoResolver(
                config.geocoding,
                client=mock_client(geocode_handler({"Berlin, Germany": BERLIN})),
                limiter=instant_limiter,
            )
            if enabled
            else None
        ),
    )
    return requested


def seed(state: AppState) -> None:
    sink = SQLiteSink(state.storage, state.storage_path)
    sink.upsert(
        NormalizedTournament(
            name="Berlin Rapid Open",
            start_date=date(2025, 11, 10),
            end_date=date(2025, 11, 10),
            country="Germany",
            city="Berlin",
            coordinates=Coordinates(52.52, 13.405),
        )
    )
    sink.upsert(
        NormalizedTournament(
            name="Remote Open", start_date=date(2025, 11, 12), end_date=date(2025, 11, 13)
        )
    )
    sink.close()


def test_cli_run_full_range(cli, stub_remote, state) -> None:
    result = cli("run", "--reference-date", "2025-09-01")

    assert result.exit_code == 0, result.stdout
    assert stub_remote == ["2025-9", "2025-10", "2025-11"]
    assert "Run result" in result.stdout
    assert "Failures" in result.stdout
    sink = SQLiteSink(state.storage, state.storage_path)
    summary = sink.statistics()
    sink.close()
    # Two monthly opens plus one Berlin Rapid Open listed on both fetched pages.
    assert summary == {"total": 3, "with_coords": 3, "without_coords": 0}


def test_cli_run_single_page(cli, stub_remote) -> None:
    result = cli("run", "--mode", "single", "--page", "2025-11", "--reference-date", "2025-09-01", "--no-geocode")
    assert result.exit_code == 0, result.stdout
    assert stub_remote == ["2025-11"]


def test_cli_run_single_defaults_to_reference_month(cli, stub_remote) -> None:
    result = cli("run", "--mode", "single", "--reference-date", "2025-09-15")
    assert result.exit_code == 0, result.stdout
    assert stub_remote == ["2025-9"]


def test_cli_run_max_pages(cli, stub_remote) -> None:
    result = cli("run", "--max-pages", "1", "--reference-date", "2025-09-01")
    assert result.exit_code == 0, result.stdout
    assert stub_remote == ["2025-9"]


def test_cli_run_rejects_bad_reference_date(cli, stub_remote) -> None:
    result = cli("run", "--reference-date", "01.09.2025")
    assert result.exit_code != 0
    assert stub_remote == []


def test_cli_run_exits_when_storage_unavailable(cli, stub_remote, state, tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("file", encoding="utf-8")
    state.config = state.config.model_copy(
        update={"storage": StorageConfig(path=blocker / "tournaments.db")}
    )
    result = cli("run", "--reference-date", "2025-09-01")
    assert result.exit_code == 2
    assert stub_remote == []


def test_cli_stats(cli, state) -> None:
    seed(state)
    result = cli("stats")
    assert result.exit_code == 0, result.stdout
    assert "Database statistics" in result.stdout
    assert "Total tournaments" in result.stdout


def test_cli_nearby(cli, state) -> None:
    seed(state)
    result = cli("nearby", "--lat", "52.4", "--lon", "13.1", "--radius", "50", "--reference-date", "2025-11-01")
    assert result.exit_code == 0, result.stdout
    assert "Berlin Rapid Open" in result.stdout
    assert "Remote Open" not in result.stdout

    empty = cli("nearby", "--lat", "48.1", "--lon", "11.6", "--radius", "10")
    assert empty.exit_code == 0
    assert "No tournaments within 10 km" in empty.stdout


def test_cli_export_csv_and_json(cli, state, tmp_path: Path) -> None:
    seed(state)
    target = tmp_path / "out" / "tournaments.csv"
    result = cli("export", "--format", "csv", "--output", str(target))
    assert result.exit_code == 0, result.stdout
    with target.open(encoding="utf-8", newline="") as stream:
        rows = list(csv.DictReader(stream))
    assert [row["name"] for row in rows] == ["Berlin Rapid Open", "Remote Open"]

    default = cli("export", "--format", "json")
    assert default.exit_code == 0, default.stdout
    exported = state.repository.locator.exports_dir / "tournaments.json"
    assert len(json.loads(exported.read_text(encoding="utf-8"))) == 2
    assert (exported.parent / "last-updated.json").exists()


def test_cli_export_rejects_unknown_format(cli) -> None:
    result = cli("export", "--format", "xml")
    assert result.exit_code != 0


def test_cli_config_commands(cli, state) -> None:
    shown = cli("config", "show")
    assert shown.exit_code == 0, shown.stdout
    assert "calendar.test" in shown.stdout

    paths = cli("config", "path")
    assert paths.exit_code == 0
    assert "ingest_config.yaml" in paths.stdout


def test_cli_log_show(cli, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    (tmp_path / "ingest.log").write_text('{"message": "page_parsed"}\n', encoding="utf-8")
    monkeypatch.setattr("chess_ingest.app.log_dir", lambda: tmp_path)

    result = cli("log", "show", "--lines", "5")
    assert result.exit_code == 0, result.stdout
    assert "page_parsed" in result.stdout

    errors = cli("log", "show", "--errors")
    assert "No log entries" in errors.stdout


def test_cli_export_reports_write_failure(cli, state, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    seed(state)

    def refuse(self) -> None:
        raise PersistenceFailure(f"Writing {self.path} failed: disk full")

    monkeypatch.setattr("chess_ingest.app.FileSink.flush", refuse)
    result = cli("export", "--format", "csv", "--output", str(tmp_path / "tournaments.csv"))

    assert result.exit_code == 1
    assert "Export failed" in result.stdout
    assert "disk full" in result.stdout
    assert "Traceback" not in result.stdout
