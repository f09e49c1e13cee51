from __future__ import annotations

from datetime import date

from chess_ingest.engine.dedup import DedupIndex, IdentityKey


def test_check_and_record_reports_second_sighting() -> None:
    index = DedupIndex()
    key = IdentityKey("Berlin Rapid Open", date(2025, 11, 10))
    assert index.check_and_record(key) is False
    assert index.check_and_record(key) is True
    assert len(index) == 1


def test_identity_is_exact_and_case_sensitive() -> None:
    index = DedupIndex([IdentityKey("Open", date(2025, 11, 10))])
    assert IdentityKey("Open", date(2025, 11, 10)) in index
    assert not index.exists(IdentityKey("open", date(2025, 11, 10)))
    assert not index.exists(IdentityKey("Open", date(2025, 11, 11)))


def test_load_returns_number_of_new_keys() -> None:
    index = DedupIndex()
    keys = [("A", date(2025, 1, 1)), ("B", date(2025, 1, 1)), ("A", date(2025, 1, 1))]
    assert index.load(keys) == 2
    assert index.load(keys) == 0
    index.record(IdentityKey("C", date(2025, 1, 2)))
    assert len(index) == 3


def test_identity_key_renders_readably() -> None:
    assert str(IdentityKey("Open", date(2025, 11, 10))) == "Open @ 2025-11-10"
