"""Unit tests for snapshot resolution."""

from __future__ import annotations

import pytest

from services.resolver import entry_rank, is_complete_record, resolve_snapshot


def _record(**overrides) -> dict:
    record = {
        "CH4_LPG_ppm": 3.07,
        "CO_ppm": 0.58,
        "PM10_ug_m3": 3,
        "PM1_0_ug_m3": 1,
        "PM2_5_ug_m3": 3,
        "VOCs_ppm": 1.07,
    }
    record.update(overrides)
    return record


def test_flat_record_is_returned_unchanged() -> None:
    record = _record()

    assert resolve_snapshot(record) is record


def test_flat_record_with_missing_field_resolves_to_none() -> None:
    record = _record()
    del record["VOCs_ppm"]

    assert resolve_snapshot(record) is None


def test_nested_snapshot_picks_largest_numeric_key() -> None:
    snapshot = {
        "1700000000": _record(CO_ppm=1.0),
        "1700000300": _record(CO_ppm=3.0),
        "1700000100": _record(CO_ppm=2.0),
    }

    resolved = resolve_snapshot(snapshot)

    assert resolved is not None
    assert resolved["CO_ppm"] == 3.0


def test_nested_snapshot_ties_keep_first_entry() -> None:
    first = _record(CO_ppm=1.0, timestamp=50)
    second = _record(CO_ppm=2.0, timestamp=50)
    snapshot = {"reading-a": first, "reading-b": second}

    assert resolve_snapshot(snapshot) is first


def test_non_numeric_keys_fall_back_to_timestamp_field() -> None:
    snapshot = {
        "-NabcOld": _record(CO_ppm=1.0, timestamp=100),
        "-NabcNew": _record(CO_ppm=2.0, timestamp=200),
        "-NabcNone": _record(CO_ppm=9.0),
    }

    resolved = resolve_snapshot(snapshot)

    assert resolved is not None
    assert resolved["CO_ppm"] == 2.0


def test_incomplete_entries_are_skipped() -> None:
    newest_but_partial = _record(CO_ppm=7.0)
    del newest_but_partial["PM10_ug_m3"]
    snapshot = {
        "10": _record(CO_ppm=1.0),
        "20": newest_but_partial,
        "30": _record(CO_ppm="high"),
        "40": "not-a-record",
    }

    resolved = resolve_snapshot(snapshot)

    assert resolved is not None
    assert resolved["CO_ppm"] == 1.0


def test_no_complete_entry_resolves_to_none() -> None:
    partial = _record()
    del partial["CO_ppm"]

    assert resolve_snapshot({"1": partial, "2": {"timestamp": 5}}) is None


@pytest.mark.parametrize("raw", [None, {}, [], "text", 42])
def test_empty_or_unexpected_snapshots_resolve_to_none(raw) -> None:
    assert resolve_snapshot(raw) is None


def test_list_snapshot_is_ranked_by_index() -> None:
    snapshot = [None, _record(CO_ppm=1.0), _record(CO_ppm=2.0)]

    resolved = resolve_snapshot(snapshot)

    assert resolved is not None
    assert resolved["CO_ppm"] == 2.0


def test_booleans_are_not_numeric() -> None:
    assert is_complete_record(_record()) is True
    assert is_complete_record(_record(PM2_5_ug_m3=True)) is False


def test_entry_rank_order_of_precedence() -> None:
    assert entry_rank("1700000000", {"timestamp": 5}) == 1700000000
    assert entry_rank("abc", {"timestamp": 5}) == 5
    assert entry_rank("abc", {"timestamp": "yesterday"}) == 0
    assert entry_rank("abc", {}) == 0


@pytest.mark.parametrize("key", ["1700000000.5", "1_700", "1e9", " "])
def test_only_plain_integer_keys_rank_by_key(key: str) -> None:
    assert entry_rank(key, {"timestamp": 42}) == 42


def test_signed_and_padded_integer_keys_rank_by_key() -> None:
    assert entry_rank(" 1700000000 ", {}) == 1700000000
    assert entry_rank("-5", {}) == -5
    assert entry_rank(3, {"timestamp": 9}) == 3


def test_non_finite_timestamp_does_not_outrank_later_entries() -> None:
    snapshot = {
        "a": _record(CO_ppm=1.0, timestamp=float("nan")),
        "b": _record(CO_ppm=2.0, timestamp=5),
    }

    assert resolve_snapshot(snapshot)["CO_ppm"] == 2.0


@pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_channel_values_make_entries_incomplete(value: float) -> None:
    assert not is_complete_record(_record(CO_ppm=value))
    assert resolve_snapshot(_record(CO_ppm=value)) is None
    assert resolve_snapshot({"1": _record(CO_ppm=value)}) is None
