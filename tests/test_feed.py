"""Tests for the realtime feed subscription pipeline."""

from __future__ import annotations

import logging
from typing import List, Optional

from models.records import AirQualityData
from services.feed import FeedClient
from storage.realtime_db import MockRealtimeDatabase


def _record(co: float = 0.58) -> dict:
    return {
        "CH4_LPG_ppm": 3.07,
        "CO_ppm": co,
        "PM10_ug_m3": 3,
        "PM1_0_ug_m3": 1,
        "PM2_5_ug_m3": 3,
        "VOCs_ppm": 1.07,
    }


class Recorder:
    def __init__(self) -> None:
        self.updates: List[Optional[AirQualityData]] = []

    def __call__(self, data: Optional[AirQualityData]) -> None:
        self.updates.append(data)


def test_unconfigured_store_delivers_none_once() -> None:
    recorder = Recorder()
    client = FeedClient(store=None)

    unsubscribe = client.subscribe(recorder)

    assert recorder.updates == [None]
    unsubscribe()
    unsubscribe()
    assert recorder.updates == [None]


def test_every_change_is_resolved_and_normalized() -> None:
    store = MockRealtimeDatabase(name="test")
    store.set("/", _record(co=1.0))
    recorder = Recorder()
    client = FeedClient(store=store, path="/")

    client.subscribe(recorder)
    store.set("/", _record(co=2.0))
    store.set("/", {"1700000000": _record(co=3.0), "1700000600": _record(co=4.0)})

    assert [data.co.value for data in recorder.updates] == [1.0, 2.0, 4.0]


def test_invalid_snapshot_delivers_none(caplog) -> None:
    store = MockRealtimeDatabase(name="test")
    recorder = Recorder()
    client = FeedClient(store=store, path="/sensors")

    with caplog.at_level(logging.WARNING):
        client.subscribe(recorder)
        store.set("/sensors", {"CO_ppm": 1.0})

    assert recorder.updates == [None, None]
    records = [record for record in caplog.records if record.name == "services.feed"]
    assert any(getattr(record, "feed_path", None) == "/sensors" for record in records)


def test_transport_error_is_reported_as_none(caplog) -> None:
    store = MockRealtimeDatabase(name="test")
    store.set("/", _record())
    recorder = Recorder()
    FeedClient(store=store).subscribe(recorder)

    with caplog.at_level(logging.ERROR):
        store.fail(ConnectionError("socket closed"))

    assert recorder.updates[-1] is None
    assert any("socket closed" in getattr(record, "reason", "") for record in caplog.records)


def test_failing_listen_call_is_reported_as_none() -> None:
    class BrokenStore:
        def listen(self, path, on_change, on_error=None):
            raise ConnectionError("offline")

    recorder = Recorder()

    unsubscribe = FeedClient(store=BrokenStore()).subscribe(recorder)

    assert recorder.updates == [None]
    unsubscribe()


def test_unsubscribe_stops_deliveries_and_is_idempotent() -> None:
    store = MockRealtimeDatabase(name="test")
    store.set("/", _record(co=1.0))
    recorder = Recorder()
    unsubscribe = FeedClient(store=store).subscribe(recorder)

    unsubscribe()
    unsubscribe()
    store.set("/", _record(co=2.0))

    assert len(recorder.updates) == 1
    assert store.listener_count == 0


def test_subscriber_exceptions_do_not_escape_the_listener() -> None:
    store = MockRealtimeDatabase(name="test")
    calls: List[Optional[AirQualityData]] = []

    def explode(data: Optional[AirQualityData]) -> None:
        calls.append(data)
        raise RuntimeError("boom")

    FeedClient(store=store).subscribe(explode)
    store.set("/", _record())

    assert len(calls) == 2


def test_subscriptions_are_independent() -> None:
    store = MockRealtimeDatabase(name="test")
    first = Recorder()
    second = Recorder()
    client = FeedClient(store=store)

    unsubscribe_first = client.subscribe(first)
    client.subscribe(second)
    unsubscribe_first()
    store.set("/", _record())

    assert first.updates == [None]
    assert second.updates[-1] is not None
