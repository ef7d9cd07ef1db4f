from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, replace
from datetime import timedelta
import threading
import time

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from freightdash.cache import SnapshotCache
from freightdash.db_models import RecomputeRun
from freightdash.errors import NoDataAvailable, RecomputeFailed
from freightdash.precompute import VIEW_BUILDERS, DashboardService
from freightdash.queries import DashboardQueries
from freightdash.record_store import DatabaseRecordSource
from freightdash.snapshot_store import SnapshotStore

from factories import make_record


class UnwritableStore(SnapshotStore):
    def __init__(self, session_factory) -> None:
        super().__init__(session_factory)
        self.save_calls = 0

    def save(self, snapshot) -> None:
        self.save_calls += 1
        raise OperationalError("INSERT INTO dashboard_snapshots", {}, Exception("database is locked"))


def test_cold_start_computes_then_serves_from_memory(service: DashboardService, load_trips, session_factory) -> None:
    load_trips([make_record("A1"), make_record("A2", "101-250Km")])

    first = service.get_snapshot()
    second = service.get_snapshot()

    assert first is not None
    assert second is first
    assert first.record_count == 2
    assert set(first.views) == set(VIEW_BUILDERS)
    assert service.store.load("all").views == first.views

    with session_factory() as db:
        runs = db.execute(select(RecomputeRun)).scalars().all()
        assert [(run.trigger_source, run.status, run.record_count) for run in runs] == [("cold-start", "succeeded", 2)]


def test_snapshot_views_match_live_queries(service: DashboardService, load_trips, session_factory) -> None:
    load_trips([make_record("A1"), make_record("A1", "Local"), make_record("A2", "251-400Km", units=40)])

    snapshot = service.recompute_all()
    queries = DashboardQueries(DatabaseRecordSource(session_factory))

    assert snapshot.views["summary_cards"] == asdict(queries.summary_cards())
    assert snapshot.views["range_wise"] == asdict(queries.range_wise())
    assert snapshot.views["vehicle_cost"] == [asdict(row) for row in queries.vehicle_cost()]


def test_restart_warms_memory_from_durable_store(test_settings, session_factory, load_trips, service) -> None:
    load_trips([make_record("A1")])
    computed = service.recompute_all()

    restarted = DashboardService(test_settings, DatabaseRecordSource(session_factory), SnapshotStore(session_factory))
    try:
        assert restarted.cache.get("all") is None
        assert restarted.warm_up() == 1
        warmed = restarted.cache.get("all")
        assert warmed is not None
        assert warmed.computed_at == computed.computed_at
        assert warmed.views == computed.views
    finally:
        restarted.shutdown()


def test_invalidation_falls_back_to_durable_until_recompute(service: DashboardService, load_trips) -> None:
    load_trips([make_record("A1")])
    before = service.recompute_all()

    load_trips([make_record("A1"), make_record("A2"), make_record("A3")])
    service.invalidate()
    in_between = service.get_snapshot()

    assert in_between is not None
    assert in_between.record_count == 1
    assert in_between.computed_at == before.computed_at

    future = service.notify_reload()
    assert future is not None
    future.result(timeout=10)

    after = service.get_snapshot()
    assert after.record_count == 3
    assert after.computed_at >= before.computed_at


def test_failed_durable_write_still_swaps_memory(test_settings, session_factory, load_trips) -> None:
    load_trips([make_record("A1")])
    store = UnwritableStore(session_factory)
    service = DashboardService(test_settings, DatabaseRecordSource(session_factory), store)
    try:
        snapshot = service.recompute_all()
    finally:
        service.shutdown()

    assert store.save_calls == test_settings.max_write_retries + 1
    assert service.cache.get("all") is snapshot
    assert store.load("all") is None


def test_failing_source_keeps_previous_snapshot(test_settings, session_factory, load_trips) -> None:
    load_trips([make_record("A1")])
    inner = DatabaseRecordSource(session_factory)
    state = {"fail": False}

    def source():
        if state["fail"]:
            raise RuntimeError("sheet export unavailable")
        return inner()

    service = DashboardService(test_settings, source, SnapshotStore(session_factory))
    try:
        previous = service.recompute_all()
        state["fail"] = True
        with pytest.raises(RecomputeFailed):
            service.recompute_all()
    finally:
        service.shutdown()

    assert service.get_snapshot() is previous
    assert service.store.load("all").computed_at == previous.computed_at

    with session_factory() as db:
        statuses = [run.status for run in db.execute(select(RecomputeRun).order_by(RecomputeRun.id)).scalars()]
        assert statuses == ["succeeded", "failed"]


def test_empty_source_is_an_empty_state(service: DashboardService) -> None:
    assert service.get_snapshot() is None
    with pytest.raises(NoDataAvailable):
        service.recompute_all()


def test_background_failure_keeps_serving_last_snapshot(test_settings, session_factory, load_trips) -> None:
    load_trips([make_record("A1")])
    inner = DatabaseRecordSource(session_factory)
    state = {"fail": False}

    def source():
        if state["fail"]:
            raise RuntimeError("sheet export unavailable")
        return inner()

    service = DashboardService(test_settings, source, SnapshotStore(session_factory))
    try:
        previous = service.recompute_all()
        state["fail"] = True
        future = service.notify_reload()
        assert future.result(timeout=10) is None
        assert service.get_snapshot().computed_at == previous.computed_at
    finally:
        service.shutdown()


def test_reload_triggers_coalesce_into_one_follow_up(test_settings, session_factory, load_trips) -> None:
    load_trips([make_record("A1")])
    inner = DatabaseRecordSource(session_factory)
    started = threading.Event()
    release = threading.Event()
    calls: list[int] = []

    def source():
        calls.append(1)
        started.set()
        release.wait(timeout=10)
        return inner()

    service = DashboardService(test_settings, source, SnapshotStore(session_factory))
    try:
        running = service.notify_reload()
        assert started.wait(timeout=10)

        queued = service.notify_reload()
        coalesced = service.notify_reload()
        assert queued is not None
        assert coalesced is None

        release.set()
        running.result(timeout=10)
        queued.result(timeout=10)
    finally:
        service.shutdown()

    assert len(calls) == 2


def test_cache_refuses_older_snapshots(service: DashboardService, load_trips) -> None:
    load_trips([make_record("A1")])
    current = service.recompute_all()
    cache = SnapshotCache()

    assert cache.offer(current) is True
    older = replace(current, computed_at=current.computed_at - timedelta(minutes=5), record_count=99)
    assert cache.offer(older) is False
    assert cache.get("all") is current

    newer = replace(current, computed_at=current.computed_at + timedelta(minutes=5))
    assert cache.offer(newer) is True
    assert cache.keys() == ["all"]

    cache.invalidate("all")
    assert cache.get("all") is None

    cache.offer(current)
    cache.clear()
    assert cache.keys() == []


def test_concurrent_cold_readers_share_one_recompute(test_settings, session_factory, load_trips) -> None:
    load_trips([make_record("A1"), make_record("A2")])
    inner = DatabaseRecordSource(session_factory)
    calls: list[int] = []
    readers = 4
    start = threading.Barrier(readers)

    def source():
        calls.append(1)
        time.sleep(0.2)
        return inner()

    service = DashboardService(test_settings, source, SnapshotStore(session_factory))

    def read():
        start.wait(timeout=10)
        return service.get_snapshot()

    try:
        with ThreadPoolExecutor(max_workers=readers) as pool:
            snapshots = list(pool.map(lambda _: read(), range(readers)))
    finally:
        service.shutdown()

    assert len(calls) == 1
    assert {snapshot.computed_at for snapshot in snapshots} == {snapshots[0].computed_at}

    with session_factory() as db:
        runs = db.execute(select(RecomputeRun)).scalars().all()
        assert [run.trigger_source for run in runs] == ["cold-start"]
