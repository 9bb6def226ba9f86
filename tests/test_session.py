"""
Tests for page-local session state and load sequencing.
"""

from conftest import make_parcel

from parcelboard.models import Parcel
from parcelboard.session import DashboardSession
from parcelboard.store import InMemoryParcelStore, ParcelStore, ParcelStoreError


class BrokenStore(ParcelStore):
    name = "broken"

    def query_created_between(self, start_seconds, end_seconds):
        raise ParcelStoreError("backend unavailable")

    def write_batch(self, parcels):
        raise ParcelStoreError("backend unavailable")


def test_reload_loads_parcels_for_filter(memory_store, now):
    session = DashboardSession(memory_store)
    assert session.change_filter("month", now=now)
    assert len(session.parcels) == 6
    assert session.loading is False
    assert session.loaded_at == now

    assert session.change_filter("today", now=now)
    assert [p.parcel_id for p in session.parcels] == ["PCL-2024-1006"]


def test_stale_load_does_not_overwrite_newer_state():
    session = DashboardSession(InMemoryParcelStore())
    old = session.begin_load()
    new = session.begin_load()
    fresh = [make_parcel("fresh", "received")]
    assert session.complete_load(new, fresh)
    assert not session.complete_load(old, [make_parcel("stale", "received")])
    assert [p.parcel_id for p in session.parcels] == ["fresh"]


def test_stale_load_before_newer_finishes_is_dropped():
    session = DashboardSession(InMemoryParcelStore())
    old = session.begin_load()
    session.begin_load()
    assert not session.complete_load(old, [make_parcel("stale", "received")])
    assert session.parcels == []
    assert session.loading is True


def test_failed_load_keeps_previous_parcels(now):
    session = DashboardSession(InMemoryParcelStore())
    token = session.begin_load()
    kept = [make_parcel("kept", "delivered")]
    session.complete_load(token, kept)

    session.store = BrokenStore()
    assert session.reload(now=now) is False
    assert session.parcels == kept
    assert session.loading is False
    assert "backend unavailable" in session.last_error


def test_stale_failure_is_ignored():
    session = DashboardSession(InMemoryParcelStore())
    old = session.begin_load()
    session.begin_load()
    assert not session.fail_load(old, ParcelStoreError("late"))
    assert session.last_error is None


def test_seed_then_reload(now):
    session = DashboardSession(InMemoryParcelStore())
    session.change_filter("month", now=now)
    assert session.parcels == []
    assert session.seed(now=now)
    assert all(isinstance(p, Parcel) for p in session.parcels)
    assert len(session.parcels) == 6


def test_seed_failure_reports_generic_error(now):
    session = DashboardSession(BrokenStore())
    assert session.seed(now=now) is False
    assert session.last_error == "Failed to seed database."
    assert not session._lock.locked()


def test_seed_failure_waits_for_lock(now):
    session = DashboardSession(BrokenStore())
    recorded = []

    class RecordingLock:
        def __enter__(self):
            recorded.append("acquire")

        def __exit__(self, *exc):
            recorded.append("release")
            return False

    session._lock = RecordingLock()
    session.seed(now=now)
    assert recorded == ["acquire", "release"]
    assert session.last_error == "Failed to seed database."
