from __future__ import annotations

from datetime import timedelta

from sendworker.send.throttle import (
    Admission,
    GlobalThrottleGate,
    RedisThrottleStateStore,
    SqlThrottleStateStore,
)
from tests.utils_fakes import NOW


def test_gate_admits_when_no_state(session_factory):
    gate = GlobalThrottleGate(SqlThrottleStateStore(session_factory), clock=lambda: NOW)
    assert gate.check_admission() is Admission.ADMIT


def test_gate_defers_until_deadline(session_factory):
    store = SqlThrottleStateStore(session_factory)
    gate = GlobalThrottleGate(store, clock=lambda: NOW)

    deadline = gate.raise_deadline(60)
    assert deadline == NOW + timedelta(seconds=60)
    assert store.get() == deadline
    assert gate.check_admission() is Admission.DEFER

    later = GlobalThrottleGate(store, clock=lambda: NOW + timedelta(seconds=61))
    assert later.check_admission() is Admission.ADMIT


def test_sql_store_keeps_single_row(session_factory):
    from sendworker.models.tables import GlobalSendingState

    store = SqlThrottleStateStore(session_factory)
    store.set(NOW)
    store.set(NOW + timedelta(seconds=5))

    with session_factory() as db:
        rows = db.query(GlobalSendingState).all()
        assert len(rows) == 1
    assert store.get() == NOW + timedelta(seconds=5)


def test_clear_removes_deadline(session_factory):
    gate = GlobalThrottleGate(SqlThrottleStateStore(session_factory), clock=lambda: NOW)
    gate.raise_deadline(60)
    gate.clear()
    assert gate.store.get() is None
    assert gate.check_admission() is Admission.ADMIT


class _FakeRedis:
    def __init__(self):
        self.data: dict[str, bytes] = {}
        self.ttl: dict[str, int] = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, ex=None):
        self.data[key] = value.encode("utf-8")
        self.ttl[key] = ex

    def delete(self, key):
        self.data.pop(key, None)


def test_redis_store_roundtrip():
    client = _FakeRedis()
    store = RedisThrottleStateStore(client, key="k")

    assert store.get() is None

    gate = GlobalThrottleGate(store)
    deadline = gate.raise_deadline(120)

    assert store.get() == deadline
    assert client.ttl["k"] >= 120
    assert gate.check_admission() is Admission.DEFER

    store.set(None)
    assert "k" not in client.data


def _racing_factory(session_factory, *, race_on_get: int):
    """Sessions whose Nth get() of the global row lets another worker insert it first."""

    from sendworker.models.tables import GlobalSendingState
    from sendworker.util.time import now_utc

    state = {"gets": 0}

    class _RacingSession:
        def __init__(self):
            self._db = session_factory()

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            self._db.close()

        def __getattr__(self, name):
            return getattr(self._db, name)

        def get(self, entity, ident):
            row = self._db.get(entity, ident)
            if entity is GlobalSendingState:
                state["gets"] += 1
                if state["gets"] == race_on_get:
                    with session_factory() as other:
                        other.add(GlobalSendingState(id=ident, send_retry_delay_time=None, updated_at=now_utc()))
                        other.commit()
                    return None
            return row

    return _RacingSession


def test_sql_store_tolerates_concurrent_first_write(session_factory):
    store = SqlThrottleStateStore(_racing_factory(session_factory, race_on_get=1))

    store.set(NOW + timedelta(seconds=30))

    assert SqlThrottleStateStore(session_factory).get() == NOW + timedelta(seconds=30)


def test_throttled_send_survives_concurrent_first_deadline(session_factory):
    from sendworker.send.outcomes import SendNotificationResponse
    from tests.utils_fakes import DELAY, FakeSender, build_harness, job_payload, metadata

    # get #1 is the admission check, get #2 is inside the deadline write.
    store = SqlThrottleStateStore(_racing_factory(session_factory, race_on_get=2))
    h = build_harness(store=store, sender=FakeSender(SendNotificationResponse.throttled(throttles=3)))

    out = h.orchestrator.run(job_payload(), metadata())

    assert out.path == "throttled"
    assert h.recorder.records == []
    assert len(h.queue.sent) == 1
    assert SqlThrottleStateStore(session_factory).get() == NOW + timedelta(seconds=DELAY)
