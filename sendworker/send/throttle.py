"""System-wide throttle state shared by every worker.

The state is a single "retry not before" timestamp. Workers read it before
doing any work and write it when a send exhausts its attempts on rate-limit
responses. Reads and writes are deliberately uncoordinated: there is no lock
and no compare-and-set. Two workers racing may both write a deadline (last
write wins, and both are ~now + delay), and a worker reading just before a
write may let one more job through. Both only cost a few extra calls against
the rate-limited API.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Protocol

from redis import Redis
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sendworker.models.tables import GlobalSendingState
from sendworker.util.time import as_utc, now_utc

log = logging.getLogger("throttle")

GLOBAL_STATE_ID = "global"


class Admission(str, Enum):
    ADMIT = "admit"
    DEFER = "defer"


class ThrottleStateStore(Protocol):
    """Eventually-consistent get/set of the global retry deadline (no CAS)."""

    def get(self) -> datetime | None: ...

    def set(self, retry_not_before: datetime | None) -> None: ...


class SqlThrottleStateStore:
    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def get(self) -> datetime | None:
        with self._session_factory() as db:
            row = db.get(GlobalSendingState, GLOBAL_STATE_ID)
            if row is None or row.send_retry_delay_time is None:
                return None
            return as_utc(row.send_retry_delay_time)

    def set(self, retry_not_before: datetime | None) -> None:
        def _apply(db: Session) -> None:
            row = db.get(GlobalSendingState, GLOBAL_STATE_ID)
            if row is None:
                row = GlobalSendingState(id=GLOBAL_STATE_ID)
                db.add(row)
            row.send_retry_delay_time = retry_not_before
            row.updated_at = now_utc()
            db.commit()

        with self._session_factory() as db:
            try:
                _apply(db)
            except IntegrityError:
                db.rollback()
                # Another worker created the singleton row first; overwrite it.
                _apply(db)


class RedisThrottleStateStore:
    def __init__(self, client: Redis, *, key: str):
        self._client = client
        self._key = key

    def get(self) -> datetime | None:
        raw = self._client.get(self._key)
        if not raw:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return as_utc(datetime.fromisoformat(raw))

    def set(self, retry_not_before: datetime | None) -> None:
        if retry_not_before is None:
            self._client.delete(self._key)
            return
        # Expire shortly after the deadline so stale keys do not accumulate.
        ttl = max(1, int((retry_not_before - now_utc()).total_seconds()) + 60)
        self._client.set(self._key, as_utc(retry_not_before).isoformat(), ex=ttl)


class GlobalThrottleGate:
    def __init__(self, store: ThrottleStateStore, *, clock: Callable[[], datetime] = now_utc):
        self.store = store
        self._clock = clock

    def check_admission(self) -> Admission:
        retry_not_before = self.store.get()
        if retry_not_before is not None and self._clock() < retry_not_before:
            return Admission.DEFER
        return Admission.ADMIT

    def raise_deadline(self, delay_seconds: float) -> datetime:
        deadline = self._clock() + timedelta(seconds=delay_seconds)
        self.store.set(deadline)
        log.warning("Global send deadline raised to %s", deadline.isoformat())
        return deadline

    def clear(self) -> None:
        self.store.set(None)
