from __future__ import annotations

import pytest

from sendworker.integrations.telegram import TelegramSendError
from sendworker.models.tables import Conversation, NotificationData, SentNotification
from sendworker.schemas.send_queue import decode_job
from sendworker.send.delay import DelaySendingNotificationService
from sendworker.send.params import GetSendNotificationParamsService, NotificationNotFoundError
from sendworker.send.results import ManageResultDataService
from sendworker.send.throttle import GlobalThrottleGate
from sendworker.util.time import now_utc
from tests.utils_fakes import NOW, FakeQueue, FakeStore


def _seed_notification(session_factory, notification_id="N1", text="Hello team"):
    with session_factory() as db:
        db.add(
            NotificationData(
                id=notification_id,
                content={"text": text, "parse_mode": "HTML", "disable_web_page_preview": False},
                created_at=now_utc(),
            )
        )
        db.commit()


def _service(session_factory, get_chat_fn=None, *, max_attempts=3):
    store = FakeStore()
    queue = FakeQueue()
    gate = GlobalThrottleGate(store, clock=lambda: NOW)
    svc = GetSendNotificationParamsService(
        session_factory=session_factory,
        delay_service=DelaySendingNotificationService(gate=gate, send_queue=queue),
        result_service=ManageResultDataService(session_factory),
        token="tok",
        max_number_of_attempts=max_attempts,
        send_retry_delay_number_of_seconds=30,
        get_chat_fn=get_chat_fn,
    )
    return svc, store, queue


def _job(**recipient):
    data = {"recipient_id": "R1"}
    data.update(recipient)
    return decode_job({"notification_id": "N1", "recipient_data": data})


def test_known_chat_id_builds_params(session_factory):
    _seed_notification(session_factory)
    svc, _, _ = _service(session_factory)

    out = svc.get_send_notification_params(_job(chat_id="777"))

    assert out.force_close is False
    assert out.recipient_id == "R1"
    assert out.params.chat_id == "777"
    assert out.params.text == "Hello team"
    assert out.params.parse_mode == "HTML"
    assert out.params.disable_web_page_preview is False


def test_previously_resolved_params_are_reused(session_factory):
    svc, _, _ = _service(session_factory)
    job = decode_job(
        {
            "notification_id": "N-missing",
            "recipient_data": {"recipient_id": "R1"},
            "resolved_params": {"chat_id": "5", "text": "cached"},
        }
    )

    out = svc.get_send_notification_params(job)

    assert out.params.chat_id == "5"
    assert out.params.text == "cached"


def test_missing_notification_raises(session_factory):
    svc, _, _ = _service(session_factory)

    with pytest.raises(NotificationNotFoundError):
        svc.get_send_notification_params(_job(chat_id="777"))


def test_cached_conversation_is_used(session_factory):
    _seed_notification(session_factory)
    with session_factory() as db:
        db.add(Conversation(recipient_id="R1", chat_id="4242", created_at=now_utc()))
        db.commit()

    def boom(**kwargs):
        raise AssertionError("should not look up a cached conversation")

    svc, _, _ = _service(session_factory, get_chat_fn=boom)

    out = svc.get_send_notification_params(_job(username="alice"))
    assert out.params.chat_id == "4242"


def test_conversation_created_and_cached(session_factory):
    _seed_notification(session_factory)
    calls = []

    def get_chat(*, token, chat_id):
        calls.append(chat_id)
        if len(calls) == 1:
            raise TelegramSendError(429, "Too Many Requests: retry after 1", retry_after=1)
        return 200, {"ok": True, "result": {"id": 98765}}

    svc, _, queue = _service(session_factory, get_chat_fn=get_chat)

    out = svc.get_send_notification_params(_job(username="alice"))

    assert calls == ["@alice", "@alice"]
    assert out.force_close is False
    assert out.total_number_of_throttles == 1
    assert out.params.chat_id == "98765"
    assert queue.sent == []

    with session_factory() as db:
        assert db.get(Conversation, "R1").chat_id == "98765"


def test_conversation_throttled_delays_and_force_closes(session_factory):
    _seed_notification(session_factory)

    def get_chat(**kwargs):
        raise TelegramSendError(429, "Too Many Requests", retry_after=3)

    svc, store, queue = _service(session_factory, get_chat_fn=get_chat, max_attempts=2)

    out = svc.get_send_notification_params(_job(username="alice"))

    assert out.force_close is True
    assert out.total_number_of_throttles == 2
    assert len(queue.sent) == 1
    assert queue.sent[0][1] == 30
    assert store.value is not None

    with session_factory() as db:
        assert db.query(SentNotification).count() == 0


def test_conversation_failure_is_recorded(session_factory):
    _seed_notification(session_factory)

    def get_chat(**kwargs):
        raise TelegramSendError(400, "Bad Request: chat not found")

    svc, _, queue = _service(session_factory, get_chat_fn=get_chat)

    out = svc.get_send_notification_params(_job(username="ghost"))

    assert out.force_close is True
    assert queue.sent == []
    with session_factory() as db:
        row = db.get(SentNotification, ("N1", "R1"))
        assert row.status_code == 400
        assert row.is_status_code_from_create_conversation is True
        assert row.error_message == "Bad Request: chat not found"


def test_no_destination_is_recorded_as_not_found(session_factory):
    _seed_notification(session_factory)
    svc, _, _ = _service(session_factory)

    out = svc.get_send_notification_params(_job())

    assert out.force_close is True
    with session_factory() as db:
        row = db.get(SentNotification, ("N1", "R1"))
        assert row.status_code == 404
        assert row.delivery_status == "RecipientNotFound"
