from __future__ import annotations

import pytest

from sendworker.integrations.telegram import TelegramSendError
from sendworker.schemas.send_queue import ResolvedParams
from sendworker.send.outcomes import SendNotificationResultType
from sendworker.send.sender import SendNotificationService

PARAMS = ResolvedParams(chat_id="1001", text="hi")


def _scripted(*steps):
    calls = []

    def send(**kwargs):
        calls.append(kwargs)
        step = steps[len(calls) - 1]
        if isinstance(step, Exception):
            raise step
        return step, {"ok": True, "result": {"message_id": 1}}

    return send, calls


def test_success_first_try():
    send, calls = _scripted(200)
    svc = SendNotificationService(token="tok", send_fn=send)

    res = svc.send(params=PARAMS, max_number_of_attempts=3)

    assert res.result_type is SendNotificationResultType.SUCCEEDED
    assert res.status_code == 200
    assert res.number_of_throttle_responses == 0
    assert calls[0]["chat_id"] == "1001"
    assert calls[0]["text"] == "hi"


def test_throttle_then_success_counts_throttles():
    send, calls = _scripted(TelegramSendError(429, "Too Many Requests"), 200)
    svc = SendNotificationService(token="tok", send_fn=send)

    res = svc.send(params=PARAMS, max_number_of_attempts=3)

    assert res.result_type is SendNotificationResultType.SUCCEEDED
    assert res.number_of_throttle_responses == 1
    assert len(calls) == 2


def test_all_attempts_throttled():
    err = TelegramSendError(429, "Too Many Requests")
    send, calls = _scripted(err, err, err)
    svc = SendNotificationService(token="tok", send_fn=send)

    res = svc.send(params=PARAMS, max_number_of_attempts=3)

    assert res.result_type is SendNotificationResultType.THROTTLED
    assert res.status_code == 429
    assert res.number_of_throttle_responses == 3
    assert len(calls) == 3


def test_other_error_fails_without_retry():
    send, calls = _scripted(TelegramSendError(403, "Forbidden: bot was blocked by the user"))
    svc = SendNotificationService(token="tok", send_fn=send)

    res = svc.send(params=PARAMS, max_number_of_attempts=3)

    assert res.result_type is SendNotificationResultType.FAILED
    assert res.status_code == 403
    assert res.error_message == "Forbidden: bot was blocked by the user"
    assert len(calls) == 1


def test_transport_exception_propagates():
    import httpx

    send, _ = _scripted(httpx.ConnectError("refused"))
    svc = SendNotificationService(token="tok", send_fn=send)

    with pytest.raises(httpx.ConnectError):
        svc.send(params=PARAMS, max_number_of_attempts=3)


def test_missing_token_is_a_fault():
    svc = SendNotificationService(token=None, send_fn=lambda **kw: (200, {}))

    with pytest.raises(RuntimeError):
        svc.send(params=PARAMS, max_number_of_attempts=3)
