from __future__ import annotations

from fastapi import APIRouter, Depends

from sendworker.core.security import require_admin_token
from sendworker.send.throttle import GlobalThrottleGate
from sendworker.send.wiring import build_throttle_store
from sendworker.util.time import now_utc

router = APIRouter()


def get_gate() -> GlobalThrottleGate:
    return GlobalThrottleGate(build_throttle_store())


@router.get("/throttle", dependencies=[Depends(require_admin_token)])
def get_throttle(gate: GlobalThrottleGate = Depends(get_gate)) -> dict:
    retry_not_before = gate.store.get()
    return {
        "send_retry_delay_time": retry_not_before,
        "throttled": retry_not_before is not None and now_utc() < retry_not_before,
    }


@router.delete("/throttle", dependencies=[Depends(require_admin_token)])
def clear_throttle(gate: GlobalThrottleGate = Depends(get_gate)) -> dict:
    gate.clear()
    return {"ok": True}
