# zn_poller.py
#
# Wait for a server-side async operation (Job, report export, scan) to finish.
# Fixed interval, optional timeout, fail-fast on transport errors unless retries > 0.
# Timing out leaves the remote operation alone: none of these APIs has a cancel call.

import time, logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, Optional, Callable
from zn_api import ZnClient, TransportError, ProtocolError, PollTimeout

log = logging.getLogger("zn.poller")


class OperationKind(Enum):
    JOB = "job"
    REPORT_EXPORT = "report_export"
    SCAN = "scan"


class OperationState(Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    READY = "READY"
    FINISHED = "FINISHED"
    FAILED = "FAILED"
    UNKNOWN = "UNKNOWN"

_SUCCESS = {OperationState.READY, OperationState.FINISHED}
_WAITING = {OperationState.PENDING, OperationState.RUNNING}


@dataclass(frozen=True)
class AsyncOperationHandle:
    id: str
    kind: OperationKind = OperationKind.JOB


@dataclass(frozen=True)
class OperationStatus:
    state: OperationState
    raw: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def ok(self) -> bool:
        return self.state in _SUCCESS

    @property
    def terminal(self) -> bool:
        return self.state in _SUCCESS or self.state is OperationState.FAILED


# Each sub-API speaks its own dialect; keys are casefolded.
STATUS_VOCAB: Dict[OperationKind, Dict[str, OperationState]] = {
    OperationKind.JOB: {
        "pending": OperationState.PENDING, "running": OperationState.RUNNING,
        "finished": OperationState.FINISHED, "failed": OperationState.FAILED,
    },
    OperationKind.REPORT_EXPORT: {
        "queued": OperationState.PENDING, "loading": OperationState.RUNNING,
        "processing": OperationState.RUNNING, "ready": OperationState.READY,
        "error": OperationState.FAILED, "failed": OperationState.FAILED,
    },
    OperationKind.SCAN: {
        "pending": OperationState.PENDING, "queued": OperationState.PENDING,
        "submitted": OperationState.PENDING, "in process": OperationState.RUNNING,
        "running": OperationState.RUNNING, "scanning": OperationState.RUNNING,
        "completed": OperationState.FINISHED, "results ready": OperationState.FINISHED,
        "published": OperationState.FINISHED, "failed": OperationState.FAILED,
        "cancelled": OperationState.FAILED, "canceled": OperationState.FAILED,
    },
}

def map_status(kind: OperationKind, raw: Any) -> OperationState:
    if not isinstance(raw, str) or not raw.strip():
        return OperationState.UNKNOWN
    return STATUS_VOCAB[kind].get(raw.strip().casefold(), OperationState.UNKNOWN)


def job_status_fetcher(client: ZnClient) -> Callable[[AsyncOperationHandle], OperationStatus]:
    """GET /jobs/{id} -> status from data.status (older payloads carry it at the top level)."""
    def _fetch(handle: AsyncOperationHandle) -> OperationStatus:
        obj = client.get(f"/jobs/{handle.id}")
        obj = obj if isinstance(obj, dict) else {}
        data = obj.get("data") if isinstance(obj.get("data"), dict) else {}
        raw = data.get("status") or obj.get("status")
        raw = raw if isinstance(raw, str) else None
        return OperationStatus(map_status(handle.kind, raw), raw, obj)
    return _fetch


def await_completion(fetch_status: Callable[[AsyncOperationHandle], OperationStatus],
                     handle: AsyncOperationHandle, poll_interval: float,
                     timeout: Optional[float] = None, retries: int = 0,
                     sleep: Callable[[float], None] = time.sleep,
                     clock: Callable[[], float] = time.monotonic) -> OperationStatus:
    """
    Poll fetch_status(handle) until READY/FINISHED or FAILED and return that status.

    Raises ProtocolError on an unrecognised or missing status and PollTimeout once
    `timeout` seconds have gone by without a terminal state. A TransportError from
    fetch_status propagates straight away, or after `retries` consecutive failures.
    """
    deadline = clock() + timeout if timeout is not None else None
    polls = 0; failures = 0; last = None
    while True:
        polls += 1
        try:
            status = fetch_status(handle)
            failures = 0
        except TransportError as e:
            failures += 1
            if failures > retries: raise
            log.warning("Poll %d for %s '%s' failed (%s), retry %d of %d...",
                        polls, handle.kind.value, handle.id, e, failures, retries)
            status = None
        if status is not None:
            if status.state is OperationState.UNKNOWN:
                raise ProtocolError(f"Unexpected status '{status.raw}' for {handle.kind.value} '{handle.id}'.")
            if status.terminal:
                log.info("%s '%s' done with status '%s' after %d polls.",
                         handle.kind.value.capitalize(), handle.id, status.raw, polls)
                return status
            if status.state is not last:
                log.info("%s '%s' still in %s state...", handle.kind.value.capitalize(), handle.id, status.raw)
                last = status.state
        if deadline is None:
            sleep(poll_interval); continue
        remaining = deadline - clock()
        if remaining <= 0:
            raise PollTimeout(f"Gave up on {handle.kind.value} '{handle.id}' after {timeout}s "
                              f"({polls} polls); it is left running.")
        sleep(min(poll_interval, remaining))
