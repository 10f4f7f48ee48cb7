"""Submit -> poll -> terminal-state driver shared by every provider integration.

Providers differ only in field names and status vocabularies. Each one hands
the runner a `JobAdapter` (plain functions, no subclassing) that turns its raw
poll payload into a normalized `JobStatus`, a list of output refs, and a
failure reason. The runner never looks at provider fields itself.

Timing:
- the caller's interval is floored at 1s and the wait budget at 30s;
- the loop sleeps one interval before every poll;
- a poll is never issued once the next one would land past the deadline;
  the run then fails with JobTimeoutError carrying the last raw status.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, FrozenSet, Iterable, Optional, Sequence, Tuple

from tenacity import AsyncRetrying, RetryError, retry_if_result, wait_fixed

from ...exceptions import JobTimeoutError
from ...models import JobResult, JobStatus, RemoteArtifactRef

logger = logging.getLogger(__name__)

MIN_POLL_INTERVAL_SECONDS = 1
MIN_MAX_WAIT_SECONDS = 30

SleepFn = Callable[[float], Awaitable[None]]
ClockFn = Callable[[], float]


@dataclass(frozen=True)
class StatusVocabulary:
    """Raw status strings (case-insensitive) that map onto each normalized state.

    Anything not listed is treated as PROCESSING until the deadline.
    """

    succeeded: FrozenSet[str]
    failed: FrozenSet[str]
    cancelled: FrozenSet[str] = frozenset()
    pending: FrozenSet[str] = frozenset()

    @classmethod
    def of(
        cls,
        *,
        succeeded: Iterable[str],
        failed: Iterable[str],
        cancelled: Iterable[str] = (),
        pending: Iterable[str] = (),
    ) -> "StatusVocabulary":
        def norm(values: Iterable[str]) -> FrozenSet[str]:
            return frozenset(v.strip().upper() for v in values)

        return cls(norm(succeeded), norm(failed), norm(cancelled), norm(pending))

    def normalize(self, raw_status: Optional[str]) -> JobStatus:
        key = (raw_status or "").strip().upper()
        # failure wins over success if a provider lists a string in both
        if key in self.failed:
            return JobStatus.FAILED
        if key in self.cancelled:
            return JobStatus.CANCELLED
        if key in self.succeeded:
            return JobStatus.SUCCEEDED
        if key in self.pending:
            return JobStatus.PENDING
        return JobStatus.PROCESSING


@dataclass(frozen=True)
class JobAdapter:
    """Per-provider normalization boundary."""

    name: str
    vocabulary: StatusVocabulary
    raw_status: Callable[[Any], Optional[str]]
    outputs_of: Callable[[Any], Sequence[RemoteArtifactRef]]
    failure_of: Callable[[Any], Optional[str]]

    def normalize(self, raw: Any) -> JobStatus:
        return self.vocabulary.normalize(self.raw_status(raw))


@dataclass(frozen=True)
class PollSnapshot:
    raw: Any
    raw_status: Optional[str]
    status: JobStatus


def clamp_polling(poll_interval: Optional[float], timeout: Optional[float]) -> Tuple[float, float]:
    """Apply the interval/timeout floors. The interval never exceeds the budget."""
    interval = max(float(MIN_POLL_INTERVAL_SECONDS), float(poll_interval or 0))
    max_wait = max(float(MIN_MAX_WAIT_SECONDS), float(timeout or 0))
    return min(interval, max_wait), max_wait


def handle_id(handle: Any) -> str:
    return handle if isinstance(handle, str) else str(getattr(handle, "name", None) or handle)


def _still_running(snapshot: PollSnapshot) -> bool:
    return not snapshot.status.is_terminal


class JobRunner:
    """Drives one remote job to a terminal state.

    `sleep` and `clock` are injectable so tests can run the loop on a fake
    timeline. The runner holds no per-job state and can be shared.
    """

    def __init__(self, *, sleep: Optional[SleepFn] = None, clock: Optional[ClockFn] = None) -> None:
        self._sleep: SleepFn = sleep or asyncio.sleep
        self._clock: ClockFn = clock or time.monotonic

    async def run(
        self,
        submit: Callable[[], Awaitable[Any]],
        poll: Callable[[Any], Awaitable[Any]],
        adapter: JobAdapter,
        *,
        poll_interval: Optional[float] = MIN_POLL_INTERVAL_SECONDS,
        timeout: Optional[float] = MIN_MAX_WAIT_SECONDS,
    ) -> JobResult:
        interval, max_wait = clamp_polling(poll_interval, timeout)

        handle = await submit()
        job_id = handle_id(handle)
        started = self._clock()
        logger.info("[%s] %s job submitted (interval=%ss, max_wait=%ss)", job_id, adapter.name, interval, max_wait)

        def past_deadline(_retry_state: Any) -> bool:
            return (self._clock() - started) + interval > max_wait

        retrying = AsyncRetrying(
            sleep=self._sleep,
            wait=wait_fixed(interval),
            stop=past_deadline,
            retry=retry_if_result(_still_running),
        )

        last_seen: dict = {}

        async def poll_once() -> PollSnapshot:
            raw = await poll(handle)
            raw_status = adapter.raw_status(raw)
            snapshot = PollSnapshot(raw=raw, raw_status=raw_status, status=adapter.vocabulary.normalize(raw_status))
            if last_seen.get("status") != raw_status:
                logger.debug("[%s] %s status -> %s (%s)", job_id, adapter.name, raw_status, snapshot.status.value)
            last_seen["status"] = raw_status
            return snapshot

        await self._sleep(interval)
        try:
            snapshot = await retrying(poll_once)
        except RetryError as exc:
            last: PollSnapshot = exc.last_attempt.result()
            logger.error("[%s] %s job timed out after %ss (last status: %s)", job_id, adapter.name, max_wait, last.raw_status)
            raise JobTimeoutError(
                f"{adapter.name} job {job_id} timed out after {int(max_wait)}s",
                last_status=last.raw_status,
                raw=last.raw,
            ) from None

        return self._to_result(job_id, snapshot, adapter)

    @staticmethod
    def _to_result(job_id: str, snapshot: PollSnapshot, adapter: JobAdapter) -> JobResult:
        if snapshot.status is JobStatus.SUCCEEDED:
            outputs = tuple(adapter.outputs_of(snapshot.raw) or ())
            if outputs:
                logger.info("[%s] %s job succeeded with %d output(s)", job_id, adapter.name, len(outputs))
                return JobResult(JobStatus.SUCCEEDED, job_id, outputs=outputs, raw=snapshot.raw)
            logger.error("[%s] %s job reported %s without outputs", job_id, adapter.name, snapshot.raw_status)
            return JobResult(
                JobStatus.FAILED,
                job_id,
                failure_reason=f"{adapter.name} job finished without outputs",
                raw=snapshot.raw,
            )

        reason = adapter.failure_of(snapshot.raw) or f"{adapter.name} job ended with status {snapshot.raw_status}"
        logger.error("[%s] %s job %s: %s", job_id, adapter.name, snapshot.status.value, reason)
        return JobResult(snapshot.status, job_id, failure_reason=reason, raw=snapshot.raw)
