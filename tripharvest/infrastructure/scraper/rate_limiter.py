"""
Admission control for respectful scraping.

Bounds concurrent work, spaces operation starts, enforces a refillable
reservoir of starts per time window and retries failed operations with
exponential backoff plus jitter.

Example:
    >>> controller = AdmissionController(AdmissionSettings(max_concurrent=2, min_time=3.0))
    >>> page = await controller.schedule(lambda: session.open(url))
    >>> await controller.drain()
"""

from __future__ import annotations

import asyncio
import dataclasses
import heapq
import itertools
import random
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, TYPE_CHECKING

from tripharvest.utils.exceptions import (
    AdmissionClosedError,
    JobDroppedError,
    RetriesExhaustedError,
)
from tripharvest.utils.logger import get_logger

if TYPE_CHECKING:
    from tripharvest.utils.config import ThrottlingConfig

logger = get_logger(__name__)

DEFAULT_PRIORITY = 5

RATE_LIMITED_STATUS = 429
UNAVAILABLE_STATUSES = frozenset({502, 503, 504})
RETRYABLE_STATUSES = frozenset({408, 425, 429, 500, 502, 503, 504})

RATE_LIMITED_FLOOR = 5.0
UNAVAILABLE_FLOOR = 3.0

Operation = Callable[[], Awaitable[Any]]
RetryPolicy = Callable[[BaseException, int], Optional[float]]


@dataclass
class AdmissionSettings:
    """
    Limits enforced by the admission controller.

    Attributes:
        max_concurrent: Operations allowed to run at the same time.
        min_time: Minimum seconds between two operation starts.
        max_retries: Failures tolerated per job. The failure that reaches
            this count is terminal.
        retry_delay: Base backoff delay in seconds.
        reservoir: Starts allowed before the next refresh. None = unlimited.
        reservoir_refresh_interval: Seconds between reservoir refreshes.
        reservoir_refresh_amount: Value the reservoir is reset to on refresh.
        max_jitter: Upper bound of the random delay added to each backoff.
        max_queued: Jobs allowed to wait for admission. None = unbounded.
    """
    max_concurrent: int = 2
    min_time: float = 0.0
    max_retries: int = 3
    retry_delay: float = 2.0
    reservoir: Optional[int] = None
    reservoir_refresh_interval: Optional[float] = None
    reservoir_refresh_amount: Optional[int] = None
    max_jitter: float = 1.0
    max_queued: Optional[int] = None

    def __post_init__(self) -> None:
        if self.max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if self.min_time < 0 or self.retry_delay < 0 or self.max_jitter < 0:
            raise ValueError("min_time, retry_delay and max_jitter must be non-negative")
        if self.max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        if self.reservoir is not None and self.reservoir < 0:
            raise ValueError("reservoir must be non-negative")
        if self.max_queued is not None and self.max_queued < 0:
            raise ValueError("max_queued must be non-negative")

    @classmethod
    def from_throttling(cls, throttling: "ThrottlingConfig", **overrides: Any) -> "AdmissionSettings":
        """
        Derive settings from a scraper's throttling configuration.

        Starts are spaced by ``60 / requests_per_minute`` and the reservoir
        holds ``requests_per_minute`` starts, refreshed every minute.
        """
        rpm = throttling.requests_per_minute
        settings = dict(
            max_concurrent=throttling.max_concurrent,
            min_time=60.0 / rpm,
            max_retries=throttling.retry_attempts,
            retry_delay=throttling.retry_delay,
            reservoir=rpm,
            reservoir_refresh_interval=60.0,
            reservoir_refresh_amount=rpm,
        )
        settings.update(overrides)
        return cls(**settings)


@dataclass(frozen=True)
class AdmissionControllerState:
    """Point-in-time snapshot of the controller counters."""
    running: int
    queued: int
    retrying: int
    done: int
    failed: int
    dropped: int
    reservoir: Optional[int]
    capacity: int


def status_code_of(error: BaseException) -> Optional[int]:
    """HTTP status carried by an error, if any."""
    status = getattr(error, "status_code", None)
    if status is None:
        status = getattr(error, "status", None)
    return status if isinstance(status, int) else None


def should_retry_status(status: Optional[int]) -> bool:
    """Whether a response status is worth another attempt."""
    return status is None or status in RETRYABLE_STATUSES


def retry_delay_for_status(
    status: Optional[int],
    attempt: int,
    base_delay: float = 2.0,
    max_jitter: float = 1.0,
) -> float:
    """
    Backoff delay for a failed attempt.

    ``floor × 2^(attempt - 1) + uniform(0, max_jitter)``, where ``floor``
    is ``base_delay`` raised to 5s for HTTP 429 and 3s for 502/503/504.

    Args:
        status: HTTP status of the failure, if known.
        attempt: Number of failed attempts so far (1 for the first failure).
        base_delay: Base delay in seconds.
        max_jitter: Upper bound of the random jitter in seconds.

    Returns:
        Delay in seconds before the next attempt.
    """
    floor = base_delay
    if status == RATE_LIMITED_STATUS:
        floor = max(floor, RATE_LIMITED_FLOOR)
    elif status in UNAVAILABLE_STATUSES:
        floor = max(floor, UNAVAILABLE_FLOOR)
    return floor * (2 ** max(attempt - 1, 0)) + random.uniform(0, max_jitter)


def exponential_backoff(
    max_retries: int,
    base_delay: float = 2.0,
    max_jitter: float = 1.0,
) -> RetryPolicy:
    """
    Build the default retry policy.

    The returned function receives the error and the number of failed
    attempts so far, and returns the delay in seconds before the next
    attempt, or None to give up.
    """
    def policy(error: BaseException, attempt: int) -> Optional[float]:
        if attempt >= max_retries:
            return None
        return retry_delay_for_status(status_code_of(error), attempt, base_delay, max_jitter)

    return policy


@dataclass(order=True)
class _Job:
    priority: int
    seq: int
    operation: Operation = field(compare=False)
    future: asyncio.Future = field(compare=False)
    attempts: int = field(default=0, compare=False)


class AdmissionController:
    """
    Concurrency gate, reservoir and retry scheduler.

    Jobs run in priority order (lowest number first, FIFO among equals)
    once a concurrency slot and a reservoir token are both available and
    ``min_time`` has passed since the previous start. Counters are only
    mutated on the event loop by the controller itself.

    Example:
        >>> controller = AdmissionController.for_site("getyourguide", 18, 2)
        >>> result = await controller.schedule(fetch_page)
        >>> controller.state().running
        0
    """

    def __init__(
        self,
        settings: Optional[AdmissionSettings] = None,
        retry_policy: Optional[RetryPolicy] = None,
        name: str = "default",
    ):
        """
        Initialize the controller.

        Args:
            settings: Admission limits (defaults apply when omitted).
            retry_policy: ``(error, attempt) -> Optional[seconds]``. Defaults
                to ``exponential_backoff`` built from the settings.
            name: Label used in log lines.
        """
        self.settings = settings or AdmissionSettings()
        self.name = name
        self._custom_policy = retry_policy
        self._retry_policy = retry_policy or self._default_policy()

        self._queue: list[_Job] = []
        self._seq = itertools.count()
        self._retry_waits: dict[int, tuple[_Job, asyncio.Task]] = {}
        self._job_tasks: set[asyncio.Task] = set()
        self._futures: set[asyncio.Future] = set()

        self._running = 0
        self._done = 0
        self._failed = 0
        self._dropped = 0
        self._reservoir = self.settings.reservoir
        self._next_refresh: Optional[float] = None
        self._next_start = 0.0

        self._accepting = True
        self._stopped = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._wakeup: Optional[asyncio.Event] = None
        self._dispatcher: Optional[asyncio.Task] = None

        logger.debug(
            f"[{self.name}] AdmissionController initialized: "
            f"max_concurrent={self.settings.max_concurrent}, "
            f"min_time={self.settings.min_time:.2f}s, reservoir={self.settings.reservoir}"
        )

    @classmethod
    def for_site(
        cls,
        name: str,
        requests_per_minute: int,
        max_concurrent: int = 2,
        **overrides: Any,
    ) -> "AdmissionController":
        """
        Create a controller paced for one site.

        Args:
            name: Site name, used in log lines.
            requests_per_minute: Starts allowed per minute.
            max_concurrent: Simultaneous operations.
            **overrides: Any other ``AdmissionSettings`` field.
        """
        if requests_per_minute < 1:
            raise ValueError("requests_per_minute must be at least 1")
        settings = AdmissionSettings(
            max_concurrent=max_concurrent,
            min_time=60.0 / requests_per_minute,
            reservoir=requests_per_minute,
            reservoir_refresh_interval=60.0,
            reservoir_refresh_amount=requests_per_minute,
            **overrides,
        )
        return cls(settings, name=name)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def schedule(self, operation: Operation, priority: int = DEFAULT_PRIORITY) -> Any:
        """
        Run an operation once it is admitted.

        Args:
            operation: Zero-argument coroutine function. Called again on
                each retry.
            priority: Lower runs first.

        Returns:
            The operation's result.

        Raises:
            AdmissionClosedError: The controller was stopped or is draining.
            JobDroppedError: The queue is full, or ``stop()`` dropped the job.
            RetriesExhaustedError: Every allowed attempt failed.
        """
        if not self._accepting:
            raise AdmissionClosedError(
                f"[{self.name}] Admission controller is not accepting new work",
                context={"name": self.name},
            )

        self._bind_loop()
        max_queued = self.settings.max_queued
        if max_queued is not None and len(self._queue) >= max_queued:
            self._dropped += 1
            logger.warning(f"[{self.name}] Queue full ({max_queued}), dropping new job")
            raise JobDroppedError(
                f"[{self.name}] Queue full, job dropped",
                reason="overflow",
                context={"max_queued": max_queued},
            )

        future = self._loop.create_future()
        job = _Job(priority, next(self._seq), operation, future)
        self._futures.add(future)
        future.add_done_callback(self._futures.discard)
        heapq.heappush(self._queue, job)
        self._wake()
        return await future

    def state(self) -> AdmissionControllerState:
        """Snapshot of the current counters."""
        self._refill(time.monotonic())
        return AdmissionControllerState(
            running=self._running,
            queued=len(self._queue),
            retrying=len(self._retry_waits),
            done=self._done,
            failed=self._failed,
            dropped=self._dropped,
            reservoir=self._reservoir,
            capacity=self.settings.max_concurrent,
        )

    def is_at_capacity(self) -> bool:
        """True when every concurrency slot is taken."""
        return self._running >= self.settings.max_concurrent

    def update_settings(self, **changes: Any) -> AdmissionSettings:
        """
        Adjust limits at runtime.

        Changing ``reservoir`` resets the remaining reservoir to the new
        value. Queued jobs are re-evaluated immediately.
        """
        self.settings = dataclasses.replace(self.settings, **changes)
        if "reservoir" in changes:
            self._reservoir = self.settings.reservoir
        if "reservoir_refresh_interval" in changes:
            self._next_refresh = None
        if self._custom_policy is None:
            self._retry_policy = self._default_policy()
        logger.info(f"[{self.name}] Admission settings updated: {changes}")
        self._wake()
        return self.settings

    async def stop(self) -> None:
        """
        Drop all work that has not started, then stop dispatching.

        Jobs waiting in the queue or waiting to retry fail with
        ``JobDroppedError``. Operations already running are left to finish.
        """
        self._accepting = False
        self._stopped = True

        dropped = 0
        while self._queue:
            job = heapq.heappop(self._queue)
            dropped += self._drop(job, "stopped")
        for job, task in list(self._retry_waits.values()):
            task.cancel()
            dropped += self._drop(job, "stopped")
        self._retry_waits.clear()

        if dropped:
            logger.warning(f"[{self.name}] Stopped: dropped {dropped} pending job(s)")
        else:
            logger.debug(f"[{self.name}] Stopped")

        await self._stop_dispatcher()

    async def drain(self) -> None:
        """Refuse new work and wait for queued and in-flight work to finish."""
        self._accepting = False
        pending = [f for f in self._futures if not f.done()]
        if pending:
            logger.info(f"[{self.name}] Draining {len(pending)} job(s)")
            await asyncio.gather(*pending, return_exceptions=True)
        if self._job_tasks:
            await asyncio.gather(*list(self._job_tasks), return_exceptions=True)
        await self._stop_dispatcher()
        logger.debug(f"[{self.name}] Drained")

    @property
    def accepting(self) -> bool:
        return self._accepting

    # ------------------------------------------------------------------
    # Dispatching
    # ------------------------------------------------------------------

    def _default_policy(self) -> RetryPolicy:
        return exponential_backoff(
            self.settings.max_retries,
            self.settings.retry_delay,
            self.settings.max_jitter,
        )

    def _bind_loop(self) -> None:
        loop = asyncio.get_running_loop()
        if loop is not self._loop:
            # A new event loop (e.g. a fresh asyncio.run) gets its own dispatcher.
            self._loop = loop
            self._wakeup = asyncio.Event()
            self._dispatcher = None
        if self._dispatcher is None or self._dispatcher.done():
            self._dispatcher = loop.create_task(self._dispatch_loop())

    def _wake(self) -> None:
        if self._wakeup is not None:
            self._wakeup.set()

    async def _stop_dispatcher(self) -> None:
        dispatcher = self._dispatcher
        self._dispatcher = None
        if dispatcher is not None and not dispatcher.done():
            dispatcher.cancel()
            try:
                await dispatcher
            except asyncio.CancelledError:
                pass

    async def _dispatch_loop(self) -> None:
        while not self._stopped:
            self._wakeup.clear()
            wait_for = self._dispatch_ready()
            if wait_for is None:
                await self._wakeup.wait()
            else:
                try:
                    await asyncio.wait_for(self._wakeup.wait(), timeout=wait_for)
                except asyncio.TimeoutError:
                    pass

    def _dispatch_ready(self) -> Optional[float]:
        """
        Start every job that is currently admissible.

        Returns:
            Seconds until a time-based limit lifts, or None when only an
            external event (completion, new job, settings change) can
            unblock the queue.
        """
        while self._queue and self._running < self.settings.max_concurrent:
            job = self._queue[0]
            if job.future.done():
                # Awaiter went away.
                heapq.heappop(self._queue)
                continue

            now = time.monotonic()
            self._refill(now)
            if self._reservoir is not None and self._reservoir <= 0:
                if self._next_refresh is None:
                    return None
                return max(self._next_refresh - now, 0.0)
            if now < self._next_start:
                return self._next_start - now

            heapq.heappop(self._queue)
            self._running += 1
            if self._reservoir is not None:
                self._reservoir -= 1
            self._next_start = now + self.settings.min_time

            task = self._loop.create_task(self._run_job(job))
            self._job_tasks.add(task)
            task.add_done_callback(self._job_tasks.discard)
            self._log_status("dispatch")
        return None

    def _refill(self, now: float) -> None:
        interval = self.settings.reservoir_refresh_interval
        amount = self.settings.reservoir_refresh_amount
        if self._reservoir is None or not interval or amount is None:
            return
        if self._next_refresh is None:
            self._next_refresh = now + interval
            return
        if now >= self._next_refresh:
            self._reservoir = amount
            missed = int((now - self._next_refresh) // interval) + 1
            self._next_refresh += missed * interval

    async def _run_job(self, job: _Job) -> None:
        try:
            result = await job.operation()
        except Exception as error:
            self._running -= 1
            job.attempts += 1
            self._handle_failure(job, error)
        except BaseException:
            self._running -= 1
            if not job.future.done():
                job.future.cancel()
            raise
        else:
            self._running -= 1
            self._done += 1
            if not job.future.done():
                job.future.set_result(result)
            self._log_status("complete")
        finally:
            self._wake()

    def _handle_failure(self, job: _Job, error: Exception) -> None:
        if job.future.done():
            return

        delay = None if self._stopped else self._retry_policy(error, job.attempts)
        if delay is None:
            self._failed += 1
            logger.warning(
                f"[{self.name}] Job failed after {job.attempts} attempt(s): {error}"
            )
            exhausted = RetriesExhaustedError(
                f"Failed after {job.attempts} attempt(s): {error}",
                attempts=job.attempts,
                last_error=error,
            )
            exhausted.__cause__ = error
            job.future.set_exception(exhausted)
            return

        logger.info(
            f"[{self.name}] Attempt {job.attempts} failed ({error}), "
            f"retrying in {delay:.2f}s"
        )
        task = self._loop.create_task(self._retry_later(job, delay))
        self._retry_waits[job.seq] = (job, task)

    async def _retry_later(self, job: _Job, delay: float) -> None:
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            # stop() already failed the job.
            return
        self._retry_waits.pop(job.seq, None)
        if self._stopped:
            self._drop(job, "stopped")
            return
        heapq.heappush(self._queue, job)
        self._wake()

    def _drop(self, job: _Job, reason: str) -> int:
        if job.future.done():
            return 0
        self._dropped += 1
        job.future.set_exception(
            JobDroppedError(
                f"[{self.name}] Job dropped before it started ({reason})",
                reason=reason,
            )
        )
        return 1

    def _log_status(self, event: str) -> None:
        logger.debug(
            f"[{self.name}] {event}: running={self._running} queued={len(self._queue)} "
            f"retrying={len(self._retry_waits)} done={self._done} reservoir={self._reservoir}"
        )
