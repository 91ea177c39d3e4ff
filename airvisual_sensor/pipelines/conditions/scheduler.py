"""
Repeat-timer polling of the provider.

One fetch+normalize cycle runs at a time. Timer ticks that arrive while a
cycle is in flight are skipped, so the cache always holds the result of the
most recently completed cycle. Stopping the scheduler cancels the pending
timer only; a cycle already in flight still completes and updates the cache.
"""

import logging
import threading
import time
from collections.abc import Callable
from enum import StrEnum
from typing import Any, Protocol

import requests

from airvisual_sensor.common.errors import AirVisualError, TransportError
from airvisual_sensor.pipelines.conditions.cache import ReadingCache
from airvisual_sensor.pipelines.conditions.normalize import ConditionsNormalizer
from airvisual_sensor.pipelines.conditions.schemas import Conditions

logger = logging.getLogger(__name__)

DEFAULT_WAIT_TIMEOUT_SECS = 60.0


class Timer(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], Timer]


class SchedulerState(StrEnum):
    IDLE = "idle"
    FETCHING = "fetching"
    UPDATING = "updating"
    FAILED = "failed"


def daemon_timer(interval: float, function: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(interval, function)
    timer.daemon = True
    return timer


def transport_guarded(fetch: Callable[[], dict[str, Any]]) -> Callable[[], dict[str, Any]]:
    """Wrap a fetch function so ``requests`` failures surface as ``TransportError``."""

    def guarded() -> dict[str, Any]:
        try:
            return fetch()
        except requests.RequestException as err:
            raise TransportError(f"{type(err).__name__} while contacting the provider") from err

    return guarded


class PollingScheduler:
    """
    Drives fetch -> normalize -> cache cycles on a fixed interval.

    Args:
        fetch: Returns the raw provider payload; raises ``AirVisualError`` on failure.
        normalizer: Converts the payload into ``Conditions``.
        cache: Receives each successful reading. Only the scheduler writes to it.
        interval_ms: Delay between the end of one cycle and the start of the next.
        on_success: Called with the new reading after the cache is updated.
        on_failure: Called with the error of a failed cycle.
        timer_factory: Creates a started-on-demand one-shot timer; ``threading.Timer`` by default.
        wait_timeout_secs: Longest an on-demand read waits for an in-flight cycle.
    """

    def __init__(
        self,
        *,
        fetch: Callable[[], dict[str, Any]],
        normalizer: ConditionsNormalizer,
        cache: ReadingCache,
        interval_ms: int,
        on_success: Callable[[Conditions], None] | None = None,
        on_failure: Callable[[Exception], None] | None = None,
        timer_factory: TimerFactory = daemon_timer,
        wait_timeout_secs: float = DEFAULT_WAIT_TIMEOUT_SECS,
    ):
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {interval_ms}")

        self._fetch = fetch
        self._normalizer = normalizer
        self._cache = cache
        self._interval_secs = interval_ms / 1000
        self._on_success = on_success
        self._on_failure = on_failure
        self._timer_factory = timer_factory
        self._wait_timeout_secs = wait_timeout_secs

        self._cycle_lock = threading.Lock()
        self._timer_lock = threading.Lock()
        self._timer: Timer | None = None
        self._stopped = True
        self._last_completed_at: float | None = None

        self.state = SchedulerState.IDLE
        self.completed_cycles = 0
        self.failed_cycles = 0

    @property
    def running(self) -> bool:
        return not self._stopped

    def start(self) -> None:
        """Schedule the first cycle one interval from now."""
        with self._timer_lock:
            if not self._stopped:
                return
            self._stopped = False
            self._schedule_next()
        logger.info(f"Polling every {self._interval_secs:g}s")

    def stop(self) -> None:
        """Stop rescheduling. A cycle already in flight is allowed to finish."""
        with self._timer_lock:
            self._stopped = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        logger.info("Polling stopped")

    def _schedule_next(self) -> None:
        self._timer = self._timer_factory(self._interval_secs, self._on_timer)
        self._timer.start()

    def _on_timer(self) -> None:
        try:
            self.run_cycle()
        finally:
            with self._timer_lock:
                if not self._stopped:
                    self._schedule_next()

    def run_cycle(self) -> bool:
        """
        Run one fetch+normalize cycle unless another one is in flight.

        Returns:
            bool: False if the cycle was skipped because one is already running.
        """
        if not self._cycle_lock.acquire(blocking=False):
            logger.debug("Poll cycle already in flight; skipping")
            return False
        try:
            self._run_cycle_locked()
        finally:
            self._cycle_lock.release()
        return True

    def current(self, max_age_secs: float | None = None) -> Conditions | None:
        """
        Return the cached reading, refreshing it out of band when needed.

        A refresh happens when no cycle has completed yet, or when ``max_age_secs``
        is given and the last completed cycle is older than that. If a cycle is
        already in flight, this waits for it instead of starting another.

        Args:
            max_age_secs (float | None): Refresh when the last cycle is older than this.

        Returns:
            Conditions | None: The cached reading; None if nothing could be fetched yet.
        """
        if self._needs_refresh(max_age_secs):
            if self._cycle_lock.acquire(timeout=self._wait_timeout_secs):
                try:
                    if self._needs_refresh(max_age_secs):
                        logger.debug("No fresh reading cached; fetching out of band")
                        self._run_cycle_locked()
                finally:
                    self._cycle_lock.release()
            else:
                logger.warning(f"Timed out after {self._wait_timeout_secs}s waiting for the poll cycle")

        return self._cache.conditions

    def _needs_refresh(self, max_age_secs: float | None) -> bool:
        if self._last_completed_at is None:
            return True
        if max_age_secs is None:
            return False
        return time.monotonic() - self._last_completed_at >= max_age_secs

    def _run_cycle_locked(self) -> None:
        self.state = SchedulerState.FETCHING
        try:
            payload = self._fetch()
            conditions = self._normalizer.normalize(payload)
        except AirVisualError as err:
            logger.error(f"Poll cycle failed: {type(err).__name__}: {err}")
            self._fail(err)
        except Exception as err:
            logger.exception(f"Unexpected error during poll cycle: {err}")
            self._fail(err)
        else:
            self.state = SchedulerState.UPDATING
            self._cache.update(conditions, payload)
            self.completed_cycles += 1
            logger.info(f"Reading updated: AQI={conditions.aqi}, air quality={conditions.air_quality.name}")
            self._notify(self._on_success, conditions)
        finally:
            self._last_completed_at = time.monotonic()
            self.state = SchedulerState.IDLE

    def _fail(self, err: Exception) -> None:
        self.state = SchedulerState.FAILED
        self.failed_cycles += 1
        self._cache.mark_stale()
        self._notify(self._on_failure, err)

    @staticmethod
    def _notify(callback: Callable[[Any], None] | None, arg: Any) -> None:
        if callback is None:
            return
        try:
            callback(arg)
        except Exception:
            # Callback errors must not affect the loop
            logger.debug("Scheduler callback error", exc_info=True)
