"""Flush scheduler for periodically draining the queue into the sender.

A single background thread waits on a wakeup event for ``flush_interval``
seconds, drains the queue and hands the batch to the sender. Shutdown wakes the
thread, which performs one final flush and stops. Flushes are serialized by a
lock, so the sender never runs concurrently with itself.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from loguru import logger

from ..core.errors import ShutdownTimeout
from ..queuer import EventQueue
from ..sender import HTTPSender


class SchedulerState(str, Enum):
    """Lifecycle states of the flush scheduler."""

    IDLE = "idle"
    WAITING = "waiting"
    FLUSHING = "flushing"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


@dataclass
class SchedulerConfig:
    """Configuration for the flush scheduler."""

    flush_interval: float = 2.0  # Seconds between flushes
    shutdown_timeout: float = 5.0  # Upper bound on the final flush


class FlushScheduler:
    """Drives timed flushes of one queue through one sender."""

    def __init__(
        self,
        queue: EventQueue,
        sender: HTTPSender,
        config: SchedulerConfig = SchedulerConfig(),
    ):
        """Initialize the flush scheduler.

        Args:
            queue: Event queue to drain
            sender: Sender that delivers drained batches
            config: Scheduler configuration
        """
        self.queue = queue
        self.sender = sender
        self.config = config

        self._state = SchedulerState.IDLE
        self._state_lock = threading.Lock()
        self._flush_lock = threading.Lock()
        self._stop_lock = threading.Lock()
        self._wakeup = threading.Event()
        self._stop_requested = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._stop_result: Optional[bool] = None
        self._stop_owner: Optional[int] = None
        self._in_flight = 0

        # Statistics
        self._flush_count = 0
        self._events_flushed = 0
        self._last_flush_at: Optional[datetime] = None
        self._shutdown_timeouts = 0

    @property
    def state(self) -> SchedulerState:
        with self._state_lock:
            return self._state

    def start(self) -> None:
        """Start the background flush thread. Only the first call has an effect."""
        with self._state_lock:
            if self._thread is not None or self._stop_requested.is_set():
                return

            self._thread = threading.Thread(target=self._flush_loop, daemon=True, name="analytics-flush")
            self._state = SchedulerState.WAITING
            self._thread.start()

        logger.debug(f"Started flush scheduler with {self.config.flush_interval}s interval")

    def flush_now(self) -> None:
        """Wake the flush thread so it flushes without waiting for the interval."""
        self._wakeup.set()

    def flush(self) -> bool:
        """Drain the queue and send the batch in the calling thread.

        Returns:
            True if nothing failed to send
        """
        if self._stop_requested.is_set():
            logger.debug("Scheduler is stopping, skipping manual flush")
            return True
        return self._flush()

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Stop the scheduler after one final flush.

        Idempotent: later calls return the result of the first one.

        Args:
            timeout: Maximum seconds to wait for the final flush

        Returns:
            True if the final flush finished in time
        """
        timeout = self.config.shutdown_timeout if timeout is None else timeout

        if self._stop_owner == threading.get_ident():
            # Re-entered from a signal handler while this thread waits on the final flush
            return False

        with self._stop_lock:
            if self._stop_result is not None:
                return self._stop_result

            self._stop_owner = threading.get_ident()
            try:
                self._stop_result = self._stop_and_wait(timeout)
            finally:
                self._stop_owner = None
            return self._stop_result

    def _stop_and_wait(self, timeout: float) -> bool:
        with self._state_lock:
            self._stop_requested.set()
            thread = self._thread
            if thread is None:
                # Never started: the final flush still runs off-thread so the timeout applies
                thread = threading.Thread(target=self._final_flush, daemon=True, name="analytics-final-flush")
                self._thread = thread
                thread.start()

        self._wakeup.set()
        thread.join(timeout=timeout)

        if thread.is_alive():
            self._shutdown_timeouts += 1
            logger.warning(str(ShutdownTimeout(timeout, pending_events=self._in_flight + self.queue.size())))
            return False
        return True

    def get_stats(self) -> Dict[str, Any]:
        """Get scheduler statistics."""
        return {
            "state": self.state.value,
            "running": self._thread is not None and self._thread.is_alive(),
            "flush_interval_seconds": self.config.flush_interval,
            "flush_count": self._flush_count,
            "events_flushed": self._events_flushed,
            "last_flush_at": self._last_flush_at.isoformat() if self._last_flush_at else None,
            "shutdown_timeouts": self._shutdown_timeouts,
        }

    def _flush_loop(self) -> None:
        """Main scheduling loop."""
        logger.debug("Flush loop started")

        while True:
            self._wakeup.wait(self.config.flush_interval)
            self._wakeup.clear()

            if self._stop_requested.is_set():
                break

            try:
                self._flush()
            except Exception as e:
                logger.error(f"Error in flush loop: {e}")

        self._final_flush()
        logger.debug("Flush loop finished")

    def _final_flush(self) -> None:
        self._set_state(SchedulerState.SHUTTING_DOWN)
        try:
            self._flush(final=True)
        except Exception as e:
            logger.error(f"Error during final flush: {e}")
        finally:
            self._set_state(SchedulerState.STOPPED)

    def _flush(self, final: bool = False) -> bool:
        with self._flush_lock:
            previous = None if final else self._set_state(SchedulerState.FLUSHING)
            try:
                batch = self.queue.drain()
                if batch.is_empty():
                    return True

                self._in_flight = batch.size()
                start_time = time.time()
                success, _ = self.sender.send_batch(batch)

                self._flush_count += 1
                self._events_flushed += batch.size()
                self._last_flush_at = datetime.now()
                logger.debug(f"Flushed {batch.size()} events in {time.time() - start_time:.2f}s (success={success})")
                return success
            finally:
                self._in_flight = 0
                if previous is not None:
                    self._set_state(previous)

    def _set_state(self, state: SchedulerState) -> SchedulerState:
        with self._state_lock:
            previous = self._state
            # Shutdown only moves forward: SHUTTING_DOWN -> STOPPED
            if previous is SchedulerState.STOPPED or (previous is SchedulerState.SHUTTING_DOWN and state is not SchedulerState.STOPPED):
                return previous
            self._state = state
            return previous
