"""In-memory event queue for the analytics client.

This module provides a thread-safe buffer for events awaiting flush. It knows
nothing about networking or timing; producers append, the flush scheduler
drains. When the queue is full the configured overflow policy decides which
event is discarded, and every discard is counted.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from enum import Enum

from loguru import logger

from ..core.errors import ConfigurationError
from ..core.events import Event, EventBatch


class OverflowPolicy(str, Enum):
    """What to do with an event that arrives when the queue is full."""

    DROP_OLDEST = "drop_oldest"
    REJECT_NEW = "reject_new"


@dataclass
class QueueConfig:
    """Configuration for the event queue."""

    max_size: int = 10_000  # Maximum events in memory
    overflow_policy: OverflowPolicy = OverflowPolicy.DROP_OLDEST


class EventQueue:
    """Thread-safe in-memory FIFO of pending events."""

    def __init__(self, config: QueueConfig = QueueConfig()):
        """Initialize the event queue.

        Args:
            config: Queue configuration
        """
        if config.max_size < 1:
            raise ConfigurationError([f"Queue max size must be at least 1, got {config.max_size}"])

        self.config = config
        self._queue: deque[Event] = deque()
        self._lock = threading.Lock()
        self._accepting = True
        self._overflowing = False

        # Statistics
        self._total_enqueued = 0
        self._total_dropped = 0
        self._total_rejected = 0
        self._total_drained = 0

    def enqueue(self, event: Event) -> bool:
        """Append an event to the tail of the queue.

        Args:
            event: Event to enqueue

        Returns:
            True if the event is now buffered, False if it was refused
        """
        with self._lock:
            if not self._accepting:
                self._total_rejected += 1
                logger.debug(f"Queue closed, rejecting {event.name} event")
                return False

            if len(self._queue) >= self.config.max_size:
                if self.config.overflow_policy is OverflowPolicy.REJECT_NEW:
                    self._total_dropped += 1
                    self._note_overflow()
                    return False

                while len(self._queue) >= self.config.max_size:
                    self._queue.popleft()
                    self._total_dropped += 1
                self._note_overflow()

            self._queue.append(event)
            self._total_enqueued += 1
            return True

    def drain(self) -> EventBatch:
        """Atomically remove every buffered event and return them in FIFO order."""
        with self._lock:
            events = self._queue
            self._queue = deque()
            self._total_drained += len(events)
            self._overflowing = False

        if events:
            logger.debug(f"Drained {len(events)} events from queue")

        return EventBatch(events=list(events))

    def close(self) -> None:
        """Stop accepting events. Buffered events stay drainable."""
        with self._lock:
            if not self._accepting:
                return
            self._accepting = False
            logger.debug(f"Queue closed with {len(self._queue)} pending events")

    @property
    def accepting(self) -> bool:
        with self._lock:
            return self._accepting

    def size(self) -> int:
        """Return the current queue size."""
        with self._lock:
            return len(self._queue)

    def is_empty(self) -> bool:
        """Check if the queue is empty."""
        with self._lock:
            return len(self._queue) == 0

    def is_full(self) -> bool:
        """Check if the queue is at capacity."""
        with self._lock:
            return len(self._queue) >= self.config.max_size

    def get_stats(self) -> dict:
        """Get queue statistics."""
        with self._lock:
            return {
                "current_size": len(self._queue),
                "max_size": self.config.max_size,
                "overflow_policy": self.config.overflow_policy.value,
                "total_enqueued": self._total_enqueued,
                "total_dropped": self._total_dropped,
                "total_rejected": self._total_rejected,
                "total_drained": self._total_drained,
                "accepting": self._accepting,
                "utilization": len(self._queue) / self.config.max_size,
            }

    def _note_overflow(self) -> None:
        # Caller holds the lock. One warning per overflow episode, reset on drain.
        if self._overflowing:
            return
        self._overflowing = True
        logger.warning(f"Event queue full ({self.config.max_size} events), applying {self.config.overflow_policy.value} policy")
