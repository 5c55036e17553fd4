"""Pipeline orchestrator shared by every analytics client handle.

This module coordinates the event pipeline:
Builder → Queue → Flush Scheduler → Sender → Ingestion API

One orchestrator owns the queue, the sender and the scheduler for the lifetime
of the process or until ``shutdown()``. Handles only hold a reference to it.
"""

from __future__ import annotations

import atexit
import threading
from datetime import datetime
from typing import Any, Dict, Optional

from loguru import logger

from ..config import ClientConfig
from ..core.events import Event
from ..core.signal_handler import SignalHandler, get_signal_handler
from ..queuer import EventQueue
from ..scheduler import FlushScheduler
from ..sender import HTTPSender


class PipelineOrchestrator:
    """Owns the queue, sender and flush scheduler of one client."""

    def __init__(self, config: ClientConfig):
        """Initialize the pipeline orchestrator.

        Args:
            config: Client configuration

        Raises:
            ConfigurationError: if the configuration is invalid
        """
        config.raise_for_errors()

        self.config = config
        self._lock = threading.Lock()
        self._started = False
        self._shutdown_result: Optional[bool] = None
        self._shutdown_owner: Optional[int] = None
        self._start_time: Optional[datetime] = None
        self._signal_handler: Optional[SignalHandler] = None

        self._init_components()

    def _init_components(self) -> None:
        """Initialize all pipeline components."""
        self.queue = EventQueue(self.config.get_queue_config())
        self.sender = HTTPSender(self.config.get_sender_config())
        self.scheduler = FlushScheduler(self.queue, self.sender, self.config.get_scheduler_config())

        logger.debug(f"Initialized analytics pipeline for {self.config.endpoint_url}")

    def start(self) -> None:
        """Start the flush scheduler. Only the first call has an effect."""
        with self._lock:
            if self._started:
                return
            self._started = True
            self._start_time = datetime.now()

        self.scheduler.start()

        if self.config.shutdown_on_exit:
            atexit.register(self.shutdown)

        if self.config.handle_signals:
            self._signal_handler = get_signal_handler()
            self._signal_handler.register_cleanup(self.shutdown)

        logger.info(f"Analytics pipeline started - endpoint: {self.config.endpoint_url}, flush interval: {self.config.flush_interval}s")

    @property
    def is_shutdown(self) -> bool:
        return not self.queue.accepting

    def enqueue(self, event: Event) -> bool:
        """Hand an event to the queue. Never blocks on network I/O.

        Returns:
            True if accepted, False if rejected because shutdown began
        """
        return self.queue.enqueue(event)

    def flush_now(self) -> None:
        """Ask the scheduler to flush without waiting for the interval."""
        self.scheduler.flush_now()

    def flush(self) -> bool:
        """Flush synchronously in the calling thread."""
        return self.scheduler.flush()

    def shutdown(self) -> bool:
        """Stop accepting events, run the final flush and stop the scheduler.

        Idempotent: later calls return the result of the first one.

        Returns:
            True if the final flush completed within the shutdown timeout
        """
        if self._shutdown_owner == threading.get_ident():
            # Re-entered from a signal handler while this thread is already shutting down
            logger.debug("Analytics pipeline shutdown already in progress")
            return False

        with self._lock:
            if self._shutdown_result is not None:
                return self._shutdown_result

            self._shutdown_owner = threading.get_ident()
            try:
                logger.info("Shutting down analytics pipeline...")

                # Events accepted before this point are part of the final flush
                self.queue.close()
                self._shutdown_result = self.scheduler.stop(self.config.shutdown_timeout)
            finally:
                self._shutdown_owner = None

        if self.config.shutdown_on_exit:
            atexit.unregister(self.shutdown)

        if self._signal_handler is not None:
            self._signal_handler.unregister_cleanup(self.shutdown)

        self._log_final_stats()
        return self._shutdown_result

    def get_pipeline_stats(self) -> Dict[str, Any]:
        """Get comprehensive pipeline statistics.

        Returns:
            Dictionary with the client counters and per-component statistics
        """
        queue_stats = self.queue.get_stats()
        sender_stats = self.sender.get_stats()

        return {
            "enqueued": queue_stats["total_enqueued"],
            "dropped_on_overflow": queue_stats["total_dropped"],
            "rejected_after_shutdown": queue_stats["total_rejected"],
            "flushed_success": sender_stats["total_events_sent"],
            "flushed_failure": sender_stats["total_events_failed"],
            "uptime_seconds": (datetime.now() - self._start_time).total_seconds() if self._start_time else 0,
            "queue": queue_stats,
            "sender": sender_stats,
            "scheduler": self.scheduler.get_stats(),
        }

    def _log_final_stats(self) -> None:
        """Log final pipeline statistics on shutdown."""
        stats = self.get_pipeline_stats()

        logger.info(
            f"Analytics pipeline stopped - "
            f"Enqueued: {stats['enqueued']}, "
            f"Sent: {stats['flushed_success']}, "
            f"Failed: {stats['flushed_failure']}, "
            f"Dropped on overflow: {stats['dropped_on_overflow']}, "
            f"Rejected after shutdown: {stats['rejected_after_shutdown']}"
        )
