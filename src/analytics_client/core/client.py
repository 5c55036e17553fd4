"""Client handle shared by every producer."""

from __future__ import annotations

from typing import Any, Dict, Optional

from loguru import logger

from ..config import ClientConfig
from ..orchestrator import PipelineOrchestrator
from .builder import NewEvent
from .events import Event


class AnalyticsClient:
    """Cheap handle onto one shared analytics pipeline.

    Copies made with ``clone()``, ``copy.copy`` or ``copy.deepcopy`` share the
    same queue, sender and flush scheduler. The scheduler is started once per
    pipeline no matter how many handles exist.

    Example:
        client = AnalyticsClient(ClientConfig(endpoint_url=US_REGION_URL, api_key="phc_..."))
        client.capture("user_sign_up").identify("user-42").properties({"plan": "pro"}).enqueue()
        client.shutdown()
    """

    __slots__ = ("_pipeline",)

    def __init__(self, config: Optional[ClientConfig] = None, *, pipeline: Optional[PipelineOrchestrator] = None):
        """Create a client and start its flush scheduler.

        Args:
            config: Client configuration, ignored when ``pipeline`` is given
            pipeline: Existing pipeline to attach to

        Raises:
            ConfigurationError: if the configuration is invalid
        """
        if pipeline is None:
            pipeline = PipelineOrchestrator(config if config is not None else ClientConfig())
        self._pipeline = pipeline
        self._pipeline.start()

    @property
    def pipeline(self) -> PipelineOrchestrator:
        return self._pipeline

    @property
    def config(self) -> ClientConfig:
        return self._pipeline.config

    @property
    def is_shutdown(self) -> bool:
        return self._pipeline.is_shutdown

    def capture(self, name: str) -> NewEvent:
        """Start building an event. Choose ``identify()`` or ``anonymous()`` next."""
        return NewEvent(name, self._pipeline)

    def enqueue(self, event: Event) -> bool:
        """Queue a prebuilt event.

        Returns:
            True if accepted, False if the client is shutting down
        """
        accepted = self._pipeline.enqueue(event)
        if not accepted and self._pipeline.is_shutdown:
            logger.debug(f"Client is shut down, {event.name} event was not queued")
        return accepted

    def flush_now(self) -> None:
        """Wake the background flush without waiting for the interval."""
        self._pipeline.flush_now()

    def flush(self) -> bool:
        """Flush synchronously in the calling thread."""
        return self._pipeline.flush()

    def shutdown(self) -> bool:
        """Flush remaining events and stop. Safe to call more than once."""
        return self._pipeline.shutdown()

    def get_stats(self) -> Dict[str, Any]:
        return self._pipeline.get_pipeline_stats()

    def clone(self) -> AnalyticsClient:
        return AnalyticsClient(pipeline=self._pipeline)

    def __copy__(self) -> AnalyticsClient:
        return self.clone()

    def __deepcopy__(self, memo: dict) -> AnalyticsClient:
        return self.clone()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AnalyticsClient):
            return NotImplemented
        return self._pipeline is other._pipeline

    def __hash__(self) -> int:
        return id(self._pipeline)

    def __enter__(self) -> AnalyticsClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()
