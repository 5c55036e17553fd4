"""Error taxonomy for the analytics client.

Only ``ConstructionError`` and ``ConfigurationError`` ever reach the caller
synchronously. Everything raised on the flush path stays inside the sender and
scheduler and is reported through the error sink or the log.
"""

from __future__ import annotations

from typing import Optional


class AnalyticsClientError(Exception):
    """Base class for all analytics client errors."""


class ConstructionError(AnalyticsClientError):
    """An event could not be built (missing name, bad identity, unserializable properties)."""


class ConfigurationError(AnalyticsClientError):
    """The client configuration is invalid."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("Invalid analytics client configuration: " + "; ".join(self.errors))


class SendError(AnalyticsClientError):
    """A single request to the ingestion endpoint failed."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class TransientSendError(SendError):
    """Network error, timeout or 5xx response. Worth retrying."""


class PermanentSendError(SendError):
    """4xx response or malformed payload. Retrying will not help."""


class SendFailure(AnalyticsClientError):
    """A batch was dropped after a permanent error or exhausted retries."""

    def __init__(self, batch_id: str, lost_events: int, attempts: int, cause: SendError):
        self.batch_id = batch_id
        self.lost_events = lost_events
        self.attempts = attempts
        self.cause = cause
        super().__init__(f"Dropped batch {batch_id} ({lost_events} events) after {attempts} attempt(s): {cause}")

    @property
    def permanent(self) -> bool:
        return isinstance(self.cause, PermanentSendError)


class ShutdownTimeout(AnalyticsClientError):
    """The final flush did not finish within the shutdown timeout."""

    def __init__(self, timeout: float, pending_events: int = 0):
        self.timeout = timeout
        self.pending_events = pending_events
        super().__init__(f"Final flush did not complete within {timeout:.1f}s, events in flight are lost")
