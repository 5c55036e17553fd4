"""HTTP sender for transmitting event batches to the ingestion API.

This module serializes a drained batch into the wire envelope and POSTs it to
the batch endpoint, retrying transient failures with exponential backoff.
Failures never propagate to the caller: a dropped batch is logged and handed
to the configured error sink as a ``SendFailure``.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime
from http.client import HTTPException
from typing import Any, Callable, Dict, Optional, Tuple
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from loguru import logger
from pydantic import ValidationError

from ..core.errors import PermanentSendError, SendError, SendFailure, TransientSendError
from ..core.events import EventBatch
from ..version import __version__
from .wire import LIB_NAME, BatchEnvelope

ErrorSink = Callable[[SendFailure], None]

# Client errors that are still worth retrying
RETRYABLE_CLIENT_STATUSES = frozenset({408, 429})


@dataclass
class SenderConfig:
    """Configuration for the HTTP sender."""

    endpoint_url: str = "https://us.i.posthog.com"  # Base URL of ingestion API
    batch_endpoint: str = "/batch/"  # Batch ingestion path
    api_key: str = ""  # Project API key, sent inside the envelope

    # HTTP settings
    timeout_seconds: float = 10.0  # Request timeout
    max_retries: int = 3  # Retries after the first attempt
    retry_backoff_base: float = 0.5  # Base backoff delay
    retry_backoff_max: float = 30.0  # Maximum backoff delay
    max_batch_size: int = 100  # Events per request
    user_agent: str = f"{LIB_NAME}/{__version__}"

    # Observability
    error_sink: Optional[ErrorSink] = None

    @property
    def batch_url(self) -> str:
        return self.endpoint_url.rstrip("/") + "/" + self.batch_endpoint.lstrip("/")


class HTTPSender:
    """Sends event batches and applies the retry policy for one flush."""

    def __init__(self, config: SenderConfig = SenderConfig()):
        """Initialize the HTTP sender.

        Args:
            config: Sender configuration
        """
        self.config = config

        # Statistics
        self._total_batches_sent = 0
        self._total_batches_failed = 0
        self._total_events_sent = 0
        self._total_events_failed = 0
        self._total_requests = 0
        self._total_send_time = 0.0
        self._last_successful_send: Optional[datetime] = None
        self._last_error: Optional[str] = None

    def send_batch(self, batch: EventBatch) -> Tuple[bool, str]:
        """Send a batch of events to the ingestion API.

        Batches larger than ``max_batch_size`` go out as several requests in
        enqueue order, each with its own retry budget.

        Args:
            batch: Event batch to send

        Returns:
            Tuple of (success, error_message)
        """
        if batch.is_empty():
            return True, ""

        start_time = time.time()
        errors = []

        for chunk in batch.chunks(self.config.max_batch_size):
            failure = self._send_chunk(chunk)
            if failure is None:
                self._total_batches_sent += 1
                self._total_events_sent += chunk.size()
                self._last_successful_send = datetime.now()
                logger.info(f"Sent batch {chunk.batch_id} with {chunk.size()} events")
            else:
                self._total_batches_failed += 1
                self._total_events_failed += chunk.size()
                self._last_error = str(failure.cause)
                errors.append(str(failure))
                logger.error(str(failure))
                self._report(failure)

        self._total_send_time += time.time() - start_time

        if errors:
            return False, "; ".join(errors)
        return True, ""

    def get_stats(self) -> Dict[str, Any]:
        """Get sender statistics.

        Returns:
            Dictionary with sender statistics
        """
        total_batches = self._total_batches_sent + self._total_batches_failed

        return {
            "total_batches_sent": self._total_batches_sent,
            "total_batches_failed": self._total_batches_failed,
            "total_events_sent": self._total_events_sent,
            "total_events_failed": self._total_events_failed,
            "total_requests": self._total_requests,
            "success_rate": self._total_batches_sent / max(1, total_batches),
            "average_send_time_seconds": self._total_send_time / max(1, total_batches),
            "last_successful_send": self._last_successful_send.isoformat() if self._last_successful_send else None,
            "last_error": self._last_error,
        }

    def _send_chunk(self, batch: EventBatch) -> Optional[SendFailure]:
        """Serialize and send one request-sized batch.

        Returns:
            None on success, otherwise the failure that dropped the batch
        """
        try:
            body = self._serialize(batch)
        except PermanentSendError as e:
            return SendFailure(batch.batch_id, batch.size(), 0, e)

        attempts, error = self._send_with_retries(self.config.batch_url, body)
        if error is None:
            return None

        return SendFailure(batch.batch_id, batch.size(), attempts, error)

    def _serialize(self, batch: EventBatch) -> bytes:
        try:
            envelope = BatchEnvelope.from_batch(batch, api_key=self.config.api_key, lib_version=__version__)
            return envelope.to_bytes()
        except (ValidationError, ValueError, TypeError) as e:
            raise PermanentSendError(f"Malformed batch payload: {e}") from e

    def _send_with_retries(self, url: str, body: bytes) -> Tuple[int, Optional[SendError]]:
        """Send a request body with retry logic.

        Args:
            url: Batch endpoint URL
            body: Serialized envelope

        Returns:
            Tuple of (attempts_made, error or None on success)
        """
        attempts = 0

        for attempt in range(self.config.max_retries + 1):
            attempts += 1
            try:
                self._send_request(url, body)
                return attempts, None

            except PermanentSendError as e:
                return attempts, e

            except TransientSendError as e:
                if attempt >= self.config.max_retries:
                    return attempts, e

                delay = min(self.config.retry_backoff_base * (2**attempt), self.config.retry_backoff_max)
                logger.warning(f"Send attempt {attempt + 1} failed: {e}. Retrying in {delay:.1f}s...")
                if delay > 0:
                    time.sleep(delay)

            except Exception as e:
                logger.exception(f"Unexpected error on send attempt {attempt + 1}")
                return attempts, PermanentSendError(f"Unexpected send error: {e!r}")

        # max_retries < 0 is rejected by config validation
        return attempts, TransientSendError("No send attempt was made")

    def _send_request(self, url: str, body: bytes) -> None:
        """Send a single HTTP request.

        Raises:
            TransientSendError: network or protocol error, timeout, 5xx, 408 or 429
            PermanentSendError: any other non-2xx response
        """
        req = Request(
            url,
            data=body,
            method="POST",
            headers={
                "Content-Type": "application/json",
                "User-Agent": self.config.user_agent,
            },
        )

        self._total_requests += 1

        try:
            with urlopen(req, timeout=self.config.timeout_seconds) as response:
                status = response.status
                if 200 <= status < 300:
                    logger.debug(f"Successful response: {status}")
                    return
                raise self._classify_status(status, getattr(response, "reason", ""))

        except HTTPError as e:
            raise self._classify_status(e.code, e.reason) from e

        except URLError as e:
            raise TransientSendError(f"Network error: {e.reason}") from e

        except (TimeoutError, OSError) as e:
            raise TransientSendError(f"Request error: {e}") from e

        except HTTPException as e:
            raise TransientSendError(f"Protocol error: {e!r}") from e

    @staticmethod
    def _classify_status(status: int, reason: Any) -> SendError:
        message = f"HTTP {status}: {reason}"
        if status >= 500 or status in RETRYABLE_CLIENT_STATUSES:
            return TransientSendError(message, status=status)
        return PermanentSendError(message, status=status)

    def _report(self, failure: SendFailure) -> None:
        if self.config.error_sink is None:
            return

        try:
            self.config.error_sink(failure)
        except Exception:
            logger.exception(f"Error sink raised while reporting batch {failure.batch_id}")
