"""Configuration management for the analytics client.

This module provides the configuration surface consumed by the pipeline, with
environment variable overrides and a fluent builder.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Optional
from urllib.parse import urlparse

from loguru import logger

from ..core.errors import ConfigurationError, SendFailure
from ..queuer import OverflowPolicy, QueueConfig
from ..scheduler import SchedulerConfig
from ..sender import SenderConfig
from ..sender.wire import LIB_NAME
from ..version import __version__

if TYPE_CHECKING:
    from ..core.client import AnalyticsClient

US_REGION_URL = "https://us.i.posthog.com"
EU_REGION_URL = "https://eu.i.posthog.com"


@dataclass
class ClientConfig:
    """Complete analytics client configuration."""

    # Endpoint settings
    endpoint_url: str = ""
    api_key: str = ""
    user_agent: str = f"{LIB_NAME}/{__version__}"

    # Scheduling (seconds)
    flush_interval: float = 2.0
    shutdown_timeout: float = 5.0

    # Queue settings
    max_queue_length: int = 10_000
    overflow_policy: OverflowPolicy = OverflowPolicy.DROP_OLDEST

    # Sender settings
    max_retries: int = 3
    retry_backoff_base: float = 0.5
    retry_backoff_max: float = 30.0
    request_timeout: float = 10.0
    max_batch_size: int = 100

    # Hooks
    error_sink: Optional[Callable[[SendFailure], None]] = field(default=None, repr=False)
    shutdown_on_exit: bool = True
    handle_signals: bool = False

    def __post_init__(self):
        """Apply environment variable overrides and normalize values."""
        self._apply_env_overrides()
        self.endpoint_url = self.endpoint_url.strip().rstrip("/")
        self.overflow_policy = OverflowPolicy(self.overflow_policy)

    def _apply_env_overrides(self):
        """Apply configuration overrides from environment variables."""
        if endpoint_url := os.getenv("ANALYTICS_ENDPOINT_URL"):
            self.endpoint_url = endpoint_url

        if api_key := os.getenv("ANALYTICS_API_KEY"):
            self.api_key = api_key

        if flush_interval := os.getenv("ANALYTICS_FLUSH_INTERVAL"):
            try:
                self.flush_interval = float(flush_interval)
            except ValueError:
                logger.warning(f"Invalid flush interval: {flush_interval}")

        if max_queue_length := os.getenv("ANALYTICS_MAX_QUEUE_LENGTH"):
            try:
                self.max_queue_length = int(max_queue_length)
            except ValueError:
                logger.warning(f"Invalid max queue length: {max_queue_length}")

        if shutdown_timeout := os.getenv("ANALYTICS_SHUTDOWN_TIMEOUT"):
            try:
                self.shutdown_timeout = float(shutdown_timeout)
            except ValueError:
                logger.warning(f"Invalid shutdown timeout: {shutdown_timeout}")

        if max_retries := os.getenv("ANALYTICS_MAX_RETRIES"):
            try:
                self.max_retries = int(max_retries)
            except ValueError:
                logger.warning(f"Invalid max retries: {max_retries}")

    def get_queue_config(self) -> QueueConfig:
        """Get configuration for the event queue."""
        return QueueConfig(max_size=self.max_queue_length, overflow_policy=self.overflow_policy)

    def get_sender_config(self) -> SenderConfig:
        """Get configuration for the HTTP sender."""
        return SenderConfig(
            endpoint_url=self.endpoint_url,
            api_key=self.api_key,
            timeout_seconds=self.request_timeout,
            max_retries=self.max_retries,
            retry_backoff_base=self.retry_backoff_base,
            retry_backoff_max=self.retry_backoff_max,
            max_batch_size=self.max_batch_size,
            user_agent=self.user_agent,
            error_sink=self.error_sink,
        )

    def get_scheduler_config(self) -> SchedulerConfig:
        """Get configuration for the flush scheduler."""
        return SchedulerConfig(flush_interval=self.flush_interval, shutdown_timeout=self.shutdown_timeout)

    def validate(self) -> tuple[bool, list[str]]:
        """Validate the configuration.

        Returns:
            Tuple of (is_valid, error_messages)
        """
        errors = []

        # Check required fields
        if not self.api_key:
            errors.append("API key is required")

        if not self.endpoint_url:
            errors.append("Endpoint URL is required")
        else:
            parsed = urlparse(self.endpoint_url)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                errors.append(f"Endpoint URL must be an http(s) URL with a host: {self.endpoint_url}")

        # Validate intervals and sizes
        if self.flush_interval <= 0:
            errors.append("Flush interval must be positive")

        if self.shutdown_timeout <= 0:
            errors.append("Shutdown timeout must be positive")

        if self.request_timeout <= 0:
            errors.append("Request timeout must be positive")

        if self.max_queue_length < 1:
            errors.append("Max queue length must be at least 1")

        if self.max_batch_size < 1:
            errors.append("Max batch size must be at least 1")

        if self.max_retries < 0:
            errors.append("Max retries must not be negative")

        if self.retry_backoff_base < 0 or self.retry_backoff_max < 0:
            errors.append("Retry backoff must not be negative")

        return len(errors) == 0, errors

    def raise_for_errors(self) -> None:
        """Raise ``ConfigurationError`` if the configuration is invalid."""
        is_valid, errors = self.validate()
        if not is_valid:
            raise ConfigurationError(errors)


class ClientBuilder:
    """Fluent builder for ``ClientConfig``."""

    def __init__(self):
        self._options: dict = {}

    def with_api_key(self, api_key: str) -> ClientBuilder:
        self._options["api_key"] = api_key
        return self

    def with_base_url(self, url: str) -> ClientBuilder:
        self._options["endpoint_url"] = url
        return self

    def in_us_region(self) -> ClientBuilder:
        return self.with_base_url(US_REGION_URL)

    def in_eu_region(self) -> ClientBuilder:
        return self.with_base_url(EU_REGION_URL)

    def batch_delay(self, seconds: float) -> ClientBuilder:
        self._options["flush_interval"] = seconds
        return self

    def with_user_agent(self, user_agent: str) -> ClientBuilder:
        self._options["user_agent"] = user_agent
        return self

    def with_max_queue_length(self, max_queue_length: int) -> ClientBuilder:
        self._options["max_queue_length"] = max_queue_length
        return self

    def with_overflow_policy(self, policy: OverflowPolicy) -> ClientBuilder:
        self._options["overflow_policy"] = policy
        return self

    def with_retries(self, max_retries: int, backoff_base: Optional[float] = None, backoff_max: Optional[float] = None) -> ClientBuilder:
        self._options["max_retries"] = max_retries
        if backoff_base is not None:
            self._options["retry_backoff_base"] = backoff_base
        if backoff_max is not None:
            self._options["retry_backoff_max"] = backoff_max
        return self

    def with_error_sink(self, sink: Callable[[SendFailure], None]) -> ClientBuilder:
        self._options["error_sink"] = sink
        return self

    def with_shutdown_timeout(self, seconds: float) -> ClientBuilder:
        self._options["shutdown_timeout"] = seconds
        return self

    def build(self) -> ClientConfig:
        """Build and validate the configuration.

        Raises:
            ConfigurationError: if the configuration is invalid
        """
        config = ClientConfig(**self._options)
        config.raise_for_errors()
        return config

    def drive(self) -> AnalyticsClient:
        """Build the configuration and start a client with it."""
        from ..core.client import AnalyticsClient

        return AnalyticsClient(self.build())
