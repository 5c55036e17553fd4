"""Analytics client - in-memory event batching for a remote ingestion service."""

from .config import EU_REGION_URL, US_REGION_URL, ClientBuilder, ClientConfig, setup_logging
from .core import (
    ActorRef,
    AnalyticsClientError,
    Anonymous,
    ConfigurationError,
    ConstructionError,
    Event,
    EventBatch,
    Identified,
    SendFailure,
    ShutdownTimeout,
)
from .core.client import AnalyticsClient
from .queuer import OverflowPolicy
from .version import __version__

__all__ = [
    "AnalyticsClient",
    "ClientBuilder",
    "ClientConfig",
    "US_REGION_URL",
    "EU_REGION_URL",
    "OverflowPolicy",
    "setup_logging",
    # Event model
    "ActorRef",
    "Anonymous",
    "Identified",
    "Event",
    "EventBatch",
    # Errors
    "AnalyticsClientError",
    "ConfigurationError",
    "ConstructionError",
    "SendFailure",
    "ShutdownTimeout",
    "__version__",
]
