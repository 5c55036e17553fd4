"""Core analytics client components: event model, builder and errors."""

from .builder import NewEvent, NewEventWithIdentity
from .errors import (
    AnalyticsClientError,
    ConfigurationError,
    ConstructionError,
    PermanentSendError,
    SendError,
    SendFailure,
    ShutdownTimeout,
    TransientSendError,
)
from .events import ActorRef, Anonymous, Event, EventBatch, Identified

__all__ = [
    # Event model
    "ActorRef",
    "Anonymous",
    "Identified",
    "Event",
    "EventBatch",
    # Builder
    "NewEvent",
    "NewEventWithIdentity",
    # Errors
    "AnalyticsClientError",
    "ConfigurationError",
    "ConstructionError",
    "SendError",
    "TransientSendError",
    "PermanentSendError",
    "SendFailure",
    "ShutdownTimeout",
]
