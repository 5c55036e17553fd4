"""HTTP sender module for transmitting batches to the ingestion API."""

from .http_sender import HTTPSender, SenderConfig
from .wire import BatchEnvelope, EventRecord

__all__ = ["HTTPSender", "SenderConfig", "BatchEnvelope", "EventRecord"]
