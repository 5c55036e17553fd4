"""Event models for the analytics client.

This module defines the immutable event value and the batch that flows through
the client pipeline: Builder → Queue → Scheduler → Sender → Ingestion API
"""

from __future__ import annotations

import itertools
import json
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Union

from .errors import ConstructionError

_batch_sequence = itertools.count(1)


@dataclass(frozen=True)
class Identified:
    """Actor with a stable distinct id."""

    distinct_id: str

    def __post_init__(self):
        if not isinstance(self.distinct_id, str) or not self.distinct_id.strip():
            raise ConstructionError("Identified actor requires a non-empty distinct_id")


@dataclass(frozen=True)
class Anonymous:
    """Actor without a stable id. The sender assigns a generated marker."""


ActorRef = Union[Identified, Anonymous]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Event:
    """One captured occurrence.

    ``properties`` holds the JSON encoding of the caller's properties, taken
    when the event was built.
    """

    name: str
    actor: ActorRef
    properties: bytes = b"{}"
    captured_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name.strip():
            raise ConstructionError("Event name must be a non-empty string")
        if not isinstance(self.actor, (Identified, Anonymous)):
            raise ConstructionError(f"Event actor must be Identified or Anonymous, got {type(self.actor).__name__}")

    @property
    def is_anonymous(self) -> bool:
        return isinstance(self.actor, Anonymous)

    def properties_dict(self) -> Dict[str, Any]:
        """Decode the serialized properties payload."""
        return json.loads(self.properties)


@dataclass
class EventBatch:
    """An ordered group of events drained together at one flush instant."""

    events: List[Event] = field(default_factory=list)
    batch_id: str = field(default_factory=lambda: f"batch_{int(time.time() * 1000)}_{next(_batch_sequence)}")
    created_at: datetime = field(default_factory=_utcnow)

    def size(self) -> int:
        """Return the number of events in this batch."""
        return len(self.events)

    def is_empty(self) -> bool:
        return not self.events

    def chunks(self, max_size: int) -> List[EventBatch]:
        """Split into consecutive batches of at most ``max_size`` events, preserving order."""
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        if self.size() <= max_size:
            return [self]

        return [
            EventBatch(events=self.events[start : start + max_size], batch_id=f"{self.batch_id}.{index}", created_at=self.created_at)
            for index, start in enumerate(range(0, self.size(), max_size))
        ]

    def __iter__(self) -> Iterator[Event]:
        return iter(self.events)

    def __len__(self) -> int:
        return len(self.events)
