"""Two-step event builder.

``capture(name)`` yields a ``NewEvent``, which can only be turned into a
``NewEventWithIdentity`` by choosing ``identify()`` or ``anonymous()``. Only the
latter can be built or enqueued, so an event without an actor cannot be
produced.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional, Union

from pydantic import BaseModel

from .errors import ConstructionError
from .events import ActorRef, Anonymous, Event, Identified

if TYPE_CHECKING:
    from ..orchestrator import PipelineOrchestrator

Properties = Union[Mapping[str, Any], BaseModel]


def serialize_properties(properties: Optional[Properties]) -> bytes:
    """Encode caller properties as a JSON object payload."""
    if properties is None:
        return b"{}"

    if isinstance(properties, BaseModel):
        payload = properties.model_dump(mode="json")
    elif isinstance(properties, Mapping):
        payload = dict(properties)
    else:
        raise ConstructionError(f"Event properties must be a mapping or pydantic model, got {type(properties).__name__}")

    try:
        return json.dumps(payload, separators=(",", ":")).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise ConstructionError(f"Event properties are not JSON serializable: {e}") from e


class NewEvent:
    """An event with a name but no actor yet."""

    __slots__ = ("_name", "_pipeline")

    def __init__(self, name: str, pipeline: Optional[PipelineOrchestrator] = None):
        if not isinstance(name, str) or not name.strip():
            raise ConstructionError("Event name must be a non-empty string")
        self._name = name
        self._pipeline = pipeline

    def identify(self, distinct_id: str) -> NewEventWithIdentity:
        return NewEventWithIdentity(self._name, Identified(distinct_id), self._pipeline)

    def anonymous(self) -> NewEventWithIdentity:
        return NewEventWithIdentity(self._name, Anonymous(), self._pipeline)


class NewEventWithIdentity:
    """An event with both a name and an actor. Can be built or enqueued."""

    __slots__ = ("_name", "_actor", "_pipeline", "_properties", "_captured_at")

    def __init__(self, name: str, actor: ActorRef, pipeline: Optional[PipelineOrchestrator] = None):
        self._name = name
        self._actor = actor
        self._pipeline = pipeline
        self._properties = b"{}"
        self._captured_at: Optional[datetime] = None

    def properties(self, properties: Properties) -> NewEventWithIdentity:
        self._properties = serialize_properties(properties)
        return self

    def timestamp(self, captured_at: datetime) -> NewEventWithIdentity:
        if captured_at.tzinfo is None:
            captured_at = captured_at.replace(tzinfo=timezone.utc)
        self._captured_at = captured_at
        return self

    def build(self) -> Event:
        if self._captured_at is None:
            return Event(name=self._name, actor=self._actor, properties=self._properties)
        return Event(name=self._name, actor=self._actor, properties=self._properties, captured_at=self._captured_at)

    def enqueue(self) -> bool:
        """Build the event and hand it to the client queue.

        Returns:
            True if the queue accepted the event, False after shutdown
        """
        if self._pipeline is None:
            raise ConstructionError("Event builder is not attached to a client; use build() instead")
        return self._pipeline.enqueue(self.build())
