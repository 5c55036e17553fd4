"""Pydantic models for the batch ingestion payload."""

from __future__ import annotations

import uuid
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field

from ..core.events import Event, EventBatch

LIB_NAME = "analytics-client"


class EventRecord(BaseModel):
    """One event as the ingestion endpoint expects it."""

    model_config = ConfigDict(extra="forbid")

    event: str = Field(..., min_length=1, description="Event name")
    distinct_id: str = Field(..., min_length=1, description="Actor id, or a generated marker for anonymous actors")
    properties: Dict[str, Any] = Field(default_factory=dict, description="Event properties")
    timestamp: str = Field(..., description="ISO-8601 capture time in UTC")

    @classmethod
    def from_event(cls, event: Event, lib_version: str) -> EventRecord:
        properties: Dict[str, Any] = {"$lib": LIB_NAME, "$lib_version": lib_version}
        properties.update(event.properties_dict())

        if event.is_anonymous:
            distinct_id = str(uuid.uuid4())
            properties["$process_person_profile"] = False
        else:
            distinct_id = event.actor.distinct_id

        return cls(
            event=event.name,
            distinct_id=distinct_id,
            properties=properties,
            timestamp=event.captured_at.isoformat(),
        )


class BatchEnvelope(BaseModel):
    """Request body for the batch endpoint."""

    model_config = ConfigDict(extra="forbid")

    api_key: str = Field(..., min_length=1)
    batch: List[EventRecord] = Field(default_factory=list)

    @classmethod
    def from_batch(cls, batch: EventBatch, api_key: str, lib_version: str) -> BatchEnvelope:
        return cls(api_key=api_key, batch=[EventRecord.from_event(event, lib_version) for event in batch])

    def to_bytes(self) -> bytes:
        return self.model_dump_json().encode("utf-8")
