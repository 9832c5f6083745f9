# risq/core/bus/bus_schemas.py
from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


ENVELOPE_VERSION = "1.0"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_event_id() -> str:
    return str(uuid4())


class BaseEvent(BaseModel):
    """
    Envelope carried by every event on the pipeline bus.

    - Immutable once built (frozen)
    - Self-identifying (type, subject)
    - Auditable (source, timestamp)
    - Versioned (version)

    Unknown fields are ignored on decode so older consumers keep working when a
    producer adds fields.
    """
    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
        validate_default=True,
        populate_by_name=True,
    )

    id: str = Field(default_factory=new_event_id, description="Unique event id.")
    type: str = Field(..., description="Event type tag (e.g. 'market.validated').")
    source: str = Field(..., description="Originating service name.")
    subject: str = Field(..., description="Bus routing key the event is published on.")
    timestamp: datetime = Field(default_factory=utcnow)
    version: str = Field(ENVELOPE_VERSION, description="Envelope schema version.")

    @field_validator("timestamp")
    @classmethod
    def _ensure_tz(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v
