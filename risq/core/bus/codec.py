# risq/core/bus/codec.py
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .bus_schemas import BaseEvent

EventT = TypeVar("EventT", bound=BaseEvent)


@dataclass(frozen=True)
class DecodeResult(Generic[EventT]):
    event: Optional[EventT]
    raw: Dict[str, Any] = field(default_factory=dict)
    ok: bool = True
    error: Optional[str] = None


class RisqCodec:
    """
    Encode/decode layer between pydantic events and bus bytes.

    - Never leak raw JSON dicts into handler logic.
    - Decode never raises; failures come back as ok=False with an error string.
    """

    def encode(self, obj: BaseModel | Dict[str, Any]) -> bytes:
        if isinstance(obj, BaseModel):
            # Serialize with aliases so wire field names stay stable.
            return obj.model_dump_json(by_alias=True).encode("utf-8")
        return json.dumps(obj, separators=(",", ":"), ensure_ascii=False, default=str).encode("utf-8")

    def decode(self, data: bytes | str, model_cls: Type[EventT]) -> DecodeResult[EventT]:
        try:
            if isinstance(data, (bytes, bytearray)):
                s = data.decode("utf-8")
            else:
                s = data
            raw = json.loads(s)
        except (UnicodeDecodeError, ValueError) as e:
            return DecodeResult(event=None, ok=False, error=f"invalid_json: {e}")

        if not isinstance(raw, dict):
            return DecodeResult(event=None, ok=False, error=f"invalid_payload: expected object, got {type(raw).__name__}")

        try:
            event = model_cls.model_validate(raw)
        except ValidationError as e:
            return DecodeResult(
                event=None,
                raw=raw,
                ok=False,
                error=f"event_validation_failed: {e.error_count()} error(s) for {model_cls.__name__}",
            )
        return DecodeResult(event=event, raw=raw, ok=True)
