from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, Field, StrictInt, StrictStr, TypeAdapter, ValidationError

JOIN_TYPES = ("join_project", "join_whiteboard")
RELAY_TYPES = ("new_message", "draw")

class EnvelopeError(ValueError):
    """Raised when an inbound frame is not one of the known envelopes."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason

class _Envelope(BaseModel):
    project_id: StrictInt = Field(alias="projectId")
    class Config:
        populate_by_name = True

class JoinProject(_Envelope):
    type: Literal["join_project"]

class JoinWhiteboard(_Envelope):
    type: Literal["join_whiteboard"]

class NewMessage(_Envelope):
    type: Literal["new_message"]
    content: StrictStr
    # Clients without a loaded user send no senderId
    sender_id: Optional[StrictInt] = Field(default=None, alias="senderId")

class Draw(_Envelope):
    type: Literal["draw"]
    # Strict floats still take JSON integers but not strings or booleans
    from_x: float = Field(alias="fromX", strict=True)
    from_y: float = Field(alias="fromY", strict=True)
    to_x: float = Field(alias="toX", strict=True)
    to_y: float = Field(alias="toY", strict=True)
    tool: StrictStr

Envelope = Annotated[Union[JoinProject, JoinWhiteboard, NewMessage, Draw], Field(discriminator="type")]

_adapter = TypeAdapter(Envelope)

def is_join(env) -> bool:
    return env.type in JOIN_TYPES

def is_relay(env) -> bool:
    return env.type in RELAY_TYPES

def decode_envelope(raw: str):
    """Parse one frame into an envelope model or raise EnvelopeError.

    Invalid JSON, non-objects, unknown ``type`` values and missing or mistyped
    fields are all reported the same way so the caller can log and drop them.
    """
    try:
        return _adapter.validate_json(raw)
    except ValidationError as e:
        first = e.errors()[0]
        loc = ".".join(str(p) for p in first.get("loc", ()))
        reason = f"{loc}: {first['msg']}" if loc else first["msg"]
        raise EnvelopeError(reason) from e
