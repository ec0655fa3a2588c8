"""Pydantic schemas for the hub's HTTP and WebSocket protocol."""

from typing import Any, Optional, Union

from pydantic import BaseModel, Field, field_validator

from orderhub.events.types import EVENT_METHODS


class BroadcastMessage(BaseModel):
    """Body of POST /api/broadcast (API → hub)."""

    method: str = Field(..., min_length=1)
    group: Optional[str] = None
    data: Any = None

    @field_validator("method")
    @classmethod
    def known_method(cls, value: str) -> str:
        if value not in EVENT_METHODS:
            raise ValueError(f"method must be one of {', '.join(EVENT_METHODS)}")
        return value


class BroadcastResult(BaseModel):
    status: str = "ok"
    targeted: int
    fallback: int
    failed: int = 0


class HubInvocation(BaseModel):
    """A client → hub frame on /hubs/notifications.

    {"type": "invoke", "method": "JoinOrderGroup", "args": ["order-001"], "id": "1"}
    {"type": "ping"}
    """

    type: str = "invoke"
    method: Optional[str] = None
    args: list[Any] = Field(default_factory=list)
    id: Optional[Union[str, int]] = None
