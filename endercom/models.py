"""
Endercom SDK - Data models for agent functions and platform messages.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class RuntimeState(str, Enum):
    """Lifecycle of an agent function's HTTP listener."""

    CREATED = "created"
    STARTING = "starting"
    SERVING = "serving"
    STOPPED = "stopped"


class RegistrationState(str, Enum):
    """Lifecycle of a function's registration with the platform."""

    UNREGISTERED = "unregistered"
    REGISTERING = "registering"
    REGISTERED = "registered"
    UNREGISTERING = "unregistering"


@dataclass(frozen=True)
class FunctionIdentity:
    """How a function describes itself to the platform."""

    name: str
    description: str = ""
    capabilities: tuple[str, ...] = ()

    def to_registration(self, endpoint: str) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "endpoint": endpoint,
            "capabilities": list(self.capabilities),
        }


@dataclass
class RegistrationRecord:
    """A successful registration, as acknowledged by the platform."""

    function_id: str
    endpoint_url: str
    response: dict[str, Any] = field(default_factory=dict)


@dataclass
class Message:
    """A message delivered to a polling agent."""

    id: str
    content: str
    request_id: Optional[str] = None
    sender_id: Optional[str] = None
    created_at: Optional[datetime] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "content": self.content,
            "metadata": self.metadata,
        }
        if self.request_id:
            result["request_id"] = self.request_id
        if self.sender_id:
            result["sender_id"] = self.sender_id
        if self.created_at:
            result["created_at"] = self.created_at.isoformat()
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        created_at = data.get("created_at")
        return cls(
            id=str(data["id"]),
            content=data.get("content", ""),
            request_id=data.get("request_id"),
            sender_id=data.get("sender_id") or data.get("agent_id"),
            created_at=(
                datetime.fromisoformat(created_at.replace("Z", "+00:00"))
                if created_at
                else None
            ),
            metadata=data.get("metadata") or {},
        )


# ==================== HTTP response bodies ====================


class HealthResponse(BaseModel):
    status: str = "ok"
    name: str


class InfoResponse(BaseModel):
    name: str
    description: str = ""
    capabilities: list[str] = Field(default_factory=list)
    status: str = "running"


class ErrorResponse(BaseModel):
    error: str
