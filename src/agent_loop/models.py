# models.py
# Data contracts for the agent loop.
# No business logic lives here — pure schema and validation.

from datetime import datetime, timezone
from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_serializer

from agent_loop.json_value import JSONField


class Role(str, Enum):
    """Who produced a transcript message."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class Message(BaseModel):
    """A single role-tagged entry in the conversation transcript."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str


class ToolSpec(BaseModel):
    """Wire-facing description of one registered tool."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    parameters: JSONField = Field(..., description="JSON-schema-like parameter description.")


class ToolCall(BaseModel):
    """Immutable record of one resolved tool invocation."""

    model_config = ConfigDict(frozen=True)

    name: str
    args: dict[str, JSONField] = Field(default_factory=dict)
    result: JSONField = None
    timing_ms: int | None = Field(
        default=None,
        validation_alias=AliasChoices("timing_ms", "timingMS"),
        description="Wall-clock duration of the call in whole milliseconds.",
    )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BehaviorRecord(BaseModel):
    """The persisted summary of one Agent.input() call."""

    timestamp: datetime = Field(default_factory=_utcnow)
    agent: str
    task: str
    messages: list[Message] = Field(default_factory=list)
    tool_calls: list[ToolCall] = Field(
        default_factory=list,
        validation_alias=AliasChoices("tool_calls", "toolCalls"),
    )
    metadata: dict[str, JSONField] = Field(default_factory=dict)

    @field_serializer("timestamp")
    def serialize_timestamp(self, value: datetime) -> str:
        # Whole seconds, UTC, "Z" suffix: readable by strict ISO-8601 decoders.
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.strftime("%Y-%m-%dT%H:%M:%SZ")


class BackendToolCall(BaseModel):
    """A tool invocation requested by the model backend."""

    name: str
    arguments: dict[str, JSONField] = Field(default_factory=dict)


class BackendResponse(BaseModel):
    """One backend reply: optional text and zero or more tool-call requests."""

    content: str | None = None
    tool_calls: list[BackendToolCall] = Field(default_factory=list)
