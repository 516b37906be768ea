from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def utc_now() -> datetime:
    return datetime.now(UTC)


class MessageSource(StrEnum):
    user = "user"
    ai = "ai"


class MessageStatus(StrEnum):
    complete = "complete"
    streaming = "streaming"
    processing = "processing"


class ConversationMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: MessageSource
    content: str
    timestamp: datetime = Field(default_factory=utc_now)
    status: MessageStatus = MessageStatus.complete
    context_ids: tuple[str, ...] = ()
    tool_used: str | None = None

    @field_validator("timestamp")
    @classmethod
    def _ensure_timezone_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
            raise ValueError("timestamp must be timezone-aware")
        return value

    @model_validator(mode="after")
    def _tool_only_on_ai(self) -> ConversationMessage:
        if self.tool_used is not None and self.source != MessageSource.ai:
            raise ValueError("tool_used is only recorded on ai messages")
        return self

    @property
    def role(self) -> str:
        return "user" if self.source == MessageSource.user else "assistant"


__all__ = [
    "ConversationMessage",
    "MessageSource",
    "MessageStatus",
    "utc_now",
]
