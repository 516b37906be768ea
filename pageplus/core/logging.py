"""Logging configuration for the CLI and the conversation runtime.

Records emitted while a turn runs are tagged with the conversation, the
turn and the tool handling it. The tags live in a ``contextvars`` variable,
so overlapping turns on one event loop keep their own values.
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass, replace
from datetime import UTC, datetime
from typing import TextIO

from opentelemetry import trace

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s%(turn_tags)s"

# Request-per-line loggers that drown out turn output at INFO.
_CHATTY_LOGGERS = ("httpx", "httpcore", "aiosqlite")


@dataclass(frozen=True, slots=True)
class TurnTags:
    conversation_id: str | None = None
    turn_id: str | None = None
    tool_name: str | None = None

    def as_dict(self) -> dict[str, str | None]:
        return asdict(self)

    def render(self) -> str:
        present = [f"{name}={value}" for name, value in self.as_dict().items() if value is not None]
        return f" [{' '.join(present)}]" if present else ""


_NO_TAGS = TurnTags()
_TURN_TAGS: contextvars.ContextVar[TurnTags] = contextvars.ContextVar("pageplus_turn_tags", default=_NO_TAGS)


def current_tags() -> TurnTags:
    return _TURN_TAGS.get()


@contextmanager
def _tagged(tags: TurnTags) -> Iterator[TurnTags]:
    token = _TURN_TAGS.set(tags)
    try:
        yield tags
    finally:
        _TURN_TAGS.reset(token)


@contextmanager
def turn_scope(conversation_id: str, turn_id: str) -> Iterator[TurnTags]:
    """Tag everything logged during one submitted query.

    A new turn starts without a tool; the orchestrator picks one later.
    """
    with _tagged(TurnTags(conversation_id=conversation_id, turn_id=turn_id)) as tags:
        yield tags


@contextmanager
def tool_scope(tool_name: str) -> Iterator[TurnTags]:
    with _tagged(replace(current_tags(), tool_name=tool_name)) as tags:
        yield tags


def _active_trace_id() -> str | None:
    span_context = trace.get_current_span().get_span_context()
    return format(span_context.trace_id, "032x") if span_context.is_valid else None


class TurnTagFilter(logging.Filter):
    """Copy the active turn tags and trace id onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        tags = current_tags()
        for name, value in tags.as_dict().items():
            setattr(record, name, value)
        record.trace_id = _active_trace_id()
        record.turn_tags = tags.render()
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line; unset tags are left out."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in (*TurnTags.__dataclass_fields__, "trace_id"):
            value = getattr(record, name, None)
            if value is not None:
                payload[name] = value
        if record.exc_info is not None:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True)


def setup_logging(
    level: int | str = logging.INFO,
    json_output: bool = False,
    stream: TextIO | None = None,
) -> None:
    """Route root logging to stderr so streamed answers on stdout stay clean."""
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.addFilter(TurnTagFilter())
    handler.setFormatter(JsonFormatter() if json_output else logging.Formatter(TEXT_FORMAT))
    root.addHandler(handler)

    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(max(root.level, logging.WARNING))


__all__ = [
    "JsonFormatter",
    "TEXT_FORMAT",
    "TurnTagFilter",
    "TurnTags",
    "current_tags",
    "setup_logging",
    "tool_scope",
    "turn_scope",
]
