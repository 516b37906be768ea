"""Ordered strategies for reading a tool id out of free-form model output.

Each strategy is independent and returns ``None`` when it cannot decide,
so the chain can be tested stage by stage.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from pageplus.models.tools import TOOL_ALIASES, Tool, ToolId

TOOL_NAME_PATTERN = re.compile(r'"toolName":\s*"([^"]+)"')
_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class ParsedSelection:
    tool: str
    stage: str


def parse_json_tool_name(text: str) -> str | None:
    candidate = _FENCE.sub("", text.strip())
    try:
        parsed = json.loads(candidate)
    except (json.JSONDecodeError, TypeError):
        return None
    if not isinstance(parsed, dict):
        return None
    name = parsed.get("toolName")
    if isinstance(name, str) and name.strip():
        return name.strip()
    return None


def extract_tool_name_regex(text: str) -> str | None:
    match = TOOL_NAME_PATTERN.search(text)
    return match.group(1).strip() if match else None


def match_tool_name(text: str, tools: Sequence[Tool]) -> str | None:
    """Case-insensitive match against each tool's function id or display name."""
    cleaned = text.strip().strip("\"'`.").strip().lower()
    if not cleaned:
        return None
    for tool in tools:
        if cleaned in (tool.function.lower(), tool.name.lower()):
            return tool.function
    return None


def normalize_alias(text: str, tools: Sequence[Tool] | None = None) -> str | None:
    canonical = TOOL_ALIASES.get(text.strip().strip("\"'`.").strip().lower())
    if canonical is None:
        return None
    if tools is not None and canonical not in {tool.function for tool in tools}:
        return None
    return canonical


def resolve_tool_name(name: str, tools: Sequence[Tool]) -> str | None:
    """Map a candidate name to an offered tool id, or ``None``."""
    return match_tool_name(name, tools) or normalize_alias(name, tools)


def _from_json(text: str, tools: Sequence[Tool]) -> str | None:
    name = parse_json_tool_name(text)
    return resolve_tool_name(name, tools) if name else None


def _from_regex(text: str, tools: Sequence[Tool]) -> str | None:
    name = extract_tool_name_regex(text)
    return resolve_tool_name(name, tools) if name else None


STRATEGIES: tuple[tuple[str, Callable[[str, Sequence[Tool]], str | None]], ...] = (
    ("json", _from_json),
    ("regex", _from_regex),
    ("name_match", match_tool_name),
    ("alias", normalize_alias),
)


def parse_tool_selection(text: str, tools: Sequence[Tool]) -> ParsedSelection:
    """Run every strategy in order; default to ``query`` when none decides."""
    for stage, strategy in STRATEGIES:
        tool = strategy(text, tools)
        if tool is not None:
            return ParsedSelection(tool=tool, stage=stage)
    return ParsedSelection(tool=ToolId.query.value, stage="default")


__all__ = [
    "ParsedSelection",
    "STRATEGIES",
    "TOOL_NAME_PATTERN",
    "extract_tool_name_regex",
    "match_tool_name",
    "normalize_alias",
    "parse_json_tool_name",
    "parse_tool_selection",
    "resolve_tool_name",
]
