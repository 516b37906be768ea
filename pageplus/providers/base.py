"""Helpers shared by every provider backend."""

from __future__ import annotations

import base64
import binascii
import json
import logging
import re
from collections.abc import Iterable, Sequence

from pageplus.config import ResponseLanguage
from pageplus.core.token_counter import HeuristicTokenCounter
from pageplus.models.context import ContextItem
from pageplus.models.messages import ConversationMessage
from pageplus.models.providers import (
    Availability,
    AvailabilityState,
    FormFieldMapping,
    FormInputElement,
    QuotaUsage,
)
from pageplus.page.forms import parse_inputs
from pageplus.protocols.providers import ProviderSession, RuntimeMessage
from pageplus.providers.errors import SessionNotInitialized

logger = logging.getLogger(__name__)

LANGUAGE_NAMES: dict[str, str] = {
    "en": "English",
    "es": "Spanish (Español)",
    "ja": "Japanese (日本語)",
}

_FENCED_JSON = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_DATA_URL = re.compile(r"^data:(?P<mime>[\w/+.-]+)?(?P<params>(?:;[^,;]*)*),(?P<data>.*)$", re.DOTALL)

DEFAULT_IMAGE_MIME = "image/png"

_TEXTAREA_MESSAGE = (
    "I am interested in learning more about your services and would like to "
    "schedule a consultation."
)
_TEXT_FIELD_DEFAULTS: tuple[tuple[str, str], ...] = (
    ("address", "123 Main Street, San Francisco, CA 94102"),
    ("company", "TechCorp Solutions"),
    ("city", "San Francisco"),
    ("state", "California"),
    ("zip", "94102"),
)


def language_instruction(language: ResponseLanguage | str) -> str:
    name = LANGUAGE_NAMES.get(language, LANGUAGE_NAMES["en"])
    return f"\n\nIMPORTANT: Please respond in {name}. All your responses should be in {name} language."


def history_messages(history: Sequence[ConversationMessage] | None) -> list[RuntimeMessage]:
    return [{"role": message.role, "content": message.content} for message in history or ()]


def render_history(history: Sequence[ConversationMessage] | None) -> str:
    """Flatten prior turns into a text preamble for stateless backends."""
    if not history:
        return ""
    lines = ["Previous conversation:"]
    for message in history:
        speaker = "User" if message.role == "user" else "Assistant"
        lines.append(f"{speaker}: {message.content}")
    return "\n".join(lines) + "\n\n"


def split_data_url(data_url: str) -> tuple[str, str]:
    """Return ``(mime_type, base64_payload)``; raises ``ValueError`` if not a data URL."""
    match = _DATA_URL.match(data_url.strip())
    if match is None:
        raise ValueError("not a data URL")
    return match.group("mime") or DEFAULT_IMAGE_MIME, match.group("data")


def decode_data_url(data_url: str) -> tuple[bytes, str]:
    mime_type, payload = split_data_url(data_url)
    try:
        return base64.b64decode(payload, validate=True), mime_type
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"undecodable image payload: {exc}") from exc


def context_text(item: ContextItem) -> str:
    return f"Context Item ({item.type}): {item.content}"


def extract_json_object(text: str) -> dict[str, object]:
    """Parse a JSON object from model output, tolerating a fenced code block."""
    candidate = text.strip()
    fenced = _FENCED_JSON.search(candidate)
    if fenced is not None:
        candidate = fenced.group(1).strip()
    parsed = json.loads(candidate)
    if not isinstance(parsed, dict):
        raise ValueError("expected a JSON object")
    return parsed


def _guess_field_value(element: FormInputElement) -> str | None:
    parsed = parse_inputs(element.html)
    tag = parsed[0].tag if parsed else ("textarea" if "<textarea" in element.html.lower() else "input")
    attrs = parsed[0].attrs if parsed else {}
    input_type = "textarea" if tag == "textarea" else attrs.get("type", "text").lower()
    name = attrs.get("name", "").lower()
    placeholder = attrs.get("placeholder", "").lower()
    selector = element.selector.lower()

    if input_type == "email" or "email" in selector or name == "email":
        return "sarah.johnson@techcorp.com"
    if input_type == "text" and ("name" in selector or name == "name" or placeholder == "name"):
        return "Sarah Johnson"
    if input_type == "tel" or "phone" in selector or name == "phone":
        return "+1 (555) 123-4567"
    if input_type == "password" or "password" in selector:
        return "SecurePass123!"
    if input_type == "date" or "date" in selector or name == "date":
        return "1990-05-15"
    if input_type == "number" or "age" in selector or name == "age":
        return "33"
    if tag == "textarea" or "message" in selector or "comment" in selector:
        return _TEXTAREA_MESSAGE
    if input_type == "text":
        for needle, value in _TEXT_FIELD_DEFAULTS:
            if needle in selector:
                return value
        return "Sample Text"
    return None


def fallback_form_mapping(input_elements: Sequence[FormInputElement]) -> FormFieldMapping:
    """Plausible values inferred from each field's type, name and selector.

    Fields with no recognizable purpose (checkboxes, hidden inputs, ...)
    map to ``None``.
    """
    return {element.selector: _guess_field_value(element) for element in input_elements}


def restrict_to_selectors(
    mapping: dict[str, object], input_elements: Sequence[FormInputElement]
) -> FormFieldMapping:
    known = {element.selector for element in input_elements}
    restricted: FormFieldMapping = {}
    for selector, value in mapping.items():
        if selector not in known:
            logger.warning("dropping value for unknown selector %r", selector)
            continue
        restricted[selector] = None if value is None else str(value)
    return restricted


def estimate_quota(texts: Iterable[str], quota: float, counter: HeuristicTokenCounter) -> QuotaUsage:
    """Character-count estimate, clamped to ``[0, 100]`` percent."""
    tokens = counter.count(" ".join(texts))
    return QuotaUsage.from_counts(tokens, quota, clamp=True)


class ProviderStateMixin:
    """State every backend exposes: availability, the session slot and errors."""

    provider_name = "provider"

    def _init_state(self, language: ResponseLanguage | str) -> None:
        self.availability = AvailabilityState(status=Availability.unavailable)
        self.session = ProviderSession()
        self.download_progress = 0.0
        self.error: str | None = None
        self.language = language

    @property
    def name(self) -> str:
        return self.provider_name

    def _require_session(self) -> object:
        if self.session.session is None or not self.session.is_active:
            raise SessionNotInitialized(self.provider_name)
        return self.session.session

    def _record_error(self, exc: BaseException) -> None:
        self.error = str(exc)

    def _instruction(self) -> str:
        return language_instruction(self.language)


__all__ = [
    "DEFAULT_IMAGE_MIME",
    "LANGUAGE_NAMES",
    "ProviderStateMixin",
    "context_text",
    "decode_data_url",
    "estimate_quota",
    "extract_json_object",
    "fallback_form_mapping",
    "history_messages",
    "language_instruction",
    "render_history",
    "restrict_to_selectors",
    "split_data_url",
]
