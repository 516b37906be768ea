"""Provider backed by the host's on-device language model runtime."""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence

from pageplus.config import ResponseLanguage
from pageplus.core.metrics import LLM_CALLS_TOTAL
from pageplus.core.telemetry import get_tracer, model_call_attributes
from pageplus.core.token_counter import HeuristicTokenCounter
from pageplus.models.context import ContextItem
from pageplus.models.messages import ConversationMessage
from pageplus.models.providers import (
    Availability,
    AvailabilityState,
    FormFieldMapping,
    FormInputElement,
    QuotaUsage,
    ToolSelectionResponse,
)
from pageplus.models.tools import ToolId
from pageplus.protocols.providers import (
    ChunkSink,
    LanguageModelRuntime,
    LanguageModelSession,
    ProviderSession,
    RuntimeCreateOptions,
    RuntimeMessage,
)
from pageplus.providers.base import (
    ProviderStateMixin,
    context_text,
    decode_data_url,
    estimate_quota,
    extract_json_object,
    fallback_form_mapping,
    history_messages,
    restrict_to_selectors,
)
from pageplus.providers.errors import (
    ProviderError,
    ProviderUnavailable,
    SessionDestroyed,
    StructuredOutputError,
    is_session_destroyed,
)
from pageplus.tools.parsing import extract_tool_name_regex, parse_json_tool_name

logger = logging.getLogger(__name__)

_TRACER = get_tracer("pageplus.providers.on_device")

_TEXT_IO = {"type": "text", "languages": ["en"]}
_IMAGE_IO = {"type": "image", "languages": ["en"]}

_FORM_FILLING_INSTRUCTIONS = """Instructions:
- Analyze each input element's HTML structure, attributes, and surrounding context to understand its purpose
- Look for: name, id, type, placeholder, label text, aria-label, title attributes, and surrounding text
- Generate realistic, appropriate values that match the field's purpose and context
- NEVER use placeholder text, "test", "sample", or obvious dummy values
- NEVER copy exact user input unless it's specifically relevant data (like a name or email they provided)
- Use null only for fields where no reasonable value can be generated
- Field-specific guidance:
  * Email fields: realistic email addresses (e.g., "sarah.johnson@techcorp.com")
  * Name fields: realistic names (e.g., "Sarah Johnson", "Michael Chen")
  * Phone fields: valid phone numbers (e.g., "+1 (555) 123-4567")
  * Address fields: realistic addresses with proper formatting
  * Text areas: meaningful, contextually appropriate content
  * Password fields: secure passwords (e.g., "SecurePass123!")
  * Date fields: realistic dates in an appropriate format
  * Number fields: realistic numbers within reasonable ranges
- If the user requests certain data to be used, incorporate it

Return a JSON object where:
- Key: the CSS selector of the input element
- Value: the data value to fill in that field (use null if no data available)"""


def tool_selection_schema() -> dict[str, object]:
    return {
        "type": "object",
        "properties": {
            "toolName": {"type": "string", "enum": [tool.value for tool in ToolId]},
        },
        "required": ["toolName"],
        "additionalProperties": False,
    }


def form_filling_schema(input_elements: Sequence[FormInputElement]) -> dict[str, object]:
    return {
        "type": "object",
        "properties": {element.selector: {"type": ["string", "null"]} for element in input_elements},
        "additionalProperties": False,
    }


def form_filling_prompt(query: str, input_elements: Sequence[FormInputElement]) -> str:
    described = json.dumps(
        [element.model_dump() for element in input_elements],
        indent=2,
        ensure_ascii=False,
    )
    parts = [
        "You are an intelligent form filling assistant. Generate realistic, professional "
        "values for the following input elements based on their field types and context.",
        f"Input elements found:\n{described}",
    ]
    if query:
        parts.append(f"User request: {query}")
    parts.append(_FORM_FILLING_INSTRUCTIONS)
    return "\n\n".join(parts)


class OnDeviceProvider(ProviderStateMixin):
    """Session-holding backend over an injected ``LanguageModelRuntime``.

    Conversation history lives inside the runtime session (seeded as
    initial prompts), so per-call ``history`` arguments are only used for
    quota estimates.
    """

    provider_name = "on-device"

    def __init__(
        self,
        runtime: LanguageModelRuntime,
        *,
        language: ResponseLanguage | str = "en",
        fallback_quota: int = 100_000,
        token_counter: HeuristicTokenCounter | None = None,
    ) -> None:
        self._runtime = runtime
        self._fallback_quota_tokens = fallback_quota
        self._token_counter = token_counter or HeuristicTokenCounter()
        self._has_checked = False
        self._init_state(language)

    async def check_availability(self) -> AvailabilityState:
        try:
            status = Availability(await self._runtime.availability())
        except Exception:
            logger.warning("on-device availability probe failed", exc_info=True)
            status = Availability.unavailable
        self._has_checked = True
        self.availability = AvailabilityState(status=status)
        return self.availability

    async def initialize_session(self, history: Sequence[ConversationMessage] | None = None) -> None:
        if not self._has_checked:
            await self.check_availability()
        if not self.availability.status.can_initialize:
            raise ProviderUnavailable("on-device language model is not available")

        self.destroy_session()
        self.error = None
        self.download_progress = 0.0
        options = RuntimeCreateOptions(
            initial_prompts=history_messages(history),
            expected_inputs=[dict(_TEXT_IO), dict(_IMAGE_IO)],
            expected_outputs=[dict(_TEXT_IO)],
            monitor=self._on_download_progress,
        )
        with _TRACER.start_as_current_span(
            "provider.on_device.create", attributes=model_call_attributes(self.provider_name, "create")
        ):
            try:
                handle = await self._runtime.create(options)
            except Exception as exc:
                self._record_error(exc)
                raise ProviderError(f"failed to initialize on-device session: {exc}") from exc

        self.session = ProviderSession(session=handle, is_active=True)
        # A download that just finished flips the probe to available.
        await self.check_availability()
        logger.info("on-device session ready (history=%d)", len(options.initial_prompts))

    def _on_download_progress(self, loaded: float) -> None:
        self.download_progress = loaded * 100

    def format_context_items(self, context_items: Sequence[ContextItem]) -> list[RuntimeMessage]:
        messages: list[RuntimeMessage] = []
        for item in context_items:
            content: list[dict[str, object]] = []
            if item.is_textual:
                content.append({"type": "text", "value": context_text(item)})
            image = item.image_payload()
            if image:
                try:
                    payload, _ = decode_data_url(image)
                except ValueError:
                    logger.warning("skipping undecodable image on context item %s", item.id)
                else:
                    content.append({"type": "image", "value": payload})
            if content:
                messages.append({"role": "user", "content": content})
        return messages

    def _build_messages(
        self,
        query: str,
        context_items: Sequence[ContextItem],
        history: Sequence[ConversationMessage] | None = None,
    ) -> list[RuntimeMessage]:
        return [
            *history_messages(history),
            *self.format_context_items(context_items),
            {"role": "user", "content": query + self._instruction()},
        ]

    def _runtime_error(self, exc: Exception, call: str) -> ProviderError:
        self._record_error(exc)
        if isinstance(exc, ProviderError):
            return exc
        if is_session_destroyed(exc):
            return SessionDestroyed(str(exc))
        return ProviderError(f"on-device {call} failed: {exc}")

    def _active_session(self) -> LanguageModelSession:
        session = self._require_session()
        return session  # type: ignore[return-value]

    async def _prompt(self, messages: list[RuntimeMessage], call: str) -> str:
        session = self._active_session()
        LLM_CALLS_TOTAL.labels(provider=self.provider_name, call=call).inc()
        with _TRACER.start_as_current_span(
            f"provider.on_device.{call}", attributes=model_call_attributes(self.provider_name, call)
        ):
            try:
                return await session.prompt(messages)
            except Exception as exc:
                raise self._runtime_error(exc, call) from exc

    async def execute_prompt(self, query: str, context_items: Sequence[ContextItem]) -> str:
        return await self._prompt(self._build_messages(query, context_items), "prompt")

    async def execute_prompt_streaming(
        self,
        query: str,
        context_items: Sequence[ContextItem],
        on_chunk: ChunkSink,
        history: Sequence[ConversationMessage] | None = None,
    ) -> None:
        session = self._active_session()
        messages = self._build_messages(query, context_items)
        LLM_CALLS_TOTAL.labels(provider=self.provider_name, call="prompt_streaming").inc()
        with _TRACER.start_as_current_span(
            "provider.on_device.prompt_streaming",
            attributes=model_call_attributes(self.provider_name, "prompt_streaming"),
        ):
            try:
                async for chunk in session.prompt_streaming(messages):
                    on_chunk(chunk)
            except Exception as exc:
                raise self._runtime_error(exc, "prompt_streaming") from exc

    async def execute_tool_selection(
        self,
        query: str,
        context_items: Sequence[ContextItem],
        history: Sequence[ConversationMessage] | None = None,
    ) -> str:
        return await self._prompt(self._build_messages(query, context_items), "tool_selection")

    async def execute_tool_selection_structured(
        self,
        query: str,
        context_items: Sequence[ContextItem],
        history: Sequence[ConversationMessage] | None = None,
    ) -> ToolSelectionResponse:
        self._require_session()
        messages = self._build_messages(query, context_items)
        LLM_CALLS_TOTAL.labels(provider=self.provider_name, call="tool_selection_structured").inc()
        with _TRACER.start_as_current_span(
            "provider.on_device.tool_selection_structured",
            attributes=model_call_attributes(self.provider_name, "tool_selection_structured"),
        ):
            try:
                selector_session = await self._runtime.create(
                    RuntimeCreateOptions(expected_inputs=[dict(_TEXT_IO)], expected_outputs=[dict(_TEXT_IO)])
                )
            except Exception as exc:
                raise self._runtime_error(exc, "tool_selection_structured") from exc
            try:
                raw = await selector_session.prompt(messages, response_constraint=tool_selection_schema())
            except Exception as exc:
                raise self._runtime_error(exc, "tool_selection_structured") from exc
            finally:
                try:
                    selector_session.destroy()
                except Exception:
                    logger.warning("failed to destroy tool-selection session", exc_info=True)

        name = parse_json_tool_name(raw) or extract_tool_name_regex(raw)
        if name is None:
            raise StructuredOutputError("failed to parse structured tool selection", raw=raw)
        return ToolSelectionResponse(tool_name=name)

    async def execute_form_filling_structured(
        self,
        query: str,
        context_items: Sequence[ContextItem],
        input_elements: Sequence[FormInputElement],
    ) -> FormFieldMapping:
        session = self._active_session()
        messages = [
            *self.format_context_items(context_items),
            {"role": "user", "content": form_filling_prompt(query, input_elements)},
        ]
        LLM_CALLS_TOTAL.labels(provider=self.provider_name, call="form_filling").inc()
        with _TRACER.start_as_current_span(
            "provider.on_device.form_filling",
            attributes=model_call_attributes(self.provider_name, "form_filling"),
        ):
            try:
                raw = await session.prompt(messages, response_constraint=form_filling_schema(input_elements))
                return restrict_to_selectors(extract_json_object(raw), input_elements)
            except Exception as exc:
                self._record_error(exc)
                logger.warning("structured form filling failed, using heuristic mapping: %s", exc)
                return fallback_form_mapping(input_elements)

    def _fallback_quota(
        self,
        context_items: Sequence[ContextItem],
        query: str,
        history: Sequence[ConversationMessage] | None,
    ) -> QuotaUsage:
        texts = [message.content for message in history or ()]
        texts.extend(context_text(item) for item in context_items if item.is_textual)
        texts.append(query + self._instruction())
        return estimate_quota(texts, self._fallback_quota_tokens, self._token_counter)

    async def calculate_quota_usage(
        self,
        context_items: Sequence[ContextItem],
        query: str,
        history: Sequence[ConversationMessage] | None = None,
    ) -> QuotaUsage:
        session = self.session.session
        if session is None or not self.session.is_active:
            return self._fallback_quota(context_items, query, history)
        messages = self._build_messages(query, context_items, history)
        try:
            usage = await session.measure_input_usage(messages)  # type: ignore[attr-defined]
            quota = session.input_quota  # type: ignore[attr-defined]
        except Exception as exc:
            if is_session_destroyed(exc):
                logger.warning("session destroyed during quota calculation, using estimate")
            else:
                logger.warning("quota measurement failed, using estimate: %s", exc)
            return self._fallback_quota(context_items, query, history)
        return QuotaUsage.from_counts(float(usage), float(quota))

    def destroy_session(self) -> None:
        handle = self.session.session
        if handle is not None:
            try:
                handle.destroy()  # type: ignore[attr-defined]
            except Exception:
                logger.error("error destroying on-device session", exc_info=True)
        self.session = ProviderSession()


__all__ = [
    "OnDeviceProvider",
    "form_filling_prompt",
    "form_filling_schema",
    "tool_selection_schema",
]
