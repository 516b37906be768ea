"""Provider that forwards prompts to the cloud relay over HTTP.

The relay is stateless: every call carries the serialized context items,
a rendered history preamble and the query as a list of content parts.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass

import httpx

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
from pageplus.protocols.providers import ChunkSink, ProviderSession
from pageplus.providers.base import (
    ProviderStateMixin,
    context_text,
    estimate_quota,
    extract_json_object,
    fallback_form_mapping,
    render_history,
    restrict_to_selectors,
    split_data_url,
)
from pageplus.providers.errors import (
    ProviderUnavailable,
    SessionNotInitialized,
    StructuredOutputError,
    TransportError,
)
from pageplus.tools.parsing import extract_tool_name_regex, normalize_alias, parse_json_tool_name

logger = logging.getLogger(__name__)

_TRACER = get_tracer("pageplus.providers.cloud")

Part = dict[str, object]

SSE_DATA_PREFIX = "data:"
SSE_DONE = "[DONE]"


@dataclass(frozen=True, slots=True)
class CloudSession:
    api_url: str


def serialize_context_item(item: ContextItem) -> list[Part]:
    """One text part describing the item, plus its image as inline data."""
    text = context_text(item)
    if item.url:
        text += f"\nURL: {item.url}"
    if item.elements:
        text += f"\n\nElements ({len(item.elements)}):"
        for index, element in enumerate(item.elements, start=1):
            text += (
                f"\n\nElement {index}:"
                f"\nSelector: {element.selector}"
                f"\nHTML: {element.html}"
                f"\nCSS: {element.css}"
            )
    if item.colors:
        text += f"\n\nColors ({len(item.colors)}): {', '.join(item.colors)}"

    parts: list[Part] = [{"text": text}]
    image = item.image_payload()
    if image:
        try:
            mime_type, data = split_data_url(image)
        except ValueError:
            logger.warning("skipping non data-URL image on context item %s", item.id)
        else:
            parts.append({"inlineData": {"mimeType": mime_type, "data": data}})
    return parts


def _error_detail(response: httpx.Response, default: str) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or default
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return default


class CloudProxyProvider(ProviderStateMixin):
    provider_name = "cloud"

    def __init__(
        self,
        api_url: str,
        *,
        model: str = "gemini-2.0-flash-exp",
        language: ResponseLanguage | str = "en",
        quota_tokens: int = 1_000_000,
        timeout_s: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
        token_counter: HeuristicTokenCounter | None = None,
    ) -> None:
        self._init_state(language)
        self._api_url = api_url.rstrip("/")
        self._model = model
        self._quota_tokens = quota_tokens
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_s))
        self._token_counter = token_counter or HeuristicTokenCounter()
        status = Availability.available if self._api_url else Availability.unavailable
        self.availability = AvailabilityState(status=status)

    @property
    def generate_url(self) -> str:
        return f"{self._api_url}/gemini/generate"

    async def check_availability(self) -> AvailabilityState:
        return self.availability

    async def initialize_session(self, history: Sequence[ConversationMessage] | None = None) -> None:
        if not self.availability.is_ready:
            raise ProviderUnavailable("cloud relay is not configured")
        self.error = None
        self.session = ProviderSession(session=CloudSession(api_url=self._api_url), is_active=True)

    def _build_parts(
        self,
        query: str,
        context_items: Sequence[ContextItem],
        history: Sequence[ConversationMessage] | None = None,
    ) -> list[Part]:
        parts = [part for item in context_items for part in serialize_context_item(item)]
        parts.append({"text": render_history(history) + query + self._instruction()})
        return parts

    def _body(self, parts: list[Part], *, stream: bool) -> dict[str, object]:
        return {"model": self._model, "prompt": parts, "stream": stream}

    async def _generate(self, parts: list[Part], call: str) -> str:
        self._require_session()
        LLM_CALLS_TOTAL.labels(provider=self.provider_name, call=call).inc()
        with _TRACER.start_as_current_span(
            f"provider.cloud.{call}", attributes=model_call_attributes(self.provider_name, call, self._model)
        ):
            try:
                response = await self._http.post(self.generate_url, json=self._body(parts, stream=False))
            except httpx.HTTPError as exc:
                self._record_error(exc)
                raise TransportError(f"cloud relay request failed: {exc}") from exc
            if not response.is_success:
                detail = _error_detail(response, f"failed to execute {call}")
                self.error = detail
                raise TransportError(detail, status_code=response.status_code)
            try:
                payload = response.json()
            except ValueError as exc:
                raise TransportError(f"cloud relay returned invalid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise TransportError("cloud relay returned an unexpected payload")
        return str(payload.get("text") or "")

    async def execute_prompt(
        self,
        query: str,
        context_items: Sequence[ContextItem],
        history: Sequence[ConversationMessage] | None = None,
    ) -> str:
        return await self._generate(self._build_parts(query, context_items, history), "prompt")

    async def execute_prompt_streaming(
        self,
        query: str,
        context_items: Sequence[ContextItem],
        on_chunk: ChunkSink,
        history: Sequence[ConversationMessage] | None = None,
    ) -> None:
        self._require_session()
        body = self._body(self._build_parts(query, context_items, history), stream=True)
        LLM_CALLS_TOTAL.labels(provider=self.provider_name, call="prompt_streaming").inc()
        with _TRACER.start_as_current_span(
            "provider.cloud.prompt_streaming",
            attributes=model_call_attributes(self.provider_name, "prompt_streaming", self._model),
        ):
            try:
                async with self._http.stream("POST", self.generate_url, json=body) as response:
                    if not response.is_success:
                        await response.aread()
                        detail = _error_detail(response, "failed to execute streaming prompt")
                        self.error = detail
                        raise TransportError(detail, status_code=response.status_code)
                    async for line in response.aiter_lines():
                        if not line.startswith(SSE_DATA_PREFIX):
                            continue
                        data = line[len(SSE_DATA_PREFIX) :].strip()
                        if data == SSE_DONE:
                            return
                        try:
                            frame = json.loads(data)
                        except json.JSONDecodeError:
                            logger.warning("skipping malformed SSE frame: %r", data[:200])
                            continue
                        text = frame.get("text") if isinstance(frame, dict) else None
                        if text:
                            on_chunk(str(text))
            except httpx.HTTPError as exc:
                self._record_error(exc)
                raise TransportError(f"cloud relay stream failed: {exc}") from exc

    async def execute_tool_selection(
        self,
        query: str,
        context_items: Sequence[ContextItem],
        history: Sequence[ConversationMessage] | None = None,
    ) -> str:
        return await self._generate(self._build_parts(query, context_items, history), "tool_selection")

    async def execute_tool_selection_structured(
        self,
        query: str,
        context_items: Sequence[ContextItem],
        history: Sequence[ConversationMessage] | None = None,
    ) -> ToolSelectionResponse:
        # The relay has no schema support; approximate from the free-form answer.
        raw = await self.execute_tool_selection(query, context_items, history)
        name = parse_json_tool_name(raw) or extract_tool_name_regex(raw) or raw.strip().lower()
        if not name:
            raise StructuredOutputError("empty tool selection response", raw=raw)
        return ToolSelectionResponse(tool_name=normalize_alias(name) or name)

    async def execute_form_filling_structured(
        self,
        query: str,
        context_items: Sequence[ContextItem],
        input_elements: Sequence[FormInputElement],
    ) -> FormFieldMapping:
        self._require_session()
        selectors = json.dumps([element.selector for element in input_elements], ensure_ascii=False)
        prompt = f"Generate realistic form field values for these input elements: {selectors}."
        if query:
            prompt += f" User request: {query}"
        prompt += " Return JSON with selector as key and value as string."
        try:
            raw = await self.execute_prompt(prompt, context_items)
            return restrict_to_selectors(extract_json_object(raw), input_elements)
        except SessionNotInitialized:
            raise
        except Exception as exc:
            logger.warning("cloud form filling failed, using heuristic mapping: %s", exc)
            return fallback_form_mapping(input_elements)

    async def calculate_quota_usage(
        self,
        context_items: Sequence[ContextItem],
        query: str,
        history: Sequence[ConversationMessage] | None = None,
    ) -> QuotaUsage:
        texts = [message.content for message in history or ()]
        texts.extend(item.text_payload() for item in context_items)
        texts.append(query)
        return estimate_quota(texts, self._quota_tokens, self._token_counter)

    def destroy_session(self) -> None:
        self.session = ProviderSession()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()


__all__ = ["CloudProxyProvider", "CloudSession", "SSE_DONE", "serialize_context_item"]
