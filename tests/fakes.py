from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field

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
from pageplus.models.tools import (
    FormElementsResponse,
    FormFillResponse,
    PageImagesResponse,
    ScreenshotResponse,
)
from pageplus.protocols.providers import ChunkSink, ProviderSession, RuntimeCreateOptions, RuntimeMessage
from pageplus.providers.errors import SessionNotInitialized


@dataclass
class FakeLanguageModelSession:
    """Scripted on-device session."""

    prompt_response: str = "answer"
    structured_response: str = '{"toolName": "query"}'
    stream_chunks: list[str] = field(default_factory=lambda: ["Hello", " world"])
    input_quota: float = 1000.0
    usage: float = 250.0
    prompt_error: Exception | None = None
    measure_error: Exception | None = None
    destroy_error: Exception | None = None
    destroyed: int = 0
    prompts: list[list[RuntimeMessage]] = field(default_factory=list)
    constraints: list[dict[str, object] | None] = field(default_factory=list)

    async def prompt(
        self,
        messages: Sequence[RuntimeMessage],
        *,
        response_constraint: dict[str, object] | None = None,
    ) -> str:
        self.prompts.append(list(messages))
        self.constraints.append(response_constraint)
        if self.prompt_error is not None:
            raise self.prompt_error
        if response_constraint is not None:
            return self.structured_response
        return self.prompt_response

    async def prompt_streaming(self, messages: Sequence[RuntimeMessage]) -> AsyncIterator[str]:
        self.prompts.append(list(messages))
        if self.prompt_error is not None:
            raise self.prompt_error
        for chunk in self.stream_chunks:
            yield chunk

    async def measure_input_usage(self, messages: Sequence[RuntimeMessage]) -> float:
        if self.measure_error is not None:
            raise self.measure_error
        return self.usage

    def destroy(self) -> None:
        self.destroyed += 1
        if self.destroy_error is not None:
            raise self.destroy_error


class FakeLanguageModelRuntime:
    def __init__(
        self,
        status: str = "available",
        *,
        session: FakeLanguageModelSession | None = None,
        create_error: Exception | None = None,
    ) -> None:
        self.status = status
        self.template = session or FakeLanguageModelSession()
        self.create_error = create_error
        self.created: list[FakeLanguageModelSession] = []
        self.create_options: list[RuntimeCreateOptions] = []
        self.probe_error: Exception | None = None

    async def availability(self) -> str:
        if self.probe_error is not None:
            raise self.probe_error
        return self.status

    async def create(self, options: RuntimeCreateOptions) -> FakeLanguageModelSession:
        self.create_options.append(options)
        if self.create_error is not None:
            raise self.create_error
        if options.monitor is not None:
            options.monitor(1.0)
        session = FakeLanguageModelSession(
            prompt_response=self.template.prompt_response,
            structured_response=self.template.structured_response,
            stream_chunks=list(self.template.stream_chunks),
            input_quota=self.template.input_quota,
            usage=self.template.usage,
            prompt_error=self.template.prompt_error,
            measure_error=self.template.measure_error,
        )
        self.created.append(session)
        return session


class FakeSummarizerSession:
    def __init__(self, fail_on: set[str] | None = None, delay_s: float = 0.0) -> None:
        self.fail_on = fail_on or set()
        self.delay_s = delay_s
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def summarize(self, text: str, context: str | None = None) -> str:
        self.calls.append(text)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay_s:
                await asyncio.sleep(self.delay_s)
            if text in self.fail_on:
                raise RuntimeError(f"cannot summarize {text!r}")
            return f"summary of {text[:20]}"
        finally:
            self.in_flight -= 1

    async def summarize_streaming(self, text: str, context: str | None = None) -> AsyncIterator[str]:
        self.calls.append(text)
        for chunk in ("Key ", "points"):
            yield chunk


class FakeWriterSession:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str | None]] = []

    async def write(self, prompt: str, context: str | None = None) -> str:
        self.calls.append((prompt, context))
        return "Draft"

    async def write_streaming(self, prompt: str, context: str | None = None) -> AsyncIterator[str]:
        self.calls.append((prompt, context))
        for chunk in ("Dear ", "team"):
            yield chunk


class FakeCapabilityRuntime:
    def __init__(self, status: str = "available", instance: object | None = None) -> None:
        self.status = status
        self.instance = instance if instance is not None else FakeSummarizerSession()
        self.create_calls = 0
        self.probes: list[dict[str, object]] = []

    async def availability(self, options: dict[str, object]) -> str:
        self.probes.append(options)
        return self.status

    async def create(self, options: RuntimeCreateOptions) -> object:
        self.create_calls += 1
        return self.instance


class FakeProvider:
    """AiProvider double with scripted results and recorded calls."""

    name = "fake"

    def __init__(
        self,
        *,
        stream_chunks: Sequence[str] = ("streamed ", "answer"),
        structured: ToolSelectionResponse | Exception | None = None,
        selection_text: str | Exception = "query",
        form_mapping: FormFieldMapping | Exception | None = None,
        quota: QuotaUsage | None = None,
        stream_error: Exception | None = None,
        prompt_response: str | Exception = "{}",
    ) -> None:
        self.availability = AvailabilityState(status=Availability.available)
        self.session = ProviderSession()
        self.download_progress = 0.0
        self.error: str | None = None
        self.stream_chunks = list(stream_chunks)
        self.structured = structured if structured is not None else ToolSelectionResponse(tool_name="query")
        self.selection_text = selection_text
        self.form_mapping = form_mapping if form_mapping is not None else {}
        self.quota = quota or QuotaUsage.from_counts(10, 100)
        self.stream_error = stream_error
        self.prompt_response = prompt_response
        self.calls: list[tuple[str, object]] = []
        self.initialized_with: list[list[ConversationMessage]] = []
        self.destroy_count = 0
        self.stream_gate: asyncio.Event | None = None

    async def check_availability(self) -> AvailabilityState:
        return self.availability

    async def initialize_session(self, history: Sequence[ConversationMessage] | None = None) -> None:
        if self.session.is_active:
            raise AssertionError("initialize_session called while a session is active")
        self.initialized_with.append(list(history or ()))
        self.session = ProviderSession(session=object(), is_active=True)

    async def execute_prompt(self, query: str, context_items: Sequence[ContextItem]) -> str:
        self.calls.append(("prompt", query))
        if not self.session.is_active:
            raise SessionNotInitialized("no active session")
        if isinstance(self.prompt_response, Exception):
            raise self.prompt_response
        return self.prompt_response

    async def execute_prompt_streaming(
        self,
        query: str,
        context_items: Sequence[ContextItem],
        on_chunk: ChunkSink,
        history: Sequence[ConversationMessage] | None = None,
    ) -> None:
        self.calls.append(("stream", query))
        if self.stream_gate is not None:
            await self.stream_gate.wait()
        if self.stream_error is not None:
            raise self.stream_error
        for chunk in self.stream_chunks:
            on_chunk(chunk)

    async def execute_tool_selection(
        self,
        query: str,
        context_items: Sequence[ContextItem],
        history: Sequence[ConversationMessage] | None = None,
    ) -> str:
        self.calls.append(("selection", query))
        if isinstance(self.selection_text, Exception):
            raise self.selection_text
        return self.selection_text

    async def execute_tool_selection_structured(
        self,
        query: str,
        context_items: Sequence[ContextItem],
        history: Sequence[ConversationMessage] | None = None,
    ) -> ToolSelectionResponse:
        self.calls.append(("selection_structured", query))
        if isinstance(self.structured, Exception):
            raise self.structured
        return self.structured

    async def execute_form_filling_structured(
        self,
        query: str,
        context_items: Sequence[ContextItem],
        input_elements: Sequence[FormInputElement],
    ) -> FormFieldMapping:
        self.calls.append(("form", [element.selector for element in input_elements]))
        if isinstance(self.form_mapping, Exception):
            raise self.form_mapping
        return dict(self.form_mapping)

    async def calculate_quota_usage(
        self,
        context_items: Sequence[ContextItem],
        query: str,
        history: Sequence[ConversationMessage] | None = None,
    ) -> QuotaUsage:
        self.calls.append(("quota", query))
        return self.quota

    def destroy_session(self) -> None:
        self.destroy_count += 1
        self.session = ProviderSession()


class FakePageBridge:
    def __init__(
        self,
        *,
        images: PageImagesResponse | None = None,
        blobs: dict[str, tuple[bytes, str] | Exception] | None = None,
        fill_response: FormFillResponse | None = None,
        screenshot: ScreenshotResponse | None = None,
    ) -> None:
        self.images = images or PageImagesResponse(success=True, image_count=0)
        self.blobs = blobs or {}
        self.fill_response = fill_response or FormFillResponse(success=True, filled_count=1)
        self.screenshot = screenshot or ScreenshotResponse()
        self.image_delay_s = 0.0
        self.fill_delay_s = 0.0
        self.image_requests = 0
        self.filled: list[FormFieldMapping] = []
        self.revoked_blobs: list[str] = []
        self.download_urls: list[tuple[str, int, str]] = []
        self.revoked_downloads: list[str] = []
        self.screenshot_requests = 0

    async def get_page_images(self) -> PageImagesResponse:
        self.image_requests += 1
        if self.image_delay_s:
            await asyncio.sleep(self.image_delay_s)
        return self.images

    async def get_form_elements(self) -> FormElementsResponse:
        return FormElementsResponse(success=True)

    async def fill_form(self, mapping: FormFieldMapping) -> FormFillResponse:
        if self.fill_delay_s:
            await asyncio.sleep(self.fill_delay_s)
        self.filled.append(dict(mapping))
        return self.fill_response

    async def capture_full_page(self) -> ScreenshotResponse:
        self.screenshot_requests += 1
        return self.screenshot

    async def capture_area(self, bbox: dict[str, float]) -> ScreenshotResponse:
        return self.screenshot

    async def fetch_blob(self, blob_url: str) -> tuple[bytes, str]:
        blob = self.blobs.get(blob_url)
        if blob is None:
            raise KeyError(blob_url)
        if isinstance(blob, Exception):
            raise blob
        return blob

    def revoke_blob(self, blob_url: str) -> None:
        self.revoked_blobs.append(blob_url)

    def create_download_url(self, payload: bytes, mime_type: str) -> str:
        url = f"blob:download-{len(self.download_urls) + 1}"
        self.download_urls.append((url, len(payload), mime_type))
        return url

    def revoke_download_url(self, url: str) -> None:
        self.revoked_downloads.append(url)


__all__ = [
    "FakeCapabilityRuntime",
    "FakeLanguageModelRuntime",
    "FakeLanguageModelSession",
    "FakePageBridge",
    "FakeProvider",
    "FakeSummarizerSession",
    "FakeWriterSession",
]
