from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Sequence
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from pageplus.models.context import ContextItem
from pageplus.models.messages import ConversationMessage
from pageplus.models.providers import (
    AvailabilityState,
    FormFieldMapping,
    FormInputElement,
    QuotaUsage,
    ToolSelectionResponse,
)

ChunkSink = Callable[[str], None]
ProgressCallback = Callable[[float], None]
RuntimeMessage = dict[str, object]


@dataclass(slots=True)
class ProviderSession:
    session: object | None = None
    is_active: bool = False


@dataclass(slots=True)
class RuntimeCreateOptions:
    """Options passed to an on-device runtime's ``create``."""

    initial_prompts: list[RuntimeMessage] = field(default_factory=list)
    expected_inputs: list[dict[str, object]] = field(default_factory=list)
    expected_outputs: list[dict[str, object]] = field(default_factory=list)
    extra: dict[str, object] = field(default_factory=dict)
    monitor: ProgressCallback | None = None


class LanguageModelSession(Protocol):
    input_quota: float

    async def prompt(
        self,
        messages: Sequence[RuntimeMessage],
        *,
        response_constraint: dict[str, object] | None = None,
    ) -> str: ...

    def prompt_streaming(self, messages: Sequence[RuntimeMessage]) -> AsyncIterator[str]: ...

    async def measure_input_usage(self, messages: Sequence[RuntimeMessage]) -> float: ...

    def destroy(self) -> None: ...


class LanguageModelRuntime(Protocol):
    """Capability probe plus session factory for the on-device model."""

    async def availability(self) -> str: ...

    async def create(self, options: RuntimeCreateOptions) -> LanguageModelSession: ...


class SummarizerSession(Protocol):
    async def summarize(self, text: str, context: str | None = None) -> str: ...

    def summarize_streaming(self, text: str, context: str | None = None) -> AsyncIterator[str]: ...


class WriterSession(Protocol):
    async def write(self, prompt: str, context: str | None = None) -> str: ...

    def write_streaming(self, prompt: str, context: str | None = None) -> AsyncIterator[str]: ...


class CapabilityRuntime(Protocol):
    """On-device task API (summarizer, writer) with its own download lifecycle."""

    async def availability(self, options: dict[str, object]) -> str: ...

    async def create(self, options: RuntimeCreateOptions) -> object: ...


@runtime_checkable
class AiProvider(Protocol):
    availability: AvailabilityState
    session: ProviderSession
    download_progress: float
    error: str | None

    @property
    def name(self) -> str: ...

    async def check_availability(self) -> AvailabilityState: ...

    async def initialize_session(
        self, history: Sequence[ConversationMessage] | None = None
    ) -> None: ...

    async def execute_prompt(self, query: str, context_items: Sequence[ContextItem]) -> str: ...

    async def execute_prompt_streaming(
        self,
        query: str,
        context_items: Sequence[ContextItem],
        on_chunk: ChunkSink,
        history: Sequence[ConversationMessage] | None = None,
    ) -> None: ...

    async def execute_tool_selection(
        self,
        query: str,
        context_items: Sequence[ContextItem],
        history: Sequence[ConversationMessage] | None = None,
    ) -> str: ...

    async def execute_tool_selection_structured(
        self,
        query: str,
        context_items: Sequence[ContextItem],
        history: Sequence[ConversationMessage] | None = None,
    ) -> ToolSelectionResponse: ...

    async def execute_form_filling_structured(
        self,
        query: str,
        context_items: Sequence[ContextItem],
        input_elements: Sequence[FormInputElement],
    ) -> FormFieldMapping: ...

    async def calculate_quota_usage(
        self,
        context_items: Sequence[ContextItem],
        query: str,
        history: Sequence[ConversationMessage] | None = None,
    ) -> QuotaUsage: ...

    def destroy_session(self) -> None: ...


__all__ = [
    "AiProvider",
    "CapabilityRuntime",
    "ChunkSink",
    "LanguageModelRuntime",
    "LanguageModelSession",
    "ProgressCallback",
    "ProviderSession",
    "RuntimeCreateOptions",
    "RuntimeMessage",
    "SummarizerSession",
    "WriterSession",
]
