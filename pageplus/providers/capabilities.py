"""On-device task capabilities (summarizer, writer).

Each capability has its own availability probe and model-download
lifecycle, separate from the language model session.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

from pageplus.config import ResponseLanguage
from pageplus.core.metrics import LLM_CALLS_TOTAL
from pageplus.models.providers import Availability, AvailabilityState
from pageplus.protocols.providers import (
    CapabilityRuntime,
    RuntimeCreateOptions,
    SummarizerSession,
    WriterSession,
)
from pageplus.providers.errors import ProviderError, ProviderUnavailable, SessionNotInitialized

logger = logging.getLogger(__name__)


class OnDeviceCapability:
    capability_name = "capability"

    def __init__(self, runtime: CapabilityRuntime | None, *, language: ResponseLanguage | str = "en") -> None:
        self._runtime = runtime
        self._instance: object | None = None
        self.language = language
        self.availability = AvailabilityState(status=Availability.unavailable)
        self.download_progress = 0.0
        self.error: str | None = None

    @property
    def is_initialized(self) -> bool:
        return self._instance is not None

    def probe_options(self) -> dict[str, object]:
        return {}

    def create_options(self) -> dict[str, object]:
        return {}

    async def check_availability(self) -> AvailabilityState:
        if self._runtime is None:
            self.availability = AvailabilityState(status=Availability.unavailable)
            return self.availability
        try:
            status = Availability(await self._runtime.availability(self.probe_options()))
        except Exception:
            logger.warning("%s availability probe failed", self.capability_name, exc_info=True)
            status = Availability.unavailable
        self.availability = AvailabilityState(status=status)
        return self.availability

    async def initialize(self) -> None:
        """Create the capability instance; a second call is a no-op."""
        if self._instance is not None:
            return
        if self._runtime is None:
            raise ProviderUnavailable(f"{self.capability_name} is not available")
        state = await self.check_availability()
        if not state.status.can_initialize:
            raise ProviderUnavailable(f"{self.capability_name} is not available on this device")
        self.error = None
        self.download_progress = 0.0
        options = RuntimeCreateOptions(extra=self.create_options(), monitor=self._on_download_progress)
        try:
            self._instance = await self._runtime.create(options)
        except Exception as exc:
            self.error = str(exc)
            raise ProviderError(f"failed to initialize {self.capability_name}: {exc}") from exc
        await self.check_availability()

    def _on_download_progress(self, loaded: float) -> None:
        self.download_progress = loaded * 100

    def _require_instance(self) -> object:
        if self._instance is None:
            raise SessionNotInitialized(self.capability_name)
        return self._instance


class Summarizer(OnDeviceCapability):
    capability_name = "summarizer"

    def probe_options(self) -> dict[str, object]:
        return {
            "expected_input_languages": ["en", self.language],
            "output_language": self.language,
            "expected_context_languages": ["en"],
        }

    def create_options(self) -> dict[str, object]:
        return {"type": "key-points", "format": "markdown", "length": "medium", **self.probe_options()}

    def _session(self) -> SummarizerSession:
        return self._require_instance()  # type: ignore[return-value]

    async def summarize(self, text: str, context: str | None = None) -> str:
        session = self._session()
        LLM_CALLS_TOTAL.labels(provider=self.capability_name, call="summarize").inc()
        try:
            return str(await session.summarize(text, context))
        except Exception as exc:
            self.error = str(exc)
            raise ProviderError(f"summarize failed: {exc}") from exc

    async def summarize_streaming(self, text: str, context: str | None = None) -> AsyncIterator[str]:
        session = self._session()
        LLM_CALLS_TOTAL.labels(provider=self.capability_name, call="summarize_streaming").inc()
        try:
            async for chunk in session.summarize_streaming(text, context):
                yield str(chunk)
        except Exception as exc:
            self.error = str(exc)
            raise ProviderError(f"streaming summarize failed: {exc}") from exc


class Writer(OnDeviceCapability):
    capability_name = "writer"

    def probe_options(self) -> dict[str, object]:
        return {
            "expected_input_languages": ["en", self.language],
            "output_language": self.language,
            "expected_context_languages": ["en"],
        }

    def create_options(self) -> dict[str, object]:
        return {"tone": "neutral", "format": "markdown", "length": "medium", **self.probe_options()}

    def _session(self) -> WriterSession:
        return self._require_instance()  # type: ignore[return-value]

    async def write(self, prompt: str, context: str | None = None) -> str:
        session = self._session()
        LLM_CALLS_TOTAL.labels(provider=self.capability_name, call="write").inc()
        try:
            return str(await session.write(prompt, context))
        except Exception as exc:
            self.error = str(exc)
            raise ProviderError(f"write failed: {exc}") from exc

    async def write_streaming(self, prompt: str, context: str | None = None) -> AsyncIterator[str]:
        session = self._session()
        LLM_CALLS_TOTAL.labels(provider=self.capability_name, call="write_streaming").inc()
        try:
            async for chunk in session.write_streaming(prompt, context):
                yield str(chunk)
        except Exception as exc:
            self.error = str(exc)
            raise ProviderError(f"streaming write failed: {exc}") from exc


__all__ = ["OnDeviceCapability", "Summarizer", "Writer"]
