from __future__ import annotations

import pytest

from pageplus.models.messages import ConversationMessage, MessageSource
from pageplus.models.providers import Availability, FormInputElement
from pageplus.providers.errors import (
    ProviderError,
    ProviderUnavailable,
    SessionDestroyed,
    SessionNotInitialized,
    StructuredOutputError,
)
from pageplus.providers.on_device import OnDeviceProvider, form_filling_schema, tool_selection_schema
from tests.fakes import FakeLanguageModelRuntime, FakeLanguageModelSession
from tests.helpers import data_url, image_item, png_bytes, text_item

pytestmark = pytest.mark.asyncio


class TestSessionLifecycle:
    async def test_unavailable_runtime_raises(self) -> None:
        provider = OnDeviceProvider(FakeLanguageModelRuntime("unavailable"))
        with pytest.raises(ProviderUnavailable):
            await provider.initialize_session()
        assert provider.session.is_active is False

    async def test_probe_failure_reports_unavailable(self, runtime: FakeLanguageModelRuntime) -> None:
        runtime.probe_error = RuntimeError("no api")
        provider = OnDeviceProvider(runtime)
        state = await provider.check_availability()
        assert state.status == Availability.unavailable

    async def test_initialize_seeds_history_and_tracks_download(
        self, runtime: FakeLanguageModelRuntime, on_device: OnDeviceProvider
    ) -> None:
        history = [
            ConversationMessage(source=MessageSource.user, content="hi"),
            ConversationMessage(source=MessageSource.ai, content="hello"),
        ]
        await on_device.initialize_session(history)

        assert on_device.session.is_active is True
        assert runtime.create_options[0].initial_prompts == [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
        ]
        assert on_device.download_progress == 100

    async def test_reinitialize_destroys_previous_session(
        self, runtime: FakeLanguageModelRuntime, on_device: OnDeviceProvider
    ) -> None:
        await on_device.initialize_session()
        first = runtime.created[0]
        await on_device.initialize_session()
        assert first.destroyed == 1
        assert len(runtime.created) == 2

    async def test_create_failure_wrapped(self) -> None:
        provider = OnDeviceProvider(FakeLanguageModelRuntime(create_error=RuntimeError("disk full")))
        with pytest.raises(ProviderError, match="disk full"):
            await provider.initialize_session()
        assert provider.error == "disk full"

    async def test_destroy_is_idempotent(self, on_device: OnDeviceProvider) -> None:
        await on_device.initialize_session()
        on_device.destroy_session()
        on_device.destroy_session()
        assert on_device.session.session is None
        assert on_device.session.is_active is False


class TestPrompting:
    async def test_prompt_requires_session(self, on_device: OnDeviceProvider) -> None:
        with pytest.raises(SessionNotInitialized):
            await on_device.execute_prompt("hi", [])

    async def test_streaming_forwards_chunks_in_order(self, on_device: OnDeviceProvider) -> None:
        await on_device.initialize_session()
        chunks: list[str] = []
        await on_device.execute_prompt_streaming("hi", [text_item("ctx")], chunks.append)
        assert chunks == ["Hello", " world"]

    async def test_messages_carry_context_and_language(
        self, runtime: FakeLanguageModelRuntime
    ) -> None:
        provider = OnDeviceProvider(runtime, language="es")
        await provider.initialize_session()
        image = image_item(data_url(png_bytes()))
        await provider.execute_prompt("what is this?", [text_item("notes"), image])

        messages = runtime.created[0].prompts[0]
        assert messages[0]["content"] == [{"type": "text", "value": "Context Item (text): notes"}]
        assert messages[1]["content"][0]["type"] == "image"
        assert isinstance(messages[1]["content"][0]["value"], bytes)
        assert messages[-1]["content"].startswith("what is this?")
        assert "Spanish" in messages[-1]["content"]

    async def test_destroyed_mid_call_maps_to_session_destroyed(self) -> None:
        runtime = FakeLanguageModelRuntime(
            session=FakeLanguageModelSession(prompt_error=RuntimeError("The session has been destroyed"))
        )
        provider = OnDeviceProvider(runtime)
        await provider.initialize_session()
        with pytest.raises(SessionDestroyed):
            await provider.execute_prompt("hi", [])


class TestStructuredCalls:
    async def test_tool_selection_uses_throwaway_session(
        self, runtime: FakeLanguageModelRuntime, on_device: OnDeviceProvider
    ) -> None:
        runtime.template.structured_response = '{"toolName": "summarize"}'
        await on_device.initialize_session()
        response = await on_device.execute_tool_selection_structured("prompt", [])

        assert response.tool_name == "summarize"
        selector_session = runtime.created[1]
        assert selector_session.destroyed == 1
        assert selector_session.constraints[0] == tool_selection_schema()

    async def test_tool_selection_regex_fallback(
        self, runtime: FakeLanguageModelRuntime, on_device: OnDeviceProvider
    ) -> None:
        runtime.template.structured_response = 'sure: {"toolName": "getPageImages", oops'
        await on_device.initialize_session()
        response = await on_device.execute_tool_selection_structured("prompt", [])
        assert response.tool_name == "getPageImages"

    async def test_tool_selection_unparseable(
        self, runtime: FakeLanguageModelRuntime, on_device: OnDeviceProvider
    ) -> None:
        runtime.template.structured_response = "no idea"
        await on_device.initialize_session()
        with pytest.raises(StructuredOutputError):
            await on_device.execute_tool_selection_structured("prompt", [])
        assert runtime.created[1].destroyed == 1

    async def test_form_filling_only_returns_known_selectors(
        self, runtime: FakeLanguageModelRuntime, on_device: OnDeviceProvider
    ) -> None:
        runtime.template.structured_response = '{"#email": "jane@example.com", "#made-up": "x"}'
        elements = [FormInputElement(selector="#email", html='<input id="email" type="email">')]
        await on_device.initialize_session()

        mapping = await on_device.execute_form_filling_structured("fill", [], elements)

        assert mapping == {"#email": "jane@example.com"}
        assert runtime.created[0].constraints[0] == form_filling_schema(elements)

    async def test_form_filling_falls_back_to_heuristics(self, on_device: OnDeviceProvider) -> None:
        on_device_session = FakeLanguageModelSession(prompt_error=RuntimeError("bad output"))
        await on_device.initialize_session()
        on_device.session.session = on_device_session
        elements = [FormInputElement(selector="#email", html='<input id="email" type="email">')]

        mapping = await on_device.execute_form_filling_structured("fill", [], elements)

        assert mapping == {"#email": "sarah.johnson@techcorp.com"}


class TestQuota:
    async def test_native_measurement(self, on_device: OnDeviceProvider) -> None:
        await on_device.initialize_session()
        usage = await on_device.calculate_quota_usage([text_item("abc")], "q")
        assert usage.current == 250
        assert usage.quota == 1000
        assert usage.percentage == pytest.approx(25)

    async def test_native_measurement_can_exceed_budget(self, runtime: FakeLanguageModelRuntime) -> None:
        runtime.template.usage = 1450
        provider = OnDeviceProvider(runtime)
        await provider.initialize_session()
        usage = await provider.calculate_quota_usage([], "q")
        assert usage.percentage == pytest.approx(145)

    async def test_destroyed_session_falls_back_to_clamped_estimate(
        self, runtime: FakeLanguageModelRuntime
    ) -> None:
        runtime.template.measure_error = RuntimeError("session destroyed")
        provider = OnDeviceProvider(runtime, fallback_quota=10)
        await provider.initialize_session()

        usage = await provider.calculate_quota_usage([text_item("x" * 400)], "query")

        assert usage.quota == 10
        assert 0 <= usage.percentage <= 100

    async def test_no_session_uses_estimate(self, on_device: OnDeviceProvider) -> None:
        usage = await on_device.calculate_quota_usage([text_item("x" * 40)], "")
        assert usage.quota == 1000
        assert usage.current > 0
