from __future__ import annotations

import pytest

from pageplus.context.store import InMemoryContextStore
from pageplus.providers.capabilities import Summarizer, Writer
from pageplus.providers.on_device import OnDeviceProvider
from tests.fakes import (
    FakeCapabilityRuntime,
    FakeLanguageModelRuntime,
    FakePageBridge,
    FakeProvider,
    FakeSummarizerSession,
    FakeWriterSession,
)


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def page_bridge() -> FakePageBridge:
    return FakePageBridge()


@pytest.fixture
def context_store() -> InMemoryContextStore:
    return InMemoryContextStore()


@pytest.fixture
def runtime() -> FakeLanguageModelRuntime:
    return FakeLanguageModelRuntime()


@pytest.fixture
def on_device(runtime: FakeLanguageModelRuntime) -> OnDeviceProvider:
    return OnDeviceProvider(runtime, fallback_quota=1000)


@pytest.fixture
def summarizer_session() -> FakeSummarizerSession:
    return FakeSummarizerSession()


@pytest.fixture
def summarizer(summarizer_session: FakeSummarizerSession) -> Summarizer:
    return Summarizer(FakeCapabilityRuntime(instance=summarizer_session))


@pytest.fixture
def writer() -> Writer:
    return Writer(FakeCapabilityRuntime(instance=FakeWriterSession()))
