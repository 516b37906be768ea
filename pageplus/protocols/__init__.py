from pageplus.protocols.context import ContextStore
from pageplus.protocols.page import PageBridge
from pageplus.protocols.providers import (
    AiProvider,
    CapabilityRuntime,
    ChunkSink,
    LanguageModelRuntime,
    LanguageModelSession,
    ProviderSession,
    RuntimeCreateOptions,
    SummarizerSession,
    WriterSession,
)

__all__ = [
    "AiProvider",
    "CapabilityRuntime",
    "ChunkSink",
    "ContextStore",
    "LanguageModelRuntime",
    "LanguageModelSession",
    "PageBridge",
    "ProviderSession",
    "RuntimeCreateOptions",
    "SummarizerSession",
    "WriterSession",
]
