from pageplus.providers.capabilities import OnDeviceCapability, Summarizer, Writer
from pageplus.providers.cloud import CloudProxyProvider
from pageplus.providers.errors import (
    ProviderError,
    ProviderUnavailable,
    SessionDestroyed,
    SessionNotInitialized,
    StructuredOutputError,
    TransportError,
)
from pageplus.providers.factory import build_provider
from pageplus.providers.on_device import OnDeviceProvider

__all__ = [
    "CloudProxyProvider",
    "OnDeviceCapability",
    "OnDeviceProvider",
    "ProviderError",
    "ProviderUnavailable",
    "SessionDestroyed",
    "SessionNotInitialized",
    "StructuredOutputError",
    "Summarizer",
    "TransportError",
    "Writer",
    "build_provider",
]
