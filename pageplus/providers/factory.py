from __future__ import annotations

import httpx

from pageplus.config import PagePlusSettings
from pageplus.core.token_counter import HeuristicTokenCounter
from pageplus.models.providers import AiModel
from pageplus.protocols.providers import AiProvider, LanguageModelRuntime
from pageplus.providers.cloud import CloudProxyProvider
from pageplus.providers.errors import ProviderUnavailable
from pageplus.providers.on_device import OnDeviceProvider


def build_provider(
    model: AiModel,
    settings: PagePlusSettings,
    *,
    runtime: LanguageModelRuntime | None = None,
    http_client: httpx.AsyncClient | None = None,
    cloud_model: str | None = None,
) -> AiProvider:
    """Select the backend for ``model``: on-device for Nano, the relay otherwise."""
    if model.is_on_device:
        if runtime is None:
            raise ProviderUnavailable("no on-device language model runtime in this host")
        return OnDeviceProvider(
            runtime,
            language=settings.language,
            fallback_quota=settings.on_device.fallback_quota,
            token_counter=HeuristicTokenCounter(settings.on_device.chars_per_token),
        )
    return CloudProxyProvider(
        settings.cloud.api_url,
        model=cloud_model or settings.models.cloud_model,
        language=settings.language,
        quota_tokens=settings.cloud.quota_tokens,
        timeout_s=settings.cloud.timeout_s,
        http_client=http_client,
        token_counter=HeuristicTokenCounter(settings.on_device.chars_per_token),
    )


__all__ = ["build_provider"]
