"""Provider adapters and the factory that builds the configured chain."""

from __future__ import annotations

import httpx

from config.loader import ConfigLoader
from config.schema import BondiSettings, ProviderSpec
from core.providers.anthropic import AnthropicProvider
from core.providers.base import (
    ErrorKind,
    NormalizedReply,
    ProviderAdapter,
    ProviderError,
    StopReason,
)
from core.providers.gemini import GeminiProvider
from core.providers.openai import OpenAIProvider
from core.web.sources import SourceFetcher

PROVIDER_CLASSES: dict[str, type[ProviderAdapter]] = {
    "anthropic": AnthropicProvider,
    "gemini": GeminiProvider,
    "openai": OpenAIProvider,
}


def build_provider(
    spec: ProviderSpec,
    settings: BondiSettings,
    *,
    loader: ConfigLoader | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ProviderAdapter:
    """Instantiate the adapter for one provider spec."""
    system_prompt = None
    if spec.prompt:
        prompt = (loader or ConfigLoader()).get_prompt(spec.prompt)
        if prompt is None:
            raise ValueError(f"Unknown prompt for provider {spec.name}: {spec.prompt}")
        system_prompt = prompt.text

    cls = PROVIDER_CLASSES[spec.kind]
    kwargs = {"system_prompt": system_prompt, "timeout": settings.gateway.timeout, "transport": transport}
    if cls is OpenAIProvider:
        kwargs["fetcher"] = SourceFetcher(settings.enrichment, transport=transport)
    return cls(spec, **kwargs)


def build_providers(
    settings: BondiSettings,
    *,
    loader: ConfigLoader | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[ProviderAdapter]:
    """Adapters for every enabled provider, in priority order."""
    loader = loader or ConfigLoader()
    return [build_provider(s, settings, loader=loader, transport=transport) for s in settings.active_providers()]


__all__ = [
    "AnthropicProvider",
    "ErrorKind",
    "GeminiProvider",
    "NormalizedReply",
    "OpenAIProvider",
    "PROVIDER_CLASSES",
    "ProviderAdapter",
    "ProviderError",
    "StopReason",
    "build_provider",
    "build_providers",
]
