"""Core configuration schema for Bondi using Pydantic.

This module defines the complete configuration structure with:
- Ordered provider chain for the fallback gateway (anthropic/gemini/openai)
- Enrichment sources fetched before the lowest-priority provider
- Monitor settings (refresh interval, alert history, favourite lines)
- API key resolution from environment variables
"""

from __future__ import annotations

import os
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

# Default model per provider kind
DEFAULT_ANTHROPIC_MODEL = "claude-sonnet-4-20250514"
DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"
DEFAULT_OPENAI_MODEL = "gpt-4o"

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36"
)

ProviderKind = Literal["anthropic", "gemini", "openai"]

# Environment variables consulted when a provider has no explicit api_key
DEFAULT_KEY_ENV: dict[str, str] = {
    "anthropic": "ANTHROPIC_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "openai": "OPENAI_API_KEY",
}

# ============================================================================
# Gateway Configuration
# ============================================================================


class ProviderSpec(BaseModel):
    """One upstream provider in the fallback chain."""

    kind: ProviderKind = Field(..., description="Adapter variant (anthropic/gemini/openai)")
    name: str | None = Field(None, description="Provider id reported as _provider (defaults to kind)")
    model: str | None = Field(None, description="Model name (defaults per kind)")
    api_key: str | None = Field(None, description="API key (falls back to api_key_env)")
    api_key_env: str | None = Field(None, description="Environment variable holding the API key")
    base_url: str | None = Field(None, description="Base URL override")
    max_tokens: int = Field(3000, gt=0, description="Max output tokens")
    prompt: str | None = Field(None, description="Prompt file name used as system instruction")
    web_search: bool = Field(True, description="Request the provider's built-in web search")
    enrich: bool = Field(False, description="Prefetch enrichment sources into the request")
    enabled: bool = Field(True, description="Include provider in the chain")

    @field_validator("base_url")
    @classmethod
    def normalize_base_url(cls, v: str | None) -> str | None:
        """Strip trailing slashes so endpoint paths can be appended."""
        if not v:
            return None
        return v.rstrip("/")

    @model_validator(mode="after")
    def fill_defaults(self) -> ProviderSpec:
        if self.name is None:
            self.name = self.kind
        if self.model is None:
            self.model = {
                "anthropic": DEFAULT_ANTHROPIC_MODEL,
                "gemini": DEFAULT_GEMINI_MODEL,
                "openai": DEFAULT_OPENAI_MODEL,
            }[self.kind]
        if self.api_key_env is None:
            self.api_key_env = DEFAULT_KEY_ENV[self.kind]
        return self

    def resolve_api_key(self) -> str | None:
        """Explicit api_key wins, otherwise the configured environment variable."""
        if self.api_key:
            return self.api_key
        return os.getenv(self.api_key_env or "") or None


def _default_providers() -> list[ProviderSpec]:
    return [
        ProviderSpec(kind="anthropic"),
        ProviderSpec(kind="gemini", prompt="search_system"),
        ProviderSpec(kind="openai", prompt="enriched_system", enrich=True),
    ]


class GatewayConfig(BaseModel):
    """Fallback gateway configuration."""

    timeout: float = Field(50.0, gt=0, description="Per-provider timeout in seconds")
    providers: list[ProviderSpec] = Field(default_factory=_default_providers, description="Providers in priority order")
    fallback_on: list[Literal["rate_limited", "overloaded", "auth_failed", "timeout", "bad_response", "other"]] = Field(
        default_factory=lambda: ["rate_limited", "overloaded", "auth_failed"],
        description="Error kinds that advance to the next provider",
    )
    fallback_indicators: list[str] = Field(
        default_factory=lambda: ["credit", "quota", "billing"],
        description="Error message fragments that advance to the next provider",
    )

    @field_validator("providers")
    @classmethod
    def unique_names(cls, v: list[ProviderSpec]) -> list[ProviderSpec]:
        names = [p.name for p in v]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate provider names: {', '.join(duplicates)}")
        return v


# ============================================================================
# Enrichment Configuration
# ============================================================================


class SourceSpec(BaseModel):
    """A page fetched to build enrichment context."""

    name: str
    url: str


def _default_sources() -> list[SourceSpec]:
    return [
        SourceSpec(name="parodebondis.com.ar", url="https://parodebondis.com.ar/"),
        SourceSpec(name="TN - paro colectivos", url="https://tn.com.ar/buscar/?q=paro+colectivos+hoy"),
        SourceSpec(name="Infobae - paro colectivos", url="https://www.infobae.com/tag/paro-de-colectivos/"),
    ]


class EnrichmentConfig(BaseModel):
    """Configuration for the enrichment fetch fan-out."""

    enabled: bool = True
    timeout: float = Field(6.0, gt=0, description="Per-source timeout in seconds")
    max_bytes: int = Field(4000, gt=0, description="Byte budget per sanitized source")
    min_chars: int = Field(50, ge=0, description="Drop sources with this much text or less")
    user_agent: str = DEFAULT_USER_AGENT
    accept_language: str = "es-AR,es;q=0.9,en;q=0.8"
    sources: list[SourceSpec] = Field(default_factory=_default_sources)


# ============================================================================
# Monitor Configuration
# ============================================================================


class MonitorConfig(BaseModel):
    """Status check and alert configuration."""

    prompt: str = Field("strike_check", description="Prompt file used for the user message")
    model: str = Field(DEFAULT_ANTHROPIC_MODEL, description="Model requested from the primary provider")
    max_tokens: int = Field(3000, gt=0)
    web_search_tool: bool = Field(True, description="Ask the primary provider for its web_search tool")
    timezone: str = "America/Argentina/Buenos_Aires"
    refresh_minutes: int = Field(15, ge=0, description="Watch interval, 0 disables the timer")
    history_size: int = Field(25, gt=0, description="Alert history entries kept")
    notifications: bool = True
    favorites: list[str] = Field(default_factory=list, description="Favourite line ids")
    notify_only_favorites: bool = False
    webhook_url: str | None = Field(None, description="POST alert notifications here")
    zones: list[str] = Field(
        default_factory=lambda: [
            "San Isidro", "Vicente López", "San Fernando", "Tigre",
            "San Martín", "Tres de Febrero", "Pilar", "Escobar",
            "Belgrano", "Núñez", "Saavedra", "Coghlan",
        ]
    )
    lines: list[str] = Field(
        default_factory=lambda: [
            "15", "19", "21", "28", "29", "33", "34", "37", "39", "41", "42", "44", "55", "57",
            "59", "60", "63", "64", "65", "67", "68", "71", "78", "80", "87", "93", "107", "113",
            "114", "118", "127", "130", "134", "140", "142", "148", "152", "159", "160", "161",
            "166", "168", "169", "175", "176", "184", "194", "203", "219", "228", "263", "300",
            "333", "365", "371", "372", "407", "430", "437", "502", "584", "603", "619", "700",
            "707", "710", "720", "721", "723", "740", "842",
        ]
    )

    @field_validator("favorites", "lines", mode="before")
    @classmethod
    def coerce_line_ids(cls, v):
        """Line ids may be written as numbers in JSON."""
        if isinstance(v, list):
            return [str(item).strip() for item in v]
        return v


# ============================================================================
# Server Configuration
# ============================================================================


class ServerConfig(BaseModel):
    """Web backend configuration."""

    host: str = "0.0.0.0"
    port: int = Field(8001, gt=0, lt=65536)


# ============================================================================
# Main Settings
# ============================================================================


class BondiSettings(BaseModel):
    """Main Bondi configuration.

    Configuration priority (highest to lowest):
    1. CLI overrides
    2. Project config (.bondi/runtime.json)
    3. User config (~/.bondi/runtime.json)
    4. System defaults (config/defaults/runtime.json)
    5. Environment variables (for API keys)
    """

    gateway: GatewayConfig = Field(default_factory=GatewayConfig, description="Fallback gateway")
    enrichment: EnrichmentConfig = Field(default_factory=EnrichmentConfig, description="Enrichment fetch")
    monitor: MonitorConfig = Field(default_factory=MonitorConfig, description="Status checks and alerts")
    server: ServerConfig = Field(default_factory=ServerConfig, description="Web backend")

    def active_providers(self) -> list[ProviderSpec]:
        """Enabled providers in priority order."""
        return [p for p in self.gateway.providers if p.enabled]

    def configured_providers(self) -> list[str]:
        """Names of enabled providers that currently have a credential."""
        return [p.name for p in self.active_providers() if p.resolve_api_key()]
