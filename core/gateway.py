"""
Fallback gateway - one uniform answer from an ordered provider chain.

Providers are tried strictly in order, one at a time, each under a bounded
timeout. The first success wins. A failure advances to the next provider only
when the policy says it is fallback-eligible (rate limit, overload, auth,
credit/quota/billing); any other failure is returned straight away.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum

from config.schema import BondiSettings
from core.conversation import Conversation
from core.providers.base import ErrorKind, NormalizedReply, ProviderAdapter, ProviderError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 50.0


class GatewayErrorKind(str, Enum):
    NOT_CONFIGURED = "not_configured"
    TERMINAL = "terminal"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class ProviderAttempt:
    """Diagnostics for one provider call."""
    provider_id: str
    ok: bool
    elapsed: float
    error: ProviderError | None = None


@dataclass(frozen=True)
class GatewayError:
    """Why a gateway call produced no answer."""
    kind: GatewayErrorKind
    message: str
    status_code: int = 500
    error: ProviderError | None = None
    attempts: tuple[ProviderAttempt, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class FallbackPolicy:
    """Decides whether a provider failure moves on to the next provider."""

    eligible_kinds: frozenset[ErrorKind] = frozenset(
        {ErrorKind.RATE_LIMITED, ErrorKind.OVERLOADED, ErrorKind.AUTH_FAILED}
    )
    indicators: tuple[str, ...] = ("credit", "quota", "billing")

    @classmethod
    def from_settings(cls, settings: BondiSettings) -> FallbackPolicy:
        return cls(
            eligible_kinds=frozenset(ErrorKind(k) for k in settings.gateway.fallback_on),
            indicators=tuple(i.lower() for i in settings.gateway.fallback_indicators),
        )

    def should_fallback(self, error: ProviderError) -> bool:
        if error.kind in self.eligible_kinds:
            return True
        message = (error.message or "").lower()
        return any(indicator in message for indicator in self.indicators)


class FallbackGateway:
    """Ordered provider chain collapsed into one response contract."""

    def __init__(
        self,
        providers: Iterable[ProviderAdapter],
        *,
        timeout: float = DEFAULT_TIMEOUT,
        policy: FallbackPolicy | None = None,
    ):
        self.providers: tuple[ProviderAdapter, ...] = tuple(providers)
        self.timeout = timeout
        self.policy = policy or FallbackPolicy()

    @classmethod
    def from_settings(cls, settings: BondiSettings, providers: Sequence[ProviderAdapter]) -> FallbackGateway:
        return cls(providers, timeout=settings.gateway.timeout, policy=FallbackPolicy.from_settings(settings))

    def configured(self) -> list[ProviderAdapter]:
        """Providers that have a credential, in priority order."""
        return [p for p in self.providers if p.has_credentials]

    async def handle(self, conversation: Conversation) -> NormalizedReply | GatewayError:
        chain = self.configured()
        skipped = [p.name for p in self.providers if not p.has_credentials]
        if skipped:
            logger.debug("Skipping providers without credentials: %s", ", ".join(skipped))
        if not chain:
            return GatewayError(GatewayErrorKind.NOT_CONFIGURED, "No API keys configured", 500)

        attempts: list[ProviderAttempt] = []
        for index, provider in enumerate(chain):
            has_next = index + 1 < len(chain)
            started = time.monotonic()
            result = await self._invoke(provider, conversation)
            elapsed = time.monotonic() - started

            if isinstance(result, NormalizedReply):
                attempts.append(ProviderAttempt(provider.name, True, elapsed))
                logger.info("[gateway] %s answered in %.1fs", provider.name, elapsed)
                return result

            attempts.append(ProviderAttempt(provider.name, False, elapsed, result))
            logger.warning(
                "[gateway] %s failed (%s, status=%s): %s",
                provider.name, result.kind.value, result.http_status, result.message,
            )

            if not has_next:
                return self._failure(GatewayErrorKind.EXHAUSTED, result, attempts)
            if not self.policy.should_fallback(result):
                return self._failure(GatewayErrorKind.TERMINAL, result, attempts)
            logger.info("[gateway] falling back from %s to %s", provider.name, chain[index + 1].name)

        # Unreachable: the loop returns on its last iteration
        raise AssertionError("provider chain ended without a result")

    async def _invoke(self, provider: ProviderAdapter, conversation: Conversation) -> NormalizedReply | ProviderError:
        try:
            return await asyncio.wait_for(provider.invoke(conversation), timeout=self.timeout)
        except TimeoutError:
            return ProviderError(
                kind=ErrorKind.TIMEOUT,
                message=f"Provider timed out after {self.timeout:g}s",
                provider_id=provider.name,
            )

    @staticmethod
    def _failure(kind: GatewayErrorKind, error: ProviderError, attempts: list[ProviderAttempt]) -> GatewayError:
        return GatewayError(
            kind=kind,
            message=error.message,
            status_code=error.http_status or 500,
            error=error,
            attempts=tuple(attempts),
        )
