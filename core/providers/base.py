"""
Abstract provider adapter interface.

All upstream language-model APIs (Anthropic, Gemini, OpenAI) implement this
interface. Each adapter owns its request construction and response parsing and
reports failures as values, never as exceptions.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx

from config.schema import ProviderSpec
from core.conversation import Conversation

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    OVERLOADED = "overloaded"
    AUTH_FAILED = "auth_failed"
    TIMEOUT = "timeout"
    BAD_RESPONSE = "bad_response"
    OTHER = "other"


class StopReason(str, Enum):
    END = "end"
    OTHER = "other"


@dataclass(frozen=True)
class NormalizedReply:
    """Provider-agnostic successful answer."""
    text: str
    stop_reason: StopReason
    provider_id: str
    model_id: str
    fragments: tuple[str, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ProviderError:
    """Failure of one upstream call."""
    kind: ErrorKind
    message: str
    http_status: int | None = None
    provider_id: str | None = None


class ResponseShapeError(ValueError):
    """Upstream answered 2xx with a body no parse branch recognises."""


# Provider-native error types that refine the HTTP status
_ERROR_TYPE_KINDS: dict[str, ErrorKind] = {
    "rate_limit_error": ErrorKind.RATE_LIMITED,
    "insufficient_quota": ErrorKind.RATE_LIMITED,
    "resource_exhausted": ErrorKind.RATE_LIMITED,
    "overloaded_error": ErrorKind.OVERLOADED,
    "unavailable": ErrorKind.OVERLOADED,
    "authentication_error": ErrorKind.AUTH_FAILED,
    "permission_error": ErrorKind.AUTH_FAILED,
    "unauthenticated": ErrorKind.AUTH_FAILED,
    "permission_denied": ErrorKind.AUTH_FAILED,
    "invalid_api_key": ErrorKind.AUTH_FAILED,
}

_STATUS_KINDS: dict[int, ErrorKind] = {
    401: ErrorKind.AUTH_FAILED,
    403: ErrorKind.AUTH_FAILED,
    408: ErrorKind.TIMEOUT,
    429: ErrorKind.RATE_LIMITED,
    503: ErrorKind.OVERLOADED,
    504: ErrorKind.TIMEOUT,
    529: ErrorKind.OVERLOADED,
}


def classify_http_error(status: int, error_type: str | None = None) -> ErrorKind:
    """Map an HTTP status plus optional provider error type to an ErrorKind."""
    if error_type:
        kind = _ERROR_TYPE_KINDS.get(error_type.lower())
        if kind is not None:
            return kind
    return _STATUS_KINDS.get(status, ErrorKind.OTHER)


def parse_error_body(response: httpx.Response) -> tuple[str | None, str]:
    """Extract (error_type, message) from the usual ``{"error": {...}}`` envelopes."""
    try:
        data = response.json()
    except (json.JSONDecodeError, ValueError):
        text = response.text.strip()
        return None, text[:500] or f"HTTP {response.status_code}"

    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        # Anthropic/OpenAI put the type in "type" (OpenAI also "code"), Gemini in "status"
        error_type = error.get("type") or error.get("status") or error.get("code")
        message = error.get("message") or f"HTTP {response.status_code}"
        return (str(error_type) if error_type is not None else None), str(message)
    if isinstance(error, str):
        return None, error
    return None, f"HTTP {response.status_code}"


class ProviderAdapter(ABC):
    """
    Abstract interface for upstream providers.

    Implementations:
    - AnthropicProvider: native Messages API, conversation forwarded verbatim
    - GeminiProvider: generateContent with Google Search grounding
    - OpenAIProvider: Responses API with web search, or plain chat completions
    """

    kind: str  # Adapter identifier: 'anthropic', 'gemini', 'openai'

    def __init__(
        self,
        spec: ProviderSpec,
        *,
        system_prompt: str | None = None,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.spec = spec
        self.name = spec.name or self.kind
        self.model = spec.model or ""
        self.api_key = spec.resolve_api_key()
        self.system_prompt = system_prompt
        self.timeout = timeout
        self._transport = transport

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key)

    def _client(self, timeout: float | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout or self.timeout, transport=self._transport)

    def _error(self, kind: ErrorKind, message: str, status: int | None = None) -> ProviderError:
        return ProviderError(kind=kind, message=message, http_status=status, provider_id=self.name)

    def _http_error(self, response: httpx.Response) -> ProviderError:
        error_type, message = parse_error_body(response)
        kind = classify_http_error(response.status_code, error_type)
        return self._error(kind, message, response.status_code)

    async def invoke(self, conversation: Conversation) -> NormalizedReply | ProviderError:
        """Call the provider once. Never raises except on cancellation."""
        try:
            return await self._invoke(conversation)
        except httpx.TimeoutException as e:
            return self._error(ErrorKind.TIMEOUT, f"{type(e).__name__}: {e}" if str(e) else type(e).__name__)
        except httpx.HTTPError as e:
            return self._error(ErrorKind.OTHER, str(e) or type(e).__name__)
        except (ValueError, KeyError, TypeError, IndexError) as e:
            # json decode errors and ResponseShapeError are ValueErrors
            return self._error(ErrorKind.BAD_RESPONSE, str(e) or type(e).__name__)
        except Exception as e:
            logger.exception("Unexpected failure in provider %s", self.name)
            return self._error(ErrorKind.OTHER, str(e) or type(e).__name__)

    @abstractmethod
    async def _invoke(self, conversation: Conversation) -> NormalizedReply | ProviderError:
        """Build the request, perform it and parse the response."""
        pass
