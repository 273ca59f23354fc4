"""
Gemini provider (search grounded).

Reshapes the conversation into generateContent ``contents``/``parts``, injects
a fixed system instruction and asks for the built-in Google Search tool.

Two-attempt protocol:
- attempt 1 with search grounding
- if it fails (or answers without text) and the failure looks like the search
  capability itself is unavailable (quota, billing, permission, not supported),
  attempt 2 resubmits the same conversation without the tool
"""

from __future__ import annotations

import logging
import re
from typing import Any

from core.conversation import Conversation
from core.providers.base import (
    ErrorKind,
    NormalizedReply,
    ProviderAdapter,
    ProviderError,
    ResponseShapeError,
    StopReason,
)

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com"

_SEARCH_UNAVAILABLE_STATUSES = {403, 429}
_SEARCH_UNAVAILABLE_RE = re.compile(
    r"quota|billing|permission|not supported|unsupported|not enabled|grounding|google_search|search",
    re.IGNORECASE,
)


class GeminiProvider(ProviderAdapter):
    """Gemini generateContent provider with Google Search grounding."""

    kind = "gemini"

    def build_body(self, conversation: Conversation, *, search: bool) -> dict[str, Any]:
        contents = [
            {"role": "model" if m.role == "assistant" else "user", "parts": [{"text": m.text()}]}
            for m in conversation.messages
        ]
        body: dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "maxOutputTokens": conversation.params.get("max_tokens") or self.spec.max_tokens,
            },
        }
        if self.system_prompt:
            body["systemInstruction"] = {"parts": [{"text": self.system_prompt}]}
        if search:
            body["tools"] = [{"google_search": {}}]
        return body

    async def _invoke(self, conversation: Conversation) -> NormalizedReply | ProviderError:
        search = self.spec.web_search
        result = await self._attempt(conversation, search=search)

        if search and not _has_text(result) and self._search_unavailable(result):
            logger.info(
                "[%s] search grounding unavailable (%s), retrying without search",
                self.name,
                result.message if isinstance(result, ProviderError) else "empty answer",
            )
            result = await self._attempt(conversation, search=False)

        if isinstance(result, NormalizedReply) and not result.text:
            return self._error(ErrorKind.BAD_RESPONSE, "Gemini returned no text")
        return result

    async def _attempt(self, conversation: Conversation, *, search: bool) -> NormalizedReply | ProviderError:
        url = f"{self.spec.base_url or GEMINI_BASE_URL}/v1beta/models/{self.model}:generateContent"
        headers = {"Content-Type": "application/json", "x-goog-api-key": self.api_key or ""}
        async with self._client() as client:
            response = await client.post(url, headers=headers, json=self.build_body(conversation, search=search))

        if not response.is_success:
            return self._http_error(response)
        return self.parse_response(response.json(), search=search)

    @staticmethod
    def _search_unavailable(result: NormalizedReply | ProviderError) -> bool:
        # An OK answer with no text counts as grounding having failed
        if isinstance(result, NormalizedReply):
            return True
        if result.http_status in _SEARCH_UNAVAILABLE_STATUSES:
            return True
        return bool(_SEARCH_UNAVAILABLE_RE.search(result.message or ""))

    def parse_response(self, data: Any, *, search: bool = False) -> NormalizedReply:
        if not isinstance(data, dict):
            raise ResponseShapeError("Gemini response is not an object")
        candidates = data.get("candidates")
        if candidates is None:
            # Blocked prompts come back with promptFeedback only
            candidates = []
        if not isinstance(candidates, list):
            raise ResponseShapeError("Gemini candidates is not a list")

        fragments: tuple[str, ...] = ()
        finish_reason = None
        sources: list[str] = []
        if candidates:
            first = candidates[0] if isinstance(candidates[0], dict) else {}
            parts = (first.get("content") or {}).get("parts") or []
            fragments = tuple(p["text"] for p in parts if isinstance(p, dict) and p.get("text"))
            finish_reason = first.get("finishReason")
            chunks = (first.get("groundingMetadata") or {}).get("groundingChunks") or []
            for chunk in chunks:
                web = chunk.get("web") if isinstance(chunk, dict) else None
                if isinstance(web, dict) and (web.get("title") or web.get("uri")):
                    sources.append(web.get("title") or web.get("uri"))

        return NormalizedReply(
            text="\n".join(fragments),
            stop_reason=StopReason.END if finish_reason == "STOP" else StopReason.OTHER,
            provider_id=self.name,
            model_id=data.get("modelVersion") or self.model,
            fragments=fragments,
            metadata={"search_grounded": search, "grounding_sources": sources},
        )


def _has_text(result: NormalizedReply | ProviderError) -> bool:
    return isinstance(result, NormalizedReply) and bool(result.text)
