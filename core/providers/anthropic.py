"""
Anthropic provider (primary).

Forwards the conversation verbatim to the Messages API. Any 2xx response with a
``content`` block list is accepted as-is; web_search tool blocks are skipped
when flattening to text.
"""

from __future__ import annotations

from typing import Any

from core.conversation import Conversation
from core.providers.base import (
    NormalizedReply,
    ProviderAdapter,
    ProviderError,
    ResponseShapeError,
    StopReason,
)

ANTHROPIC_BASE_URL = "https://api.anthropic.com"
ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider(ProviderAdapter):
    """Anthropic Messages API provider."""

    kind = "anthropic"

    def build_body(self, conversation: Conversation) -> dict[str, Any]:
        body = conversation.to_body()
        body.setdefault("model", self.model)
        body.setdefault("max_tokens", self.spec.max_tokens)
        return body

    async def _invoke(self, conversation: Conversation) -> NormalizedReply | ProviderError:
        url = f"{self.spec.base_url or ANTHROPIC_BASE_URL}/v1/messages"
        headers = {
            "Content-Type": "application/json",
            "x-api-key": self.api_key or "",
            "anthropic-version": ANTHROPIC_VERSION,
        }
        async with self._client() as client:
            response = await client.post(url, headers=headers, json=self.build_body(conversation))

        if not response.is_success:
            return self._http_error(response)
        return self.parse_response(response.json())

    def parse_response(self, data: Any) -> NormalizedReply:
        if not isinstance(data, dict) or not isinstance(data.get("content"), list):
            raise ResponseShapeError("Anthropic response has no content block list")

        fragments = tuple(
            block["text"]
            for block in data["content"]
            if isinstance(block, dict) and block.get("type") == "text" and block.get("text")
        )
        stop = StopReason.END if data.get("stop_reason") == "end_turn" else StopReason.OTHER
        return NormalizedReply(
            text="\n".join(fragments),
            stop_reason=stop,
            provider_id=self.name,
            model_id=data.get("model") or self.model,
            fragments=fragments,
            metadata={"block_types": [b.get("type") for b in data["content"] if isinstance(b, dict)]},
        )
