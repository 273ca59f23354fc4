"""
OpenAI provider (generic, lowest priority).

Two request modes, chosen by configuration:
- web search (preferred): Responses API with the web_search_preview tool,
  optionally enriched with prefetched news pages
- plain: Chat Completions, last resort when search is not available

Single attempt in either mode. Text is read from whichever known shape the
response carries; anything else is a BadResponse.
"""

from __future__ import annotations

import re
from dataclasses import replace
from typing import Any

from config.schema import ProviderSpec
from core.conversation import Conversation
from core.providers.base import (
    NormalizedReply,
    ProviderAdapter,
    ProviderError,
    ResponseShapeError,
    StopReason,
)
from core.web.sources import SourceFetcher, build_source_context

OPENAI_BASE_URL = "https://api.openai.com"

# URL citation annotations injected by web search, e.g. 【6†source】
_CITATION_RE = re.compile(r"【\d+†[^】]*】")

WEB_SEARCH_TOOL = {
    "type": "web_search_preview",
    "user_location": {
        "type": "approximate",
        "country": "AR",
        "city": "Buenos Aires",
        "region": "Buenos Aires",
        "timezone": "America/Argentina/Buenos_Aires",
    },
    "search_context_size": "high",
}


def strip_citations(text: str) -> str:
    return _CITATION_RE.sub("", text)


class OpenAIProvider(ProviderAdapter):
    """OpenAI Responses / Chat Completions provider."""

    kind = "openai"

    def __init__(self, spec: ProviderSpec, *, fetcher: SourceFetcher | None = None, **kwargs):
        super().__init__(spec, **kwargs)
        self.fetcher = fetcher

    @property
    def _base(self) -> str:
        base = self.spec.base_url or OPENAI_BASE_URL
        # Accept base URLs configured with or without the /v1 suffix
        return base[:-3] if base.endswith("/v1") else base

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json", "Authorization": f"Bearer {self.api_key}"}

    def _input_messages(self, conversation: Conversation, context: str) -> list[dict[str, str]]:
        messages = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.append({"role": "user", "content": conversation.user_text() + context})
        return messages

    def build_body(self, conversation: Conversation, context: str = "") -> dict[str, Any]:
        messages = self._input_messages(conversation, context)
        if self.spec.web_search:
            return {"model": self.model, "input": messages, "tools": [WEB_SEARCH_TOOL]}
        return {
            "model": self.model,
            "messages": messages,
            "max_tokens": conversation.params.get("max_tokens") or self.spec.max_tokens,
        }

    async def _invoke(self, conversation: Conversation) -> NormalizedReply | ProviderError:
        sources = []
        if self.spec.enrich and self.fetcher is not None:
            sources = await self.fetcher.fetch_all()

        path = "/v1/responses" if self.spec.web_search else "/v1/chat/completions"
        body = self.build_body(conversation, build_source_context(sources))
        async with self._client() as client:
            response = await client.post(f"{self._base}{path}", headers=self._headers(), json=body)

        if not response.is_success:
            return self._http_error(response)

        reply = self.parse_response(response.json())
        if sources:
            reply = replace(reply, metadata={**reply.metadata, "sources_fetched": [s.name for s in sources]})
        return reply

    def parse_response(self, data: Any) -> NormalizedReply:
        if not isinstance(data, dict):
            raise ResponseShapeError("OpenAI response is not an object")

        text, stop = self._extract_text(data)
        text = strip_citations(text)
        return NormalizedReply(
            text=text,
            stop_reason=stop,
            provider_id=self.name,
            model_id=data.get("model") or self.model,
            fragments=(text,),
            metadata={"web_search": self.spec.web_search},
        )

    @staticmethod
    def _extract_text(data: dict[str, Any]) -> tuple[str, StopReason]:
        # Shape 1: aggregated output_text (Responses API convenience field)
        output_text = data.get("output_text")
        if isinstance(output_text, str) and output_text:
            return output_text, StopReason.END

        # Shape 2: typed output blocks (Responses API)
        output = data.get("output")
        if isinstance(output, list):
            pieces = []
            for item in output:
                if not isinstance(item, dict) or item.get("type") != "message":
                    continue
                for block in item.get("content") or []:
                    if isinstance(block, dict) and block.get("type") == "output_text" and block.get("text"):
                        pieces.append(block["text"])
            if pieces:
                status = data.get("status")
                return "".join(pieces), StopReason.END if status in (None, "completed") else StopReason.OTHER

        # Shape 3: single choice message (Chat Completions)
        choices = data.get("choices")
        if isinstance(choices, list) and choices:
            choice = choices[0] if isinstance(choices[0], dict) else {}
            content = (choice.get("message") or {}).get("content")
            if isinstance(content, str) and content:
                return content, StopReason.END if choice.get("finish_reason") == "stop" else StopReason.OTHER

        raise ResponseShapeError("OpenAI response carries no text in any known shape")
