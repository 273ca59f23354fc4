"""Enrichment fetch: download a few news pages and keep their plain text.

Best-effort only. Every source is fetched once with a short timeout; failures
are logged and dropped, partial results are accepted.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

import httpx

from config.schema import EnrichmentConfig, SourceSpec
from core.web.sanitizer import sanitize_html

logger = logging.getLogger(__name__)

CONTEXT_HEADER = "DATOS OBTENIDOS DE FUENTES WEB (USAR ESTOS DATOS COMO BASE):"


@dataclass(frozen=True)
class FetchedSource:
    name: str
    url: str
    content: str


class SourceFetcher:
    """Fetches the configured sources concurrently and sanitizes them."""

    def __init__(
        self,
        config: EnrichmentConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or EnrichmentConfig()
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "User-Agent": self.config.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": self.config.accept_language,
        }

    async def fetch_one(self, client: httpx.AsyncClient, source: SourceSpec) -> FetchedSource:
        response = await client.get(source.url)
        response.raise_for_status()
        content = sanitize_html(response.text, self.config.max_bytes)
        return FetchedSource(name=source.name, url=source.url, content=content)

    async def fetch_all(self, sources: Sequence[SourceSpec] | None = None) -> list[FetchedSource]:
        """Fetch every source; keep only successful ones with non-trivial text."""
        if not self.config.enabled:
            return []
        targets = list(self.config.sources if sources is None else sources)
        if not targets:
            return []

        async with httpx.AsyncClient(
            timeout=self.config.timeout,
            headers=self._headers(),
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            results = await asyncio.gather(
                *(self.fetch_one(client, s) for s in targets),
                return_exceptions=True,
            )

        kept: list[FetchedSource] = []
        for source, result in zip(targets, results):
            if isinstance(result, BaseException):
                logger.debug("Enrichment source %s failed: %s", source.name, result)
                continue
            if len(result.content) > self.config.min_chars:
                kept.append(result)
            else:
                logger.debug("Enrichment source %s too short (%d chars)", source.name, len(result.content))
        logger.info("Enrichment fetched %d/%d sources", len(kept), len(targets))
        return kept


def build_source_context(sources: Sequence[FetchedSource]) -> str:
    """Context block appended to the user message ('' when nothing was fetched)."""
    if not sources:
        return ""
    blocks = "\n".join(f"\n--- {s.name} ---\n{s.content}" for s in sources)
    return f"\n\n{CONTEXT_HEADER}\n{blocks}"
