"""Web enrichment - fetches news pages and reduces them to plain text."""

from core.web.sanitizer import sanitize_html, truncate_bytes
from core.web.sources import FetchedSource, SourceFetcher, build_source_context

__all__ = ["FetchedSource", "SourceFetcher", "build_source_context", "sanitize_html", "truncate_bytes"]
