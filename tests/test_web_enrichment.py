"""Tests for core.web - HTML sanitizing and enrichment source fetching."""

import httpx
import pytest

from config.schema import EnrichmentConfig, SourceSpec
from core.web import FetchedSource, SourceFetcher, build_source_context, sanitize_html, truncate_bytes
from core.web.sources import CONTEXT_HEADER

LONG_TEXT = "Paro de colectivos en la línea 60 por agresión a un chofer en Tigre. " * 3


class TestSanitizeHtml:
    def test_strips_scripts_styles_and_tags(self):
        raw = """
        <html><head><style>body { color: red }</style>
        <script type="text/javascript">var x = "<b>no</b>";</script></head>
        <body><!-- oculto --><h1>Paro</h1><p>Línea&nbsp;60 &amp; 152</p></body></html>
        """
        assert sanitize_html(raw) == "Paro Línea 60 & 152"

    def test_case_insensitive_blocks(self):
        assert sanitize_html("<SCRIPT>alert(1)</SCRIPT>ok<Style>x{}</STYLE>") == "ok"

    def test_attributes_never_leak(self):
        raw = '<p><a title="paro > 24h" href="/x">Línea 60</a> sin servicio</p>'
        assert sanitize_html(raw) == "Línea 60 sin servicio"

    def test_noscript_dropped(self):
        assert sanitize_html("<noscript>Activá JavaScript</noscript><p>Paro</p>") == "Paro"

    def test_collapses_whitespace(self):
        assert sanitize_html("a\n\n   b\t\tc") == "a b c"

    def test_empty(self):
        assert sanitize_html("") == ""

    def test_truncates_to_byte_budget(self):
        assert sanitize_html("<p>" + "a" * 10_000 + "</p>", max_bytes=4000) == "a" * 4000

    def test_truncation_never_splits_characters(self):
        # "ñ" is two bytes in UTF-8
        assert truncate_bytes("ñññ", 5) == "ññ"
        assert truncate_bytes("ñññ", 6) == "ñññ"


def _fetcher(handler, **config) -> SourceFetcher:
    return SourceFetcher(EnrichmentConfig(**config), transport=httpx.MockTransport(handler))


SOURCES = [
    SourceSpec(name="ok", url="https://ok.test/"),
    SourceSpec(name="short", url="https://short.test/"),
    SourceSpec(name="broken", url="https://broken.test/"),
    SourceSpec(name="down", url="https://down.test/"),
]


def _handler(request: httpx.Request) -> httpx.Response:
    host = request.url.host
    if host == "ok.test":
        return httpx.Response(200, html=f"<html><body><p>{LONG_TEXT}</p></body></html>")
    if host == "short.test":
        return httpx.Response(200, html="<p>Nada</p>")
    if host == "broken.test":
        return httpx.Response(500, text="error")
    raise httpx.ConnectError("unreachable", request=request)


class TestSourceFetcher:
    @pytest.mark.asyncio
    async def test_keeps_successful_sources_only(self):
        fetched = await _fetcher(_handler, sources=SOURCES).fetch_all()
        assert [s.name for s in fetched] == ["ok"]
        assert fetched[0].content == LONG_TEXT.strip()
        assert fetched[0].url == "https://ok.test/"

    @pytest.mark.asyncio
    async def test_sends_browser_headers(self):
        seen = []

        def handler(request):
            seen.append(request.headers)
            return httpx.Response(200, html=LONG_TEXT)

        await _fetcher(handler, sources=SOURCES[:1]).fetch_all()
        assert seen[0]["accept-language"].startswith("es-AR")
        assert "Mozilla" in seen[0]["user-agent"]

    @pytest.mark.asyncio
    async def test_min_chars_threshold(self):
        fetched = await _fetcher(_handler, sources=SOURCES[:2], min_chars=3).fetch_all()
        assert [s.name for s in fetched] == ["ok", "short"]

    @pytest.mark.asyncio
    async def test_max_bytes_applied(self):
        fetched = await _fetcher(_handler, sources=SOURCES[:1], max_bytes=60, min_chars=10).fetch_all()
        assert len(fetched[0].content.encode("utf-8")) <= 60

    @pytest.mark.asyncio
    async def test_disabled(self):
        def handler(request):
            raise AssertionError("no request expected")

        assert await _fetcher(handler, enabled=False, sources=SOURCES).fetch_all() == []

    @pytest.mark.asyncio
    async def test_explicit_sources_override_config(self):
        fetched = await _fetcher(_handler, sources=[]).fetch_all(SOURCES[:1])
        assert [s.name for s in fetched] == ["ok"]

    @pytest.mark.asyncio
    async def test_all_failures_is_empty(self):
        fetched = await _fetcher(_handler, sources=SOURCES[2:]).fetch_all()
        assert fetched == []


class TestBuildSourceContext:
    def test_empty(self):
        assert build_source_context([]) == ""

    def test_blocks(self):
        context = build_source_context([
            FetchedSource("TN", "https://tn.test", "Paro en la 60"),
            FetchedSource("Infobae", "https://infobae.test", "Demoras en la 152"),
        ])
        assert context.startswith(f"\n\n{CONTEXT_HEADER}\n")
        assert "--- TN ---\nParo en la 60" in context
        assert context.endswith("--- Infobae ---\nDemoras en la 152")
