"""
Structured extraction - recover a JSON object from free-form model text.

Tolerates markdown fences, prose around the object, trailing commas and
several candidate objects in one text (citation artifacts and the like).
Never raises: ``None`` means the response was unstructured and the caller
should show the raw text instead.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterator, Sequence
from typing import Any

from pydantic import ValidationError

from core.report import StrikeReport, looks_like_report

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


def strip_fences(text: str) -> str:
    return _FENCE_RE.sub("", text)


def remove_trailing_commas(text: str) -> str:
    return _TRAILING_COMMA_RE.sub(r"\1", text)


def brace_spans(text: str) -> Iterator[str]:
    """Yield every top-level ``{...}`` span in order.

    Quotes only matter inside a span, so apostrophes and stray quotes in the
    surrounding prose cannot desynchronise the scan. A closing brace at depth
    zero is ignored.
    """
    depth = 0
    start = -1
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if depth > 0 and in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"' and depth > 0:
            in_string = True
        elif ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                yield text[start:i + 1]


def _loads_object(candidate: str) -> dict[str, Any] | None:
    for attempt in (candidate, remove_trailing_commas(candidate)):
        try:
            value = json.loads(attempt)
        except ValueError:
            continue
        if isinstance(value, dict):
            return value
    return None


class StructuredExtractor:
    """Text -> JSON object -> StrikeReport."""

    def candidates(self, text: str) -> Iterator[dict[str, Any]]:
        """Parseable objects found in ``text``, in order of appearance."""
        if not text or not isinstance(text, str):
            return
        clean = strip_fences(text)
        direct = _loads_object(clean.strip())
        if direct is not None:
            yield direct
            return
        for span in brace_spans(clean):
            value = _loads_object(span)
            if value is not None:
                yield value

    def extract(self, text: str) -> dict[str, Any] | None:
        """First plausible report object in ``text``, else the first object at all."""
        first = None
        for value in self.candidates(text):
            if looks_like_report(value):
                return value
            if first is None:
                first = value
        return first

    def extract_fragments(self, fragments: Sequence[str]) -> dict[str, Any] | None:
        """Try the joined text, then every fragment on its own."""
        texts = [f for f in fragments if isinstance(f, str) and f]
        if not texts:
            return None
        first = None
        attempts = ["\n".join(texts)] + (texts if len(texts) > 1 else [])
        for text in attempts:
            value = self.extract(text)
            if value is None:
                continue
            if looks_like_report(value):
                return value
            if first is None:
                first = value
        return first

    def extract_report(self, source: str | Sequence[str]) -> StrikeReport | None:
        """StrikeReport from a text or list of fragments, or None."""
        payload = self.extract(source) if isinstance(source, str) else self.extract_fragments(source)
        return self.to_report(payload)

    @staticmethod
    def to_report(payload: dict[str, Any] | None) -> StrikeReport | None:
        if not looks_like_report(payload):
            return None
        try:
            return StrikeReport.from_payload(payload)
        except ValidationError as e:
            logger.warning("Report object did not validate: %s", e.errors(include_url=False)[:3])
            return None


_default = StructuredExtractor()


def extract(text: str) -> dict[str, Any] | None:
    return _default.extract(text)


def extract_fragments(fragments: Sequence[str]) -> dict[str, Any] | None:
    return _default.extract_fragments(fragments)


def extract_report(source: str | Sequence[str]) -> StrikeReport | None:
    return _default.extract_report(source)
