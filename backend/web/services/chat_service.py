"""Chat proxy service - runs the gateway and shapes the canonical response."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from backend.web.models.requests import ChatRequest
from core.conversation import Conversation
from core.gateway import FallbackGateway, GatewayError
from core.providers import NormalizedReply, StopReason

logger = logging.getLogger(__name__)


class InvalidChatBody(ValueError):
    """Inbound body is not a usable chat request."""


def parse_body(body: Any) -> Conversation:
    """Validate an inbound JSON body and keep every field verbatim."""
    if not isinstance(body, dict):
        raise InvalidChatBody("Request body must be a JSON object")
    try:
        ChatRequest.model_validate(body)
    except ValidationError as e:
        first = e.errors(include_url=False)[0]
        location = ".".join(str(p) for p in first.get("loc", ()))
        raise InvalidChatBody(f"Invalid request body: {location} {first.get('msg', '')}".strip()) from e
    body = {k: v for k, v in body.items() if v is not None}
    return Conversation.from_body(body)


def reply_to_response(reply: NormalizedReply) -> dict[str, Any]:
    """One canonical envelope regardless of which provider answered."""
    text = reply.text or "\n".join(f for f in reply.fragments if f)
    response: dict[str, Any] = {
        "content": [{"type": "text", "text": text}],
        "stop_reason": "end_turn" if reply.stop_reason == StopReason.END else "other",
        "model": reply.model_id,
        "_provider": reply.provider_id,
    }
    sources = reply.metadata.get("sources_fetched")
    if sources is not None:
        response["_sources_fetched"] = list(sources)
    return response


def error_to_response(error: GatewayError) -> tuple[int, dict[str, Any]]:
    status = error.status_code if 400 <= error.status_code < 600 else 500
    return status, {"error": error.message}


async def handle_chat(gateway: FallbackGateway, conversation: Conversation) -> tuple[int, dict[str, Any]]:
    outcome = await gateway.handle(conversation)
    if isinstance(outcome, GatewayError):
        logger.warning("[chat] %s: %s", outcome.kind.value, outcome.message)
        return error_to_response(outcome)
    return 200, reply_to_response(outcome)
