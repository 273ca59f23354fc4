"""Chat proxy endpoint: one canonical answer from the provider fallback chain."""

import json

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response

from backend.web.services.chat_service import InvalidChatBody, handle_chat, parse_body
from core.gateway import FallbackGateway

router = APIRouter(prefix="/api/chat", tags=["chat"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def get_gateway(request: Request) -> FallbackGateway:
    return request.app.state.gateway


def _json(status_code: int, content: dict) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=content, headers=CORS_HEADERS)


@router.options("")
async def chat_preflight() -> Response:
    return Response(status_code=200, headers=CORS_HEADERS)


@router.post("")
async def chat(request: Request, gateway: FallbackGateway = Depends(get_gateway)) -> JSONResponse:
    """Forward a Messages-API style body through the gateway."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _json(400, {"error": "Request body must be valid JSON"})
    try:
        conversation = parse_body(body)
    except InvalidChatBody as e:
        return _json(400, {"error": str(e)})

    status_code, content = await handle_chat(gateway, conversation)
    return _json(status_code, content)


@router.api_route("", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def chat_method_not_allowed() -> JSONResponse:
    return _json(405, {"error": "Method not allowed"})
