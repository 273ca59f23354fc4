"""Bondi core: provider gateway, structured extraction and strike alerts."""

from core.conversation import Conversation, Message
from core.extract import StructuredExtractor
from core.gateway import FallbackGateway, GatewayError
from core.report import StrikeReport

__all__ = [
    "Conversation",
    "FallbackGateway",
    "GatewayError",
    "Message",
    "StrikeReport",
    "StructuredExtractor",
]
