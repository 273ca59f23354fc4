"""Application lifespan management."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from config.loader import ConfigLoader
from core.gateway import FallbackGateway
from core.providers import build_providers
from tui.config import ConfigManager

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan context manager for startup and shutdown."""
    # API keys saved with `bondi config` become environment variables
    config_manager = ConfigManager()
    config_manager.load_to_env()

    loader = ConfigLoader(workspace_root=getattr(app.state, "workspace_root", None))
    settings = loader.load()

    # Initialize app state
    app.state.settings = settings
    app.state.gateway = FallbackGateway.from_settings(settings, build_providers(settings, loader=loader))

    configured = settings.configured_providers()
    if configured:
        logger.info("[web] Providers with credentials: %s", ", ".join(configured))
    else:
        logger.warning("[web] No provider API keys configured; /api/chat will answer 500")

    yield
