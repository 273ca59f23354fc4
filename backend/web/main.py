"""Bondi Web Backend - FastAPI Application."""

import os

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.web.core.lifespan import lifespan
from backend.web.routers import chat

# Create FastAPI app
app = FastAPI(title="Bondi Web Backend", lifespan=lifespan)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)

# Include routers
app.include_router(chat.router)


def _resolve_port(default: int = 8001) -> int:
    """Resolve backend port: BONDI_BACKEND_PORT > PORT > configured default."""
    port = os.environ.get("BONDI_BACKEND_PORT") or os.environ.get("PORT")
    if port:
        return int(port)
    return default


def run(host: str = "0.0.0.0", port: int | None = None, reload: bool = False) -> None:
    # Package-qualified target keeps `python -m backend.web.main` import-safe
    uvicorn.run("backend.web.main:app", host=host, port=port or _resolve_port(), reload=reload)


if __name__ == "__main__":
    run(reload=True)
