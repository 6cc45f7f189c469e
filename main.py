"""
Brainrack Chat Relay - Backend
FastAPI application relaying streaming LLM completions to browsers over SSE.
"""
import logging
import os
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles

from chat_relay import __version__
from chat_relay.api.routers import api_router
from chat_relay.config.settings import get_settings
from chat_relay.middleware.error_handling import ErrorHandlingMiddleware
from chat_relay.middleware.request_logging import RequestLoggingMiddleware
from chat_relay.services.notifications import InMemorySubscriptionStore
from chat_relay.services.upstream import UpstreamClient


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager."""
    settings = get_settings()
    logging.info(f"Starting {settings.app_name} ({settings.environment})")

    if not settings.openrouter_api_key:
        logging.error("Upstream credentials missing! Check OPENROUTER_API_KEY")
    else:
        logging.info(f"Upstream configured: {settings.upstream_base_url}")

    http_client = httpx.AsyncClient()
    app.state.upstream_client = UpstreamClient.from_settings(settings, http_client=http_client)
    if getattr(app.state, "subscription_store", None) is None:
        app.state.subscription_store = InMemorySubscriptionStore()

    yield

    logging.info("Shutting down...")
    await http_client.aclose()
    app.state.upstream_client = None


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app = FastAPI(
        title=settings.app_name,
        description="Streaming chat relay for OpenAI-compatible providers",
        version=__version__,
        lifespan=lifespan,
        redirect_slashes=False,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(
        RequestLoggingMiddleware, log_bodies=settings.enable_request_logging
    )

    @app.get("/", response_class=PlainTextResponse, include_in_schema=False)
    async def root() -> str:
        return "Brainrack Backend Working"

    app.include_router(api_router)

    # Browser assets, mounted last so API routes take precedence
    public_dir = os.path.join(os.path.dirname(__file__), "public")
    if os.path.exists(public_dir):
        app.mount("/public", StaticFiles(directory=public_dir), name="public")

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "3000")),
        reload=get_settings().debug,
    )
