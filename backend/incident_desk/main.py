"""Incident desk FastAPI application."""
from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from incident_desk import __version__
from incident_desk.client import Client, create_client
from incident_desk.config import settings
from incident_desk.db.factory import close_database
from incident_desk.logging_config import setup_logging
from incident_desk.routers.api import router


def create_app(client: Client | None = None) -> FastAPI:
    """Build the app. A supplied client is used as-is and left open on shutdown."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings.log_level)
        owned = client is None
        app.state.client = client if client is not None else await create_client()
        yield
        if owned:
            await app.state.client.close()
            await close_database()

    app = FastAPI(
        title="Incident Desk API",
        description="Incident decision intelligence: analysis, decisions, predictions and knowledge base",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


app = create_app()
