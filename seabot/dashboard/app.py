"""Dashboard FastAPI application."""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .. import __version__
from ..config import SeaBotSettings, load_settings
from ..db.connection import close_db, init_db
from ..identity import IdentityResolver
from ..limits import UsageLedger
from .api import commands, stats, users

logger = logging.getLogger("seabot.dashboard")


def create_app(settings: SeaBotSettings = None, manage_db: bool = True) -> FastAPI:
    """Build the dashboard app.

    Args:
        settings: Loaded settings (loaded from the environment if omitted)
        manage_db: Open and close the connection pool with the app lifespan
    """
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting dashboard v{__version__}")
        if manage_db:
            await init_db(settings.database_url)
        try:
            yield
        finally:
            if manage_db:
                await close_db()
            logger.info("Dashboard stopped")

    app = FastAPI(
        title=f"{settings.bot_name} Dashboard",
        version=__version__,
        description="Admin API for users, usage limits and command settings",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.started_at = time.time()
    app.state.resolver = IdentityResolver.from_settings(settings)
    app.state.ledger = UsageLedger()

    @app.get("/health")
    async def health():
        return {"status": "healthy", "service": "seabot-dashboard", "version": __version__}

    app.include_router(stats.router)
    app.include_router(users.router)
    app.include_router(users.limits_router)
    app.include_router(commands.router)
    return app
