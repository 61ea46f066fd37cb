from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from musicbox.api.auth import IdentityClient
from musicbox.api.middleware import DBSessionMiddleware
from musicbox.config import Settings, load_settings
from musicbox.db.session import SessionManager, build_engine, init_db
from musicbox.logging_config import setup_logging
from musicbox.services.box.api.routes import routes as box_routes

logger = logging.getLogger(__name__)


async def health(request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok"})


def create_app(
    settings: Settings | None = None,
    *,
    identity: IdentityClient | None = None,
) -> Starlette:
    settings = settings or load_settings()
    setup_logging(settings.log_level)

    engine = build_engine(settings)
    init_db(engine)
    sessions = SessionManager(engine)
    identity = identity or IdentityClient(settings)

    @asynccontextmanager
    async def lifespan(app: Starlette):
        await app.state.identity.start()
        logger.info(f"musicbox started (environment={settings.environment})")
        try:
            yield
        finally:
            await app.state.identity.aclose()
            engine.dispose()

    app = Starlette(
        routes=[Route("/health", health, methods=["GET"]), *box_routes],
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.sessions = sessions
    app.state.identity = identity

    app.add_middleware(DBSessionMiddleware, session_manager=sessions)

    return app
