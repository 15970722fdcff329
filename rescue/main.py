"""FastAPI application entrypoint — a minimal host with rescue mode installed."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from rescue.config import Settings, settings as default_settings
from rescue.database import engine, init_db, make_session_factory
from rescue.middleware import install_rescue
from rescue.routers import admin
from rescue.services.rescue_gate import build_context

# ── Logging setup ────────────────────────────────────────────────────
logging.basicConfig(
    level=default_settings.log_level.upper(),
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    datefmt="%H:%M:%S",
)

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, db_engine: AsyncEngine | None = None) -> FastAPI:
    settings = settings or default_settings
    if db_engine is None:
        db_engine = engine if settings is default_settings else create_async_engine(settings.database_url)
    context = build_context(settings, make_session_factory(db_engine))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            await init_db(db_engine)
        except Exception as exc:
            # rescue degrades to disabled; the host still starts
            logger.warning("Settings store init failed (non-fatal): %s", exc)
        context.debug_capture.install()
        yield
        context.debug_capture.uninstall()
        await db_engine.dispose()

    app = FastAPI(
        title="Emergency Rescue",
        description="Out-of-band recovery for plugins and themes",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(admin.router, prefix="/api/rescue", tags=["rescue"])

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "emergency-rescue"}

    install_rescue(app, context)
    return app


app = create_app()
