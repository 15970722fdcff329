"""Shared fixtures: an isolated content tree, settings store and host app."""

import logging

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine

from rescue.config import Settings
from rescue.database import init_db
from rescue.main import create_app
from rescue.services.rescue_gate import RescueContext

SECRET = "abc123"
ADMIN_TOKEN = "admin-token"


@pytest.fixture
def settings(tmp_path) -> Settings:
    content = tmp_path / "content"
    (content / "plugins").mkdir(parents=True)
    (content / "themes").mkdir()
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'rescue.db'}",
        content_dir=content,
        encryption_key="test-encryption-key",
        admin_token=ADMIN_TOKEN,
    )


@pytest_asyncio.fixture
async def db_engine(settings):
    engine = create_async_engine(settings.database_url)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def app(settings, db_engine) -> FastAPI:
    app = create_app(settings, db_engine=db_engine)

    # Stand-ins for the host application's own routes
    @app.get("/")
    async def host_home():
        return {"host": True}

    @app.get("/noisy")
    async def host_noisy():
        logging.getLogger("host.app").warning("host warning for the debug log")
        return {"host": True}

    await app.state.rescue.secret_store.set(SECRET)
    return app


@pytest.fixture
def context(app) -> RescueContext:
    return app.state.rescue


@pytest_asyncio.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
