"""Pytest configuration file for setting up shared fixtures."""

from collections.abc import AsyncGenerator

import pytest_asyncio
from fastapi import APIRouter, FastAPI
from httpx import ASGITransport, AsyncClient

from userkv import configure_error_handlers
from userkv.store import MEMORY_PATH, KVStore
from userkv.users import UserRepository, configure_user_router


@pytest_asyncio.fixture
async def store() -> AsyncGenerator[KVStore, None]:
    """Each test gets its own private in-memory store."""
    async with await KVStore.open(MEMORY_PATH) as kv:
        yield kv


@pytest_asyncio.fixture
async def repository(store: KVStore) -> UserRepository:
    """Create a user repository over the test store."""
    return UserRepository(store)


@pytest_asyncio.fixture
async def client(repository: UserRepository) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client for an app serving the user routes from the test store."""
    app = configure_error_handlers(
        FastAPI(docs_url=None, redoc_url=None, openapi_url=None),
    )
    app.include_router(configure_user_router(APIRouter(), repository))

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
