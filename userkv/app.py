"""FastAPI application factory for the user store."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import PlainTextResponse

from userkv.config import load_config_from_env
from userkv.errors import ServiceError, StoreUnavailable
from userkv.store import KVStore
from userkv.users import UserRepository, configure_user_router, seed_sample_users

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from userkv.config import AppConfig

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)


def configure_error_handlers(app: FastAPI) -> FastAPI:
    """Translate service errors into plain-text responses.

    :param app: The FastAPI application to configure
    :return: The configured application
    """

    @app.exception_handler(ServiceError)
    async def service_error_handler(
        request: Request,
        exc: ServiceError,
    ) -> PlainTextResponse:
        if isinstance(exc, StoreUnavailable):
            LOGGER.error(
                "Store unavailable while serving %s %s: %s",
                request.method,
                request.url.path,
                exc,
            )
        return PlainTextResponse(exc.detail, status_code=exc.status_code)

    return app


def configure_fastapi_app(config: AppConfig) -> FastAPI:
    """Configure and return the FastAPI application.

    :param config: Application configuration
    :return: Configured FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[Any, Any]:
        """Application lifespan manager.

        Opens the store before the first request is served and closes it
        after the server has drained in-flight requests.
        """
        LOGGER.info("userkv is starting")

        async with await KVStore.open(config.database_path) as store:
            repository = UserRepository(store, config.list_batch_size)

            if config.seed_sample_users:
                await seed_sample_users(repository)

            user_router = configure_user_router(APIRouter(), repository)
            app.include_router(user_router)

            yield

            LOGGER.info("userkv is shutting down")

    app = FastAPI(
        title="userkv",
        version="0.1.0",
        lifespan=lifespan,
        root_path=config.root_path,
        # every path outside the user routes answers 400
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    return configure_error_handlers(app)


def create_app(env_file: str | None = os.environ.get("ENV_FILE", ".env")) -> FastAPI:
    """Create and configure the FastAPI application.

    The default here is for uvicorn command line usage, in which case the user
    should set ENV_FILE environment variable if they want a different file.

    :param env_file: Optional path to the environment configuration file
    :return: Configured FastAPI application
    """
    config = load_config_from_env(env_file)
    return configure_fastapi_app(config)
