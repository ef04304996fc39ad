"""User routes for the FastAPI application.

Provides an HTML listing of every user and a JSON view of a single user.
Any other path is answered with ``400 Invalid path``.
"""

from __future__ import annotations

import html
import logging
from typing import TYPE_CHECKING, NoReturn
from urllib.parse import quote

from fastapi import APIRouter, Response
from fastapi.responses import JSONResponse

from userkv.errors import InvalidRequest, NotFound

if TYPE_CHECKING:
    from .models import UserData
    from .repository import UserRepository

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

_PAGE_HEAD = (
    "<html><head><title>Users List</title></head><body>"
    "<h1>Users List</h1><ul>"
)
_PAGE_TAIL = "</ul></body></html>"


def render_user_item(username: str, user: UserData) -> str:
    """Render one ``<li>`` linking to the user's detail path."""
    href = html.escape(f"/users/{quote(username, safe='')}")
    return (
        f'<li><a href="{href}">{html.escape(user.name)}</a>'
        f" from {html.escape(user.country)}</li>"
    )


async def _list_users(repository: UserRepository) -> Response:
    parts = [_PAGE_HEAD]
    async for username, user in repository.list_users():
        parts.append(render_user_item(username, user))
    parts.append(_PAGE_TAIL)

    # explicit header so no charset parameter is appended
    return Response(content="".join(parts), headers={"content-type": "text/html"})


async def _get_user(repository: UserRepository, username: str) -> JSONResponse:
    user = await repository.get_user(username)
    if user is None:
        LOGGER.debug("No user stored for %s", username)
        raise NotFound

    return JSONResponse(content=user.model_dump(mode="json"))


def configure_user_router(
    router: APIRouter,
    repository: UserRepository,
) -> APIRouter:
    """Configure the user router.

    The catch-all route is registered last so that it only answers paths the
    other routes do not match.

    :param router: The APIRouter to configure
    :param repository: The UserRepository the routes read from
    :return: The configured APIRouter
    """

    @router.get("/")
    async def list_users() -> Response:
        return await _list_users(repository)

    @router.get("/users/{username}")
    async def get_user(username: str) -> JSONResponse:
        return await _get_user(repository, username)

    @router.api_route(
        "/{path:path}",
        methods=ALL_METHODS,
        include_in_schema=False,
        response_model=None,
    )
    async def invalid_path(path: str) -> NoReturn:
        LOGGER.debug("Rejecting unknown path /%s", path)
        raise InvalidRequest

    return router
