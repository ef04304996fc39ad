"""Tests for the HTTP routes."""

from datetime import UTC, datetime

import pytest
from httpx import AsyncClient

from userkv.store import KVStore
from userkv.users import UserData, UserRepository

YASMIN = UserData(
    name="Yasmin Nasser",
    country="Palestine",
    registered=datetime(2025, 8, 27, tzinfo=UTC),
)
ISABELLA = UserData(
    name="Isabella Rodriguez",
    country="Colombia",
    registered=datetime(2025, 9, 1, tzinfo=UTC),
)


@pytest.mark.asyncio
async def test_demo_scenario(client: AsyncClient, repository: UserRepository) -> None:
    await repository.add_user("yasmin", YASMIN)

    found = await client.get("/users/yasmin")
    assert found.status_code == 200
    assert '"name":"Yasmin Nasser"' in found.text

    missing = await client.get("/users/unknown")
    assert missing.status_code == 404
    assert missing.text == "User not found"

    bogus = await client.get("/bogus")
    assert bogus.status_code == 400
    assert bogus.text == "Invalid path"

    listing = await client.get("/")
    assert listing.status_code == 200
    assert "Yasmin Nasser" in listing.text


@pytest.mark.asyncio
async def test_user_json(client: AsyncClient, repository: UserRepository) -> None:
    await repository.add_user("yasmin", YASMIN)

    response = await client.get("/users/yasmin")
    body = response.json()

    assert response.headers["content-type"] == "application/json"
    assert list(body) == ["name", "country", "registered"]
    assert body["name"] == YASMIN.name
    assert body["country"] == YASMIN.country
    assert datetime.fromisoformat(body["registered"]) == YASMIN.registered


@pytest.mark.asyncio
async def test_user_list_html(client: AsyncClient, repository: UserRepository) -> None:
    await repository.add_user("yasmin", YASMIN)
    await repository.add_user("isabella", ISABELLA)

    response = await client.get("/")

    assert response.headers["content-type"] == "text/html"
    assert response.text == (
        "<html><head><title>Users List</title></head><body>"
        "<h1>Users List</h1><ul>"
        '<li><a href="/users/isabella">Isabella Rodriguez</a> from Colombia</li>'
        '<li><a href="/users/yasmin">Yasmin Nasser</a> from Palestine</li>'
        "</ul></body></html>"
    )


@pytest.mark.asyncio
async def test_empty_user_list(client: AsyncClient) -> None:
    response = await client.get("/")

    assert response.status_code == 200
    assert "<ul></ul>" in response.text


@pytest.mark.asyncio
async def test_user_list_escapes_markup(
    client: AsyncClient,
    repository: UserRepository,
) -> None:
    await repository.add_user(
        "eve",
        UserData(name="<b>Eve</b>", country="A & B", registered=datetime.now(UTC)),
    )

    response = await client.get("/")

    assert "&lt;b&gt;Eve&lt;/b&gt;" in response.text
    assert "from A &amp; B" in response.text


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("method", "path"),
    [
        ("GET", "/users/"),
        ("GET", "/users"),
        ("GET", "/users/yasmin/extra"),
        ("GET", "/docs"),
        ("POST", "/"),
        ("DELETE", "/users/yasmin"),
    ],
)
async def test_unknown_routes_are_invalid(
    client: AsyncClient,
    repository: UserRepository,
    method: str,
    path: str,
) -> None:
    await repository.add_user("yasmin", YASMIN)

    response = await client.request(method, path)

    assert response.status_code == 400
    assert response.text == "Invalid path"
    assert response.headers["content-type"].startswith("text/plain")


@pytest.mark.asyncio
async def test_closed_store_is_server_error(
    client: AsyncClient,
    store: KVStore,
) -> None:
    await store.close()

    for path in ("/", "/users/yasmin"):
        response = await client.get(path)
        assert response.status_code == 500
        assert response.text == "Store unavailable"
