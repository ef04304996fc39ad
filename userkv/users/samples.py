"""Sample users written at startup when seeding is enabled."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from .models import UserData

if TYPE_CHECKING:
    from .repository import UserRepository

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)

SAMPLE_USERS: list[tuple[str, UserData]] = [
    (
        "yasmin",
        UserData(
            name="Yasmin Nasser",
            country="Palestine",
            registered=datetime(2025, 8, 27, tzinfo=UTC),
        ),
    ),
    (
        "isabella",
        UserData(
            name="Isabella Rodriguez",
            country="Colombia",
            registered=datetime(2025, 9, 1, tzinfo=UTC),
        ),
    ),
    (
        "pierre",
        UserData(
            name="Pierre Dubois",
            country="France",
            registered=datetime(2025, 9, 10, tzinfo=UTC),
        ),
    ),
]


async def seed_sample_users(repository: UserRepository) -> None:
    """Write every sample user, overwriting existing records of the same name."""
    for username, user in SAMPLE_USERS:
        await repository.add_user(username, user)
        LOGGER.info("Added user %s from %s", user.name, user.country)
