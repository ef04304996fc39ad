"""User records, their repository and their HTTP routes."""

from .models import UserData, UserEntry
from .repository import USERS_NAMESPACE, UserRepository
from .routes import configure_user_router
from .samples import SAMPLE_USERS, seed_sample_users

__all__ = [
    "SAMPLE_USERS",
    "USERS_NAMESPACE",
    "UserData",
    "UserEntry",
    "UserRepository",
    "configure_user_router",
    "seed_sample_users",
]
