"""All queries related to stored users.

Using the UserRepository class as a repository for user records kept in the
key-value store under composite keys ``("users", username)``. Keeping the
namespace as its own key part lets the whole namespace be listed with a prefix
scan, without a secondary index.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError

from userkv.errors import StoreUnavailable
from userkv.store import DEFAULT_BATCH_SIZE

from .models import UserData, UserEntry

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from userkv.store import CommitResult, Key, KVStore, KvEntry

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)

USERS_NAMESPACE = "users"


def _decode(entry: KvEntry) -> UserData:
    try:
        return UserData.from_bytes(entry.value or b"")
    except ValidationError as e:
        LOGGER.exception("Stored record under %s is corrupt", entry.key)
        msg = f"Corrupt user record under {entry.key}"
        raise StoreUnavailable(msg) from e


class UserRepository:
    """Repository for user records."""

    def __init__(
        self,
        store: KVStore,
        list_batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        """Create a repository over an open store.

        :param store: The key-value store holding the records
        :param list_batch_size: Default rows fetched per batch when listing
        """
        self.store = store
        self.list_batch_size = list_batch_size

    @staticmethod
    def user_key(username: str) -> Key:
        """Build the storage key for ``username``.

        :raises ValueError: If the username is empty or contains ``/``
        """
        if not username:
            msg = "Username must not be empty"
            raise ValueError(msg)
        # /users/{username} matches a single path segment only
        if "/" in username:
            msg = f"Username must not contain '/': {username!r}"
            raise ValueError(msg)
        return (USERS_NAMESPACE, username)

    async def add_user(self, username: str, user: UserData) -> CommitResult:
        """Add or overwrite the user stored under ``username``.

        :param username: Unique identifier for the user
        :param user: The record to store
        :return: The commit result carrying the new versionstamp
        :raises StoreUnavailable: If the store is closed or the write fails
        """
        result = await self.store.set(self.user_key(username), user.to_bytes())
        LOGGER.debug("Stored user %s at %s", username, result.versionstamp)
        return result

    async def get_user(self, username: str) -> UserData | None:
        """Look up a user by username.

        :param username: The username to look up
        :return: The record if found, None otherwise
        :raises StoreUnavailable: If the store is closed or the read fails
        """
        return (await self.get_user_entry(username)).user

    async def get_user_entry(self, username: str) -> UserEntry:
        """Look up a user together with the versionstamp of its last write.

        :param username: The username to look up
        :return: The entry, with ``user`` None if the user does not exist
        """
        entry = await self.store.get(self.user_key(username))
        if entry.value is None:
            return UserEntry(username, None, None)
        return UserEntry(username, _decode(entry), entry.versionstamp)

    async def update_user(
        self,
        username: str,
        user: UserData,
        versionstamp: str | None,
    ) -> CommitResult:
        """Write ``user`` only if the stored record is still at ``versionstamp``.

        :param username: The username to write
        :param user: The new record
        :param versionstamp: Stamp from :meth:`get_user_entry`, or None to
            create the user only if it does not exist yet
        :return: The commit result, with ``ok`` False if the check failed
        """
        key = self.user_key(username)
        result = await (
            self.store.atomic()
            .check(key, versionstamp)
            .set(key, user.to_bytes())
            .commit()
        )
        if not result.ok:
            LOGGER.debug("Update of user %s lost to a concurrent write", username)
        return result

    async def delete_user(self, username: str) -> None:
        """Delete the user stored under ``username``, if any."""
        await self.store.delete(self.user_key(username))

    async def list_users(
        self,
        *,
        limit: int | None = None,
        batch_size: int | None = None,
    ) -> AsyncGenerator[tuple[str, UserData]]:
        """Yield every stored user in username key order.

        The scan is lazy and each call starts over from the first user.

        :param limit: Maximum number of users to yield
        :param batch_size: Rows per batch, defaults to the repository setting
        :return: An async generator of ``(username, record)`` pairs
        :raises StoreUnavailable: If the store closes or fails during the scan
        """
        entries = self.store.list(
            (USERS_NAMESPACE,),
            limit=limit,
            batch_size=batch_size or self.list_batch_size,
        )
        async for entry in entries:
            if len(entry.key) != 2 or not isinstance(entry.key[1], str):  # noqa: PLR2004
                LOGGER.warning("Skipping foreign key %s in users namespace", entry.key)
                continue
            yield entry.key[1], _decode(entry)
