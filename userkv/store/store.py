"""Embedded ordered key-value store backed by SQLite through aiosqlite.

Keys are tuples encoded by :mod:`userkv.store.keys` and kept in a single
``WITHOUT ROWID`` table, so the primary key index gives byte-ordered range
scans. Every commit bumps a persisted counter and tags the rows it writes with
the new value, the versionstamp.

**Concurrency:**

All operations on one store share one aiosqlite connection and are serialised
by an internal lock. Commits run inside ``BEGIN IMMEDIATE`` so versionstamp
checks and the writes that follow them are atomic, also against other
processes using the same file. Commits are shielded from cancellation: once
issued they run to completion even if the awaiting request goes away.

**Example Usage:**

.. code-block:: python

    async with await KVStore.open(":memory:") as store:
        result = await store.set(("users", "yasmin"), b"...")
        entry = await store.get(("users", "yasmin"))
        async for entry in store.list(("users",)):
            print(entry.key, entry.versionstamp)
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import sqlite3
from collections import deque
from contextlib import asynccontextmanager, suppress
from pathlib import Path
from typing import TYPE_CHECKING, Self

import aiosqlite

from userkv.errors import StartupFailure, StoreUnavailable

from .keys import PREFIX_END, decode_key, encode_key, encode_prefix
from .types import CommitResult, KvEntry

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from types import TracebackType

    from .keys import Key

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)

MEMORY_PATH = ":memory:"
MAX_VALUE_SIZE = 65536
DEFAULT_BATCH_SIZE = 100
VERSIONSTAMP_WIDTH = 20


def format_versionstamp(version: int) -> str:
    """Render a commit counter as a fixed-width, lexically ordered stamp."""
    return f"{version:0{VERSIONSTAMP_WIDTH}x}"


def _check_value(value: bytes) -> None:
    if not isinstance(value, bytes):
        msg = f"Value must be bytes, got {type(value).__name__}"
        raise TypeError(msg)
    if len(value) > MAX_VALUE_SIZE:
        msg = f"Value is {len(value)} bytes, limit is {MAX_VALUE_SIZE}"
        raise ValueError(msg)


class AtomicOperation:
    """Builder for a set of checks and mutations committed together.

    Either every mutation is applied under one new versionstamp, or, when a
    check fails, none is.

    .. code-block:: python

        entry = await store.get(key)
        result = await (
            store.atomic()
            .check(key, entry.versionstamp)
            .set(key, b"new value")
            .commit()
        )
        if not result.ok:
            ...  # someone else wrote the key first
    """

    def __init__(self, store: KVStore) -> None:
        self._store = store
        self._checks: list[tuple[bytes, str | None]] = []
        self._mutations: list[tuple[bytes, bytes | None]] = []

    def check(self, key: Key, versionstamp: str | None) -> Self:
        """Require ``key`` to still be at ``versionstamp`` when committing.

        :param key: Key to check
        :param versionstamp: Expected stamp, or None to require the key be absent
        :return: This operation, for chaining
        """
        self._checks.append((encode_key(key), versionstamp))
        return self

    def set(self, key: Key, value: bytes) -> Self:
        """Write ``value`` under ``key``, replacing any previous value."""
        _check_value(value)
        self._mutations.append((encode_key(key), value))
        return self

    def delete(self, key: Key) -> Self:
        """Remove ``key`` if present."""
        self._mutations.append((encode_key(key), None))
        return self

    async def commit(self) -> CommitResult:
        """Apply the operation.

        :return: The commit result, with ``ok`` False if any check failed
        :raises StoreUnavailable: If the store is closed or the engine fails
        """
        return await asyncio.shield(
            self._store._commit(list(self._checks), list(self._mutations)),  # noqa: SLF001
        )


class ListIterator:
    """Lazy, batched iterator over every entry under a key prefix.

    Rows are fetched ``batch_size`` at a time using the last seen key as the
    lower (or, in reverse, upper) bound of the next query, so memory use is
    bounded by the batch size. :attr:`cursor` can be passed back to
    :meth:`KVStore.list` to resume after the last yielded entry.
    """

    def __init__(  # noqa: PLR0913
        self,
        store: KVStore,
        prefix: Key,
        *,
        reverse: bool = False,
        limit: int | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        cursor: str | None = None,
    ) -> None:
        if batch_size <= 0:
            msg = f"batch_size must be positive, got {batch_size}"
            raise ValueError(msg)
        if limit is not None and limit < 0:
            msg = f"limit must not be negative, got {limit}"
            raise ValueError(msg)

        self._store = store
        self._prefix = encode_prefix(prefix)
        self._lower = self._prefix
        self._upper = self._prefix + PREFIX_END
        self._reverse = reverse
        self._remaining = limit
        self._batch_size = batch_size
        self._buffer: deque[tuple[bytes, KvEntry]] = deque()
        self._exhausted = False
        self._position: bytes | None = None

        if cursor:
            self._position = self._decode_cursor(cursor)
            if reverse:
                self._upper = self._position
            else:
                self._lower = self._position

    def _decode_cursor(self, cursor: str) -> bytes:
        try:
            position = base64.urlsafe_b64decode(cursor.encode("ascii"))
        except (binascii.Error, UnicodeEncodeError) as e:
            msg = "Malformed list cursor"
            raise ValueError(msg) from e
        if not position.startswith(self._prefix) or position == self._prefix:
            msg = "Cursor does not belong to this prefix"
            raise ValueError(msg)
        return position

    @property
    def cursor(self) -> str:
        """Opaque position after the last yielded entry, empty before the first."""
        if self._position is None:
            return ""
        return base64.urlsafe_b64encode(self._position).decode("ascii")

    def __aiter__(self) -> Self:
        return self

    async def __anext__(self) -> KvEntry:
        if self._remaining is not None and self._remaining <= 0:
            raise StopAsyncIteration

        if not self._buffer:
            if self._exhausted:
                raise StopAsyncIteration
            await self._fetch()
            if not self._buffer:
                raise StopAsyncIteration

        raw_key, entry = self._buffer.popleft()
        self._position = raw_key
        if self._remaining is not None:
            self._remaining -= 1
        return entry

    async def _fetch(self) -> None:
        size = self._batch_size
        if self._remaining is not None:
            size = min(size, self._remaining)

        rows = await self._store._scan(  # noqa: SLF001
            self._lower,
            self._upper,
            size,
            reverse=self._reverse,
        )
        if len(rows) < size:
            self._exhausted = True
        if not rows:
            return

        for raw_key, value, versionstamp in rows:
            self._buffer.append(
                (raw_key, KvEntry(decode_key(raw_key), value, versionstamp)),
            )

        # keyset pagination: continue strictly past the last row fetched
        if self._reverse:
            self._upper = rows[-1][0]
        else:
            self._lower = rows[-1][0]


class KVStore:
    """Ordered key-value store over a single aiosqlite connection."""

    CREATE_ENTRIES_TABLE = """
        CREATE TABLE IF NOT EXISTS kv_entries (
            key BLOB PRIMARY KEY,
            value BLOB NOT NULL,
            versionstamp TEXT NOT NULL
        ) WITHOUT ROWID;
        """

    CREATE_META_TABLE = """
        CREATE TABLE IF NOT EXISTS kv_meta (
            name TEXT PRIMARY KEY,
            value INTEGER NOT NULL
        );
        """

    GET_ENTRY = """
        SELECT value, versionstamp FROM kv_entries WHERE key = ?;
        """

    GET_VERSIONSTAMP = """
        SELECT versionstamp FROM kv_entries WHERE key = ?;
        """

    UPSERT_ENTRY = """
        INSERT INTO kv_entries (key, value, versionstamp) VALUES (?, ?, ?)
        ON CONFLICT (key) DO UPDATE
        SET value = excluded.value, versionstamp = excluded.versionstamp;
        """

    DELETE_ENTRY = """
        DELETE FROM kv_entries WHERE key = ?;
        """

    GET_VERSION = """
        SELECT value FROM kv_meta WHERE name = 'version';
        """

    SET_VERSION = """
        INSERT INTO kv_meta (name, value) VALUES ('version', ?)
        ON CONFLICT (name) DO UPDATE SET value = excluded.value;
        """

    SCAN_FORWARD = """
        SELECT key, value, versionstamp FROM kv_entries
        WHERE key > ? AND key < ? ORDER BY key ASC LIMIT ?;
        """

    SCAN_REVERSE = """
        SELECT key, value, versionstamp FROM kv_entries
        WHERE key > ? AND key < ? ORDER BY key DESC LIMIT ?;
        """

    def __init__(self, connection: aiosqlite.Connection, path: str) -> None:
        """Wrap an already opened connection. Prefer :meth:`open`.

        :param connection: Open aiosqlite connection
        :param path: Database path the connection was opened with
        """
        self.connection = connection
        self.path = path
        self._lock = asyncio.Lock()
        self._closed = False

    @classmethod
    async def open(cls, path: str | Path) -> KVStore:
        """Open (creating if needed) the store at ``path``.

        :param path: SQLite database file, or ``":memory:"`` for a private
            store that is discarded on close
        :return: The open store
        :raises StartupFailure: If the path is inaccessible or not a database
        """
        path = str(path)
        try:
            if path != MEMORY_PATH:
                Path(path).parent.mkdir(parents=True, exist_ok=True)
            connection = await aiosqlite.connect(path)
        except (OSError, sqlite3.Error) as e:
            msg = f"Unable to open store at {path}"
            raise StartupFailure(msg) from e

        store = cls(connection, path)
        try:
            await store._initialize()
        except sqlite3.Error as e:
            await connection.close()
            msg = f"Unable to initialize store at {path}"
            raise StartupFailure(msg) from e

        LOGGER.info("Opened store at %s", path)
        return store

    async def _initialize(self) -> None:
        if self.path != MEMORY_PATH:
            await self.connection.execute("PRAGMA journal_mode=WAL;")
            await self.connection.execute("PRAGMA synchronous=FULL;")
        await self.connection.execute(KVStore.CREATE_ENTRIES_TABLE)
        await self.connection.execute(KVStore.CREATE_META_TABLE)
        await self.connection.commit()

    @property
    def closed(self) -> bool:
        """Whether :meth:`close` has been called."""
        return self._closed

    async def close(self) -> None:
        """Close the connection after any running operation finishes.

        Calling this more than once is harmless.
        """
        if self._closed:
            return
        self._closed = True
        async with self._lock:
            await self.connection.close()
        LOGGER.info("Closed store at %s", self.path)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    def _ensure_open(self) -> None:
        if self._closed:
            msg = "Store is closed"
            raise StoreUnavailable(msg)

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[aiosqlite.Connection]:
        """Hold the store lock and translate engine failures."""
        self._ensure_open()
        async with self._lock:
            self._ensure_open()
            try:
                yield self.connection
            except (sqlite3.Error, ValueError) as e:
                # aiosqlite raises ValueError once its connection is gone
                LOGGER.exception("Store operation failed")
                raise StoreUnavailable(str(e)) from e

    async def get(self, key: Key) -> KvEntry:
        """Read a single key.

        :param key: Key to read
        :return: The entry, with ``value`` None if the key is absent
        :raises StoreUnavailable: If the store is closed or the engine fails
        """
        raw_key = encode_key(key)
        async with self._session() as db:
            result = await db.execute(KVStore.GET_ENTRY, (raw_key,))
            row = await result.fetchone()
            await result.close()

        if row is None:
            return KvEntry(key, None, None)
        return KvEntry(key, row[0], row[1])

    async def set(self, key: Key, value: bytes) -> CommitResult:
        """Write ``value`` under ``key`` unconditionally.

        :raises StoreUnavailable: If the store is closed or the write fails
        """
        return await self.atomic().set(key, value).commit()

    async def delete(self, key: Key) -> None:
        """Remove ``key``. Deleting an absent key is not an error.

        :raises StoreUnavailable: If the store is closed or the write fails
        """
        await self.atomic().delete(key).commit()

    def atomic(self) -> AtomicOperation:
        """Start building an atomic operation."""
        return AtomicOperation(self)

    def list(  # noqa: PLR0913
        self,
        prefix: Key,
        *,
        reverse: bool = False,
        limit: int | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        cursor: str | None = None,
    ) -> ListIterator:
        """Iterate over every entry whose key extends ``prefix``.

        The key equal to ``prefix`` itself is not included. Each call starts a
        new scan.

        :param prefix: Leading key parts, ``()`` for the whole store
        :param reverse: Yield in descending key order
        :param limit: Maximum number of entries to yield
        :param batch_size: Rows fetched per round trip to the engine
        :param cursor: Resume after the position of an earlier iterator
        :return: An async iterator of :class:`KvEntry`
        """
        return ListIterator(
            self,
            prefix,
            reverse=reverse,
            limit=limit,
            batch_size=batch_size,
            cursor=cursor,
        )

    async def _scan(
        self,
        lower: bytes,
        upper: bytes,
        size: int,
        *,
        reverse: bool,
    ) -> list[tuple[bytes, bytes, str]]:
        query = KVStore.SCAN_REVERSE if reverse else KVStore.SCAN_FORWARD
        async with self._session() as db:
            result = await db.execute(query, (lower, upper, size))
            rows = await result.fetchall()
            await result.close()
        return [tuple(row) for row in rows]

    async def _commit(
        self,
        checks: list[tuple[bytes, str | None]],
        mutations: list[tuple[bytes, bytes | None]],
    ) -> CommitResult:
        async with self._session() as db:
            await db.execute("BEGIN IMMEDIATE;")
            try:
                for raw_key, expected in checks:
                    result = await db.execute(KVStore.GET_VERSIONSTAMP, (raw_key,))
                    row = await result.fetchone()
                    await result.close()
                    current = row[0] if row else None
                    if current != expected:
                        await db.rollback()
                        LOGGER.debug("Commit rejected, versionstamp check failed")
                        return CommitResult(ok=False)

                result = await db.execute(KVStore.GET_VERSION)
                row = await result.fetchone()
                await result.close()
                version = (row[0] if row else 0) + 1
                versionstamp = format_versionstamp(version)

                await db.execute(KVStore.SET_VERSION, (version,))
                for raw_key, value in mutations:
                    if value is None:
                        await db.execute(KVStore.DELETE_ENTRY, (raw_key,))
                    else:
                        await db.execute(
                            KVStore.UPSERT_ENTRY,
                            (raw_key, value, versionstamp),
                        )
                await db.commit()
            except (sqlite3.Error, ValueError):
                with suppress(sqlite3.Error, ValueError):
                    await db.rollback()
                raise

        return CommitResult(ok=True, versionstamp=versionstamp)
