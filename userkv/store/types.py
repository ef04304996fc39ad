"""Result types returned by the key-value store."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .keys import Key


@dataclass(frozen=True)
class KvEntry:
    """A single key with its stored value.

    A key that is not present has both ``value`` and ``versionstamp`` set to
    ``None``.

    :param key: The key that was read
    :param value: The stored bytes, if any
    :param versionstamp: Stamp of the commit that last wrote the key, if any
    """

    key: Key
    value: bytes | None
    versionstamp: str | None


@dataclass(frozen=True)
class CommitResult:
    """Outcome of a commit.

    :param ok: False when a versionstamp check failed and nothing was written
    :param versionstamp: Stamp of the new store revision when ``ok`` is True
    """

    ok: bool
    versionstamp: str | None = None
