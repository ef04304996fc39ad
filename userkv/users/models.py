"""Models for stored user records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class UserData(BaseModel):
    """Data structure representing a registered user.

    The username is not part of the record, it is carried by the storage key.

    :param name: Full name of the user, never empty
    :param country: Country the user is from
    :param registered: When the user registered, naive values are taken as UTC
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1)
    country: str
    registered: datetime

    @field_validator("registered")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        """Attach UTC to naive timestamps so every record names an instant."""
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    def to_bytes(self) -> bytes:
        """Serialize the record for storage."""
        return self.model_dump_json().encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> UserData:
        """Deserialize a record written by :meth:`to_bytes`.

        :raises pydantic.ValidationError: If the bytes are not a valid record
        """
        return cls.model_validate_json(data)


@dataclass(frozen=True)
class UserEntry:
    """A user record together with the versionstamp it was read at.

    :param username: The username the entry was read for
    :param user: The record, or None if the user does not exist
    :param versionstamp: Stamp of the last write, or None if the user does not exist
    """

    username: str
    user: UserData | None
    versionstamp: str | None
