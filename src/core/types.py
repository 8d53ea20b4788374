"""Shared typed models.

This module defines the value types exchanged between the store,
the threshold-key SDK, and the compatibility harness.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Mapping, Protocol, Union

from core.constants import KEY_NOT_FOUND, WRITE_SUCCESS_MESSAGE

JsonPayload = Union[Mapping[str, Any], list, str, int, float, bool, None]


class PublicIdentity(Protocol):
    """Anything exposing a public point X-coordinate."""

    @property
    def x(self) -> int: ...


class ServiceProviderLike(Protocol):
    """Collaborator that owns the default public identity of a store."""

    def retrieve_pub_key_point(self) -> PublicIdentity: ...

    def to_json(self) -> dict[str, Any]: ...


@dataclass(frozen=True)
class PublicPoint:
    """Affine point on the key curve.

    Attributes:
        x: X-coordinate.
        y: Y-coordinate.
    """

    x: int
    y: int


@dataclass(frozen=True)
class KeyNotFound:
    """Sentinel returned when no metadata exists for an identifier."""

    message: str = KEY_NOT_FOUND


@dataclass(frozen=True)
class WriteAck:
    """Acknowledgement for a metadata write."""

    message: str = WRITE_SUCCESS_MESSAGE


@dataclass(frozen=True)
class LockGrant:
    """Outcome of a write-lock acquisition.

    Attributes:
        granted: Whether the caller now holds the lock.
        token: Opaque release token, present only when granted.
    """

    granted: bool
    token: str | None = None


class ReleaseStatus(IntEnum):
    """Outcome of a write-lock release."""

    NO_LOCK_HELD = 0
    RELEASED = 1
    TOKEN_MISMATCH = 2


def is_key_not_found(value: object) -> bool:
    """Return whether a metadata read produced the not-found sentinel."""
    return isinstance(value, KeyNotFound)


@dataclass(frozen=True)
class Snapshot:
    """Persisted regression fixture.

    Attributes:
        data_map: Identifier to canonical metadata record.
        local_store: Free-form auxiliary artifacts (device shares, secrets).
    """

    data_map: Mapping[str, str]
    local_store: Mapping[str, Any]
