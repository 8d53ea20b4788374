"""Typed results returned by the threshold-key SDK."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from sdk.share_store import ShareStore


@dataclass(frozen=True)
class KeyDetails:
    """Result of initializing a brand-new key."""

    priv_key: int
    device_share: ShareStore
    share_indexes: tuple[int, ...]


@dataclass(frozen=True)
class ReconstructedKey:
    """Secret recovered from a threshold of shares."""

    priv_key: int
    all_keys: tuple[int, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class GenerateShareResult:
    """Share stores after adding a share, keyed by hex share index."""

    new_share_stores: Mapping[str, ShareStore]
    new_share_index: int


@dataclass(frozen=True)
class DeleteShareResult:
    """Refreshed share stores after deleting a share, keyed by hex index."""

    new_share_stores: Mapping[str, ShareStore]
