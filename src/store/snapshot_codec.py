"""Snapshot persistence for the compatibility corpus.

Snapshots are written once per version and scenario title, under
``<root>/<version>/<version>|<title>.json``, and never rewritten.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

from core.constants import (
    SNAPSHOT_DATA_MAP_FIELD,
    SNAPSHOT_FILE_SUFFIX,
    SNAPSHOT_LOCAL_STORE_FIELD,
    SNAPSHOT_NAME_SEPARATOR,
)
from core.errors import CorruptSnapshotError, SnapshotIOError
from core.logging_config import get_logger
from core.types import Snapshot
from store.metadata_store import MetadataStore

_LOGGER = get_logger(__name__)


class SnapshotCodec:
    """Reads and writes snapshot files below one corpus root."""

    def __init__(self, root_dir: Path) -> None:
        """Initialize codec.

        Args:
            root_dir: Corpus root, typically ``./mocks``.
        """
        self._root_dir = root_dir

    @property
    def root_dir(self) -> Path:
        return self._root_dir

    def snapshot_path(self, version: str, title: str) -> Path:
        """Return the canonical path for a version and scenario title."""
        file_name = snapshot_file_name(version, title)
        return self._root_dir / version / file_name

    def save(
        self,
        store: MetadataStore,
        local_store: Mapping[str, Any],
        version: str,
        title: str,
        overwrite: bool = False,
    ) -> Path:
        """Persist store contents and local artifacts as one snapshot.

        Args:
            store: Metadata store to capture.
            local_store: Auxiliary artifacts produced by the scenario.
            version: SDK version tag.
            title: Scenario title.
            overwrite: Replace an existing snapshot instead of failing.

        Returns:
            Written snapshot path.

        Raises:
            SnapshotIOError: If the file exists or cannot be written.
        """
        path = self.snapshot_path(version, title)
        document = {
            SNAPSHOT_DATA_MAP_FIELD: store.data_map,
            SNAPSHOT_LOCAL_STORE_FIELD: dict(local_store),
        }
        try:
            text = json.dumps(document, sort_keys=True)
        except (TypeError, ValueError) as error:
            raise SnapshotIOError(
                f"Snapshot {path.name} has non-JSON local store values: {error}. "
                "Store only JSON-serializable artifacts in the local store."
            ) from error
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("w" if overwrite else "x", encoding="utf-8") as handle:
                handle.write(text)
        except FileExistsError as error:
            raise SnapshotIOError(
                f"Snapshot already exists at {path}. "
                "Snapshots are immutable; bump the version or pass overwrite=True."
            ) from error
        except OSError as error:
            raise SnapshotIOError(
                f"Failed to write snapshot {path}: {error}. "
                "Check disk space and directory permissions."
            ) from error
        _LOGGER.info(
            "snapshot_saved",
            path=str(path),
            version=version,
            title=title,
            record_count=len(document[SNAPSHOT_DATA_MAP_FIELD]),
        )
        return path

    def load(self, path: Path) -> Snapshot:
        """Load a snapshot file.

        Args:
            path: Snapshot file path.

        Returns:
            Parsed snapshot.

        Raises:
            SnapshotIOError: If the file cannot be read.
            CorruptSnapshotError: If the document is invalid.
        """
        try:
            raw_text = path.read_text(encoding="utf-8")
        except OSError as error:
            raise SnapshotIOError(
                f"Failed to read snapshot {path}: {error}. "
                "Confirm the snapshot corpus is checked out."
            ) from error
        return parse_snapshot(raw_text, source=str(path))


def snapshot_file_name(version: str, title: str) -> str:
    """Build ``<version>|<title>.json``."""
    return SNAPSHOT_NAME_SEPARATOR.join([version, title]) + SNAPSHOT_FILE_SUFFIX


def parse_snapshot(raw_text: str, source: str = "<memory>") -> Snapshot:
    """Parse and validate a snapshot document.

    Args:
        raw_text: JSON document text.
        source: Origin used in error messages.

    Returns:
        Parsed snapshot.

    Raises:
        CorruptSnapshotError: If JSON is invalid or fields are missing.
    """
    try:
        payload = json.loads(raw_text)
    except json.JSONDecodeError as error:
        raise CorruptSnapshotError(
            f"Failed to parse snapshot {source}: {error.msg}. "
            "Recapture the snapshot with the matching SDK version."
        ) from error
    if not isinstance(payload, dict):
        raise CorruptSnapshotError(
            f"Failed to parse snapshot {source}: expected JSON object at top level."
        )
    missing = [
        field
        for field in (SNAPSHOT_DATA_MAP_FIELD, SNAPSHOT_LOCAL_STORE_FIELD)
        if not isinstance(payload.get(field), dict)
    ]
    if missing:
        raise CorruptSnapshotError(
            f"Snapshot {source} is missing object fields: {', '.join(missing)}."
        )
    data_map = payload[SNAPSHOT_DATA_MAP_FIELD]
    if not all(isinstance(value, str) for value in data_map.values()):
        raise CorruptSnapshotError(
            f"Snapshot {source} has non-string records in {SNAPSHOT_DATA_MAP_FIELD}."
        )
    return Snapshot(data_map=data_map, local_store=payload[SNAPSHOT_LOCAL_STORE_FIELD])
