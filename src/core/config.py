"""Runtime configuration model for tkey-compat.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from core.constants import (
    DEFAULT_METADATA_URL,
    DEFAULT_MOCKS_ROOT,
    DEFAULT_VERSIONS_FILE,
    FALSY_ENV_VALUES,
    SDK_VERSION,
    TRUTHY_ENV_VALUES,
    VERSIONS_FILE_SEPARATOR,
)
from core.errors import CompatConfigError, SnapshotIOError


@dataclass(frozen=True)
class CompatConfig:
    """Validated runtime configuration.

    Attributes:
        mocked: Use the in-memory metadata store instead of a network backend.
        metadata_url: Host URL of the network-backed metadata store.
        build_mocks: Run scenarios in capture mode instead of replay mode.
        mocks_root: Root directory of the snapshot corpus.
        versions_file: Text file listing versions to replay against.
        sdk_version: Version tag written into captured snapshot names.
    """

    mocked: bool
    metadata_url: str
    build_mocks: bool
    mocks_root: Path
    versions_file: Path
    sdk_version: str

    @classmethod
    def from_env(cls) -> "CompatConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            CompatConfigError: If environment values are invalid.
        """
        sdk_version = os.getenv("TKEY_COMPAT_SDK_VERSION", SDK_VERSION).strip()
        if not sdk_version:
            raise CompatConfigError(
                "TKEY_COMPAT_SDK_VERSION is empty. "
                "Set it to the SDK version used to tag captured snapshots."
            )
        return cls(
            mocked=_parse_bool("TKEY_COMPAT_MOCKED", os.getenv("TKEY_COMPAT_MOCKED", "true")),
            metadata_url=os.getenv("TKEY_COMPAT_METADATA_URL", DEFAULT_METADATA_URL),
            build_mocks=_parse_bool(
                "TKEY_COMPAT_BUILD_MOCKS", os.getenv("TKEY_COMPAT_BUILD_MOCKS", "")
            ),
            mocks_root=Path(os.getenv("TKEY_COMPAT_MOCKS_ROOT", str(DEFAULT_MOCKS_ROOT)))
            .expanduser()
            .resolve(),
            versions_file=Path(
                os.getenv("TKEY_COMPAT_VERSIONS_FILE", str(DEFAULT_VERSIONS_FILE))
            )
            .expanduser()
            .resolve(),
            sdk_version=sdk_version,
        )


def read_versions_file(versions_file: Path) -> tuple[str, ...]:
    """Read the comma-separated list of versions to replay.

    Args:
        versions_file: Path of the versions list.

    Returns:
        Version tags in file order, without blanks.

    Raises:
        SnapshotIOError: If the file cannot be read.
    """
    try:
        raw_text = versions_file.read_text(encoding="utf-8")
    except OSError as error:
        raise SnapshotIOError(
            f"Failed to read versions file {versions_file}: {error}. "
            "Create it with a comma-separated list of captured versions."
        ) from error
    versions = (item.strip() for item in raw_text.split(VERSIONS_FILE_SEPARATOR))
    return tuple(version for version in versions if version)


def _parse_bool(name: str, raw_value: str) -> bool:
    """Parse a boolean environment value.

    Args:
        name: Environment variable name, used in errors.
        raw_value: Raw string from environment.

    Returns:
        Parsed boolean.

    Raises:
        CompatConfigError: If value is not a recognised boolean.
    """
    normalized = raw_value.strip().lower()
    if normalized in TRUTHY_ENV_VALUES:
        return True
    if normalized in FALSY_ENV_VALUES:
        return False
    raise CompatConfigError(
        f"Invalid {name} value: expected true/false, got '{raw_value}'. "
        f"Set {name} to one of: true, false, 1, 0, yes, no."
    )
