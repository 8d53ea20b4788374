"""tkey-compat exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each subsystem raises a specific error type for debuggability.
"""

from __future__ import annotations


class TkeyCompatError(Exception):
    """Base exception for all tkey-compat failures."""


class CompatConfigError(TkeyCompatError):
    """Raised for invalid runtime or store configuration."""


class InvalidKeyMaterialError(TkeyCompatError):
    """Raised when no usable private scalar or public identity is supplied."""


class SnapshotError(TkeyCompatError):
    """Base for snapshot fixture faults; fatal to a harness run."""


class CorruptSnapshotError(SnapshotError):
    """Raised when a snapshot document cannot be parsed or lacks fields."""


class SnapshotIOError(SnapshotError):
    """Raised when snapshot files or directories cannot be read or written."""


class ThresholdKeyError(TkeyCompatError):
    """Raised by the threshold-key SDK for share and metadata failures."""


class ScenarioError(TkeyCompatError):
    """Raised when a compatibility scenario invariant does not hold."""
