"""Public SDK surface for tkey-compat.

This module provides a stable import path for harness users.
It re-exports the metadata store, snapshot codec, and scenario harness.
"""

from __future__ import annotations

from core.config import CompatConfig, read_versions_file
from core.types import KeyNotFound, LockGrant, ReleaseStatus, Snapshot, WriteAck
from harness.compatibility_matrix import CompatibilityMatrix, render_matrix_report
from harness.scenario_runner import ScenarioRunner, build_metadata_store
from harness.scenario_types import MatrixReport, Scenario, ScenarioContext, ScenarioResult
from harness.scenarios import build_scenario_registry
from sdk.service_provider import ServiceProvider
from sdk.threshold_key import ThresholdKey
from store.key_codec import identifier_for
from store.metadata_store import MetadataStore
from store.snapshot_codec import SnapshotCodec

__all__ = [
    "CompatConfig",
    "CompatibilityMatrix",
    "KeyNotFound",
    "LockGrant",
    "MatrixReport",
    "MetadataStore",
    "ReleaseStatus",
    "Scenario",
    "ScenarioContext",
    "ScenarioResult",
    "ScenarioRunner",
    "ServiceProvider",
    "Snapshot",
    "SnapshotCodec",
    "ThresholdKey",
    "WriteAck",
    "build_metadata_store",
    "build_scenario_registry",
    "identifier_for",
    "read_versions_file",
    "render_matrix_report",
]
