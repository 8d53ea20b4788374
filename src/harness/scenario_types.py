"""Typed models for compatibility scenarios."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Literal, Mapping

from sdk.service_provider import ServiceProvider
from sdk.threshold_key import ThresholdKey, ThresholdKeyModule
from store.metadata_store import MetadataStore

ScenarioStatus = Literal["passed", "failed"]


@dataclass
class ScenarioContext:
    """Explicit per-invocation state handed to scenario routines."""

    service_provider: ServiceProvider
    store: MetadataStore
    sdk_version: str
    local_store: dict[str, Any] = field(default_factory=dict)
    snapshot_version: str | None = None

    def new_key(self, modules: Mapping[str, ThresholdKeyModule] | None = None) -> ThresholdKey:
        """Create an SDK handle bound to this context's store."""
        return ThresholdKey(self.service_provider, self.store, modules)


ScenarioRoutine = Callable[[ScenarioContext], str]


@dataclass(frozen=True)
class ScenarioCheck:
    """One replay assertion of a scenario."""

    check_id: str
    title: str
    run: ScenarioRoutine


@dataclass(frozen=True)
class Scenario:
    """Named capture routine plus its replay checks."""

    name: str
    description: str
    capture: ScenarioRoutine
    checks: tuple[ScenarioCheck, ...]


@dataclass(frozen=True)
class CaptureResult:
    """Snapshot written by a capture run."""

    scenario_name: str
    snapshot_path: Path
    details: str


@dataclass(frozen=True)
class ScenarioResult:
    """One replay check result row."""

    scenario_name: str
    check_id: str
    title: str
    status: ScenarioStatus
    details: str
    duration_seconds: float
    snapshot_path: str | None = None


@dataclass(frozen=True)
class MatrixEntry:
    """Scheduled pairing of a snapshot with the scenario that replays it."""

    version: str
    scenario_name: str
    snapshot_path: Path


@dataclass(frozen=True)
class MatrixReport:
    """Results of replaying every scheduled matrix entry."""

    entries: tuple[MatrixEntry, ...]
    results: tuple[ScenarioResult, ...]

    @property
    def failed_count(self) -> int:
        """Count failed checks in this report."""
        return sum(1 for result in self.results if result.status == "failed")

    @property
    def passed_count(self) -> int:
        """Count passed checks in this report."""
        return sum(1 for result in self.results if result.status == "passed")
