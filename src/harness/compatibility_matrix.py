"""Snapshot discovery and cross-version replay scheduling.

Snapshot files are paired with scenarios by case-sensitive substring
match of the scenario name against the file name. Files matching no
scenario, or more than one, are skipped and logged.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Mapping, Sequence

from core.constants import SNAPSHOT_FILE_SUFFIX
from core.errors import SnapshotIOError
from core.logging_config import get_logger
from harness.scenario_runner import ScenarioRunner
from harness.scenario_types import MatrixEntry, MatrixReport, Scenario, ScenarioResult

_LOGGER = get_logger(__name__)


def match_scenarios(file_name: str, scenario_names: Iterable[str]) -> list[str]:
    """Return scenario names that occur in a snapshot file name."""
    return sorted(name for name in scenario_names if name in file_name)


class CompatibilityMatrix:
    """Pairs historical snapshots with registered scenarios."""

    def __init__(self, scenarios: Mapping[str, Scenario], mocks_root: Path) -> None:
        self._scenarios = scenarios
        self._mocks_root = mocks_root

    def discover(self, versions: Sequence[str]) -> tuple[MatrixEntry, ...]:
        """List replayable snapshots for the given versions.

        Args:
            versions: Version tags whose directories are scanned.

        Returns:
            Entries sorted by version, then file name.

        Raises:
            SnapshotIOError: If a version directory cannot be listed.
        """
        entries: list[MatrixEntry] = []
        for version in sorted(set(versions)):
            for snapshot_path in self._list_snapshots(version):
                matches = match_scenarios(snapshot_path.name, self._scenarios)
                if len(matches) != 1:
                    _LOGGER.warning(
                        "matrix_entry_skipped",
                        version=version,
                        file_name=snapshot_path.name,
                        match_count=len(matches),
                        matches=matches,
                    )
                    continue
                entries.append(
                    MatrixEntry(
                        version=version,
                        scenario_name=matches[0],
                        snapshot_path=snapshot_path,
                    )
                )
        _LOGGER.info("matrix_discovered", versions=len(set(versions)), entries=len(entries))
        return tuple(entries)

    def run(
        self,
        runner: ScenarioRunner,
        entries: Sequence[MatrixEntry],
        fail_fast: bool = False,
    ) -> MatrixReport:
        """Replay every entry and aggregate the results.

        Raises:
            SnapshotError: If any scheduled snapshot is unreadable or corrupt.
        """
        results: list[ScenarioResult] = []
        for entry in entries:
            scenario = self._scenarios[entry.scenario_name]
            rows = runner.replay(scenario, entry.snapshot_path, fail_fast)
            results.extend(rows)
            if fail_fast and any(row.status == "failed" for row in rows):
                break
        return MatrixReport(entries=tuple(entries), results=tuple(results))

    def _list_snapshots(self, version: str) -> list[Path]:
        version_dir = self._mocks_root / version
        try:
            children = list(version_dir.iterdir())
        except OSError as error:
            raise SnapshotIOError(
                f"Failed to list snapshots for version {version} in {version_dir}: {error}. "
                "Remove the version from the versions file or restore its snapshots."
            ) from error
        snapshots = [
            path for path in children
            if path.is_file() and path.name.endswith(SNAPSHOT_FILE_SUFFIX)
        ]
        return sorted(snapshots, key=lambda path: path.name)


def render_matrix_report(report: MatrixReport) -> str:
    """Render a matrix report into stable multi-line text for CLI output."""
    lines = [f"entries={len(report.entries)}"]
    for row in report.results:
        version = Path(row.snapshot_path).parent.name if row.snapshot_path else "-"
        lines.append(
            f"[{row.status.upper()}] {version} {row.scenario_name} {row.check_id} {row.title} "
            f"({row.duration_seconds:.3f}s) :: {row.details}"
        )
    lines.append(f"passed={report.passed_count}")
    lines.append(f"failed={report.failed_count}")
    return "\n".join(lines)
