"""Replay command wiring for tkey-compat CLI."""

from __future__ import annotations

import argparse
from typing import Any, Mapping

from cli.capture_command import add_scenario_argument, select_scenarios
from core.config import CompatConfig, read_versions_file
from core.constants import VERSIONS_FILE_SEPARATOR
from core.errors import SnapshotError
from harness.compatibility_matrix import CompatibilityMatrix, render_matrix_report
from harness.scenario_runner import ScenarioRunner
from harness.scenario_types import Scenario


def add_replay_command(subparsers: Any) -> None:
    """Register replay subcommand."""
    parser = subparsers.add_parser(
        "replay",
        help="Replay snapshots from earlier SDK versions against this build",
    )
    add_scenario_argument(parser)
    parser.add_argument(
        "--versions",
        help="Comma-separated versions to replay; overrides the versions file",
    )
    parser.add_argument(
        "--fail-fast",
        action="store_true",
        help="Stop after the first failed check",
    )


def run_replay_command(
    runner: ScenarioRunner,
    registry: Mapping[str, Scenario],
    config: CompatConfig,
    args: argparse.Namespace,
) -> int:
    """Discover snapshots, replay them, and print the matrix report."""
    try:
        scenarios = select_scenarios(registry, args.scenarios)
    except KeyError as error:
        print(f"replay_error={error.args[0]}")
        return 1
    matrix = CompatibilityMatrix(scenarios, config.mocks_root)
    try:
        versions = _resolve_versions(config, args.versions)
        entries = matrix.discover(versions)
        report = matrix.run(runner, entries, fail_fast=args.fail_fast)
    except SnapshotError as error:
        print(f"replay_error={error}")
        return 1
    print(render_matrix_report(report))
    return 0 if report.failed_count == 0 else 1


def _resolve_versions(config: CompatConfig, raw_versions: str | None) -> tuple[str, ...]:
    if raw_versions is None:
        return read_versions_file(config.versions_file)
    versions = (item.strip() for item in raw_versions.split(VERSIONS_FILE_SEPARATOR))
    return tuple(version for version in versions if version)
