"""tkey-compat CLI entry points.
This module exposes capture and replay of compatibility snapshots.
It maps argparse commands onto the scenario harness.
"""

from __future__ import annotations

import argparse
from dataclasses import replace
from pathlib import Path
from typing import Mapping, Sequence

from cli.capture_command import add_capture_command, run_capture_command
from cli.replay_command import add_replay_command, run_replay_command
from core.config import CompatConfig
from core.errors import CompatConfigError
from harness.scenario_runner import ScenarioRunner
from harness.scenario_types import Scenario
from harness.scenarios import build_scenario_registry


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(
        prog="tkey-compat",
        description="Threshold-key metadata compatibility harness",
    )
    parser.add_argument("--mocks-root", help="Override TKEY_COMPAT_MOCKS_ROOT for this command")
    parser.add_argument(
        "--sdk-version",
        help="Override TKEY_COMPAT_SDK_VERSION for this command",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("scenarios", help="List registered scenarios")
    add_capture_command(subparsers)
    add_replay_command(subparsers)
    run_parser = subparsers.add_parser(
        "run",
        help="Capture when TKEY_COMPAT_BUILD_MOCKS is set, replay otherwise",
    )
    run_parser.set_defaults(scenarios=None, overwrite=False, versions=None, fail_fast=False)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the tkey-compat CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = _build_config(args.mocks_root, args.sdk_version)
    except CompatConfigError as error:
        print(f"config_error={error}")
        return 1
    registry = build_scenario_registry()
    if args.command == "scenarios":
        return _run_scenarios_command(registry)
    try:
        runner = ScenarioRunner(config)
        command = args.command
        if command == "run":
            command = "capture" if config.build_mocks else "replay"
        if command == "capture":
            return run_capture_command(runner, registry, args)
        if command == "replay":
            return run_replay_command(runner, registry, config, args)
    except CompatConfigError as error:
        print(f"config_error={error}")
        return 1
    parser.error(f"Unsupported command: {args.command}")
    return 2


def _build_config(mocks_root: str | None, sdk_version: str | None) -> CompatConfig:
    """Build runtime config with optional CLI overrides.

    Args:
        mocks_root: Optional corpus root override.
        sdk_version: Optional version tag override.

    Returns:
        Validated config.
    """
    config = CompatConfig.from_env()
    if mocks_root:
        config = replace(config, mocks_root=Path(mocks_root).expanduser().resolve())
    if sdk_version:
        config = replace(config, sdk_version=sdk_version)
    return config


def _run_scenarios_command(registry: Mapping[str, Scenario]) -> int:
    for scenario in registry.values():
        print(f"{scenario.name}\t{len(scenario.checks)}\t{scenario.description}")
    return 0
