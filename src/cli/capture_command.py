"""Capture command wiring for tkey-compat CLI."""

from __future__ import annotations

import argparse
from typing import Any, Mapping

from core.errors import TkeyCompatError
from harness.scenario_runner import ScenarioRunner
from harness.scenario_types import Scenario


def add_capture_command(subparsers: Any) -> None:
    """Register capture subcommand."""
    parser = subparsers.add_parser(
        "capture",
        help="Run scenarios on a fresh store and write snapshots for this SDK version",
    )
    add_scenario_argument(parser)
    parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Replace snapshots that already exist for this version",
    )


def add_scenario_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--scenario",
        action="append",
        dest="scenarios",
        help="Scenario name to include; repeat for several (default: all)",
    )


def select_scenarios(
    registry: Mapping[str, Scenario],
    names: list[str] | None,
) -> dict[str, Scenario]:
    """Filter the registry by requested names.

    Raises:
        KeyError: If a requested scenario is not registered.
    """
    if not names:
        return dict(registry)
    unknown = sorted(set(names) - set(registry))
    if unknown:
        raise KeyError(
            f"Unknown scenario(s): {', '.join(unknown)}. "
            f"Use one of: {', '.join(sorted(registry))}."
        )
    return {name: registry[name] for name in names}


def run_capture_command(
    runner: ScenarioRunner,
    registry: Mapping[str, Scenario],
    args: argparse.Namespace,
) -> int:
    """Capture selected scenarios and print written snapshot paths."""
    try:
        scenarios = select_scenarios(registry, args.scenarios)
    except KeyError as error:
        print(f"capture_error={error.args[0]}")
        return 1
    for scenario in scenarios.values():
        try:
            result = runner.capture(scenario, overwrite=args.overwrite)
        except TkeyCompatError as error:
            print(f"capture_error={scenario.name}: {error}")
            return 1
        print(f"captured={result.scenario_name}\t{result.snapshot_path}\t{result.details}")
    return 0
