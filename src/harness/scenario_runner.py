"""Scenario capture and replay orchestration.

Capture runs a scenario against a fresh store and snapshots the result.
Replay loads a snapshot into a fresh store per check and runs the
scenario's checks against the current SDK.
"""

from __future__ import annotations

import copy
import hashlib
import time
from pathlib import Path

from core.config import CompatConfig
from core.constants import DEFAULT_POSTBOX_KEY, STORE_FINGERPRINT_LENGTH
from core.errors import CompatConfigError, SnapshotError
from core.logging_config import get_logger
from core.types import Snapshot
from harness.scenario_types import (
    CaptureResult,
    Scenario,
    ScenarioCheck,
    ScenarioContext,
    ScenarioResult,
    ScenarioStatus,
)
from sdk.service_provider import ServiceProvider
from store.key_codec import identifier_for
from store.metadata_store import MetadataStore
from store.snapshot_codec import SnapshotCodec

_LOGGER = get_logger(__name__)


def store_fingerprint(service_provider: ServiceProvider) -> str:
    """Derive the store fingerprint tag from a service provider identity."""
    identifier = identifier_for(public_identity=service_provider.retrieve_pub_key_point())
    return hashlib.sha256(identifier.encode("utf-8")).hexdigest()[:STORE_FINGERPRINT_LENGTH]


def build_metadata_store(
    config: CompatConfig,
    service_provider: ServiceProvider,
    data_map: dict[str, str] | None = None,
) -> MetadataStore:
    """Build the metadata store selected by configuration.

    Args:
        config: Runtime configuration.
        service_provider: Default identity for the store.
        data_map: Optional initial records.

    Returns:
        In-memory metadata store.

    Raises:
        CompatConfigError: If a network-backed store is requested.
    """
    if not config.mocked:
        raise CompatConfigError(
            f"Network-backed metadata store at {config.metadata_url} is not bundled. "
            "Set TKEY_COMPAT_MOCKED=true to use the in-memory store."
        )
    return MetadataStore(
        tkey_hash=store_fingerprint(service_provider),
        tkey_version=config.sdk_version,
        service_provider=service_provider,
        data_map=data_map,
    )


class ScenarioRunner:
    """Runs scenarios in capture or replay mode."""

    def __init__(
        self,
        config: CompatConfig,
        codec: SnapshotCodec | None = None,
        service_provider: ServiceProvider | None = None,
    ) -> None:
        """Initialize runner.

        Args:
            config: Runtime configuration.
            codec: Snapshot codec; defaults to one rooted at ``config.mocks_root``.
            service_provider: Identity used by every scenario handle.
        """
        self._config = config
        self._codec = codec or SnapshotCodec(config.mocks_root)
        self._service_provider = service_provider or ServiceProvider(DEFAULT_POSTBOX_KEY)

    @property
    def codec(self) -> SnapshotCodec:
        return self._codec

    def new_context(
        self,
        snapshot: Snapshot | None = None,
        version: str | None = None,
    ) -> ScenarioContext:
        """Build an isolated context, seeded from a snapshot when given."""
        data_map = dict(snapshot.data_map) if snapshot else None
        local_store = copy.deepcopy(dict(snapshot.local_store)) if snapshot else {}
        return ScenarioContext(
            service_provider=self._service_provider,
            store=build_metadata_store(self._config, self._service_provider, data_map),
            sdk_version=self._config.sdk_version,
            local_store=local_store,
            snapshot_version=version,
        )

    def capture(self, scenario: Scenario, overwrite: bool = False) -> CaptureResult:
        """Run a scenario on a fresh store and save its snapshot.

        Args:
            scenario: Scenario to capture.
            overwrite: Replace an existing snapshot for this version.

        Returns:
            Capture result with the written snapshot path.

        Raises:
            TkeyCompatError: If the capture routine or snapshot write fails.
        """
        context = self.new_context()
        details = str(scenario.capture(context))
        snapshot_path = self._codec.save(
            context.store,
            context.local_store,
            self._config.sdk_version,
            scenario.name,
            overwrite=overwrite,
        )
        _LOGGER.info(
            "scenario_captured",
            scenario=scenario.name,
            version=self._config.sdk_version,
            path=str(snapshot_path),
        )
        return CaptureResult(
            scenario_name=scenario.name,
            snapshot_path=snapshot_path,
            details=details,
        )

    def replay(
        self,
        scenario: Scenario,
        snapshot_path: Path,
        fail_fast: bool = False,
    ) -> tuple[ScenarioResult, ...]:
        """Replay a scenario's checks against one snapshot.

        Args:
            scenario: Scenario whose checks run.
            snapshot_path: Snapshot file to load.
            fail_fast: Stop after the first failed check.

        Returns:
            One result row per executed check.

        Raises:
            SnapshotError: If the snapshot cannot be read or parsed.
        """
        snapshot = self._codec.load(snapshot_path)
        version = snapshot_path.parent.name
        results: list[ScenarioResult] = []
        for check in scenario.checks:
            context = self.new_context(snapshot, version)
            started_at = time.monotonic()
            status, details = _run_single_check(check, context)
            results.append(
                ScenarioResult(
                    scenario_name=scenario.name,
                    check_id=check.check_id,
                    title=check.title,
                    status=status,
                    details=details,
                    duration_seconds=round(time.monotonic() - started_at, 3),
                    snapshot_path=str(snapshot_path),
                )
            )
            if status == "failed":
                _LOGGER.warning(
                    "scenario_check_failed",
                    scenario=scenario.name,
                    check_id=check.check_id,
                    version=version,
                    details=details,
                )
                if fail_fast:
                    break
        return tuple(results)


def _run_single_check(
    check: ScenarioCheck,
    context: ScenarioContext,
) -> tuple[ScenarioStatus, str]:
    try:
        details = str(check.run(context))
        return "passed", details
    except SnapshotError:
        raise
    except Exception as error:
        return "failed", f"{type(error).__name__}: {error}"
