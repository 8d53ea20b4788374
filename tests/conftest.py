"""Pytest configuration for repository test runs."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

_COMPAT_ENV_VARS = (
    "TKEY_COMPAT_MOCKED",
    "TKEY_COMPAT_METADATA_URL",
    "TKEY_COMPAT_BUILD_MOCKS",
    "TKEY_COMPAT_MOCKS_ROOT",
    "TKEY_COMPAT_VERSIONS_FILE",
    "TKEY_COMPAT_SDK_VERSION",
)


def pytest_sessionstart() -> None:
    """Add src directory to sys.path for test imports."""
    project_root = Path(__file__).resolve().parent.parent
    src_path = project_root / "src"
    if str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))


@pytest.fixture(autouse=True)
def _isolate_compat_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host TKEY_COMPAT_* settings out of every test."""
    for name in _COMPAT_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
