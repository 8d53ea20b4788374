"""Unit tests for CLI command handling."""

from __future__ import annotations

from cli.main import main


def _capture_args(mocks_root, *extra: str) -> list[str]:
    return [
        "--mocks-root",
        str(mocks_root),
        "--sdk-version",
        "0.9.0",
        "capture",
        "--scenario",
        "share-serialization-mnemonic",
        *extra,
    ]


def test_cli_scenarios_lists_registry(capsys) -> None:
    """Scenarios command should print each registered scenario."""
    exit_code = main(["scenarios"])
    output = capsys.readouterr().out

    assert exit_code == 0 and "tkey-core" in output and "security-questions" in output


def test_cli_capture_writes_snapshot(tmp_path, capsys) -> None:
    """Capture should write the snapshot for the selected scenario."""
    exit_code = main(_capture_args(tmp_path))
    _ = capsys.readouterr()

    snapshot_path = tmp_path / "0.9.0" / "0.9.0|share-serialization-mnemonic.json"
    assert exit_code == 0 and snapshot_path.exists()


def test_cli_capture_refuses_existing_snapshot(tmp_path, capsys) -> None:
    """Second capture of the same version should fail without overwrite."""
    main(_capture_args(tmp_path))
    _ = capsys.readouterr()

    exit_code = main(_capture_args(tmp_path))
    output = capsys.readouterr().out

    assert exit_code == 1 and "capture_error=" in output


def test_cli_capture_overwrite_replaces_snapshot(tmp_path, capsys) -> None:
    """Overwrite flag should allow recapturing a version."""
    main(_capture_args(tmp_path))
    _ = capsys.readouterr()

    exit_code = main(_capture_args(tmp_path, "--overwrite"))

    assert exit_code == 0


def test_cli_capture_rejects_unknown_scenario(tmp_path, capsys) -> None:
    """Unknown scenario names should be reported without traceback."""
    exit_code = main(["--mocks-root", str(tmp_path), "capture", "--scenario", "seedphrase"])
    output = capsys.readouterr().out

    assert exit_code == 1 and "Unknown scenario" in output


def test_cli_replay_passes_for_captured_snapshot(tmp_path, capsys) -> None:
    """Replay of a freshly captured version should pass every check."""
    main(_capture_args(tmp_path))
    _ = capsys.readouterr()

    exit_code = main(["--mocks-root", str(tmp_path), "replay", "--versions", "0.9.0"])
    output = capsys.readouterr().out

    assert exit_code == 0 and "failed=0" in output


def test_cli_replay_reads_versions_file(tmp_path, monkeypatch, capsys) -> None:
    """Replay should default to the configured versions file."""
    versions_file = tmp_path / "versionsToTest.txt"
    versions_file.write_text("0.9.0", encoding="utf-8")
    monkeypatch.setenv("TKEY_COMPAT_VERSIONS_FILE", str(versions_file))
    main(_capture_args(tmp_path))
    _ = capsys.readouterr()

    exit_code = main(["--mocks-root", str(tmp_path), "replay"])
    output = capsys.readouterr().out

    assert exit_code == 0 and "entries=1" in output


def test_cli_replay_reports_missing_version_directory(tmp_path, capsys) -> None:
    """Missing version directories should print replay_error and fail."""
    exit_code = main(["--mocks-root", str(tmp_path), "replay", "--versions", "0.1.0"])
    output = capsys.readouterr().out

    assert exit_code == 1 and "replay_error=" in output


def test_cli_run_captures_when_build_mocks_set(tmp_path, monkeypatch, capsys) -> None:
    """Run command should capture every scenario in capture mode."""
    monkeypatch.setenv("TKEY_COMPAT_BUILD_MOCKS", "true")

    exit_code = main(["--mocks-root", str(tmp_path), "--sdk-version", "0.9.0", "run"])
    output = capsys.readouterr().out

    assert exit_code == 0 and output.count("captured=") == 3


def test_cli_reports_invalid_config(monkeypatch, capsys) -> None:
    """Invalid environment should print config_error without traceback."""
    monkeypatch.setenv("TKEY_COMPAT_MOCKED", "maybe")

    exit_code = main(["scenarios"])
    output = capsys.readouterr().out

    assert exit_code == 1 and "config_error=" in output


def test_cli_capture_fails_for_network_backend(tmp_path, monkeypatch, capsys) -> None:
    """Network-backed store is not bundled, so capture should fail cleanly."""
    monkeypatch.setenv("TKEY_COMPAT_MOCKED", "false")

    exit_code = main(_capture_args(tmp_path))
    output = capsys.readouterr().out

    assert exit_code == 1 and "capture_error=" in output
