"""CLI tests: run vmlease as a subprocess against the in-memory backend."""

import json
from unittest.mock import MagicMock

from vmlease.commands.machine import _interrupt_handler


def test_acquire_list_release_dummy(run_cli, make_config, tmp_path):
    config = make_config()
    state = str(tmp_path / "machines.json")

    rc, stdout, stderr = run_cli("acquire", "--config", config, "--state-file", state)
    assert rc == 0, stdout + stderr
    assert "Added node dummy-1" in stdout
    assert "Connect:  ssh dummy@203.0.113.1" in stdout

    recorded = json.loads((tmp_path / "machines.json").read_text())
    assert [m["machine_id"] for m in recorded] == ["dummy-1"]
    assert recorded[0]["status"] == "Ready"

    rc, stdout, _ = run_cli("list", "--state-file", state)
    assert rc == 0
    assert "dummy-1" in stdout

    rc, stdout, stderr = run_cli("release", "--config", config, "--state-file", state)
    assert rc == 0, stdout + stderr
    assert "Machine dummy-1 destroyed." in stdout
    assert not (tmp_path / "machines.json").exists()


def test_acquire_reuse_recorded_machine(run_cli, make_config, tmp_path):
    config = make_config()
    state = str(tmp_path / "machines.json")
    run_cli("acquire", "--config", config, "--state-file", state)

    rc, stdout, _ = run_cli("acquire", "--config", config, "--state-file", state, "--reuse", "dummy-1")

    assert rc == 0
    assert "Reusing machine dummy-1" in stdout
    assert len(json.loads((tmp_path / "machines.json").read_text())) == 1


def test_acquire_dry_run_writes_nothing(run_cli, make_config, tmp_path):
    config = make_config(provider="cloudrift", instance_type="rtx49-7c-kn.1")
    state = tmp_path / "machines.json"

    rc, stdout, stderr = run_cli("acquire", "--config", config, "--state-file", str(state), "--dry-run")

    assert rc == 0, stdout + stderr
    assert "[dry-run]" in stdout
    assert not state.exists()


def test_unsupported_provider_exits_nonzero(run_cli, make_config, tmp_path):
    config = make_config(provider="aws-ec2")

    rc, stdout, _ = run_cli("acquire", "--config", config, "--state-file", str(tmp_path / "m.json"))

    assert rc == 1
    assert "not supported" in stdout


def test_missing_config_exits_nonzero(run_cli, tmp_path):
    rc, stdout, _ = run_cli("release", "--config", str(tmp_path / "missing.yaml"), "--state-file", str(tmp_path / "m.json"))

    assert rc == 1
    assert "not found" in stdout


def test_list_empty(run_cli, tmp_path):
    rc, stdout, _ = run_cli("list", "--state-file", str(tmp_path / "m.json"))
    assert rc == 0
    assert "No machines recorded." in stdout


def test_interrupt_during_wait_cancels_manager():
    manager = MagicMock(waiting=True)
    task = MagicMock()

    _interrupt_handler(manager, task)()

    manager.cancel.assert_called_once_with()
    task.cancel.assert_not_called()


def test_interrupt_before_wait_aborts_creation():
    manager = MagicMock(waiting=False)
    task = MagicMock()

    _interrupt_handler(manager, task)()

    task.cancel.assert_called_once_with()
    manager.cancel.assert_not_called()
