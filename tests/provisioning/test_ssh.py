"""Tests for the SSH reachability probe."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from vmlease.errors import ReachabilityError
from vmlease.lifecycle.types import MachineHandle
from vmlease.provisioning.ssh import SshProbe, ssh_base_args


def _handle(public_address="211.21.50.85", ssh_port=57011):
    return MachineHandle(
        machine_id="inst-1",
        user="riftuser",
        public_address=public_address,
        private_address=None,
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        provider="cloudrift",
        ssh_port=ssh_port,
    )


def _proc(returncode, stderr=b""):
    proc = MagicMock()
    proc.returncode = returncode
    proc.communicate = AsyncMock(return_value=(b"", stderr))
    return proc


def test_ssh_base_args_custom_port_and_key():
    args = ssh_base_args("riftuser@1.2.3.4", "/keys/id", 2222, connect_timeout=5)

    assert args[0] == "ssh"
    assert "ConnectTimeout=5" in args
    assert args[args.index("-i") + 1] == "/keys/id"
    assert args[args.index("-p") + 1] == "2222"
    assert args[-1] == "riftuser@1.2.3.4"


def test_ssh_base_args_default_port_omitted():
    args = ssh_base_args("1.2.3.4", None, 22)
    assert "-p" not in args
    assert "-i" not in args


@patch("vmlease.provisioning.ssh.asyncio.create_subprocess_exec", new_callable=AsyncMock)
async def test_check_success(mock_exec):
    mock_exec.return_value = _proc(0)

    assert await SshProbe().check(_handle()) is True

    args = mock_exec.call_args.args
    assert args[-2:] == ("riftuser@211.21.50.85", "true")
    assert "57011" in args


@patch("vmlease.provisioning.ssh.asyncio.create_subprocess_exec", new_callable=AsyncMock)
async def test_check_connection_refused_returns_false(mock_exec):
    mock_exec.return_value = _proc(255, b"Connection refused")

    assert await SshProbe().check(_handle()) is False


@patch("vmlease.provisioning.ssh.asyncio.create_subprocess_exec", new_callable=AsyncMock)
async def test_check_undecodable_stderr_returns_false(mock_exec):
    mock_exec.return_value = _proc(255, b"\xff\xfe banner \xc3")

    assert await SshProbe().check(_handle()) is False


@patch("vmlease.provisioning.ssh.asyncio.create_subprocess_exec", new_callable=AsyncMock)
async def test_check_missing_ssh_binary_raises(mock_exec):
    mock_exec.side_effect = FileNotFoundError("ssh")

    with pytest.raises(ReachabilityError, match="not found"):
        await SshProbe().check(_handle())


async def test_check_missing_key_raises(tmp_path):
    probe = SshProbe(ssh_key=str(tmp_path / "missing"))
    with pytest.raises(ReachabilityError, match="SSH key"):
        await probe.check(_handle())


async def test_check_without_address_raises():
    with pytest.raises(ReachabilityError, match="no address"):
        await SshProbe().check(_handle(public_address=None))
