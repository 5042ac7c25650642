"""Tests for backend selection and manager wiring."""

import pytest

from vmlease.config import ManagerConfig
from vmlease.errors import ConfigError, UnsupportedProviderError
from vmlease.lifecycle.types import MachineStatus
from vmlease.provisioning.cloud import BACKENDS, build_collaborators, build_manager
from vmlease.provisioning.cloudrift import CloudRiftBackend
from vmlease.provisioning.dummy import DummyBackend, StaticProbe
from vmlease.provisioning.ssh import SshProbe


def test_supported_providers():
    assert set(BACKENDS) == {"cloudrift", "dummy"}


def test_unknown_provider_rejected_before_backend_built():
    with pytest.raises(UnsupportedProviderError, match="aws-ec2"):
        build_manager(ManagerConfig(provider="aws-ec2"))


def test_cloudrift_requires_credential(monkeypatch):
    monkeypatch.delenv("CLOUDRIFT_API_KEY", raising=False)
    with pytest.raises(ConfigError, match="CLOUDRIFT_API_KEY"):
        build_collaborators(ManagerConfig(provider="cloudrift"))


def test_cloudrift_collaborators(monkeypatch):
    monkeypatch.setenv("MY_RIFT_KEY", "cr_key_long_enough")
    config = ManagerConfig(provider="cloudrift", credential_ref="MY_RIFT_KEY", options={"api_url": "https://api.test"})

    backend, probe = build_collaborators(config)

    assert isinstance(backend, CloudRiftBackend)
    assert backend.api_key == "cr_key_long_enough"
    assert backend.api_url == "https://api.test"
    assert isinstance(probe, SshProbe)


def test_dry_run_uses_dummy_without_credentials(monkeypatch):
    monkeypatch.delenv("CLOUDRIFT_API_KEY", raising=False)

    backend, probe = build_collaborators(ManagerConfig(provider="cloudrift"), dry_run=True)

    assert isinstance(backend, DummyBackend)
    assert isinstance(probe, StaticProbe)


async def test_build_manager_dummy_roundtrip():
    config = ManagerConfig(provider="dummy", inbound_ports=(22, 8000), reachability_timeout=1, reachability_interval=0.01)
    manager = build_manager(config)

    handle = await manager.acquire()
    assert handle.status is MachineStatus.READY
    assert manager.retry_policy.timeout == 1

    await manager.release(handle.machine_id)
    assert manager.backend.destroyed == [handle.machine_id]
    assert manager.machines() == []
