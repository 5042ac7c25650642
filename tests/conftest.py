"""Shared pytest fixtures for all test modules."""

import os
import subprocess
import sys

import pytest
import yaml

from vmlease.lifecycle.backend import ProvisioningBackend
from vmlease.lifecycle.manager import LifecycleManager
from vmlease.lifecycle.retry import RetryPolicy
from vmlease.lifecycle.types import MachineDescriptor, NodeInfo
from vmlease.provisioning.dummy import StaticProbe

PROJECT_ROOT = os.path.normpath(os.path.join(os.path.dirname(__file__), ".."))


@pytest.fixture(scope="session")
def project_root():
    """Absolute path to the project root directory."""
    return PROJECT_ROOT


@pytest.fixture(scope="session")
def run_cli(project_root):
    """Return a callable that invokes the vmlease CLI as a subprocess."""

    def _run(*args, cwd=None):
        result = subprocess.run(
            [sys.executable, "-m", "vmlease.vmlease", *args],
            capture_output=True,
            text=True,
            cwd=cwd or project_root,
            env={**os.environ, "PYTHONPATH": project_root},
        )
        return result.returncode, result.stdout, result.stderr

    return _run


@pytest.fixture
def make_config(tmp_path):
    """Return a factory that writes a temporary manager config.yaml."""

    def _make(**overrides):
        config = {
            "provider": "dummy",
            "image": "ubuntu-24.04",
            "inbound_ports": [22, 8000],
            "reachability": {"timeout": 1, "interval": 0.01},
        }
        config.update(overrides)
        config_path = tmp_path / "config.yaml"
        with open(config_path, "w") as f:
            yaml.dump(config, f)
        return str(config_path)

    return _make


# ── Unit-test fixtures ──────────────────────────────────────────────


class FakeBackend(ProvisioningBackend):
    """Backend that hands out sequential ids and records every call."""

    def __init__(self, create_error=None, destroy_error=None):
        self.create_error = create_error
        self.destroy_error = destroy_error
        self.create_calls = 0
        self.destroy_calls: list[str] = []
        self.next_ids: list[str] = []

    async def create(self, descriptor, timeout):
        self.create_calls += 1
        if self.create_error:
            raise self.create_error
        machine_id = self.next_ids.pop(0) if self.next_ids else f"node-{self.create_calls}"
        return NodeInfo(
            machine_id=machine_id,
            user="ubuntu",
            public_addresses=["198.51.100.7"],
            private_addresses=["10.1.0.7"],
        )

    async def destroy(self, machine_id):
        self.destroy_calls.append(machine_id)
        if self.destroy_error:
            raise self.destroy_error


class FakeClock:
    """Monotonic clock advanced only by the paired sleep()."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self):
        return self.now

    async def sleep(self, delay):
        self.sleeps.append(delay)
        self.now += delay


@pytest.fixture
def descriptor():
    return MachineDescriptor(
        provider="fake",
        image="ami-ccb35ea5",
        credential_ref="FAKE_CREDENTIAL",
        inbound_ports=(22, 8080),
    )


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def policy(clock):
    return RetryPolicy(timeout=120, interval=10, clock=clock, sleep=clock.sleep)


@pytest.fixture
def make_manager(descriptor, backend, policy):
    """Return a factory building a LifecycleManager over the fake collaborators."""

    def _make(probe=None, **kwargs):
        kwargs.setdefault("supported_providers", {"fake"})
        kwargs.setdefault("retry_policy", policy)
        return LifecycleManager(kwargs.pop("descriptor", descriptor), kwargs.pop("backend", backend), probe or StaticProbe(True), **kwargs)

    return _make
