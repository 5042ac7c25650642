"""Provider adapters: CloudRift backend, SSH probe, in-memory dummies."""

from vmlease.provisioning.cloud import BACKENDS, build_collaborators, build_manager
from vmlease.provisioning.cloudrift import CloudRiftBackend
from vmlease.provisioning.dummy import DummyBackend, StaticProbe
from vmlease.provisioning.ssh import SshProbe, ssh_base_args

__all__ = [
    "BACKENDS",
    "build_collaborators",
    "build_manager",
    "CloudRiftBackend",
    "SshProbe",
    "ssh_base_args",
    "DummyBackend",
    "StaticProbe",
]
