"""Collaborator interfaces: provisioning backends and reachability probes."""

from abc import ABC, abstractmethod

from vmlease.lifecycle.types import MachineDescriptor, MachineHandle, NodeInfo


class ProvisioningBackend(ABC):
    """Creates and destroys remote nodes on one provider."""

    @abstractmethod
    async def create(self, descriptor: MachineDescriptor, timeout: float) -> NodeInfo:
        """Create one node and return once the provider reports it running.

        Raises any exception on failure; the manager wraps it in
        ProvisioningError.
        """

    @abstractmethod
    async def destroy(self, machine_id: str) -> None:
        """Destroy a node. Destroying an already destroyed id must succeed."""


class ReachabilityProbe(ABC):
    """Checks whether a machine accepts connections."""

    @abstractmethod
    async def check(self, handle: MachineHandle) -> bool:
        """Return True when reachable.

        Ordinary connection failures return False; only misconfiguration
        (missing client binary, unreadable key) may raise.
        """
