"""Machine lifecycle core: registry, retry policy, manager, collaborator interfaces."""

from vmlease.lifecycle.backend import ProvisioningBackend, ReachabilityProbe
from vmlease.lifecycle.manager import LifecycleManager
from vmlease.lifecycle.registry import MachineRegistry
from vmlease.lifecycle.retry import RetryPolicy, WaitOutcome, WaitResult
from vmlease.lifecycle.types import MachineDescriptor, MachineHandle, MachineStatus, NodeInfo

__all__ = [
    "LifecycleManager",
    "MachineRegistry",
    "RetryPolicy",
    "WaitOutcome",
    "WaitResult",
    "ProvisioningBackend",
    "ReachabilityProbe",
    "MachineDescriptor",
    "MachineHandle",
    "MachineStatus",
    "NodeInfo",
]
