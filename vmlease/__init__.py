"""Ephemeral machine provisioning with reachability polling and on-demand teardown."""

from vmlease.errors import (
    ConfigError,
    DestroyError,
    DuplicateMachineError,
    MachineError,
    MachineNotFoundError,
    ProvisioningError,
    ReachabilityError,
    UnsupportedProviderError,
    WaitCancelledError,
)
from vmlease.lifecycle import (
    LifecycleManager,
    MachineDescriptor,
    MachineHandle,
    MachineStatus,
    RetryPolicy,
    WaitOutcome,
)

__all__ = [
    "LifecycleManager",
    "MachineDescriptor",
    "MachineHandle",
    "MachineStatus",
    "RetryPolicy",
    "WaitOutcome",
    "MachineError",
    "ConfigError",
    "UnsupportedProviderError",
    "ProvisioningError",
    "DuplicateMachineError",
    "MachineNotFoundError",
    "DestroyError",
    "ReachabilityError",
    "WaitCancelledError",
]
