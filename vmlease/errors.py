"""Error taxonomy for machine lifecycle operations."""

from vmlease.redact import redact_secrets


class MachineError(Exception):
    """Base class for every error raised by vmlease."""


class ConfigError(MachineError):
    """Configuration file is missing, unreadable or invalid."""


class UnsupportedProviderError(MachineError):
    """Provider is not in the caller-supplied supported set."""

    def __init__(self, provider, supported):
        self.provider = provider
        self.supported = sorted(supported)
        super().__init__(f"Provider '{provider}' is not supported. Supported providers: {', '.join(self.supported) or '(none)'}")


class DuplicateMachineError(MachineError):
    """A machine id is already registered."""

    def __init__(self, machine_id):
        self.machine_id = machine_id
        super().__init__(f"Machine '{machine_id}' is already registered")


class MachineNotFoundError(MachineError, KeyError):
    """A machine id is not registered."""

    def __init__(self, machine_id):
        self.machine_id = machine_id
        super().__init__(machine_id)

    def __str__(self):
        return f"Machine '{self.machine_id}' is not registered"


class CollaboratorError(MachineError):
    """A backend or probe call failed.

    Carries the operation, machine id and provider for diagnosis. The
    message is redacted so credential values never leak into logs.
    """

    operation = "operation"

    def __init__(self, provider, cause, machine_id=None):
        self.provider = provider
        self.machine_id = machine_id
        target = f" machine '{machine_id}'" if machine_id else ""
        super().__init__(redact_secrets(f"{self.operation} failed for{target} on provider '{provider}': {cause}"))


class ProvisioningError(CollaboratorError):
    """Node creation failed. Never retried automatically."""

    operation = "create"


class DestroyError(CollaboratorError):
    """Node destruction failed. The handle stays registered so release can be retried."""

    operation = "destroy"


class ReachabilityError(CollaboratorError):
    """The reachability probe is misconfigured (not an ordinary connection failure)."""

    operation = "reachability check"


class WaitCancelledError(MachineError):
    """The reachability wait was aborted by a cancellation signal.

    The machine stays registered in UNREACHABLE state; ``handle`` lets the
    caller release it.
    """

    def __init__(self, handle):
        self.handle = handle
        super().__init__(f"Reachability wait for machine '{handle.machine_id}' was cancelled")
