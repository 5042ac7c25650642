"""Machine lifecycle orchestration: acquire, reuse, release.

Drives a ProvisioningBackend, a MachineRegistry and a ReachabilityProbe.
Nothing is retried except the bounded reachability poll; every other
failure propagates to the caller immediately.
"""

import asyncio
import inspect
import logging

from vmlease.errors import (
    DestroyError,
    MachineError,
    MachineNotFoundError,
    ProvisioningError,
    ReachabilityError,
    UnsupportedProviderError,
    WaitCancelledError,
)
from vmlease.lifecycle.registry import MachineRegistry
from vmlease.lifecycle.retry import RetryPolicy, WaitOutcome
from vmlease.lifecycle.types import MachineHandle, MachineStatus

logger = logging.getLogger(__name__)

DEFAULT_CREATION_TIMEOUT = 1200


class LifecycleManager:
    """Provision, track and destroy machines for one descriptor.

    Args:
        descriptor: MachineDescriptor used for every new machine.
        backend: ProvisioningBackend that creates/destroys nodes.
        probe: ReachabilityProbe used to decide readiness.
        supported_providers: provider ids this manager may use. The
            descriptor's provider is checked before any backend call.
        retry_policy: reachability polling policy (default 120s / 10s).
        authorize_ports: optional hook ``(handle, ports)`` run after the
            node is registered and before polling starts. May be async.
        creation_timeout: seconds the backend may spend creating a node.
        cancel_event: asyncio.Event that aborts reachability waits when set.

    Concurrent calls for different ids are safe. Two concurrent
    acquire_or_reuse() calls for the same absent id both provision; add
    caller-side coordination if only one machine per id is wanted.
    """

    def __init__(
        self,
        descriptor,
        backend,
        probe,
        supported_providers,
        retry_policy=None,
        authorize_ports=None,
        creation_timeout=DEFAULT_CREATION_TIMEOUT,
        cancel_event=None,
    ):
        if descriptor.provider not in supported_providers:
            raise UnsupportedProviderError(descriptor.provider, supported_providers)

        self.descriptor = descriptor
        self.backend = backend
        self.probe = probe
        self.retry_policy = retry_policy or RetryPolicy()
        self.authorize_ports = authorize_ports
        self.creation_timeout = creation_timeout
        self.registry = MachineRegistry()
        self._cancel_event = cancel_event or asyncio.Event()
        self._waits = 0
        logger.debug(f"Lifecycle manager created for provider '{descriptor.provider}'")

    @property
    def provider(self) -> str:
        return self.descriptor.provider

    # ── Public API ─────────────────────────────────────────────────

    async def acquire(self) -> MachineHandle:
        """Provision a new machine and wait for it to become reachable.

        Returns the handle in READY state, or in UNREACHABLE state when the
        reachability budget runs out (the machine stays registered and the
        caller decides whether to release it).

        Raises:
            ProvisioningError: the backend failed to create the node, or the
                port authorization hook failed.
            ReachabilityError: the probe is misconfigured.
            WaitCancelledError: the wait was cancelled via cancel().
        """
        descriptor = self.descriptor
        logger.info(f"Adding node to group '{descriptor.group}' on {self.provider}...")

        try:
            node = await self.backend.create(descriptor, self.creation_timeout)
        except MachineError:
            raise
        except Exception as e:
            raise ProvisioningError(self.provider, e) from e

        handle = MachineHandle.from_node(node, self.provider, user=descriptor.user)
        addresses = [*node.private_addresses, *node.public_addresses]
        logger.info(f"Added node {handle.machine_id}: {', '.join(addresses) or '(no addresses)'}")
        self.registry.put(handle.machine_id, handle)

        if self.authorize_ports is not None:
            await self._authorize_ports(handle)

        return await self._wait_until_reachable(handle)

    async def acquire_or_reuse(self, machine_id) -> MachineHandle:
        """Return the registered machine ``machine_id``, or acquire a new one.

        A registered machine is returned as is, without re-checking
        reachability. When the id is unknown a brand new machine is
        provisioned and keeps the id the backend assigns, which will
        usually differ from ``machine_id``.
        """
        handle = self.registry.lookup(machine_id)
        if handle is not None:
            logger.info(f"Reusing machine {machine_id} ({handle.status.value})")
            return handle

        logger.warning(f"Machine {machine_id} is not registered; provisioning a new machine with a provider-assigned id")
        return await self.acquire()

    async def release(self, machine_id) -> MachineHandle | None:
        """Destroy a registered machine and remove it from the registry.

        Unknown ids are a no-op returning None. When the backend fails the
        handle stays registered so release can be retried.

        Returns:
            The removed handle marked DESTROYED, or None.
        """
        if self.registry.lookup(machine_id) is None:
            logger.info(f"Machine {machine_id} is not registered; nothing to release")
            return None

        logger.info(f"Destroying machine {machine_id} on {self.provider}...")
        try:
            await self.backend.destroy(machine_id)
        except MachineError:
            raise
        except Exception as e:
            raise DestroyError(self.provider, e, machine_id=machine_id) from e

        try:
            removed = self.registry.remove(machine_id)
        except MachineNotFoundError:
            # Released concurrently by another caller
            return None
        logger.info(f"Machine {machine_id} destroyed.")
        return removed.with_status(MachineStatus.DESTROYED)

    async def release_all(self) -> list[str]:
        """Release every registered machine, continuing past failures.

        Returns:
            Ids whose release failed; they remain registered.
        """
        failed = []
        for handle in self.registry.handles():
            try:
                await self.release(handle.machine_id)
            except DestroyError as e:
                logger.error(str(e))
                failed.append(handle.machine_id)
        return failed

    def adopt(self, handle: MachineHandle) -> MachineHandle:
        """Register a machine provisioned elsewhere (e.g. by an earlier run).

        Raises:
            UnsupportedProviderError: the handle belongs to another provider.
            DuplicateMachineError: the id is already registered.
        """
        if handle.provider and handle.provider != self.provider:
            raise UnsupportedProviderError(handle.provider, {self.provider})
        self.registry.put(handle.machine_id, handle)
        logger.debug(f"Adopted machine {handle.machine_id} ({handle.status.value})")
        return handle

    def get(self, machine_id) -> MachineHandle:
        """Registered handle for ``machine_id``; raises MachineNotFoundError."""
        return self.registry.get(machine_id)

    def machines(self) -> list[MachineHandle]:
        return self.registry.handles()

    @property
    def waiting(self) -> bool:
        """True while a reachability wait is in progress."""
        return self._waits > 0

    def cancel(self) -> None:
        """Abort in-flight and future reachability waits (caller shutdown)."""
        self._cancel_event.set()

    # ── Internals ──────────────────────────────────────────────────

    async def _authorize_ports(self, handle):
        ports = self.descriptor.inbound_ports
        logger.info(f"Authorizing inbound ports {', '.join(str(p) for p in ports)} for {handle.machine_id}")
        try:
            result = self.authorize_ports(handle, ports)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self._set_status(handle, MachineStatus.UNREACHABLE)
            raise ProvisioningError(self.provider, f"port authorization failed: {e}", machine_id=handle.machine_id) from e

    async def _wait_until_reachable(self, handle):
        policy = self.retry_policy

        async def _check():
            try:
                return await self.probe.check(handle)
            except MachineError:
                raise
            except Exception as e:
                raise ReachabilityError(self.provider, e, machine_id=handle.machine_id) from e

        logger.info(f"Waiting for {handle.address} to become reachable (timeout: {policy.timeout:g}s)...")
        self._waits += 1
        try:
            result = await policy.wait_until(_check, self._cancel_event)
        except MachineError:
            self._set_status(handle, MachineStatus.UNREACHABLE)
            raise
        finally:
            self._waits -= 1

        if result.outcome is WaitOutcome.SUCCESS:
            logger.info(f"Machine {handle.machine_id} is ready ({result.attempts} attempt(s), {result.elapsed:.1f}s).")
            return self._set_status(handle, MachineStatus.READY)

        unreachable = self._set_status(handle, MachineStatus.UNREACHABLE)
        if result.outcome is WaitOutcome.CANCELLED:
            logger.warning(f"Reachability wait for {handle.machine_id} cancelled after {result.attempts} attempt(s).")
            raise WaitCancelledError(unreachable)

        logger.error(f"Timeout after {policy.timeout:g}s waiting for {handle.address}:{handle.ssh_port} to become reachable")
        return unreachable

    def _set_status(self, handle, status):
        try:
            return self.registry.update_status(handle.machine_id, status)
        except MachineNotFoundError:
            logger.warning(f"Machine {handle.machine_id} was released while being provisioned")
            return handle.with_status(MachineStatus.DESTROYED)
