"""Thread-safe map from machine id to machine handle."""

import threading

from vmlease.errors import DuplicateMachineError, MachineNotFoundError
from vmlease.lifecycle.types import MachineHandle, MachineStatus


class MachineRegistry:
    """Owns the id -> handle mapping for one LifecycleManager.

    Every operation takes the lock only for the dict access itself, so
    concurrent lifecycle operations never block each other on I/O.
    Handles are frozen; a status change swaps in a new value, so readers
    see either the old or the new handle, never a partial update.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._machines: dict[str, MachineHandle] = {}

    def put(self, machine_id: str, handle: MachineHandle) -> None:
        """Insert ``handle`` under ``machine_id``; never overwrites."""
        with self._lock:
            if machine_id in self._machines:
                raise DuplicateMachineError(machine_id)
            self._machines[machine_id] = handle

    def get(self, machine_id: str) -> MachineHandle:
        """Return the registered handle or raise MachineNotFoundError."""
        with self._lock:
            try:
                return self._machines[machine_id]
            except KeyError:
                raise MachineNotFoundError(machine_id) from None

    def lookup(self, machine_id: str) -> MachineHandle | None:
        """Return the registered handle, or None when absent."""
        with self._lock:
            return self._machines.get(machine_id)

    def remove(self, machine_id: str) -> MachineHandle:
        """Atomically remove and return the handle for ``machine_id``."""
        with self._lock:
            try:
                return self._machines.pop(machine_id)
            except KeyError:
                raise MachineNotFoundError(machine_id) from None

    def update_status(self, machine_id: str, status: MachineStatus) -> MachineHandle:
        """Replace the handle with a copy carrying ``status`` and return it."""
        with self._lock:
            try:
                current = self._machines[machine_id]
            except KeyError:
                raise MachineNotFoundError(machine_id) from None
            updated = current.with_status(status)
            self._machines[machine_id] = updated
            return updated

    def handles(self) -> list[MachineHandle]:
        """Snapshot of all registered handles."""
        with self._lock:
            return list(self._machines.values())

    def __contains__(self, machine_id) -> bool:
        with self._lock:
            return machine_id in self._machines

    def __len__(self) -> int:
        with self._lock:
            return len(self._machines)
