"""In-memory collaborators for dry runs and tests."""

import itertools
import logging

from vmlease.lifecycle.backend import ProvisioningBackend, ReachabilityProbe
from vmlease.lifecycle.types import NodeInfo

logger = logging.getLogger(__name__)


class DummyBackend(ProvisioningBackend):
    """Pretends to create nodes; records what it was asked to do."""

    def __init__(self, user="dummy", prefix="dummy"):
        self.user = user
        self.prefix = prefix
        self.created: list[str] = []
        self.destroyed: list[str] = []
        self._ids = itertools.count(1)

    async def create(self, descriptor, timeout):
        n = next(self._ids)
        machine_id = f"{self.prefix}-{n}"
        logger.info(f"[dry-run] create node {machine_id} image={descriptor.image} ports={list(descriptor.inbound_ports)}")
        self.created.append(machine_id)
        return NodeInfo(
            machine_id=machine_id,
            user=self.user,
            public_addresses=[f"203.0.113.{n}"],
            private_addresses=[f"10.0.0.{n}"],
        )

    async def destroy(self, machine_id):
        logger.info(f"[dry-run] destroy node {machine_id}")
        if machine_id not in self.destroyed:
            self.destroyed.append(machine_id)


class StaticProbe(ReachabilityProbe):
    """Probe that answers from a fixed script of results.

    The last result repeats once the script is exhausted.
    """

    def __init__(self, *results):
        self.results = list(results) or [True]
        self.calls = 0

    async def check(self, handle):
        result = self.results[min(self.calls, len(self.results) - 1)]
        self.calls += 1
        return result
