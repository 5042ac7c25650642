"""Data types shared by the lifecycle manager and its collaborators."""

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum


class MachineStatus(str, Enum):
    """Lifecycle state of a provisioned machine."""

    PROVISIONING = "Provisioning"
    READY = "Ready"
    UNREACHABLE = "Unreachable"
    DESTROYED = "Destroyed"


@dataclass(frozen=True)
class MachineDescriptor:
    """What to provision: provider, image and access settings.

    ``credential_ref`` names the environment variable that holds the
    provider credential; the credential itself is never stored here.
    """

    provider: str
    image: str
    credential_ref: str = ""
    inbound_ports: tuple[int, ...] = (22,)
    instance_type: str | None = None
    group: str = "vmlease"
    user: str | None = None


@dataclass
class NodeInfo:
    """Structured return from ProvisioningBackend.create()."""

    machine_id: str
    user: str
    public_addresses: list[str] = field(default_factory=list)
    private_addresses: list[str] = field(default_factory=list)
    ssh_port: int = 22
    port_mappings: list[tuple[int, int]] = field(default_factory=list)


@dataclass(frozen=True)
class MachineHandle:
    """Read-only view of a registered machine."""

    machine_id: str
    user: str
    public_address: str | None
    private_address: str | None
    created_at: datetime
    status: MachineStatus = MachineStatus.PROVISIONING
    provider: str = ""
    ssh_port: int = 22
    port_mappings: tuple[tuple[int, int], ...] = ()

    @property
    def host(self) -> str | None:
        """Address to connect to: public if present, else private."""
        return self.public_address or self.private_address

    @property
    def address(self) -> str:
        """SSH address string (user@host)."""
        host = self.host or ""
        return f"{self.user}@{host}" if self.user else host

    def with_status(self, status: MachineStatus) -> "MachineHandle":
        return replace(self, status=status)

    @classmethod
    def from_node(cls, node: NodeInfo, provider: str, user: str | None = None, created_at: datetime | None = None) -> "MachineHandle":
        return cls(
            machine_id=node.machine_id,
            user=user or node.user,
            public_address=node.public_addresses[0] if node.public_addresses else None,
            private_address=node.private_addresses[0] if node.private_addresses else None,
            created_at=created_at or datetime.now(timezone.utc),
            provider=provider,
            ssh_port=node.ssh_port,
            port_mappings=tuple((int(i), int(e)) for i, e in node.port_mappings),
        )

    def to_dict(self) -> dict:
        """JSON-serializable representation used by the state file."""
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        data["status"] = self.status.value
        data["port_mappings"] = [list(m) for m in self.port_mappings]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "MachineHandle":
        return cls(
            machine_id=data["machine_id"],
            user=data.get("user", ""),
            public_address=data.get("public_address"),
            private_address=data.get("private_address"),
            created_at=datetime.fromisoformat(data["created_at"]),
            status=MachineStatus(data.get("status", MachineStatus.PROVISIONING.value)),
            provider=data.get("provider", ""),
            ssh_port=data.get("ssh_port", 22),
            port_mappings=tuple((m[0], m[1]) for m in data.get("port_mappings", [])),
        )
