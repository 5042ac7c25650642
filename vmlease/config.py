"""Manager configuration loading and validation."""

import logging
import os
from dataclasses import dataclass, field

import yaml

from vmlease.errors import ConfigError
from vmlease.lifecycle.manager import DEFAULT_CREATION_TIMEOUT
from vmlease.lifecycle.retry import RetryPolicy
from vmlease.lifecycle.types import MachineDescriptor
from vmlease.redact import register_secret

logger = logging.getLogger(__name__)


@dataclass
class ManagerConfig:
    """Constructor-time inputs for a LifecycleManager, as read from YAML."""

    provider: str
    image: str = ""
    instance_type: str | None = None
    credential_ref: str = ""
    inbound_ports: tuple[int, ...] = (22,)
    group: str = "vmlease"
    user: str | None = None
    creation_timeout: float = DEFAULT_CREATION_TIMEOUT
    ssh_key: str = "~/.ssh/id_ed25519"
    reachability_timeout: float = 120
    reachability_interval: float = 10
    reachability_backoff: float = 1.0
    reachability_max_interval: float | None = None
    options: dict = field(default_factory=dict)

    def descriptor(self) -> MachineDescriptor:
        return MachineDescriptor(
            provider=self.provider,
            image=self.image,
            credential_ref=self.credential_ref,
            inbound_ports=self.inbound_ports,
            instance_type=self.instance_type,
            group=self.group,
            user=self.user,
        )

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            timeout=self.reachability_timeout,
            interval=self.reachability_interval,
            backoff=self.reachability_backoff,
            max_interval=self.reachability_max_interval,
        )


def load_config(config_path: str) -> ManagerConfig:
    """Load and validate a manager configuration from a YAML file."""
    try:
        with open(_expand_path(config_path)) as f:
            raw = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigError(f"Config file '{config_path}' not found.") from None
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing YAML config: {e}") from e
    logger.debug(f"Loaded config from {config_path}")
    return parse_config(raw)


def parse_config(raw) -> ManagerConfig:
    """Build a ManagerConfig from an already parsed YAML mapping."""
    if not isinstance(raw, dict):
        raise ConfigError("Config must be a YAML mapping.")
    provider = raw.get("provider")
    if not provider or not isinstance(provider, str):
        raise ConfigError("Missing 'provider' in config.")

    reachability = raw.get("reachability") or {}
    if not isinstance(reachability, dict):
        raise ConfigError("'reachability' must be a mapping.")

    config = ManagerConfig(
        provider=provider,
        image=str(raw.get("image") or ""),
        instance_type=raw.get("instance_type"),
        credential_ref=str(raw.get("credential_ref") or ""),
        inbound_ports=_parse_ports(raw.get("inbound_ports", [22])),
        group=str(raw.get("group") or "vmlease"),
        user=raw.get("user"),
        creation_timeout=_positive(raw, "creation_timeout", DEFAULT_CREATION_TIMEOUT),
        ssh_key=str(raw.get("ssh_key") or "~/.ssh/id_ed25519"),
        reachability_timeout=_positive(reachability, "timeout", 120),
        reachability_interval=_positive(reachability, "interval", 10),
        reachability_backoff=_positive(reachability, "backoff", 1.0),
        reachability_max_interval=_positive(reachability, "max_interval", None) if reachability.get("max_interval") is not None else None,
        options=raw.get("options") or {},
    )
    if config.reachability_backoff < 1:
        raise ConfigError("'reachability.backoff' must be >= 1.")
    return config


def resolve_credential(credential_ref: str) -> str:
    """Read the credential named by ``credential_ref`` from the environment.

    The value is registered for log redaction before it is returned.
    """
    if not credential_ref:
        raise ConfigError("No 'credential_ref' configured.")
    value = os.environ.get(credential_ref)
    if not value:
        raise ConfigError(f"Credential env var {credential_ref} is not set.")
    register_secret(value)
    return value


def _parse_ports(value) -> tuple[int, ...]:
    if isinstance(value, (int, str)):
        value = [value]
    ports = []
    for item in value or []:
        try:
            port = int(item)
        except (TypeError, ValueError):
            raise ConfigError(f"Invalid port {item!r} in 'inbound_ports'.") from None
        if not 0 < port < 65536:
            raise ConfigError(f"Port {port} in 'inbound_ports' is out of range.")
        ports.append(port)
    return tuple(ports)


def _positive(section: dict, key: str, default):
    value = section.get(key, default)
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"'{key}' must be a number, got {value!r}.") from None
    if value <= 0:
        raise ConfigError(f"'{key}' must be positive, got {value:g}.")
    return value


def _expand_path(path: str) -> str:
    """Expand user home directory and environment variables in path."""
    return os.path.expanduser(os.path.expandvars(path))
