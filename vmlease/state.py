"""State file: machines recorded between CLI invocations (JSON list of handles)."""

import json
import logging
from pathlib import Path

from vmlease.errors import ConfigError
from vmlease.lifecycle.types import MachineHandle

logger = logging.getLogger(__name__)

DEFAULT_STATE_FILE = "machines.json"


def load_handles(path) -> list[MachineHandle]:
    """Read recorded handles; a missing file means no machines."""
    path = Path(path)
    if not path.exists():
        return []
    try:
        data = json.loads(path.read_text())
        return [MachineHandle.from_dict(entry) for entry in data]
    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        raise ConfigError(f"State file {path} is corrupt: {e}") from e


def save_handles(path, handles) -> None:
    """Write handles to the state file, removing it when there are none left."""
    path = Path(path)
    if not handles:
        if path.exists():
            path.unlink()
            logger.info(f"All machines released. Removed {path}")
        return
    path.write_text(json.dumps([h.to_dict() for h in handles], indent=2) + "\n")
