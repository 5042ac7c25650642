"""SSH reachability probe: one plain `ssh ... true` attempt per check."""

import asyncio
import logging
import os

from vmlease.errors import ReachabilityError
from vmlease.lifecycle.backend import ReachabilityProbe

logger = logging.getLogger(__name__)


def ssh_base_args(server, ssh_key, ssh_port, connect_timeout=None):
    """Build base SSH arguments."""
    args = [
        "ssh",
        "-o", "StrictHostKeyChecking=no",
        "-o", "UserKnownHostsFile=/dev/null",
        "-o", "BatchMode=yes",
    ]
    if connect_timeout:
        args += ["-o", f"ConnectTimeout={connect_timeout}"]
    if ssh_key:
        args += ["-i", ssh_key]
    if ssh_port and ssh_port != 22:
        args += ["-p", str(ssh_port)]
    args.append(server)
    return args


class SshProbe(ReachabilityProbe):
    """Reachability check that opens and closes an SSH session.

    Uses the system ssh client, so it works with any provider that
    exposes a public address and accepts the given key.
    """

    def __init__(self, ssh_key=None, connect_timeout=5, ssh_binary="ssh"):
        self.ssh_key = os.path.expanduser(ssh_key) if ssh_key else None
        self.connect_timeout = connect_timeout
        self.ssh_binary = ssh_binary

    async def check(self, handle):
        if not handle.host:
            raise ReachabilityError(handle.provider, "machine has no address to connect to", machine_id=handle.machine_id)
        if self.ssh_key and not os.path.exists(self.ssh_key):
            raise ReachabilityError(handle.provider, f"SSH key '{self.ssh_key}' not found", machine_id=handle.machine_id)

        args = ssh_base_args(handle.address, self.ssh_key, handle.ssh_port, self.connect_timeout)
        args[0] = self.ssh_binary
        args.append("true")
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise ReachabilityError(handle.provider, f"'{self.ssh_binary}' not found. Is it installed and on PATH?", machine_id=handle.machine_id) from e

        _, stderr_bytes = await proc.communicate()
        if proc.returncode != 0:
            stderr = stderr_bytes.decode(errors="replace").strip() if stderr_bytes else ""
            logger.debug(f"SSH to {handle.address}:{handle.ssh_port} failed (rc={proc.returncode}): {stderr}")
            return False
        return True
