"""Machine commands: acquire, release and list machines from the CLI."""

import asyncio
import logging
import signal
import sys

from vmlease.config import load_config
from vmlease.errors import DestroyError, MachineError, WaitCancelledError
from vmlease.lifecycle.types import MachineStatus
from vmlease.provisioning.cloud import build_manager
from vmlease.state import DEFAULT_STATE_FILE, load_handles, save_handles

logger = logging.getLogger(__name__)


def _setup_manager(args):
    """Load config, build the manager and adopt recorded machines.

    Returns:
        (manager, other_handles) where other_handles are recorded machines
        of other providers, kept untouched in the state file.
    """
    try:
        config = load_config(args.config)
        manager = build_manager(config, dry_run=args.dry_run)
        others = []
        for handle in load_handles(args.state_file):
            if handle.provider in ("", manager.provider):
                manager.adopt(handle)
            else:
                others.append(handle)
    except MachineError as e:
        logger.error(f"Error: {e}")
        sys.exit(1)
    return manager, others


def _save_state(args, manager, others):
    if args.dry_run:
        logger.info(f"[dry-run] would record {len(manager.machines())} machine(s) in {args.state_file}")
        return
    save_handles(args.state_file, others + manager.machines())


def _log_connection_info(handle):
    logger.info(f"Machine:  {handle.machine_id} ({handle.status.value})")
    logger.info(f"Host:     {handle.host}")
    if handle.private_address:
        logger.info(f"Private:  {handle.private_address}")
    logger.info(f"User:     {handle.user}")
    if handle.ssh_port != 22:
        logger.info(f"Connect:  ssh -p {handle.ssh_port} {handle.address}")
    else:
        logger.info(f"Connect:  ssh {handle.address}")
    for internal, external in handle.port_mappings:
        logger.info(f"  Port {internal} -> {handle.host}:{external}")


def _interrupt_handler(manager, task):
    """SIGINT callback for acquire.

    During the reachability wait the manager is cancelled so the machine
    stays recorded. Before that the acquire task itself is cancelled, which
    aborts creation.
    """

    def _on_interrupt():
        if manager.waiting:
            logger.warning("Interrupted; stopping the reachability wait...")
            manager.cancel()
        else:
            logger.warning("Interrupted; aborting machine creation...")
            task.cancel()

    return _on_interrupt


# ── CLI handlers ───────────────────────────────────────────────────


def handle_acquire(args):
    """CLI handler for 'acquire'."""
    asyncio.run(_handle_acquire(args))


async def _handle_acquire(args):
    manager, others = _setup_manager(args)

    loop = asyncio.get_running_loop()
    loop.add_signal_handler(signal.SIGINT, _interrupt_handler(manager, asyncio.current_task()))
    try:
        if args.reuse:
            handle = await manager.acquire_or_reuse(args.reuse)
        else:
            handle = await manager.acquire()
    except WaitCancelledError as e:
        logger.error(f"Error: {e}. Release it with 'vmlease release --id {e.handle.machine_id}'.")
        _save_state(args, manager, others)
        sys.exit(1)
    except asyncio.CancelledError:
        logger.error("Error: machine creation aborted.")
        _save_state(args, manager, others)
        sys.exit(1)
    except MachineError as e:
        logger.error(f"Error: {e}")
        _save_state(args, manager, others)
        sys.exit(1)
    finally:
        loop.remove_signal_handler(signal.SIGINT)

    _save_state(args, manager, others)
    _log_connection_info(handle)
    if handle.status is not MachineStatus.READY:
        sys.exit(1)


def handle_release(args):
    """CLI handler for 'release'."""
    asyncio.run(_handle_release(args))


async def _handle_release(args):
    manager, others = _setup_manager(args)

    ids = args.ids or [h.machine_id for h in manager.machines()]
    if not ids:
        logger.info("No machines recorded; nothing to release.")
        return

    failed = []
    for machine_id in ids:
        try:
            await manager.release(machine_id)
        except DestroyError as e:
            logger.error(f"Error: {e}")
            failed.append(machine_id)

    _save_state(args, manager, others)
    if failed:
        logger.info(f"\nFailed to release {len(failed)} machine(s): {', '.join(failed)}")
        sys.exit(1)


def handle_list(args):
    """CLI handler for 'list'."""
    try:
        handles = load_handles(args.state_file)
    except MachineError as e:
        logger.error(f"Error: {e}")
        sys.exit(1)

    if not handles:
        logger.info("No machines recorded.")
        return
    for handle in handles:
        logger.info(f"{handle.machine_id}  {handle.provider or '-'}  {handle.status.value}  {handle.address}  {handle.created_at.isoformat()}")


# ── Registration ───────────────────────────────────────────────────


def _add_common_args(parser):
    parser.add_argument("--config", required=True, help="Path to the manager YAML config")
    parser.add_argument("--state-file", default=DEFAULT_STATE_FILE, help=f"Recorded machines file (default: {DEFAULT_STATE_FILE})")
    parser.add_argument("--dry-run", action="store_true", help="Use an in-memory backend; create and destroy nothing")


def register_machine_commands(subparsers):
    """Register the acquire, release and list subcommands."""
    acquire_parser = subparsers.add_parser("acquire", help="Provision a machine and wait until it is reachable")
    _add_common_args(acquire_parser)
    acquire_parser.add_argument("--reuse", metavar="ID", default=None, help="Reuse a recorded machine; provisions a new one if ID is unknown")
    acquire_parser.set_defaults(func=handle_acquire)

    release_parser = subparsers.add_parser("release", help="Destroy recorded machines")
    _add_common_args(release_parser)
    release_parser.add_argument("--id", dest="ids", action="append", default=None, help="Machine id to release (repeatable; default: all)")
    release_parser.set_defaults(func=handle_release)

    list_parser = subparsers.add_parser("list", help="Show recorded machines")
    list_parser.add_argument("--state-file", default=DEFAULT_STATE_FILE, help=f"Recorded machines file (default: {DEFAULT_STATE_FILE})")
    list_parser.set_defaults(func=handle_list)
