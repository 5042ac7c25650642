#!/usr/bin/env python3
"""vmlease CLI entrypoint."""

import argparse

from vmlease.commands.machine import register_machine_commands
from vmlease.logging_setup import setup_cli_logging


def main():
    parser = argparse.ArgumentParser(description="Provision ephemeral machines and tear them down on demand")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug output (each failed reachability probe)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    register_machine_commands(subparsers)

    args = parser.parse_args()
    setup_cli_logging(verbose=args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()
