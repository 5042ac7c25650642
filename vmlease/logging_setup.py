"""CLI logging setup: plain %(message)s format with secret redaction."""

import logging
import sys

from vmlease.redact import SecretRedactingFilter


def setup_cli_logging(verbose=False):
    """Configure the root logger for CLI commands.

    Messages go to stdout unprefixed; ``verbose`` lowers the level to DEBUG
    so individual reachability probe failures are shown.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.addFilter(SecretRedactingFilter())
    root.addHandler(handler)
