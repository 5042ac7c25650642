"""Backend selection: build collaborators and a LifecycleManager from config.

Bridge between the CLI and the provider adapters. The supported provider
set handed to LifecycleManager is the key set of BACKENDS.
"""

import logging

from vmlease.config import resolve_credential
from vmlease.errors import UnsupportedProviderError
from vmlease.lifecycle.manager import LifecycleManager
from vmlease.provisioning.cloudrift import DEFAULT_API_URL, CloudRiftBackend
from vmlease.provisioning.dummy import DummyBackend, StaticProbe
from vmlease.provisioning.ssh import SshProbe

logger = logging.getLogger(__name__)

DEFAULT_CLOUDRIFT_CREDENTIAL = "CLOUDRIFT_API_KEY"


def _cloudrift(config):
    api_key = resolve_credential(config.credential_ref or DEFAULT_CLOUDRIFT_CREDENTIAL)
    backend = CloudRiftBackend(
        api_key=api_key,
        ssh_key=config.ssh_key,
        api_url=config.options.get("api_url", DEFAULT_API_URL),
    )
    return backend, SshProbe(config.ssh_key)


def _dummy(config):
    return DummyBackend(user=config.user or "dummy"), StaticProbe(True)


# provider name -> factory(config) -> (backend, probe)
BACKENDS = {
    "cloudrift": _cloudrift,
    "dummy": _dummy,
}


def build_collaborators(config, dry_run=False, backends=None):
    """Return (backend, probe) for ``config.provider``.

    In dry-run mode every provider gets the in-memory dummy collaborators,
    so no credentials are needed and nothing is created.
    """
    backends = BACKENDS if backends is None else backends
    if dry_run:
        logger.info(f"[dry-run] using in-memory backend for provider '{config.provider}'")
        return _dummy(config)
    return backends[config.provider](config)


def build_manager(config, dry_run=False, backends=None, authorize_ports=None, cancel_event=None):
    """Create a LifecycleManager wired to the backend configured for ``config.provider``.

    Raises:
        UnsupportedProviderError: provider has no entry in ``backends``.
        ConfigError: the provider credential is missing.
    """
    backends = BACKENDS if backends is None else backends
    descriptor = config.descriptor()
    if descriptor.provider not in backends:
        raise UnsupportedProviderError(descriptor.provider, backends)
    backend, probe = build_collaborators(config, dry_run=dry_run, backends=backends)
    return LifecycleManager(
        descriptor,
        backend,
        probe,
        supported_providers=set(backends),
        retry_policy=config.retry_policy(),
        authorize_ports=authorize_ports,
        creation_timeout=config.creation_timeout,
        cancel_event=cancel_event,
    )
