"""CloudRift backend: rent/terminate VMs via the CloudRift REST API."""

import asyncio
import json
import logging
import os

import httpx

from vmlease.lifecycle.backend import ProvisioningBackend
from vmlease.lifecycle.types import NodeInfo

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.cloudrift.ai"
DEFAULT_IMAGE_URL = "https://storage.googleapis.com/cloudrift-vm-disks/disks/github/ubuntu-noble-server-gpu-580-129-20251015-183936.img"
DEFAULT_CLOUDINIT_URL = "https://storage.googleapis.com/cloudrift-vm-disks/cloudinit/ubuntu-base.cloudinit"
API_VERSION = "~upcoming"


# ── API helpers ───────────────────────────────────────────────────


async def _api_request(method, path, data, api_key, api_url=DEFAULT_API_URL):
    """Make an authenticated CloudRift API request.

    Wraps *data* in the versioned envelope ``{"version": ..., "data": ...}``.

    Returns:
        Parsed JSON response ``data`` dict.
    """
    url = f"{api_url}{path}"
    payload = {"version": API_VERSION, "data": data}
    logger.debug(f"{method} {url} payload: {json.dumps(payload)}")

    headers = {"X-API-Key": api_key, "Content-Type": "application/json"}
    async with httpx.AsyncClient() as client:
        resp = await client.request(method, url, json=payload, headers=headers, timeout=60)
    resp.raise_for_status()
    body = resp.json()
    return body.get("data", body)


async def _rent_instance(api_key, instance_type, ssh_public_keys, image_url, cloudinit_url=DEFAULT_CLOUDINIT_URL, ports=None, api_url=DEFAULT_API_URL):
    """Rent a new CloudRift VM instance.

    POST /api/v1/instances/rent
    """
    data = {
        "selector": {
            "ByInstanceTypeAndLocation": {
                "instance_type": instance_type,
            },
        },
        "config": {
            "VirtualMachine": {
                "ssh_key": {"PublicKeys": ssh_public_keys},
                "image_url": image_url,
                "cloudinit_url": cloudinit_url,
            },
        },
        "with_public_ip": True,
    }
    if ports:
        data["ports"] = [str(p) for p in ports]
    return await _api_request("POST", "/api/v1/instances/rent", data, api_key, api_url)


async def _terminate_instance(api_key, instance_id, api_url=DEFAULT_API_URL):
    """POST /api/v1/instances/terminate with ById selector."""
    data = {"selector": {"ById": [instance_id]}}
    return await _api_request("POST", "/api/v1/instances/terminate", data, api_key, api_url)


async def _get_instance_info(api_key, instance_id, api_url=DEFAULT_API_URL):
    """Get info for a single instance by ID, or None if unknown."""
    data = {"selector": {"ById": [instance_id]}}
    result = await _api_request("POST", "/api/v1/instances/list", data, api_key, api_url)
    instances = result.get("instances", [])
    return instances[0] if instances else None


# ── Core logic ─────────────────────────────────────────────────────


async def wait_for_status(api_key, instance_id, target_status, timeout, api_url=DEFAULT_API_URL, interval=10, fail_statuses=None):
    """Poll instance status until it matches *target_status* or timeout.

    Returns:
        The instance dict if target status reached, None on timeout or fail status.
    """
    fail_statuses = fail_statuses or set()
    elapsed = 0
    status = None
    while elapsed < timeout:
        info = await _get_instance_info(api_key, instance_id, api_url)
        if info is None:
            logger.warning(f"Instance {instance_id} not found yet.")
        else:
            status = info.get("status")
            if status == target_status:
                return info
            if status in fail_statuses:
                logger.error(f"Instance {instance_id} reached fail status '{status}'")
                return None
        await asyncio.sleep(interval)
        elapsed += interval

    logger.error(f"Timeout after {timeout}s waiting for status '{target_status}' (last: '{status}')")
    return None


def _extract_node_info(instance, instance_id):
    """Convert an instance dict into NodeInfo.

    VMs provide login credentials in virtual_machines[].login_info.
    Port mappings are [internal_port, external_port] tuples.
    """
    host = instance.get("host_address", "")
    port_mappings = instance.get("port_mappings", [])

    username = "user"
    vms = instance.get("virtual_machines", [])
    if vms:
        login_info = vms[0].get("login_info", {})
        creds = login_info.get("UsernameAndPassword", {})
        username = creds.get("username", username)

    ssh_port = 22
    for mapping in port_mappings:
        if mapping[0] == 22:
            ssh_port = mapping[1]
            break

    return NodeInfo(
        machine_id=instance_id,
        user=username,
        public_addresses=[host] if host else [],
        ssh_port=ssh_port,
        port_mappings=[(m[0], m[1]) for m in port_mappings],
    )


class CloudRiftBackend(ProvisioningBackend):
    """ProvisioningBackend for CloudRift GPU VMs.

    Inbound ports are requested at rent time, so no separate port
    authorization step is needed.
    """

    def __init__(self, api_key, ssh_key, api_url=DEFAULT_API_URL, cloudinit_url=DEFAULT_CLOUDINIT_URL, poll_interval=10):
        self.api_key = api_key
        self.ssh_key = os.path.expanduser(ssh_key)
        self.api_url = api_url
        self.cloudinit_url = cloudinit_url
        self.poll_interval = poll_interval

    def _read_public_key(self):
        pub_key_path = f"{self.ssh_key}.pub"
        with open(pub_key_path) as f:
            return f.read().strip()

    async def create(self, descriptor, timeout):
        if not descriptor.instance_type:
            raise ValueError("CloudRift requires 'instance_type'")

        logger.info(f"Creating CloudRift instance (type={descriptor.instance_type})...")
        result = await _rent_instance(
            self.api_key,
            descriptor.instance_type,
            [self._read_public_key()],
            image_url=descriptor.image or DEFAULT_IMAGE_URL,
            cloudinit_url=self.cloudinit_url,
            ports=list(descriptor.inbound_ports),
            api_url=self.api_url,
        )

        instance_ids = result.get("instance_ids", [])
        if not instance_ids:
            raise RuntimeError("no instance ID returned from rent API")
        instance_id = instance_ids[0]
        logger.info(f"Instance rented (id={instance_id}). Waiting for Active status (timeout: {timeout}s)...")

        try:
            info = await wait_for_status(
                self.api_key, instance_id, "Active", timeout, self.api_url, interval=self.poll_interval, fail_statuses={"Inactive"}
            )
            if info is None:
                raise RuntimeError(f"instance {instance_id} did not become Active within {timeout}s")
            logger.info("Instance is Active.")
            return _extract_node_info(info, instance_id)
        except BaseException:
            # A failed create must not leave a rented instance running
            await self._terminate_after_failed_create(instance_id)
            raise

    async def _terminate_after_failed_create(self, instance_id):
        try:
            await self.destroy(instance_id)
        except Exception as e:
            logger.error(f"Failed to terminate instance '{instance_id}' after failed create: {e}. Terminate it manually.")

    async def destroy(self, machine_id):
        logger.info(f"Terminating CloudRift instance '{machine_id}'...")
        try:
            await _terminate_instance(self.api_key, machine_id, self.api_url)
        except httpx.HTTPStatusError as e:
            if e.response.status_code != 404:
                raise
            logger.info(f"Instance '{machine_id}' already gone.")
