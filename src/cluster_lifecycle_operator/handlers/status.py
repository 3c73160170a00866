"""Convergence of ClusterDeployment status from its children and the remote cluster."""

from __future__ import annotations

from typing import Any, Callable

from ..constants import (
    ADMIN_KUBECONFIG_KEY,
    CONSOLE_ROUTE_NAME,
    CONSOLE_ROUTE_NAMESPACE,
    KIND_CLUSTER_DEPLOYMENT,
    KIND_SECRET,
    RAW_ADMIN_KUBECONFIG_KEY,
    SUFFIX_ADMIN_KUBECONFIG,
)
from ..services.remote import RemoteClusterClient, build_remote_client
from ..utils.jobs import is_successful
from ..utils.kubeconfig import fixup_kubeconfig, get_cluster_server
from ..utils.naming import get_resource_name
from ..utils.secrets import decode_secret_data, encode_secret_data
from .base import BaseHandler

RemoteClientFactory = Callable[[bytes], RemoteClusterClient]


def admin_kubeconfig_secret_name(cd_name: str) -> str:
    return get_resource_name(cd_name, SUFFIX_ADMIN_KUBECONFIG)


class StatusConvergence(BaseHandler):
    """Merges install job state and remote cluster details into status."""

    def __init__(self, *args: Any, remote_client_factory: RemoteClientFactory = build_remote_client, **kwargs: Any):
        super().__init__(KIND_CLUSTER_DEPLOYMENT, *args, **kwargs)
        self.remote_client_factory = remote_client_factory

    def converge(self, cd: dict[str, Any], observed: dict[str, Any], job: dict[str, Any] | None) -> bool:
        """Bring ``cd``'s status up to date and persist it if it changed.

        Args:
            cd: Working copy of the ClusterDeployment, updated in place
            observed: The ClusterDeployment as fetched at the start of the pass
            job: The install job, if one exists

        Returns:
            True if the status was written
        """
        meta = cd["metadata"]
        status = cd.setdefault("status", {})

        # An absent key already reads as not installed
        if job is not None and not status.get("installed"):
            if is_successful(job) or "installed" in status:
                status["installed"] = is_successful(job)

        # The install manager records the secret name; heal it when missing
        secret_ref = status.get("adminKubeconfigSecret") or {}
        if status.get("installed") and not secret_ref.get("name"):
            secret_ref = {"name": admin_kubeconfig_secret_name(meta["name"])}
            status["adminKubeconfigSecret"] = secret_ref

        if secret_ref.get("name"):
            secret = self.get_optional(KIND_SECRET, secret_ref["name"], meta["namespace"])
            if secret is None:
                self.log_warning(meta, "admin kubeconfig does not yet exist", secret=secret_ref["name"])
            else:
                kubeconfig = self.fixup_admin_kubeconfig_secret(meta, secret)
                self.set_admin_kubeconfig_status(cd, kubeconfig)

        if status == (observed.get("status") or {}):
            self.log_debug(meta, "status unchanged")
            return False

        self.log_info(meta, "status has changed, updating cluster deployment")
        self.store.update_status(cd)
        return True

    def fixup_admin_kubeconfig_secret(self, meta: dict[str, Any], secret: dict[str, Any]) -> bytes:
        """Normalize the admin kubeconfig, keeping the installer's original under ``raw-kubeconfig``.

        Returns:
            The normalized kubeconfig
        """
        original = decode_secret_data(secret)
        data = dict(original)
        if RAW_ADMIN_KUBECONFIG_KEY not in data:
            data[RAW_ADMIN_KUBECONFIG_KEY] = data.get(ADMIN_KUBECONFIG_KEY, b"")
        data[ADMIN_KUBECONFIG_KEY] = fixup_kubeconfig(data[RAW_ADMIN_KUBECONFIG_KEY])

        if data != original:
            self.log_info(meta, "updating admin kubeconfig secret", secret=secret["metadata"]["name"])
            secret["data"] = encode_secret_data(data)
            self.store.update(secret)
        return data[ADMIN_KUBECONFIG_KEY]

    def set_admin_kubeconfig_status(self, cd: dict[str, Any], kubeconfig: bytes) -> None:
        """Fill in the API and web console URLs from the remote cluster."""
        status = cd["status"]
        if status.get("apiURL") and status.get("webConsoleURL"):
            return

        remote = self.remote_client_factory(kubeconfig)
        status["apiURL"] = get_cluster_server(kubeconfig, cd["spec"].get("clusterName", ""))
        route = remote.get_route(CONSOLE_ROUTE_NAMESPACE, CONSOLE_ROUTE_NAME)
        status["webConsoleURL"] = "https://" + (route.get("spec") or {}).get("host", "")
        self.log_debug(cd["metadata"], "read remote cluster URLs", api_url=status["apiURL"])
