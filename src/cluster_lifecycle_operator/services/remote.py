"""Clients for the API of a provisioned remote cluster."""

from __future__ import annotations

from typing import Any

from kubernetes import config as k8s_config
from kubernetes.client.exceptions import ApiException
from kubernetes.dynamic import DynamicClient

from ..constants import KIND_ROUTE
from ..utils.kubeconfig import load_kubeconfig
from .store import translate_api_exception

ROUTE_API_VERSION = "route.openshift.io/v1"


class RemoteClusterClient:
    """Read access to objects living on a remote cluster."""

    def __init__(self, dynamic_client: DynamicClient):
        self.client = dynamic_client

    def get_route(self, namespace: str, name: str) -> dict[str, Any]:
        """Fetch a Route from the remote cluster."""
        try:
            resource = self.client.resources.get(api_version=ROUTE_API_VERSION, kind=KIND_ROUTE)
            return resource.get(name=name, namespace=namespace).to_dict()
        except ApiException as e:
            raise translate_api_exception(e, KIND_ROUTE, name) from e


def build_remote_client(kubeconfig: bytes) -> RemoteClusterClient:
    """Build a client for the remote cluster described by ``kubeconfig``."""
    api_client = k8s_config.new_client_from_config_dict(load_kubeconfig(kubeconfig), persist_config=False)
    return RemoteClusterClient(DynamicClient(api_client))
