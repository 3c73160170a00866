"""Typed object store backed by the Kubernetes API.

Every object is exchanged as a plain Kubernetes-shaped dict. API failures are
translated into :class:`StoreError` subclasses so callers never need to know
about the client library's exception types.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from kubernetes import client as k8s_client
from kubernetes.client.exceptions import ApiException
from kubernetes.dynamic import DynamicClient
from kubernetes.dynamic.exceptions import ResourceNotFoundError

from ..constants import (
    API_GROUP_VERSION,
    CONTROLLER_NAME,
    KIND_CLUSTER_DEPLOYMENT,
    KIND_CLUSTER_IMAGE_SET,
    KIND_CONFIG_MAP,
    KIND_DEPROVISION_REQUEST,
    KIND_DNS_ZONE,
    KIND_EVENT,
    KIND_JOB,
    KIND_NAMESPACE,
    KIND_POD,
    KIND_ROLE,
    KIND_ROLE_BINDING,
    KIND_SECRET,
    KIND_SERVICE_ACCOUNT,
)
from ..metrics import MetricsSink

logger = logging.getLogger(__name__)

KIND_API_VERSIONS = {
    KIND_CLUSTER_DEPLOYMENT: API_GROUP_VERSION,
    KIND_CLUSTER_IMAGE_SET: API_GROUP_VERSION,
    KIND_DNS_ZONE: API_GROUP_VERSION,
    KIND_DEPROVISION_REQUEST: API_GROUP_VERSION,
    KIND_JOB: "batch/v1",
    KIND_POD: "v1",
    KIND_SECRET: "v1",
    KIND_CONFIG_MAP: "v1",
    KIND_NAMESPACE: "v1",
    KIND_SERVICE_ACCOUNT: "v1",
    KIND_EVENT: "v1",
    KIND_ROLE: "rbac.authorization.k8s.io/v1",
    KIND_ROLE_BINDING: "rbac.authorization.k8s.io/v1",
}


class StoreError(Exception):
    """A request to the object store failed."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class NotFoundError(StoreError):
    """The requested object does not exist."""


class ConflictError(StoreError):
    """The object changed since it was read, or already exists."""


def translate_api_exception(error: ApiException, kind: str, name: str | None) -> StoreError:
    """Map a Kubernetes API exception onto the store's error types."""
    target = f"{kind} {name}" if name else kind
    message = f"{target}: {error.reason or 'request failed'} ({error.status})"
    if error.status == 404:
        return NotFoundError(message, status=404)
    if error.status == 409:
        return ConflictError(message, status=409)
    return StoreError(message, status=error.status)


def _name_of(obj: dict[str, Any]) -> tuple[str, str | None]:
    meta = obj.get("metadata") or {}
    return meta.get("name", ""), meta.get("namespace")


class ObjectStore:
    """Interface of the object store the reconciler depends on."""

    def get(self, kind: str, name: str, namespace: str | None = None) -> dict[str, Any]:
        raise NotImplementedError

    def create(self, obj: dict[str, Any]) -> dict[str, Any]:
        raise NotImplementedError

    def update(self, obj: dict[str, Any]) -> dict[str, Any]:
        raise NotImplementedError

    def update_status(self, obj: dict[str, Any]) -> dict[str, Any]:
        raise NotImplementedError

    def delete(
        self,
        kind: str,
        name: str,
        namespace: str | None = None,
        propagation_policy: str | None = None,
    ) -> None:
        raise NotImplementedError

    def list(
        self,
        kind: str,
        namespace: str | None = None,
        label_selector: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        raise NotImplementedError


class KubernetesObjectStore(ObjectStore):
    """Object store speaking to the Kubernetes API through the dynamic client."""

    def __init__(
        self,
        api_client: k8s_client.ApiClient | None = None,
        controller: str = CONTROLLER_NAME,
        metrics_sink: MetricsSink | None = None,
    ):
        self.client = DynamicClient(api_client or k8s_client.ApiClient())
        self.controller = controller
        self.metrics = metrics_sink or MetricsSink()

    def _resource(self, kind: str, api_version: str | None = None) -> Any:
        api_version = api_version or KIND_API_VERSIONS.get(kind)
        try:
            return self.client.resources.get(api_version=api_version, kind=kind)
        except ResourceNotFoundError as e:
            raise StoreError(f"resource type {api_version}/{kind} is not served by the API server") from e

    def _call(self, method: str, resource: Any, kind: str, name: str | None, fn: Callable[[], Any]) -> Any:
        self.metrics.kube_client_request(
            self.controller, method, f"{resource.group or 'core'}/{resource.api_version}/{resource.name}"
        )
        start_time = time.time()
        try:
            return fn()
        except ApiException as e:
            raise translate_api_exception(e, kind, name) from e
        finally:
            logger.debug(f"{method} {kind} {name or ''} took {time.time() - start_time:.3f}s")

    def get(self, kind: str, name: str, namespace: str | None = None) -> dict[str, Any]:
        resource = self._resource(kind)
        result = self._call("GET", resource, kind, name, lambda: resource.get(name=name, namespace=namespace))
        return result.to_dict()

    def create(self, obj: dict[str, Any]) -> dict[str, Any]:
        kind = obj["kind"]
        name, namespace = _name_of(obj)
        resource = self._resource(kind, obj.get("apiVersion"))
        result = self._call("POST", resource, kind, name, lambda: resource.create(body=obj, namespace=namespace))
        return result.to_dict()

    def update(self, obj: dict[str, Any]) -> dict[str, Any]:
        kind = obj["kind"]
        name, namespace = _name_of(obj)
        resource = self._resource(kind, obj.get("apiVersion"))
        result = self._call("PUT", resource, kind, name, lambda: resource.replace(body=obj, namespace=namespace))
        return result.to_dict()

    def update_status(self, obj: dict[str, Any]) -> dict[str, Any]:
        kind = obj["kind"]
        name, namespace = _name_of(obj)
        resource = self._resource(kind, obj.get("apiVersion"))
        status = resource.subresources["status"]
        result = self._call(
            "PUT", resource, kind, name, lambda: self.client.replace(status, body=obj, namespace=namespace)
        )
        return result.to_dict()

    def delete(
        self,
        kind: str,
        name: str,
        namespace: str | None = None,
        propagation_policy: str | None = None,
    ) -> None:
        resource = self._resource(kind)
        body = {"apiVersion": "v1", "kind": "DeleteOptions"}
        if propagation_policy:
            body["propagationPolicy"] = propagation_policy
        self._call(
            "DELETE", resource, kind, name, lambda: resource.delete(name=name, namespace=namespace, body=body)
        )

    def list(
        self,
        kind: str,
        namespace: str | None = None,
        label_selector: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        resource = self._resource(kind)
        selector = ",".join(f"{k}={v}" for k, v in sorted((label_selector or {}).items())) or None
        result = self._call(
            "LIST", resource, kind, None, lambda: resource.get(namespace=namespace, label_selector=selector)
        )
        return result.to_dict().get("items", [])
