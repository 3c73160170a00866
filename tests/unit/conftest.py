"""Shared fixtures: an in-memory object store, a recording metrics sink and object factories."""

from __future__ import annotations

import base64
import copy
import itertools
from datetime import datetime, timezone
from typing import Any, Callable
from unittest.mock import MagicMock

import pytest

from cluster_lifecycle_operator.config import OperatorConfig
from cluster_lifecycle_operator.constants import (
    API_GROUP_VERSION,
    FINALIZER_DEPROVISION,
    KIND_CLUSTER_DEPLOYMENT,
    KIND_SECRET,
    PROPAGATION_FOREGROUND,
    PULL_SECRET_KEY,
    SSH_KEY_SECRET_KEY,
)
from cluster_lifecycle_operator.handlers.clusterdeployment import ClusterDeploymentReconciler
from cluster_lifecycle_operator.metrics import MetricsSink
from cluster_lifecycle_operator.services.store import ConflictError, NotFoundError, ObjectStore

NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
NAMESPACE = "test-ns"
CD_NAME = "test-cd"

ADMIN_KUBECONFIG = b"""apiVersion: v1
clusters:
- cluster:
    certificate-authority-data: JUNK
    server: https://bar-api.clusters.example.com:6443
  name: bar
contexts:
- context:
    cluster: bar
    user: admin
  name: admin
current-context: admin
kind: Config
preferences: {}
users:
- name: admin
  user:
    client-certificate-data: JUNK
    client-key-data: JUNK
"""

# Kinds whose status is only written through the status subresource
STATUS_SUBRESOURCE_KINDS = {KIND_CLUSTER_DEPLOYMENT}


class FakeObjectStore(ObjectStore):
    """In-memory object store recording every write.

    Deleting an object that carries finalizers, or deleting with foreground
    propagation, only sets its deletion timestamp; :meth:`remove` finishes
    the garbage collection.
    """

    def __init__(self, objects: list[dict[str, Any]] | None = None):
        self.objects: dict[tuple[str, str | None, str], dict[str, Any]] = {}
        self.writes: list[tuple[str, str, str | None, str]] = []
        self.failures: dict[tuple[str, str], Exception] = {}
        self._versions = itertools.count(1)
        for obj in objects or []:
            self.add(obj)

    @staticmethod
    def _key(kind: str, name: str, namespace: str | None) -> tuple[str, str | None, str]:
        return kind, namespace, name

    @staticmethod
    def _obj_key(obj: dict[str, Any]) -> tuple[str, str | None, str]:
        meta = obj["metadata"]
        return obj["kind"], meta.get("namespace"), meta["name"]

    def _stamp(self, obj: dict[str, Any]) -> dict[str, Any]:
        obj["metadata"]["resourceVersion"] = str(next(self._versions))
        return obj

    def _check(self, verb: str, kind: str) -> None:
        error = self.failures.get((verb, kind))
        if error is not None:
            raise error

    def fail_on(self, verb: str, kind: str, error: Exception) -> None:
        self.failures[(verb, kind)] = error

    def add(self, obj: dict[str, Any]) -> None:
        """Seed an object without recording a write."""
        self.objects[self._obj_key(obj)] = self._stamp(copy.deepcopy(obj))

    def remove(self, kind: str, name: str, namespace: str | None = None) -> None:
        """Complete garbage collection of an object."""
        self.objects.pop(self._key(kind, name, namespace), None)

    def find(self, kind: str, name: str, namespace: str | None = None) -> dict[str, Any] | None:
        return self.objects.get(self._key(kind, name, namespace))

    def writes_of(self, verb: str | None = None, kind: str | None = None) -> list[tuple[str, str, str | None, str]]:
        return [w for w in self.writes if (verb is None or w[0] == verb) and (kind is None or w[1] == kind)]

    def get(self, kind: str, name: str, namespace: str | None = None) -> dict[str, Any]:
        self._check("get", kind)
        obj = self.objects.get(self._key(kind, name, namespace))
        if obj is None:
            raise NotFoundError(f"{kind} {name} not found", status=404)
        return copy.deepcopy(obj)

    def create(self, obj: dict[str, Any]) -> dict[str, Any]:
        self._check("create", obj["kind"])
        key = self._obj_key(obj)
        if key in self.objects:
            raise ConflictError(f"{obj['kind']} {key[2]} already exists", status=409)
        stored = self._stamp(copy.deepcopy(obj))
        self.objects[key] = stored
        self.writes.append(("create", *key))
        return copy.deepcopy(stored)

    def update(self, obj: dict[str, Any]) -> dict[str, Any]:
        self._check("update", obj["kind"])
        key = self._obj_key(obj)
        existing = self.objects.get(key)
        if existing is None:
            raise NotFoundError(f"{obj['kind']} {key[2]} not found", status=404)
        stored = self._stamp(copy.deepcopy(obj))
        if obj["kind"] in STATUS_SUBRESOURCE_KINDS:
            stored["status"] = copy.deepcopy(existing.get("status", {}))
        self.writes.append(("update", *key))
        meta = stored["metadata"]
        if meta.get("deletionTimestamp") and not meta.get("finalizers"):
            del self.objects[key]
        else:
            self.objects[key] = stored
        return copy.deepcopy(stored)

    def update_status(self, obj: dict[str, Any]) -> dict[str, Any]:
        self._check("update_status", obj["kind"])
        key = self._obj_key(obj)
        existing = self.objects.get(key)
        if existing is None:
            raise NotFoundError(f"{obj['kind']} {key[2]} not found", status=404)
        existing["status"] = copy.deepcopy(obj.get("status", {}))
        self._stamp(existing)
        self.writes.append(("update_status", *key))
        return copy.deepcopy(existing)

    def delete(
        self,
        kind: str,
        name: str,
        namespace: str | None = None,
        propagation_policy: str | None = None,
    ) -> None:
        self._check("delete", kind)
        key = self._key(kind, name, namespace)
        existing = self.objects.get(key)
        if existing is None:
            raise NotFoundError(f"{kind} {name} not found", status=404)
        self.writes.append(("delete", *key))
        meta = existing["metadata"]
        if meta.get("finalizers") or propagation_policy == PROPAGATION_FOREGROUND:
            meta.setdefault("deletionTimestamp", NOW.strftime("%Y-%m-%dT%H:%M:%SZ"))
        else:
            del self.objects[key]

    def list(
        self,
        kind: str,
        namespace: str | None = None,
        label_selector: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        self._check("list", kind)
        selector = label_selector or {}
        items = []
        for (obj_kind, obj_ns, _), obj in self.objects.items():
            if obj_kind != kind or (namespace is not None and obj_ns != namespace):
                continue
            labels = obj["metadata"].get("labels") or {}
            if all(labels.get(k) == v for k, v in selector.items()):
                items.append(copy.deepcopy(obj))
        return items


class RecordingMetricsSink(MetricsSink):
    """Metrics sink remembering every observation in order."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    def named(self, name: str) -> list[tuple[Any, ...]]:
        return [args for call, args in self.calls if call == name]

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))

    def reconcile(self, kind, result):
        self._record("reconcile", kind, result)

    def reconcile_duration(self, kind, seconds):
        self._record("reconcile_duration", kind, seconds)

    def error(self, kind, error_type):
        self._record("error", kind, error_type)

    def kube_client_request(self, controller, method, resource):
        self._record("kube_client_request", controller, method, resource)

    def cluster_created(self, cluster_type):
        self._record("cluster_created", cluster_type)

    def cluster_installed(self, cluster_type):
        self._record("cluster_installed", cluster_type)

    def cluster_deleted(self, cluster_type):
        self._record("cluster_deleted", cluster_type)

    def install_job_duration(self, seconds):
        self._record("install_job_duration", seconds)

    def completed_install_restarts(self, cluster_type, restarts):
        self._record("completed_install_restarts", cluster_type, restarts)

    def install_job_delay(self, seconds):
        self._record("install_job_delay", seconds)

    def imageset_job_delay(self, seconds):
        self._record("imageset_job_delay", seconds)

    def provision_underway(self, name, namespace, cluster_type, seconds):
        self._record("provision_underway", name, namespace, cluster_type, seconds)

    def deprovision_underway(self, name, namespace, cluster_type, seconds):
        self._record("deprovision_underway", name, namespace, cluster_type, seconds)


def make_secret(name: str, data: dict[str, bytes], namespace: str = NAMESPACE) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": KIND_SECRET,
        "metadata": {"name": name, "namespace": namespace},
        "data": {k: base64.b64encode(v).decode("ascii") for k, v in data.items()},
    }


def make_cluster_deployment(
    name: str = CD_NAME,
    namespace: str = NAMESPACE,
    finalizer: bool = True,
    installer_image: str | None = "quay.io/example/installer:v1",
    **spec_overrides: Any,
) -> dict[str, Any]:
    spec = {
        "clusterName": "bar",
        "baseDomain": "clusters.example.com",
        "ingress": [{"name": "default", "domain": "apps.bar.clusters.example.com"}],
        "images": {
            "operatorImage": "quay.io/example/operator:v1",
            "releaseImage": "quay.io/example/release:v1",
        },
        "platform": {"aws": {"region": "us-east-1", "userTags": {"team": "infra", "env": "test"}}},
        "platformSecrets": {"aws": {"credentials": {"name": "aws-creds"}}},
        "sshKey": {"name": "ssh-key"},
        "pullSecret": {"name": "pull-secret"},
        "manageDNS": False,
        "preserveOnDelete": False,
    }
    spec.update(spec_overrides)
    status: dict[str, Any] = {}
    if installer_image:
        status["installerImage"] = installer_image
    return {
        "apiVersion": API_GROUP_VERSION,
        "kind": KIND_CLUSTER_DEPLOYMENT,
        "metadata": {
            "name": name,
            "namespace": namespace,
            "uid": "uid-1234",
            "generation": 1,
            "creationTimestamp": "2026-01-01T11:30:00Z",
            "finalizers": [FINALIZER_DEPROVISION] if finalizer else [],
            "labels": {},
            "annotations": {},
        },
        "spec": spec,
        "status": status,
    }


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: NOW


@pytest.fixture
def store() -> FakeObjectStore:
    return FakeObjectStore([
        make_secret("ssh-key", {SSH_KEY_SECRET_KEY: b"ssh-rsa AAAAB3NzaC1yc2E test@example.com"}),
        make_secret("pull-secret", {PULL_SECRET_KEY: b'{"auths":{"quay.io":{"auth":"dXNlcjpwYXNz"}}}'}),
    ])


@pytest.fixture
def metrics_sink() -> RecordingMetricsSink:
    return RecordingMetricsSink()


@pytest.fixture
def recorder() -> MagicMock:
    return MagicMock()


@pytest.fixture
def remote_client() -> MagicMock:
    client = MagicMock()
    client.get_route.return_value = {"spec": {"host": "console-openshift-console.apps.bar.clusters.example.com"}}
    return client


@pytest.fixture
def remote_factory(remote_client: MagicMock) -> MagicMock:
    return MagicMock(return_value=remote_client)


@pytest.fixture
def config() -> OperatorConfig:
    return OperatorConfig()


@pytest.fixture
def reconciler(
    store: FakeObjectStore,
    config: OperatorConfig,
    metrics_sink: RecordingMetricsSink,
    recorder: MagicMock,
    clock: Callable[[], datetime],
    remote_factory: MagicMock,
) -> ClusterDeploymentReconciler:
    return ClusterDeploymentReconciler(
        store,
        config=config,
        metrics_sink=metrics_sink,
        recorder=recorder,
        clock=clock,
        remote_client_factory=remote_factory,
    )


@pytest.fixture
def cd_factory() -> Callable[..., dict[str, Any]]:
    return make_cluster_deployment


@pytest.fixture
def secret_factory() -> Callable[..., dict[str, Any]]:
    return make_secret
