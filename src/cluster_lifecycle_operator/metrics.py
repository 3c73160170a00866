"""Prometheus metrics for the Cluster Lifecycle Operator."""

from __future__ import annotations

from typing import Any

from prometheus_client import Counter, Gauge, Histogram

from .constants import DEFAULT_CLUSTER_TYPE, LABEL_CLUSTER_TYPE

# Reconciliation metrics
reconcile_total = Counter(
    "cluster_lifecycle_operator_reconcile_total",
    "Total number of reconciliations",
    ["kind", "result"],
)

reconcile_duration_seconds = Histogram(
    "cluster_lifecycle_operator_reconcile_duration_seconds",
    "Duration of reconciliations in seconds",
    ["kind"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0],
)

error_total = Counter(
    "cluster_lifecycle_operator_error_total",
    "Total number of reconciliation errors",
    ["kind", "error_type"],
)

# Kubernetes client metrics
kube_client_requests_total = Counter(
    "cluster_lifecycle_operator_kube_client_requests_total",
    "Counter incremented for each kube client request.",
    ["controller", "method", "resource"],
)

# Cluster lifecycle metrics
clusters_created_total = Counter(
    "cluster_lifecycle_operator_cluster_deployments_created_total",
    "Counter incremented every time we observe a new cluster.",
    ["cluster_type"],
)

clusters_installed_total = Counter(
    "cluster_lifecycle_operator_cluster_deployments_installed_total",
    "Counter incremented every time we observe a successful installation.",
    ["cluster_type"],
)

clusters_deleted_total = Counter(
    "cluster_lifecycle_operator_cluster_deployments_deleted_total",
    "Counter incremented every time we observe a deleted cluster.",
    ["cluster_type"],
)

completed_install_restarts = Histogram(
    "cluster_lifecycle_operator_cluster_deployment_completed_install_restart",
    "Distribution of the number of restarts for all completed cluster installations.",
    ["cluster_type"],
    buckets=[0, 2, 10, 20, 50],
)

install_job_duration_seconds = Histogram(
    "cluster_lifecycle_operator_cluster_deployment_install_job_duration_seconds",
    "Distribution of the runtime of completed install jobs.",
    buckets=[60, 300, 600, 1200, 1800, 2400, 3000, 3600],
)

install_job_delay_seconds = Histogram(
    "cluster_lifecycle_operator_cluster_deployment_install_job_delay_seconds",
    "Time between cluster deployment creation and creation of the install job.",
    buckets=[30, 60, 120, 300, 600, 1200, 1800],
)

imageset_job_delay_seconds = Histogram(
    "cluster_lifecycle_operator_cluster_deployment_imageset_job_delay_seconds",
    "Time between cluster deployment creation and creation of the installer image resolution job.",
    buckets=[10, 30, 60, 300, 600, 1200, 1800],
)

provision_underway_seconds = Gauge(
    "cluster_lifecycle_operator_cluster_deployment_provision_underway_seconds",
    "Length of time a cluster has been provisioning. Zero once installed.",
    ["cluster_deployment", "namespace", "cluster_type"],
)

deprovision_underway_seconds = Gauge(
    "cluster_lifecycle_operator_cluster_deployment_deprovision_underway_seconds",
    "Length of time a cluster has been deprovisioning. Zero once the finalizer is removed.",
    ["cluster_deployment", "namespace", "cluster_type"],
)


def get_cluster_type(cd: dict[str, Any]) -> str:
    """Return the cluster type label value of a ClusterDeployment."""
    labels = (cd.get("metadata") or {}).get("labels") or {}
    return labels.get(LABEL_CLUSTER_TYPE) or DEFAULT_CLUSTER_TYPE


class MetricsSink:
    """Receives the observations made during reconciliation.

    The base class discards everything; it is what the reconciler uses when
    no sink is injected.
    """

    def reconcile(self, kind: str, result: str) -> None:
        pass

    def reconcile_duration(self, kind: str, seconds: float) -> None:
        pass

    def error(self, kind: str, error_type: str) -> None:
        pass

    def kube_client_request(self, controller: str, method: str, resource: str) -> None:
        pass

    def cluster_created(self, cluster_type: str) -> None:
        pass

    def cluster_installed(self, cluster_type: str) -> None:
        pass

    def cluster_deleted(self, cluster_type: str) -> None:
        pass

    def install_job_duration(self, seconds: float) -> None:
        pass

    def completed_install_restarts(self, cluster_type: str, restarts: int) -> None:
        pass

    def install_job_delay(self, seconds: float) -> None:
        pass

    def imageset_job_delay(self, seconds: float) -> None:
        pass

    def provision_underway(self, name: str, namespace: str, cluster_type: str, seconds: float) -> None:
        pass

    def deprovision_underway(self, name: str, namespace: str, cluster_type: str, seconds: float) -> None:
        pass


class PrometheusMetricsSink(MetricsSink):
    """Records observations in the process-wide Prometheus registry."""

    def reconcile(self, kind: str, result: str) -> None:
        reconcile_total.labels(kind=kind, result=result).inc()

    def reconcile_duration(self, kind: str, seconds: float) -> None:
        reconcile_duration_seconds.labels(kind=kind).observe(seconds)

    def error(self, kind: str, error_type: str) -> None:
        error_total.labels(kind=kind, error_type=error_type).inc()

    def kube_client_request(self, controller: str, method: str, resource: str) -> None:
        kube_client_requests_total.labels(controller=controller, method=method, resource=resource).inc()

    def cluster_created(self, cluster_type: str) -> None:
        clusters_created_total.labels(cluster_type=cluster_type).inc()

    def cluster_installed(self, cluster_type: str) -> None:
        clusters_installed_total.labels(cluster_type=cluster_type).inc()

    def cluster_deleted(self, cluster_type: str) -> None:
        clusters_deleted_total.labels(cluster_type=cluster_type).inc()

    def install_job_duration(self, seconds: float) -> None:
        install_job_duration_seconds.observe(seconds)

    def completed_install_restarts(self, cluster_type: str, restarts: int) -> None:
        completed_install_restarts.labels(cluster_type=cluster_type).observe(restarts)

    def install_job_delay(self, seconds: float) -> None:
        install_job_delay_seconds.observe(seconds)

    def imageset_job_delay(self, seconds: float) -> None:
        imageset_job_delay_seconds.observe(seconds)

    def provision_underway(self, name: str, namespace: str, cluster_type: str, seconds: float) -> None:
        provision_underway_seconds.labels(
            cluster_deployment=name, namespace=namespace, cluster_type=cluster_type
        ).set(seconds)

    def deprovision_underway(self, name: str, namespace: str, cluster_type: str, seconds: float) -> None:
        deprovision_underway_seconds.labels(
            cluster_deployment=name, namespace=namespace, cluster_type=cluster_type
        ).set(seconds)
