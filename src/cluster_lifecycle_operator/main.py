"""Main entry point for the Cluster Lifecycle Operator.

kopf only watches here: every event is mapped onto ClusterDeployment keys,
which are reconciled by the controller's own worker pool.
"""

from __future__ import annotations

import logging
from typing import Any

import kopf
from kubernetes import client as k8s_client
from kubernetes import config as k8s_config

from . import logging as structured_logging
from .config import OperatorConfig
from .constants import (
    API_GROUP,
    API_VERSION,
    LABEL_INSTALL_JOB,
    PLURAL_CLUSTER_DEPLOYMENTS,
    PLURAL_DEPROVISION_REQUESTS,
    PLURAL_DNS_ZONES,
)
from .handlers import ClusterDeploymentReconciler
from .health import start_metrics_server
from .metrics import PrometheusMetricsSink
from .notifications import NotificationSource, keys_for_notification
from .queue import Controller, WorkQueue
from .services.store import KubernetesObjectStore
from .tracing import initialize_tracing

logger = logging.getLogger(__name__)

_controller: Controller | None = None
_server: Any = None


def _load_kube_config() -> None:
    # In-cluster first, local kubeconfig for development
    try:
        k8s_config.load_incluster_config()
    except k8s_config.ConfigException:
        k8s_config.load_kube_config()


def build_controller(config: OperatorConfig) -> Controller:
    """Wire the store, reconciler and worker pool together."""
    metrics_sink = PrometheusMetricsSink()
    store = KubernetesObjectStore(k8s_client.ApiClient(), metrics_sink=metrics_sink)
    reconciler = ClusterDeploymentReconciler(store, config=config, metrics_sink=metrics_sink)
    queue = WorkQueue(min_retry_delay=config.min_retry_delay, max_retry_delay=config.max_retry_delay)
    return Controller(reconciler.reconcile, queue, workers=config.max_concurrent_reconciles)


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure the operator."""
    global _controller, _server

    structured_logging.setup_structured_logging()
    initialize_tracing()

    config = OperatorConfig.from_env()

    settings.posting.level = logging.WARNING
    settings.networking.request_timeout = 30.0
    settings.watching.server_timeout = 600
    settings.execution.max_workers = 4

    _load_kube_config()

    _controller = build_controller(config)
    _controller.start()

    _server = start_metrics_server(config.metrics_port, is_ready=lambda: _controller is not None)
    logger.info(f"Cluster lifecycle operator started, metrics on port {config.metrics_port}")


@kopf.on.cleanup()
def shutdown(**_: Any) -> None:
    """Stop the workers and the metrics server."""
    global _controller, _server

    if _controller is not None:
        _controller.stop()
        _controller = None
    if _server is not None:
        _server.shutdown()
        _server = None


def enqueue(source: NotificationSource, obj: dict[str, Any]) -> None:
    """Queue the ClusterDeployments a watched object maps to."""
    if _controller is None or not obj:
        return
    for key in keys_for_notification(source, obj):
        _controller.queue.add(key)


@kopf.on.event(API_GROUP, API_VERSION, PLURAL_CLUSTER_DEPLOYMENTS)
def on_cluster_deployment_event(event: dict[str, Any], **_: Any) -> None:
    enqueue(NotificationSource.CLUSTER_DEPLOYMENT, event.get("object") or {})


@kopf.on.event("batch", "v1", "jobs")
def on_job_event(event: dict[str, Any], **_: Any) -> None:
    enqueue(NotificationSource.OWNED_CHILD, event.get("object") or {})


@kopf.on.event(API_GROUP, API_VERSION, PLURAL_DNS_ZONES)
def on_dns_zone_event(event: dict[str, Any], **_: Any) -> None:
    enqueue(NotificationSource.OWNED_CHILD, event.get("object") or {})


@kopf.on.event(API_GROUP, API_VERSION, PLURAL_DEPROVISION_REQUESTS)
def on_deprovision_request_event(event: dict[str, Any], **_: Any) -> None:
    enqueue(NotificationSource.OWNED_CHILD, event.get("object") or {})


@kopf.on.event("", "v1", "pods", labels={LABEL_INSTALL_JOB: "true"})
def on_install_pod_event(event: dict[str, Any], **_: Any) -> None:
    enqueue(NotificationSource.INSTALL_POD, event.get("object") or {})


def run() -> None:
    """Console script entry point."""
    kopf.run(clusterwide=True)
