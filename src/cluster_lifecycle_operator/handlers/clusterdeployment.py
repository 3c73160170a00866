"""Reconciliation of ClusterDeployment resources.

A pass runs an ordered sequence of steps over a :class:`ReconcileContext`.
Each step either returns a :class:`ReconcileResult`, which ends the pass, or
None to hand over to the next step. The observed object is never modified;
all changes are made on a deep copy and compared against it.
"""

from __future__ import annotations

import copy
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, NamedTuple

from ..builders.install import generate_install_job, install_job_name
from ..constants import (
    ANNOTATION_CLUSTER_DEPLOYMENT_GENERATION,
    ANNOTATION_DELETE_AFTER,
    ANNOTATION_JOB_HASH,
    COND_CLUSTER_IMAGE_SET_NOT_FOUND,
    EVENT_REASON_CLUSTER_EXPIRED,
    EVENT_REASON_CLUSTER_INSTALLED,
    EVENT_REASON_FINALIZER_ADDED,
    EVENT_REASON_IMAGE_SET_NOT_FOUND,
    EVENT_REASON_INSTALL_JOB_CREATED,
    EVENT_REASON_RECONCILE_FAILED,
    FINALIZER_DEPROVISION,
    KIND_CLUSTER_DEPLOYMENT,
    KIND_CLUSTER_IMAGE_SET,
    KIND_CONFIG_MAP,
    KIND_JOB,
    KIND_POD,
    LABEL_CLUSTER_DEPLOYMENT_NAME,
    LABEL_INSTALL_JOB,
    PROPAGATION_FOREGROUND,
    PULL_SECRET_KEY,
    REASON_CLUSTER_IMAGE_SET_FOUND,
    REASON_CLUSTER_IMAGE_SET_NOT_FOUND,
    SERVICE_ACCOUNT_NAME,
    SSH_KEY_SECRET_KEY,
)
from ..metrics import get_cluster_type
from ..services.remote import build_remote_client
from ..services.store import StoreError
from ..utils.conditions import is_condition_true, set_condition
from ..utils.errors import ConfigurationError, sanitize_exception
from ..utils.hashing import calculate_job_spec_hash
from ..utils.jobs import is_successful, is_terminating
from ..utils.ownership import set_controller_reference
from ..utils.secrets import load_secret_value
from ..utils.timeutils import parse_duration, parse_timestamp, utcnow
from .base import DONE, BaseHandler, ReconcileResult
from .deletion import DeletionWorkflow
from .dependency import ManagedDNSZoneGate
from .images import Images, InstallerImageResolver, resolve_images
from .status import RemoteClientFactory, StatusConvergence

WILDCARD_PREFIX = "*."


class ExpiryDecision(NamedTuple):
    expired: bool
    requeue_after: float | None = None


@dataclass
class ReconcileContext:
    """State shared by the steps of a single reconciliation pass."""

    observed: dict[str, Any]
    cd: dict[str, Any]
    image_set: dict[str, Any] | None = None
    images: Images | None = None
    requeue_after: float | None = None
    ssh_key: bytes = b""
    existing_job: dict[str, Any] | None = None
    first_installed_observe: bool = False
    container_restarts: int = 0

    @property
    def meta(self) -> dict[str, Any]:
        return self.cd["metadata"]

    @property
    def spec(self) -> dict[str, Any]:
        return self.cd.setdefault("spec", {})

    @property
    def status(self) -> dict[str, Any]:
        return self.cd.setdefault("status", {})


def migrate_wildcard_ingress(cd: dict[str, Any]) -> bool:
    """Strip a leading ``*.`` from ingress domains. Returns True if any changed."""
    migrated = False
    for ingress in (cd.get("spec") or {}).get("ingress") or []:
        domain = ingress.get("domain") or ""
        if domain[:2].lower() == WILDCARD_PREFIX:
            ingress["domain"] = domain[2:]
            migrated = True
    return migrated


def expiry_decision(cd: dict[str, Any], now: datetime, grace: float) -> ExpiryDecision:
    """Decide what the delete-after annotation asks for.

    Raises:
        ConfigurationError: If the annotation is not a valid duration
    """
    meta = cd.get("metadata") or {}
    delete_after = (meta.get("annotations") or {}).get(ANNOTATION_DELETE_AFTER)
    if delete_after is None:
        return ExpiryDecision(expired=False)
    try:
        lifetime = parse_duration(delete_after)
    except ValueError as e:
        raise ConfigurationError(f"error parsing {ANNOTATION_DELETE_AFTER} as a duration: {e}") from e

    created = parse_timestamp(meta.get("creationTimestamp"))
    if created is None:
        return ExpiryDecision(expired=False)
    expiry = created + lifetime
    if now > expiry:
        return ExpiryDecision(expired=True)
    return ExpiryDecision(expired=False, requeue_after=(expiry - now + timedelta(seconds=grace)).total_seconds())


def _generation_annotation(obj: dict[str, Any]) -> int | None:
    value = ((obj.get("metadata") or {}).get("annotations") or {}).get(ANNOTATION_CLUSTER_DEPLOYMENT_GENERATION)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return 0


def job_generation_outdated(obj: dict[str, Any], generation: int) -> bool:
    """Return True if ``obj`` was generated from an older ClusterDeployment generation."""
    recorded = _generation_annotation(obj)
    return recorded is not None and recorded < generation


def job_needs_replacement(existing: dict[str, Any], generated: dict[str, Any]) -> bool:
    """Return True if the existing job lacks a hash or its hash differs from the generated job's."""
    existing_hash = ((existing.get("metadata") or {}).get("annotations") or {}).get(ANNOTATION_JOB_HASH)
    if existing_hash is None:
        return True
    return existing_hash != generated["metadata"]["annotations"].get(ANNOTATION_JOB_HASH)


def count_container_restarts(pods: list[dict[str, Any]]) -> int:
    return sum(
        cs.get("restartCount", 0)
        for pod in pods
        for cs in (pod.get("status") or {}).get("containerStatuses") or []
    )


class ClusterDeploymentReconciler(BaseHandler):
    """Drives a ClusterDeployment through install, steady state and teardown."""

    def __init__(
        self,
        store: Any,
        config: Any = None,
        metrics_sink: Any = None,
        recorder: Any = None,
        clock: Callable[[], datetime] = utcnow,
        remote_client_factory: RemoteClientFactory = build_remote_client,
    ):
        super().__init__(KIND_CLUSTER_DEPLOYMENT, store, config, metrics_sink, recorder, clock)
        shared = {
            "store": store,
            "config": self.config,
            "metrics_sink": self.metrics,
            "recorder": self.recorder,
            "clock": clock,
        }
        self.installer_images = InstallerImageResolver(KIND_CLUSTER_DEPLOYMENT, **shared)
        self.dns_gate = ManagedDNSZoneGate(**shared)
        self.deletion = DeletionWorkflow(**shared)
        self.status = StatusConvergence(remote_client_factory=remote_client_factory, **shared)
        self.steps = (
            self._migrate_ingress,
            self._resolve_image_set,
            self._compute_images,
            self._handle_deletion,
            self._check_expiry,
            self._attach_finalizer,
            self._load_ssh_key,
            self._resolve_installer_image,
            self._gate_managed_dns,
            self._observe_install_job,
            self._sync_install_job,
            self._converge_status,
            self._report_installed,
            self._finish,
        )

    def reconcile(self, key: tuple[str, str]) -> ReconcileResult:
        """Reconcile the ClusterDeployment identified by ``(namespace, name)``."""
        namespace, name = key
        meta = {"name": name, "namespace": namespace}
        return self.reconcile_with_metrics(meta, lambda: self._reconcile(meta))

    def _reconcile(self, meta: dict[str, Any]) -> ReconcileResult:
        start = time.time()
        self.log_debug(meta, "reconciling cluster deployment")
        cd = self.get_optional(KIND_CLUSTER_DEPLOYMENT, meta["name"], meta["namespace"])
        if cd is None:
            self.log_debug(meta, "cluster deployment not found")
            return DONE

        ctx = ReconcileContext(observed=cd, cd=copy.deepcopy(cd))
        try:
            for step in self.steps:
                result = step(ctx)
                if result is not None:
                    return result
        except Exception as e:
            self.recorder.warning(ctx.cd, EVENT_REASON_RECONCILE_FAILED, f"Reconciliation failed: {sanitize_exception(e)}")
            raise
        finally:
            self.log_debug(ctx.meta, "reconcile complete", elapsed=round(time.time() - start, 3))
        return DONE

    def _migrate_ingress(self, ctx: ReconcileContext) -> ReconcileResult | None:
        if not migrate_wildcard_ingress(ctx.cd):
            return None
        self.log_info(ctx.meta, "migrating wildcard ingress entries", reason="IngressMigrated")
        self.store.update(ctx.cd)
        return DONE

    def _resolve_image_set(self, ctx: ReconcileContext) -> ReconcileResult | None:
        name = (ctx.spec.get("imageSet") or {}).get("name")
        if not name:
            return None

        conditions = ctx.status.get("conditions") or []
        image_set = self.get_optional(KIND_CLUSTER_IMAGE_SET, name)
        if image_set is None:
            self.log_warning(ctx.meta, "cluster deployment references non-existent clusterimageset", image_set=name)
            updated = set_condition(
                conditions,
                COND_CLUSTER_IMAGE_SET_NOT_FOUND,
                True,
                REASON_CLUSTER_IMAGE_SET_NOT_FOUND,
                f"ClusterImageSet {name} is not available",
                now=self.clock(),
            )
            if updated == conditions:
                return None
            ctx.status["conditions"] = updated
            self.store.update_status(ctx.cd)
            self.recorder.warning(ctx.cd, EVENT_REASON_IMAGE_SET_NOT_FOUND, f"ClusterImageSet {name} is not available")
            return DONE

        if is_condition_true(conditions, COND_CLUSTER_IMAGE_SET_NOT_FOUND):
            ctx.status["conditions"] = set_condition(
                conditions,
                COND_CLUSTER_IMAGE_SET_NOT_FOUND,
                False,
                REASON_CLUSTER_IMAGE_SET_FOUND,
                f"ClusterImageSet {name} is available",
                now=self.clock(),
            )
            self.store.update_status(ctx.cd)
            return DONE

        ctx.image_set = image_set
        return None

    def _compute_images(self, ctx: ReconcileContext) -> None:
        ctx.images = resolve_images(ctx.cd, ctx.image_set, self.config.default_operator_image)

    def _handle_deletion(self, ctx: ReconcileContext) -> ReconcileResult | None:
        deleted_at = parse_timestamp(ctx.meta.get("deletionTimestamp"))
        if deleted_at is None:
            return None
        if FINALIZER_DEPROVISION not in (ctx.meta.get("finalizers") or []):
            self.clear_underway_metrics(ctx.cd)
            return DONE

        ct = get_cluster_type(ctx.cd)
        name, namespace = ctx.meta["name"], ctx.meta["namespace"]
        self.metrics.deprovision_underway(name, namespace, ct, (self.clock() - deleted_at).total_seconds())
        if not ctx.status.get("installed"):
            self.metrics.provision_underway(name, namespace, ct, 0.0)
        return self.deletion.run(ctx.cd)

    def _check_expiry(self, ctx: ReconcileContext) -> ReconcileResult | None:
        decision = expiry_decision(ctx.cd, self.clock(), self.config.expiry_requeue_grace)
        if decision.expired:
            self.log_info(ctx.meta, "cluster has expired, issuing delete", reason=EVENT_REASON_CLUSTER_EXPIRED)
            self.recorder.emit(ctx.cd, EVENT_REASON_CLUSTER_EXPIRED, "Cluster expired, deleting")
            self.store.delete(KIND_CLUSTER_DEPLOYMENT, ctx.meta["name"], ctx.meta["namespace"])
            return DONE
        ctx.requeue_after = decision.requeue_after
        return None

    def _attach_finalizer(self, ctx: ReconcileContext) -> ReconcileResult | None:
        if FINALIZER_DEPROVISION in (ctx.meta.get("finalizers") or []):
            return None
        updated = copy.deepcopy(ctx.cd)
        self.ensure_finalizer(updated)
        self.log_debug(ctx.meta, "adding deprovision finalizer")
        self.store.update(updated)
        self.metrics.cluster_created(get_cluster_type(updated))
        self.recorder.emit(updated, EVENT_REASON_FINALIZER_ADDED, "Added deprovision finalizer")
        return DONE

    def _load_ssh_key(self, ctx: ReconcileContext) -> None:
        secret_name = (ctx.spec.get("sshKey") or {}).get("name")
        if not secret_name:
            self.log_error(ctx.meta, "cluster has no ssh key set, unable to launch install", reason="SSHKeyMissing")
            raise ConfigurationError("cluster has no ssh key set, unable to launch install")
        ctx.ssh_key = load_secret_value(self.store, secret_name, ctx.meta["namespace"], SSH_KEY_SECRET_KEY)

    def _resolve_installer_image(self, ctx: ReconcileContext) -> ReconcileResult | None:
        if ctx.status.get("installerImage"):
            return None
        return self.installer_images.resolve(ctx.cd, ctx.image_set, ctx.images)

    def _gate_managed_dns(self, ctx: ReconcileContext) -> ReconcileResult | None:
        if not ctx.spec.get("manageDNS"):
            return None
        if self.dns_gate.ready(ctx.cd):
            return None
        # The owned DNSZone's status update requeues us once it is available
        self.log_debug(ctx.meta, "DNSZone is not yet available, waiting for zone to become available")
        return DONE

    def _observe_install_job(self, ctx: ReconcileContext) -> ReconcileResult | None:
        job = self.get_optional(KIND_JOB, install_job_name(ctx.meta["name"]), ctx.meta["namespace"])
        if job is not None and is_terminating(job):
            self.log_debug(ctx.meta, "install job is being deleted, requeueing to wait for deletion")
            return ReconcileResult(requeue_after=self.config.requeue_delay)
        if job is not None and is_successful(job) and not ctx.status.get("installed"):
            ctx.first_installed_observe = True
        ctx.existing_job = job
        return None

    def _sync_install_job(self, ctx: ReconcileContext) -> ReconcileResult | None:
        if ctx.status.get("installed"):
            self.log_debug(ctx.meta, "cluster is already installed, no processing of install job needed")
            return None

        meta = ctx.meta
        created = parse_timestamp(meta.get("creationTimestamp"))
        since_created = (self.clock() - created).total_seconds() if created else 0.0
        self.metrics.provision_underway(meta["name"], meta["namespace"], get_cluster_type(ctx.cd), since_created)

        pull_secret_name = (ctx.spec.get("pullSecret") or {}).get("name")
        if not pull_secret_name:
            raise ConfigurationError("cluster has no pull secret set, unable to launch install")
        pull_secret = load_secret_value(self.store, pull_secret_name, meta["namespace"], PULL_SECRET_KEY)

        job, cfg_map = generate_install_job(ctx.cd, ctx.images, SERVICE_ACCOUNT_NAME, ctx.ssh_key, pull_secret)
        job["metadata"].setdefault("annotations", {})[ANNOTATION_JOB_HASH] = calculate_job_spec_hash(job)
        set_controller_reference(ctx.cd, job)
        set_controller_reference(ctx.cd, cfg_map)
        job_name = job["metadata"]["name"]

        existing_cfg_map = self.get_optional(KIND_CONFIG_MAP, cfg_map["metadata"]["name"], meta["namespace"])
        if existing_cfg_map is None:
            self.log_info(meta, "creating install config map", config_map=cfg_map["metadata"]["name"])
            self.store.create(cfg_map)

        existing_job = ctx.existing_job
        if existing_job is None:
            self.log_info(meta, "creating install job", reason=EVENT_REASON_INSTALL_JOB_CREATED, job=job_name)
            self.ensure_installer_service_account(meta["namespace"])
            self.store.create(job)
            self.metrics.install_job_delay(since_created)
            self.recorder.emit(ctx.cd, EVENT_REASON_INSTALL_JOB_CREATED, f"Created install job {job_name}")
            return None

        try:
            restarts = self._count_install_pod_restarts(ctx.cd)
        except StoreError as e:
            self.log_warning(meta, "error listing pods, unable to calculate pod restarts but continuing", error=sanitize_exception(e))
        else:
            if restarts > 0:
                self.log_warning(meta, "install pod has restarted", restarts=restarts)
            ctx.status["installRestarts"] = restarts
            ctx.container_restarts = restarts

        generation = meta.get("generation", 0)
        generation_changed = False
        if job_generation_outdated(existing_job, generation):
            self.log_info(meta, "deleting outdated install job due to cluster deployment generation change", job=job_name)
            self._delete_install_job(meta, job_name)
            generation_changed = True
        if existing_cfg_map is not None and job_generation_outdated(existing_cfg_map, generation):
            self.log_info(meta, "updating outdated install config map due to cluster deployment generation change")
            refreshed = copy.deepcopy(existing_cfg_map)
            refreshed["data"] = cfg_map["data"]
            refreshed["metadata"]["annotations"] = {
                **(refreshed["metadata"].get("annotations") or {}),
                **cfg_map["metadata"]["annotations"],
            }
            self.store.update(refreshed)
            generation_changed = True
        if generation_changed:
            return DONE

        if job_needs_replacement(existing_job, job):
            self.log_info(meta, "deleting existing install job due to updated or missing hash", job=job_name)
            self._delete_install_job(meta, job_name)
            return DONE
        return None

    def _delete_install_job(self, meta: dict[str, Any], job_name: str) -> None:
        self.store.delete(KIND_JOB, job_name, meta["namespace"], propagation_policy=PROPAGATION_FOREGROUND)

    def _count_install_pod_restarts(self, cd: dict[str, Any]) -> int:
        meta = cd["metadata"]
        pods = self.store.list(
            KIND_POD,
            namespace=meta["namespace"],
            label_selector={LABEL_CLUSTER_DEPLOYMENT_NAME: meta["name"], LABEL_INSTALL_JOB: "true"},
        )
        if len(pods) > 1:
            self.log_warning(meta, f"found {len(pods)} install pods for cluster")
        return count_container_restarts(pods)

    def _converge_status(self, ctx: ReconcileContext) -> None:
        self.status.converge(ctx.cd, ctx.observed, ctx.existing_job)

    def _report_installed(self, ctx: ReconcileContext) -> None:
        if not ctx.first_installed_observe:
            return
        meta = ctx.meta
        ct = get_cluster_type(ctx.cd)
        job_status = ctx.existing_job.get("status") or {}
        started = parse_timestamp(job_status.get("startTime"))
        completed = parse_timestamp(job_status.get("completionTime"))
        if started is not None and completed is not None:
            duration = (completed - started).total_seconds()
            self.log_debug(meta, "install job completed", duration=duration)
            self.metrics.install_job_duration(duration)
        self.metrics.completed_install_restarts(ct, ctx.container_restarts)
        self.metrics.provision_underway(meta["name"], meta["namespace"], ct, 0.0)
        self.metrics.cluster_installed(ct)
        self.log_info(meta, "cluster installed", reason=EVENT_REASON_CLUSTER_INSTALLED)
        self.recorder.emit(ctx.cd, EVENT_REASON_CLUSTER_INSTALLED, "Cluster installation completed")

    def _finish(self, ctx: ReconcileContext) -> ReconcileResult:
        if ctx.requeue_after is not None:
            self.log_debug(ctx.meta, "cluster will re-sync due to expiry", requeue_after=ctx.requeue_after)
        return ReconcileResult(requeue_after=ctx.requeue_after)
