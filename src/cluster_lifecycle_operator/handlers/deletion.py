"""Finalizer-guarded teardown of a ClusterDeployment."""

from __future__ import annotations

import copy
from typing import Any

from ..builders.deprovision import build_deprovision_request
from ..builders.dnszone import dns_zone_name
from ..builders.install import install_job_name
from ..constants import (
    EVENT_REASON_DEPROVISION_REQUESTED,
    EVENT_REASON_FINALIZER_REMOVED,
    EVENT_REASON_INSTALL_JOB_DELETED,
    KIND_CLUSTER_DEPLOYMENT,
    KIND_DEPROVISION_REQUEST,
    KIND_DNS_ZONE,
    KIND_JOB,
    KIND_NAMESPACE,
    PROPAGATION_FOREGROUND,
)
from ..metrics import get_cluster_type
from ..services.store import StoreError
from ..utils.jobs import is_terminating
from ..utils.ownership import set_controller_reference
from .base import DONE, BaseHandler, ReconcileResult


class DeletionWorkflow(BaseHandler):
    """Tears down the children of a deleted ClusterDeployment.

    Runs only while the deletion timestamp is set and the deprovision finalizer
    is still present. Each pass makes at most one step of progress:

    1. force-delete a managed DNSZone that garbage collection missed
    2. delete the install job and wait for it to go away
    3. release installed clusters marked ``preserveOnDelete``
    4. release clusters that never recorded an infra ID
    5. create the ClusterDeprovisionRequest, then wait for it to complete
    """

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(KIND_CLUSTER_DEPLOYMENT, *args, **kwargs)

    def run(self, cd: dict[str, Any]) -> ReconcileResult:
        for step in (self._ensure_managed_dns_zone_deleted, self._ensure_install_job_deleted):
            result = step(cd)
            if result is not None:
                return result

        meta = cd["metadata"]
        spec = cd.get("spec") or {}
        status = cd.get("status") or {}

        if spec.get("preserveOnDelete"):
            if status.get("installed"):
                self.log_warning(meta, "skipping deprovision of installed cluster due to preserveOnDelete")
                return self.release(cd)
            self.log_info(meta, "preserveOnDelete is set but the cluster never finished installing, deprovisioning")

        if not status.get("infraID"):
            self.log_warning(meta, "skipping deprovision for cluster that never had an infra ID set")
            return self.release(cd)

        return self._sync_deprovision_request(cd)

    def _ensure_managed_dns_zone_deleted(self, cd: dict[str, Any]) -> ReconcileResult | None:
        if not (cd.get("spec") or {}).get("manageDNS"):
            return None
        meta = cd["metadata"]
        zone_name = dns_zone_name(meta["name"])
        zone = self.get_optional(KIND_DNS_ZONE, zone_name, meta["namespace"])
        if zone is None:
            self.log_debug(meta, "managed zone does not exist, nothing to clean up")
            return None
        if is_terminating(zone):
            self.log_debug(meta, "managed zone is being deleted, waiting for its deletion to complete")
            return ReconcileResult(requeue_after=self.config.requeue_delay)

        self.log_warning(meta, "managed zone was not marked for deletion with its owner, deleting it", zone=zone_name)
        self.store.delete(KIND_DNS_ZONE, zone_name, meta["namespace"], propagation_policy=PROPAGATION_FOREGROUND)
        return ReconcileResult(requeue_after=self.config.requeue_delay)

    def _ensure_install_job_deleted(self, cd: dict[str, Any]) -> ReconcileResult | None:
        meta = cd["metadata"]
        job_name = install_job_name(meta["name"])
        job = self.get_optional(KIND_JOB, job_name, meta["namespace"])
        if job is None:
            self.log_debug(meta, "install job no longer exists, nothing to clean up")
            return None
        if is_terminating(job):
            self.log_debug(meta, "install job is being deleted, waiting for its deletion to complete")
            return ReconcileResult(requeue_after=self.config.requeue_delay)

        self.store.delete(KIND_JOB, job_name, meta["namespace"], propagation_policy=PROPAGATION_FOREGROUND)
        self.log_info(meta, "install job deleted", reason=EVENT_REASON_INSTALL_JOB_DELETED, job=job_name)
        self.recorder.emit(cd, EVENT_REASON_INSTALL_JOB_DELETED, f"Deleted install job {job_name}")
        return DONE

    def _sync_deprovision_request(self, cd: dict[str, Any]) -> ReconcileResult:
        meta = cd["metadata"]
        existing = self.get_optional(KIND_DEPROVISION_REQUEST, meta["name"], meta["namespace"])
        if existing is not None:
            if (existing.get("status") or {}).get("completed"):
                self.log_info(meta, "deprovision request completed, removing finalizer")
                return self.release(cd)
            self.log_debug(meta, "deprovision request not yet completed")
            return DONE

        request = set_controller_reference(cd, build_deprovision_request(cd))
        self.log_info(meta, "creating deprovision request", reason=EVENT_REASON_DEPROVISION_REQUESTED)
        try:
            self.store.create(request)
        except StoreError as e:
            self.log_error(meta, "error creating deprovision request", error=e)
            # A namespace torn down underneath us will never accept the request
            namespace = self.store.get(KIND_NAMESPACE, meta["namespace"])
            if is_terminating(namespace):
                self.log_warning(
                    meta, "namespace deleted before deprovision request could be created, removing finalizer"
                )
                return self.release(cd)
            raise

        self.recorder.emit(
            cd, EVENT_REASON_DEPROVISION_REQUESTED, f"Requested deprovision of infra {cd['status']['infraID']}"
        )
        return DONE

    def release(self, cd: dict[str, Any]) -> ReconcileResult:
        """Remove the deprovision finalizer so the ClusterDeployment can go away."""
        updated = copy.deepcopy(cd)
        if self.remove_finalizer(updated):
            try:
                self.store.update(updated)
            except StoreError as e:
                self.log_error(cd["metadata"], "error removing finalizer", error=e)
                raise
            self.clear_underway_metrics(updated)
            self.metrics.cluster_deleted(get_cluster_type(updated))
            self.recorder.emit(updated, EVENT_REASON_FINALIZER_REMOVED, "Removed deprovision finalizer")
        return DONE
