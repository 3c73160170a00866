"""Base handler class with functionality shared by the reconciliation steps."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from ..builders.rbac import build_installer_role, build_installer_role_binding, build_service_account
from ..config import OperatorConfig
from ..constants import CONTROLLER_NAME, FINALIZER_DEPROVISION, KIND_ROLE
from ..logging import log_resource_event
from ..metrics import MetricsSink, get_cluster_type
from ..services.store import ConflictError, NotFoundError, ObjectStore
from ..tracing import trace_span
from ..utils.errors import sanitize_exception
from ..utils.events import EventRecorder
from ..utils.timeutils import utcnow


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of a reconciliation pass.

    ``requeue_after`` is None when the pass is done; otherwise the key is
    queued again after that many seconds.
    """

    requeue_after: float | None = None

    @property
    def requeue(self) -> bool:
        return self.requeue_after is not None


DONE = ReconcileResult()


class BaseHandler:
    """Base class for the reconciliation handlers with common functionality."""

    def __init__(
        self,
        kind: str,
        store: ObjectStore,
        config: OperatorConfig | None = None,
        metrics_sink: MetricsSink | None = None,
        recorder: EventRecorder | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize base handler.

        Args:
            kind: The Kubernetes resource kind handled (e.g., "ClusterDeployment")
            store: Object store used for every read and write
            config: Operator configuration
            metrics_sink: Receiver of metric observations
            recorder: Event recorder, built on the store when omitted
            clock: Source of the current UTC time
        """
        self.kind = kind
        self.store = store
        self.config = config or OperatorConfig()
        self.metrics = metrics_sink or MetricsSink()
        self.recorder = recorder or EventRecorder(store)
        self.clock = clock
        self.logger = logging.getLogger(__name__)

    def _get_resource_context(self, meta: dict[str, Any]) -> dict[str, Any]:
        return {
            "name": meta.get("name", "unknown"),
            "namespace": meta.get("namespace", "default"),
            "uid": meta.get("uid", "unknown"),
        }

    def _log(
        self,
        level: int,
        meta: dict[str, Any],
        message: str,
        event: str,
        reason: str,
        **kwargs: Any,
    ) -> None:
        if not self.logger.isEnabledFor(level):
            return
        ctx = self._get_resource_context(meta)
        log_resource_event(
            self.logger,
            controller=CONTROLLER_NAME,
            resource_kind=self.kind,
            resource_name=ctx["name"],
            namespace=ctx["namespace"],
            uid=ctx["uid"],
            event=event,
            reason=reason,
            message=message,
            level=level,
            **kwargs,
        )

    def log_debug(self, meta: dict[str, Any], message: str, event: str = "debug", reason: str = "Debug", **kwargs: Any) -> None:
        self._log(logging.DEBUG, meta, message, event, reason, **kwargs)

    def log_info(self, meta: dict[str, Any], message: str, event: str = "info", reason: str = "Info", **kwargs: Any) -> None:
        """Log an info-level structured log message.

        Args:
            meta: Kubernetes resource metadata
            message: Log message
            event: Event type (default: "info")
            reason: Reason for the event (default: "Info")
            **kwargs: Additional fields to include in the log
        """
        self._log(logging.INFO, meta, message, event, reason, **kwargs)

    def log_warning(
        self, meta: dict[str, Any], message: str, event: str = "warning", reason: str = "Warning", **kwargs: Any
    ) -> None:
        self._log(logging.WARNING, meta, message, event, reason, **kwargs)

    def log_error(
        self,
        meta: dict[str, Any],
        message: str,
        error: Exception | None = None,
        event: str = "error",
        reason: str = "Error",
        **kwargs: Any,
    ) -> None:
        """Log an error-level structured log message.

        Args:
            meta: Kubernetes resource metadata
            message: Log message
            error: Optional exception to include sanitized error details
            event: Event type (default: "error")
            reason: Reason for the event (default: "Error")
            **kwargs: Additional fields to include in the log
        """
        log_data = kwargs.copy()
        if error is not None:
            log_data["error"] = sanitize_exception(error)
            log_data["error_type"] = type(error).__name__
        self._log(logging.ERROR, meta, message, event, reason, **log_data)

    def get_optional(self, kind: str, name: str, namespace: str | None = None) -> dict[str, Any] | None:
        """Fetch an object, returning None when it does not exist."""
        try:
            return self.store.get(kind, name, namespace)
        except NotFoundError:
            return None

    def ensure_finalizer(self, obj: dict[str, Any]) -> bool:
        """Add the deprovision finalizer to ``obj``. Returns True if it was added."""
        meta = obj.setdefault("metadata", {})
        finalizers = list(meta.get("finalizers") or [])
        if FINALIZER_DEPROVISION in finalizers:
            return False
        finalizers.append(FINALIZER_DEPROVISION)
        meta["finalizers"] = finalizers
        return True

    def remove_finalizer(self, obj: dict[str, Any]) -> bool:
        """Remove the deprovision finalizer from ``obj``. Returns True if it was removed."""
        meta = obj.setdefault("metadata", {})
        finalizers = list(meta.get("finalizers") or [])
        if FINALIZER_DEPROVISION not in finalizers:
            return False
        finalizers.remove(FINALIZER_DEPROVISION)
        meta["finalizers"] = finalizers
        return True

    def clear_underway_metrics(self, cd: dict[str, Any]) -> None:
        """Reset the underway gauges of a ClusterDeployment so they stop being reported."""
        meta = cd["metadata"]
        ct = get_cluster_type(cd)
        self.metrics.deprovision_underway(meta["name"], meta["namespace"], ct, 0.0)
        if not (cd.get("status") or {}).get("installed"):
            self.metrics.provision_underway(meta["name"], meta["namespace"], ct, 0.0)

    def ensure_installer_service_account(self, namespace: str) -> None:
        """Make sure the service account, role and binding used by install jobs exist."""
        for obj in (
            build_service_account(namespace),
            build_installer_role(namespace),
            build_installer_role_binding(namespace),
        ):
            meta = obj["metadata"]
            existing = self.get_optional(obj["kind"], meta["name"], namespace)
            if existing is None:
                try:
                    self.store.create(obj)
                except ConflictError:
                    # Created concurrently by another worker
                    pass
            elif obj["kind"] == KIND_ROLE and existing.get("rules") != obj["rules"]:
                existing["rules"] = obj["rules"]
                self.store.update(existing)

    def reconcile_with_metrics(
        self,
        meta: dict[str, Any],
        reconcile_fn: Callable[[], ReconcileResult],
    ) -> ReconcileResult:
        """Execute reconciliation with metrics, tracing and error handling.

        Args:
            meta: Metadata (at least name and namespace) of the reconciled object
            reconcile_fn: Function performing the reconciliation

        Returns:
            The result of ``reconcile_fn``
        """
        self.metrics.reconcile(self.kind, "started")
        start_time = time.time()
        try:
            with trace_span(
                f"reconcile_{self.kind.lower()}",
                kind=self.kind,
                attributes={"resource.name": meta.get("name", ""), "resource.namespace": meta.get("namespace", "")},
            ):
                result = reconcile_fn()
            self.metrics.reconcile(self.kind, "requeue" if result.requeue else "success")
            return result
        except Exception as e:
            self.metrics.error(self.kind, type(e).__name__)
            self.log_error(meta, "Reconciliation failed", error=e, reason="ReconciliationFailed")
            self.metrics.reconcile(self.kind, "error")
            raise
        finally:
            self.metrics.reconcile_duration(self.kind, time.time() - start_time)
