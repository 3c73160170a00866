"""Tests for base handler functionality."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from cluster_lifecycle_operator.constants import FINALIZER_DEPROVISION
from cluster_lifecycle_operator.handlers.base import DONE, BaseHandler, ReconcileResult
from cluster_lifecycle_operator.services.store import ConflictError, StoreError


@pytest.fixture
def handler(store, config, metrics_sink, recorder, clock):
    return BaseHandler("ClusterDeployment", store, config, metrics_sink, recorder, clock)


class TestBaseHandler:
    """Test cases for BaseHandler class."""

    def test_init_defaults(self, store):
        """Test handler initialization with only a store."""
        handler = BaseHandler(kind="TestKind", store=store)
        assert handler.kind == "TestKind"
        assert handler.logger is not None
        assert handler.config.requeue_delay == 10.0

    def test_ensure_finalizer_adds_when_missing(self, handler):
        """Test that the finalizer is added when not present."""
        obj = {"metadata": {"finalizers": ["other"]}}
        assert handler.ensure_finalizer(obj) is True
        assert obj["metadata"]["finalizers"] == ["other", FINALIZER_DEPROVISION]

    def test_ensure_finalizer_no_duplicate(self, handler):
        """Test that the finalizer is not duplicated if already present."""
        obj = {"metadata": {"finalizers": [FINALIZER_DEPROVISION]}}
        assert handler.ensure_finalizer(obj) is False
        assert obj["metadata"]["finalizers"] == [FINALIZER_DEPROVISION]

    def test_ensure_finalizer_creates_list_when_absent(self, handler):
        """Test that the finalizers list is created when absent."""
        obj = {}
        handler.ensure_finalizer(obj)
        assert obj["metadata"]["finalizers"] == [FINALIZER_DEPROVISION]

    def test_remove_finalizer(self, handler):
        """Test that only our finalizer is removed."""
        obj = {"metadata": {"finalizers": [FINALIZER_DEPROVISION, "other"]}}
        assert handler.remove_finalizer(obj) is True
        assert obj["metadata"]["finalizers"] == ["other"]

    def test_remove_finalizer_no_error_when_absent(self, handler):
        """Test that removing a missing finalizer is a no-op."""
        obj = {"metadata": {}}
        assert handler.remove_finalizer(obj) is False

    def test_get_optional(self, handler):
        """Test that missing objects come back as None."""
        assert handler.get_optional("Secret", "ssh-key", "test-ns") is not None
        assert handler.get_optional("Secret", "absent", "test-ns") is None

    def test_clear_underway_metrics(self, handler, metrics_sink, cd_factory):
        """Test that both gauges reset for a cluster that never installed."""
        handler.clear_underway_metrics(cd_factory())
        assert metrics_sink.named("deprovision_underway") == [("test-cd", "test-ns", "unspecified", 0.0)]
        assert metrics_sink.named("provision_underway") == [("test-cd", "test-ns", "unspecified", 0.0)]

    def test_clear_underway_metrics_installed(self, handler, metrics_sink, cd_factory):
        """Test that installed clusters only reset the deprovision gauge."""
        cd = cd_factory()
        cd["status"]["installed"] = True
        handler.clear_underway_metrics(cd)
        assert metrics_sink.named("provision_underway") == []

    def test_service_account_conflict_tolerated(self, handler, store):
        """Test that a concurrently created prerequisite is not an error."""
        store.fail_on("create", "ServiceAccount", ConflictError("exists", status=409))

        handler.ensure_installer_service_account("test-ns")

        assert [w[1] for w in store.writes] == ["Role", "RoleBinding"]


class TestReconcileWithMetrics:
    """Test cases for reconcile_with_metrics."""

    META = {"name": "test-cd", "namespace": "test-ns"}

    def test_success(self, handler, metrics_sink):
        """Test that a finished pass counts as success."""
        assert handler.reconcile_with_metrics(self.META, lambda: DONE) is DONE
        assert metrics_sink.named("reconcile") == [("ClusterDeployment", "started"), ("ClusterDeployment", "success")]
        assert len(metrics_sink.named("reconcile_duration")) == 1

    def test_requeue(self, handler, metrics_sink):
        """Test that a requeue is counted separately."""
        handler.reconcile_with_metrics(self.META, lambda: ReconcileResult(requeue_after=10.0))
        assert metrics_sink.named("reconcile")[-1] == ("ClusterDeployment", "requeue")

    def test_failure(self, handler, metrics_sink):
        """Test that errors are counted, logged and re-raised."""

        def failing_fn():
            raise StoreError("boom")

        with patch.object(handler, "log_error") as mock_log_error:
            with pytest.raises(StoreError):
                handler.reconcile_with_metrics(self.META, failing_fn)

        assert metrics_sink.named("error") == [("ClusterDeployment", "StoreError")]
        assert metrics_sink.named("reconcile")[-1] == ("ClusterDeployment", "error")
        assert len(metrics_sink.named("reconcile_duration")) == 1
        assert mock_log_error.call_args[1]["error"].args == ("boom",)

    @patch("cluster_lifecycle_operator.handlers.base.trace_span")
    def test_traced(self, mock_trace_span, handler):
        """Test that each pass runs inside a span."""
        mock_trace_span.return_value = MagicMock()

        handler.reconcile_with_metrics(self.META, lambda: DONE)

        assert mock_trace_span.call_args[0][0] == "reconcile_clusterdeployment"
        assert mock_trace_span.call_args[1]["attributes"]["resource.name"] == "test-cd"
