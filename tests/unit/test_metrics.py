"""Tests for Prometheus metrics."""

from __future__ import annotations

from prometheus_client import REGISTRY

from cluster_lifecycle_operator.metrics import (
    MetricsSink,
    PrometheusMetricsSink,
    clusters_created_total,
    deprovision_underway_seconds,
    error_total,
    get_cluster_type,
    install_job_duration_seconds,
    provision_underway_seconds,
    reconcile_duration_seconds,
    reconcile_total,
)


class TestMetricsExist:
    """Test that all expected metrics are defined."""

    def test_reconcile_metrics(self):
        """Test reconcile metric names."""
        # Prometheus counters don't include "_total" in their _name attribute
        assert reconcile_total._name == "cluster_lifecycle_operator_reconcile"
        assert reconcile_duration_seconds._name == "cluster_lifecycle_operator_reconcile_duration_seconds"
        assert error_total._name == "cluster_lifecycle_operator_error"

    def test_cluster_metrics(self):
        """Test cluster lifecycle metric names."""
        assert clusters_created_total._name == "cluster_lifecycle_operator_cluster_deployments_created"
        assert (
            install_job_duration_seconds._name
            == "cluster_lifecycle_operator_cluster_deployment_install_job_duration_seconds"
        )

    def test_gauge_labels(self):
        """Test that underway gauges are labelled per cluster."""
        expected = ("cluster_deployment", "namespace", "cluster_type")
        assert provision_underway_seconds._labelnames == expected
        assert deprovision_underway_seconds._labelnames == expected


class TestPrometheusMetricsSink:
    """Test that the sink records into the registry."""

    def test_reconcile_counter(self):
        """Test that reconcile results are counted."""
        labels = {"kind": "TestKind", "result": "success"}
        before = REGISTRY.get_sample_value("cluster_lifecycle_operator_reconcile_total", labels) or 0.0

        PrometheusMetricsSink().reconcile("TestKind", "success")

        assert REGISTRY.get_sample_value("cluster_lifecycle_operator_reconcile_total", labels) == before + 1

    def test_provision_gauge(self):
        """Test that the provision gauge is set and reset."""
        sink = PrometheusMetricsSink()
        labels = {"cluster_deployment": "gauge-cd", "namespace": "gauge-ns", "cluster_type": "ci"}
        name = "cluster_lifecycle_operator_cluster_deployment_provision_underway_seconds"

        sink.provision_underway("gauge-cd", "gauge-ns", "ci", 42.0)
        assert REGISTRY.get_sample_value(name, labels) == 42.0

        sink.provision_underway("gauge-cd", "gauge-ns", "ci", 0.0)
        assert REGISTRY.get_sample_value(name, labels) == 0.0

    def test_created_counter(self):
        """Test that created clusters are counted by type."""
        labels = {"cluster_type": "metrics-test"}
        name = "cluster_lifecycle_operator_cluster_deployments_created_total"
        before = REGISTRY.get_sample_value(name, labels) or 0.0

        PrometheusMetricsSink().cluster_created("metrics-test")

        assert REGISTRY.get_sample_value(name, labels) == before + 1

    def test_null_sink_discards(self):
        """Test that the base sink accepts every observation."""
        sink = MetricsSink()
        sink.reconcile("ClusterDeployment", "success")
        sink.provision_underway("a", "b", "c", 1.0)


class TestGetClusterType:
    """Test cases for get_cluster_type."""

    def test_label_present(self):
        """Test that the cluster-type label is used."""
        cd = {"metadata": {"labels": {"clusters.cloud37.dev/cluster-type": "managed"}}}
        assert get_cluster_type(cd) == "managed"

    def test_label_absent(self):
        """Test the default cluster type."""
        assert get_cluster_type({"metadata": {}}) == "unspecified"
        assert get_cluster_type({}) == "unspecified"
