"""Reconciliation handlers for ClusterDeployments and their children."""

from .base import ReconcileResult
from .clusterdeployment import ClusterDeploymentReconciler

__all__ = ["ClusterDeploymentReconciler", "ReconcileResult"]
