"""Kubernetes-facing services used by the reconciler."""
