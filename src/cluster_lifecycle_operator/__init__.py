"""Cluster Lifecycle Operator: provisions and deprovisions clusters described by ClusterDeployments."""

__version__ = "0.1.0"
