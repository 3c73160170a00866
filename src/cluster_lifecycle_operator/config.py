"""Operator configuration loaded from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_OPERATOR_IMAGE = "quay.io/cloud37/cluster-lifecycle-operator:latest"
DEFAULT_CLI_IMAGE = "quay.io/openshift/origin-cli:latest"


@dataclass(frozen=True)
class OperatorConfig:
    """Runtime settings for the ClusterDeployment controller.

    Delays are policy choices, so every one of them can be overridden through
    environment variables.
    """

    default_operator_image: str = DEFAULT_OPERATOR_IMAGE
    default_cli_image: str = DEFAULT_CLI_IMAGE
    requeue_delay: float = 10.0
    expiry_requeue_grace: float = 60.0
    max_concurrent_reconciles: int = 5
    min_retry_delay: float = 1.0
    max_retry_delay: float = 300.0
    metrics_port: int = 8080

    @classmethod
    def from_env(cls) -> OperatorConfig:
        """Build configuration from environment variables."""
        return cls(
            default_operator_image=os.getenv("OPERATOR_IMAGE") or DEFAULT_OPERATOR_IMAGE,
            default_cli_image=os.getenv("CLI_IMAGE") or DEFAULT_CLI_IMAGE,
            requeue_delay=float(os.getenv("REQUEUE_DELAY_SECONDS", "10")),
            expiry_requeue_grace=float(os.getenv("EXPIRY_REQUEUE_GRACE_SECONDS", "60")),
            max_concurrent_reconciles=int(os.getenv("MAX_CONCURRENT_RECONCILES", "5")),
            min_retry_delay=float(os.getenv("MIN_RETRY_DELAY_SECONDS", "1")),
            max_retry_delay=float(os.getenv("MAX_RETRY_DELAY_SECONDS", "300")),
            metrics_port=int(os.getenv("METRICS_PORT", "8080")),
        )
