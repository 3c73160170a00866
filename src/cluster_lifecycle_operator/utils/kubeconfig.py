"""Admin kubeconfig normalization and inspection."""

from __future__ import annotations

from typing import Any

import yaml

from .errors import KubeconfigError


def load_kubeconfig(data: bytes) -> dict[str, Any]:
    """Parse kubeconfig bytes into a dict."""
    try:
        config = yaml.safe_load(data) or {}
    except yaml.YAMLError as e:
        raise KubeconfigError(f"cannot parse kubeconfig: {e}") from e
    if not isinstance(config, dict):
        raise KubeconfigError("kubeconfig is not a mapping")
    return config


def fixup_kubeconfig(raw: bytes) -> bytes:
    """Normalize a kubeconfig produced by the installer.

    The result depends only on ``raw``, and feeding the output back in returns
    it unchanged.
    """
    config = load_kubeconfig(raw)

    for entry in config.get("clusters") or []:
        cluster = entry.get("cluster") or {}
        server = cluster.get("server")
        if server and "://" not in server:
            cluster["server"] = f"https://{server}"

    contexts = config.get("contexts") or []
    if not config.get("current-context") and contexts:
        config["current-context"] = contexts[0].get("name", "")

    return yaml.safe_dump(config, default_flow_style=False, sort_keys=True).encode("utf-8")


def get_cluster_server(data: bytes, cluster_name: str) -> str:
    """Return the API server URL of the named cluster entry.

    Raises:
        KubeconfigError: If the kubeconfig has no cluster with that name
    """
    config = load_kubeconfig(data)
    for entry in config.get("clusters") or []:
        if entry.get("name") == cluster_name:
            server = (entry.get("cluster") or {}).get("server")
            if server:
                return server
    raise KubeconfigError(f"cluster {cluster_name} not found in admin kubeconfig")
