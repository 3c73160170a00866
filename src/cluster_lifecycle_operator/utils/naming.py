"""Naming helpers for resources generated from a ClusterDeployment."""

from __future__ import annotations

import hashlib

DNS1123_LABEL_MAX_LENGTH = 63


def get_resource_name(name: str, suffix: str) -> str:
    """Return ``<name>-<suffix>``, shortened to a valid DNS-1123 label if needed.

    Long names are truncated and disambiguated with a short digest of the full
    name so that distinct inputs keep distinct outputs.
    """
    full = f"{name}-{suffix}"
    if len(full) <= DNS1123_LABEL_MAX_LENGTH:
        return full
    digest = hashlib.sha256(full.encode("utf-8")).hexdigest()[:8]
    keep = DNS1123_LABEL_MAX_LENGTH - len(suffix) - len(digest) - 2
    return f"{name[:keep].rstrip('-')}-{digest}-{suffix}"
