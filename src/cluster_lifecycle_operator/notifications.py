"""Mapping of watch notifications onto ClusterDeployment queue keys."""

from __future__ import annotations

import enum
from typing import Any

from .constants import API_GROUP, KIND_CLUSTER_DEPLOYMENT, LABEL_CLUSTER_DEPLOYMENT_NAME
from .utils.ownership import get_controller_of

Key = tuple[str, str]


class NotificationSource(enum.Enum):
    """Kind of object a notification is about."""

    CLUSTER_DEPLOYMENT = "ClusterDeployment"
    OWNED_CHILD = "OwnedChild"
    INSTALL_POD = "InstallPod"


def object_key(obj: dict[str, Any]) -> Key:
    meta = obj.get("metadata") or {}
    return meta.get("namespace", ""), meta.get("name", "")


def owner_key(obj: dict[str, Any]) -> Key | None:
    """Return the key of the ClusterDeployment controlling ``obj``, if any."""
    ref = get_controller_of(obj)
    if ref is None or ref.get("kind") != KIND_CLUSTER_DEPLOYMENT:
        return None
    if (ref.get("apiVersion") or "").split("/")[0] != API_GROUP:
        return None
    return (obj.get("metadata") or {}).get("namespace", ""), ref.get("name", "")


def pod_key(pod: dict[str, Any]) -> Key | None:
    """Return the key of the ClusterDeployment an install pod belongs to, if any."""
    meta = pod.get("metadata") or {}
    name = (meta.get("labels") or {}).get(LABEL_CLUSTER_DEPLOYMENT_NAME)
    if not name:
        return None
    return meta.get("namespace", ""), name


def keys_for_notification(source: NotificationSource, obj: dict[str, Any]) -> list[Key]:
    """Return the ClusterDeployment keys to reconcile for a notification."""
    if source is NotificationSource.CLUSTER_DEPLOYMENT:
        return [object_key(obj)]
    key = owner_key(obj) if source is NotificationSource.OWNED_CHILD else pod_key(obj)
    return [key] if key is not None else []
