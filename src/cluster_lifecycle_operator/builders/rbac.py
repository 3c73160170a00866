"""Builders for the service account the install and imageset jobs run as."""

from __future__ import annotations

from typing import Any

from ..constants import (
    API_GROUP,
    INSTALLER_ROLE_NAME,
    KIND_ROLE,
    KIND_ROLE_BINDING,
    KIND_SERVICE_ACCOUNT,
    PLURAL_CLUSTER_DEPLOYMENTS,
    SERVICE_ACCOUNT_NAME,
)

RBAC_API_VERSION = "rbac.authorization.k8s.io/v1"

INSTALLER_ROLE_RULES = [
    {
        "apiGroups": [""],
        "resources": ["secrets", "configmaps", "pods", "pods/log"],
        "verbs": ["get", "list", "watch", "create", "update", "patch"],
    },
    {
        "apiGroups": [API_GROUP],
        "resources": [PLURAL_CLUSTER_DEPLOYMENTS, f"{PLURAL_CLUSTER_DEPLOYMENTS}/status"],
        "verbs": ["get", "list", "watch", "update", "patch"],
    },
]


def build_service_account(namespace: str) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": KIND_SERVICE_ACCOUNT,
        "metadata": {"name": SERVICE_ACCOUNT_NAME, "namespace": namespace},
    }


def build_installer_role(namespace: str) -> dict[str, Any]:
    return {
        "apiVersion": RBAC_API_VERSION,
        "kind": KIND_ROLE,
        "metadata": {"name": INSTALLER_ROLE_NAME, "namespace": namespace},
        "rules": [dict(rule) for rule in INSTALLER_ROLE_RULES],
    }


def build_installer_role_binding(namespace: str) -> dict[str, Any]:
    return {
        "apiVersion": RBAC_API_VERSION,
        "kind": KIND_ROLE_BINDING,
        "metadata": {"name": INSTALLER_ROLE_NAME, "namespace": namespace},
        "subjects": [{"kind": KIND_SERVICE_ACCOUNT, "name": SERVICE_ACCOUNT_NAME, "namespace": namespace}],
        "roleRef": {"apiGroup": "rbac.authorization.k8s.io", "kind": KIND_ROLE, "name": INSTALLER_ROLE_NAME},
    }
