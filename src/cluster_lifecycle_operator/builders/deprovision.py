"""Builder for ClusterDeprovisionRequests."""

from __future__ import annotations

from typing import Any

from ..constants import API_GROUP_VERSION, KIND_DEPROVISION_REQUEST


def build_deprovision_request(cd: dict[str, Any]) -> dict[str, Any]:
    """Create a deprovision request from a ClusterDeployment being deleted.

    The request is named after the ClusterDeployment and carries copies of its
    infrastructure identifiers, region and credentials reference.
    """
    meta = cd.get("metadata", {})
    spec = cd.get("spec", {})
    status = cd.get("status", {})

    aws_request: dict[str, Any] = {}
    aws = (spec.get("platform") or {}).get("aws")
    if aws is not None:
        aws_request["region"] = aws.get("region", "")
    credentials = ((spec.get("platformSecrets") or {}).get("aws") or {}).get("credentials")
    if credentials is not None:
        aws_request["credentials"] = {"name": credentials.get("name", "")}

    return {
        "apiVersion": API_GROUP_VERSION,
        "kind": KIND_DEPROVISION_REQUEST,
        "metadata": {
            "name": meta.get("name", ""),
            "namespace": meta.get("namespace", "default"),
        },
        "spec": {
            "infraID": status.get("infraID", ""),
            "clusterID": status.get("clusterID", ""),
            "platform": {"aws": aws_request},
        },
    }
