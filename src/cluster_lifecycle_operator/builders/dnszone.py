"""Builder for the managed DNSZone of a ClusterDeployment."""

from __future__ import annotations

from typing import Any

from ..constants import API_GROUP_VERSION, KIND_DNS_ZONE, SUFFIX_DNS_ZONE
from ..utils.naming import get_resource_name


def dns_zone_name(cd_name: str) -> str:
    return get_resource_name(cd_name, SUFFIX_DNS_ZONE)


def build_dns_zone(cd: dict[str, Any]) -> dict[str, Any]:
    """Create the DNSZone that hosts a cluster's base domain.

    The zone is linked to its parent domain and reuses the cluster's AWS
    credentials, region and user tags.
    """
    meta = cd.get("metadata", {})
    spec = cd.get("spec", {})
    aws = (spec.get("platform") or {}).get("aws") or {}
    credentials = ((spec.get("platformSecrets") or {}).get("aws") or {}).get("credentials") or {}
    user_tags = aws.get("userTags") or {}

    return {
        "apiVersion": API_GROUP_VERSION,
        "kind": KIND_DNS_ZONE,
        "metadata": {
            "name": dns_zone_name(meta.get("name", "")),
            "namespace": meta.get("namespace", "default"),
        },
        "spec": {
            "zone": spec.get("baseDomain", ""),
            "linkToParentDomain": True,
            "aws": {
                "accountSecret": {"name": credentials.get("name", "")},
                "region": aws.get("region", ""),
                "additionalTags": [{"key": k, "value": v} for k, v in sorted(user_tags.items())],
            },
        },
    }
