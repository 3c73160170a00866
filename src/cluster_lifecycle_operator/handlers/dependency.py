"""Readiness gates for resources a ClusterDeployment depends on."""

from __future__ import annotations

import enum
from typing import Any

from ..builders.dnszone import build_dns_zone, dns_zone_name
from ..constants import COND_DNS_ZONE_AVAILABLE, EVENT_REASON_DNS_ZONE_CREATED, KIND_CLUSTER_DEPLOYMENT, KIND_DNS_ZONE
from ..utils.conditions import is_condition_true
from ..utils.errors import UnsupportedPlatformError
from ..utils.ownership import set_controller_reference
from .base import BaseHandler


class GateState(enum.Enum):
    """Observed state of a dependency."""

    ABSENT = "Absent"
    CREATING = "Creating"
    WAITING = "Waiting"
    AVAILABLE = "Available"


class DependencyGate(BaseHandler):
    """Checks that a prerequisite resource exists and is ready.

    A missing dependency is created, owned by the ClusterDeployment, and
    reported as not ready. The gate never requeues on its own: the owned
    dependency's change notification brings the owner back once it is ready.
    Subclasses implement :meth:`fetch`, :meth:`build` and :meth:`is_ready`.
    """

    dependency_kind = ""
    created_reason = ""

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(KIND_CLUSTER_DEPLOYMENT, *args, **kwargs)

    def fetch(self, owner: dict[str, Any]) -> dict[str, Any] | None:
        raise NotImplementedError

    def build(self, owner: dict[str, Any]) -> dict[str, Any]:
        raise NotImplementedError

    def is_ready(self, dependency: dict[str, Any]) -> bool:
        raise NotImplementedError

    def validate(self, owner: dict[str, Any]) -> None:
        """Raise if ``owner`` cannot have this dependency at all."""

    def observe(self, owner: dict[str, Any]) -> tuple[GateState, dict[str, Any] | None]:
        """Return the state of the dependency without changing anything."""
        dependency = self.fetch(owner)
        if dependency is None:
            return GateState.ABSENT, None
        if self.is_ready(dependency):
            return GateState.AVAILABLE, dependency
        return GateState.WAITING, dependency

    def check(self, owner: dict[str, Any]) -> GateState:
        """Drive the dependency one step and return its state.

        Returns:
            CREATING when the dependency was just created, WAITING while it
            exists but is not ready, AVAILABLE once it is ready
        """
        self.validate(owner)
        state, _ = self.observe(owner)
        if state is not GateState.ABSENT:
            if state is GateState.WAITING:
                self.log_debug(owner["metadata"], f"{self.dependency_kind} is not yet available")
            return state

        dependency = set_controller_reference(owner, self.build(owner))
        name = dependency["metadata"]["name"]
        self.log_info(owner["metadata"], f"creating {self.dependency_kind} {name}", reason=self.created_reason)
        self.store.create(dependency)
        self.recorder.emit(owner, self.created_reason, f"Created {self.dependency_kind} {name}")
        return GateState.CREATING

    def ready(self, owner: dict[str, Any]) -> bool:
        return self.check(owner) is GateState.AVAILABLE


class ManagedDNSZoneGate(DependencyGate):
    """Gate on the DNSZone hosting the cluster's base domain."""

    dependency_kind = KIND_DNS_ZONE
    created_reason = EVENT_REASON_DNS_ZONE_CREATED

    def validate(self, owner: dict[str, Any]) -> None:
        spec = owner.get("spec", {})
        if not (spec.get("platform") or {}).get("aws") or not (spec.get("platformSecrets") or {}).get("aws"):
            raise UnsupportedPlatformError("only AWS managed DNS is supported")

    def fetch(self, owner: dict[str, Any]) -> dict[str, Any] | None:
        meta = owner["metadata"]
        return self.get_optional(KIND_DNS_ZONE, dns_zone_name(meta["name"]), meta["namespace"])

    def build(self, owner: dict[str, Any]) -> dict[str, Any]:
        return build_dns_zone(owner)

    def is_ready(self, dependency: dict[str, Any]) -> bool:
        return is_condition_true((dependency.get("status") or {}).get("conditions") or [], COND_DNS_ZONE_AVAILABLE)
