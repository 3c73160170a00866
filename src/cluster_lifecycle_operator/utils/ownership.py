"""Owner reference helpers."""

from __future__ import annotations

from typing import Any


def controller_reference(owner: dict[str, Any]) -> dict[str, Any]:
    """Build a controller owner reference pointing at ``owner``."""
    meta = owner.get("metadata", {})
    return {
        "apiVersion": owner.get("apiVersion"),
        "kind": owner.get("kind"),
        "name": meta.get("name"),
        "uid": meta.get("uid"),
        "controller": True,
        "blockOwnerDeletion": True,
    }


def set_controller_reference(owner: dict[str, Any], obj: dict[str, Any]) -> dict[str, Any]:
    """Make ``owner`` the controller of ``obj``, replacing any previous controller.

    Raises:
        ValueError: If owner and object live in different namespaces
    """
    owner_ns = owner.get("metadata", {}).get("namespace")
    meta = obj.setdefault("metadata", {})
    if owner_ns and meta.get("namespace") and meta["namespace"] != owner_ns:
        raise ValueError("cross-namespace owner references are not allowed")

    refs = [ref for ref in meta.get("ownerReferences") or [] if not ref.get("controller")]
    refs.append(controller_reference(owner))
    meta["ownerReferences"] = refs
    return obj


def get_controller_of(obj: dict[str, Any]) -> dict[str, Any] | None:
    """Return the controller owner reference of ``obj``, if any."""
    for ref in (obj.get("metadata") or {}).get("ownerReferences") or []:
        if ref.get("controller"):
            return ref
    return None
