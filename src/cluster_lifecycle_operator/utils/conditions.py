"""Utilities for managing Kubernetes conditions."""

from __future__ import annotations

import copy
import enum
from datetime import datetime, timezone
from typing import Any


class UpdatePolicy(enum.Enum):
    """When an existing condition with an unchanged status is rewritten."""

    NEVER = "Never"
    IF_REASON_OR_MESSAGE_CHANGE = "IfReasonOrMessageChange"
    ALWAYS = "Always"


def _status_str(status: bool) -> str:
    return "True" if status else "False"


def find_condition(conditions: list[dict[str, Any]], condition_type: str) -> dict[str, Any] | None:
    """Return the condition of the given type, or None."""
    for cond in conditions or []:
        if cond.get("type") == condition_type:
            return cond
    return None


def is_condition_true(conditions: list[dict[str, Any]], condition_type: str) -> bool:
    """Return True if the condition of the given type exists with status True."""
    cond = find_condition(conditions, condition_type)
    return cond is not None and cond.get("status") == "True"


def _should_update(existing: dict[str, Any], status: str, reason: str, message: str, policy: UpdatePolicy) -> bool:
    if existing.get("status") != status:
        return True
    if policy is UpdatePolicy.ALWAYS:
        return True
    if policy is UpdatePolicy.IF_REASON_OR_MESSAGE_CHANGE:
        return existing.get("reason") != reason or existing.get("message") != message
    return False


def set_condition(
    conditions: list[dict[str, Any]] | None,
    condition_type: str,
    status: bool,
    reason: str,
    message: str,
    policy: UpdatePolicy = UpdatePolicy.NEVER,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """Set a condition, returning a new list.

    A condition that does not exist yet is only added when its status is True.
    lastTransitionTime moves only when the status flips; lastProbeTime moves on
    every write.

    Args:
        conditions: Existing conditions (not modified)
        condition_type: Type of condition
        status: Boolean status of the condition
        reason: Reason for the condition
        message: Human-readable message
        policy: Whether an unchanged status still rewrites reason and message
        now: Timestamp to record (defaults to the current UTC time)

    Returns:
        Updated list of conditions
    """
    result = copy.deepcopy(conditions or [])
    timestamp = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H:%M:%SZ")
    status_str = _status_str(status)

    existing = find_condition(result, condition_type)
    if existing is None:
        if status:
            result.append({
                "type": condition_type,
                "status": status_str,
                "reason": reason,
                "message": message,
                "lastProbeTime": timestamp,
                "lastTransitionTime": timestamp,
            })
        return result

    if _should_update(existing, status_str, reason, message, policy):
        if existing.get("status") != status_str:
            existing["lastTransitionTime"] = timestamp
        existing["status"] = status_str
        existing["reason"] = reason
        existing["message"] = message
        existing["lastProbeTime"] = timestamp

    return result
