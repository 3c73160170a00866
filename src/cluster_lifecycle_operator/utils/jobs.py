"""Helpers for inspecting batch/v1 Job objects."""

from __future__ import annotations

from typing import Any


def _has_condition(job: dict[str, Any], condition_type: str) -> bool:
    for cond in (job.get("status") or {}).get("conditions") or []:
        if cond.get("type") == condition_type and cond.get("status") == "True":
            return True
    return False


def is_successful(job: dict[str, Any] | None) -> bool:
    """Return True if the job has a succeeded pod or a Complete condition."""
    if job is None:
        return False
    return (job.get("status") or {}).get("succeeded", 0) > 0 or _has_condition(job, "Complete")


def is_failed(job: dict[str, Any] | None) -> bool:
    if job is None:
        return False
    return _has_condition(job, "Failed")


def is_finished(job: dict[str, Any] | None) -> bool:
    """Return True if the job reached a terminal state."""
    return is_successful(job) or is_failed(job)


def is_terminating(obj: dict[str, Any] | None) -> bool:
    """Return True if the object carries a deletion timestamp."""
    return obj is not None and bool((obj.get("metadata") or {}).get("deletionTimestamp"))
