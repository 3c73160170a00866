"""Utilities for emitting Kubernetes events."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from ..constants import API_GROUP_VERSION, FIELD_MANAGER, KIND_EVENT
from .errors import sanitize_error_message
from .timeutils import format_timestamp, utcnow

logger = logging.getLogger(__name__)


def build_event(
    obj: dict[str, Any],
    reason: str,
    message: str,
    type_: str = "Normal",
) -> dict[str, Any]:
    """Build a core/v1 Event about ``obj``."""
    meta = obj.get("metadata", {})
    now = format_timestamp(utcnow())
    return {
        "apiVersion": "v1",
        "kind": KIND_EVENT,
        "metadata": {
            "name": f"{meta.get('name', 'unknown')}.{uuid.uuid4().hex[:16]}",
            "namespace": meta.get("namespace", "default"),
        },
        "involvedObject": {
            "apiVersion": obj.get("apiVersion", API_GROUP_VERSION),
            "kind": obj.get("kind"),
            "name": meta.get("name"),
            "namespace": meta.get("namespace"),
            "uid": meta.get("uid"),
        },
        "reason": reason,
        "message": sanitize_error_message(message),
        "type": type_,
        "source": {"component": FIELD_MANAGER},
        "firstTimestamp": now,
        "lastTimestamp": now,
        "count": 1,
    }


class EventRecorder:
    """Posts Kubernetes events for a resource.

    Events are informational: a failure to post one is logged and otherwise
    ignored.
    """

    def __init__(self, store: Any):
        self.store = store

    def emit(self, obj: dict[str, Any], reason: str, message: str, type_: str = "Normal") -> None:
        """Emit a Kubernetes event.

        Args:
            obj: Object the event is about
            reason: Event reason
            message: Event message
            type_: Event type (Normal or Warning)
        """
        try:
            self.store.create(build_event(obj, reason, message, type_))
        except Exception as e:
            logger.warning(f"Failed to post {reason} event: {sanitize_error_message(str(e))}")

    def warning(self, obj: dict[str, Any], reason: str, message: str) -> None:
        self.emit(obj, reason, message, type_="Warning")
