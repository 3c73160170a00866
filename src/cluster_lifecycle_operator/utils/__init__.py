"""Utility functions for the Cluster Lifecycle Operator."""

from .conditions import UpdatePolicy, find_condition, is_condition_true, set_condition
from .errors import (
    ConfigurationError,
    KubeconfigError,
    UnsupportedPlatformError,
    sanitize_exception,
)
from .events import EventRecorder
from .hashing import calculate_job_spec_hash
from .naming import get_resource_name
from .secrets import decode_secret_data, encode_secret_data, load_secret_value

__all__ = [
    "UpdatePolicy",
    "find_condition",
    "is_condition_true",
    "set_condition",
    "ConfigurationError",
    "KubeconfigError",
    "UnsupportedPlatformError",
    "sanitize_exception",
    "EventRecorder",
    "calculate_job_spec_hash",
    "get_resource_name",
    "decode_secret_data",
    "encode_secret_data",
    "load_secret_value",
]
