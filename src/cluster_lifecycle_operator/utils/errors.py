"""Error types and sanitization utilities to prevent information leakage."""

import re
from typing import Any


class ConfigurationError(Exception):
    """A ClusterDeployment is missing configuration it needs to proceed.

    The condition does not heal without an external edit, but the reconcile is
    still retried with backoff so the fix is picked up.
    """


class UnsupportedPlatformError(ConfigurationError):
    """The requested feature is not supported on the cluster's platform."""


class KubeconfigError(Exception):
    """The admin kubeconfig could not be parsed or lacks the expected cluster."""


# Patterns that might expose sensitive information
SENSITIVE_PATTERNS = [
    r"(certificate-authority-data|client-certificate-data|client-key-data)[:\s]+(\S+)",
    r"(ssh-(?:rsa|ed25519|dss))\s+(\S+)",
    r"(\"auth\")\s*:\s*(\"[^\"]*\")",
    r"(bearer)\s+(\S+)",
]

# Fields to redact completely
SENSITIVE_FIELDS = {
    "token",
    "password",
    "secret",
    "credentials",
    "kubeconfig",
    "pullsecret",
    "sshkey",
}


def sanitize_error_message(message: str) -> str:
    """Sanitize error message to remove sensitive information.

    Args:
        message: Original error message

    Returns:
        Sanitized error message with sensitive data redacted
    """
    sanitized = message

    for pattern in SENSITIVE_PATTERNS:
        sanitized = re.sub(pattern, r"\1 [REDACTED]", sanitized, flags=re.IGNORECASE)

    # Replace "field: value" and "field=value" pairs
    for field in ("token", "password"):
        sanitized = re.sub(
            rf"{field}[:=\s]+([^\s,;\)]+)",
            rf"{field}: [REDACTED]",
            sanitized,
            flags=re.IGNORECASE,
        )

    return sanitized


def sanitize_exception(error: Exception) -> str:
    """Sanitize exception message.

    Args:
        error: Exception object

    Returns:
        Sanitized error message
    """
    return sanitize_error_message(str(error))


def sanitize_dict(data: dict[str, Any], sensitive_keys: set[str] | None = None) -> dict[str, Any]:
    """Sanitize dictionary by redacting sensitive fields.

    Args:
        data: Dictionary to sanitize
        sensitive_keys: Additional keys to redact (merged with SENSITIVE_FIELDS)

    Returns:
        Sanitized dictionary with sensitive values redacted
    """
    all_sensitive = SENSITIVE_FIELDS | (sensitive_keys or set())
    sanitized: dict[str, Any] = {}

    for key, value in data.items():
        key_lower = key.lower().replace("_", "").replace("-", "")
        if any(sensitive in key_lower for sensitive in all_sensitive):
            sanitized[key] = "[REDACTED]"
        elif isinstance(value, dict):
            sanitized[key] = sanitize_dict(value, sensitive_keys)
        elif isinstance(value, str):
            sanitized[key] = sanitize_error_message(value)
        else:
            sanitized[key] = value

    return sanitized
