"""Utilities for reading and writing Kubernetes secret data."""

from __future__ import annotations

import base64
from typing import Any

from ..constants import KIND_SECRET
from .errors import ConfigurationError


def decode_secret_data(secret: dict[str, Any]) -> dict[str, bytes]:
    """Return the secret's data with every value base64-decoded."""
    return {key: base64.b64decode(value) for key, value in (secret.get("data") or {}).items()}


def encode_secret_data(data: dict[str, bytes]) -> dict[str, str]:
    """Base64-encode raw secret values for the Kubernetes API."""
    return {key: base64.b64encode(value).decode("ascii") for key, value in data.items()}


def load_secret_value(store: Any, name: str, namespace: str, key: str) -> bytes:
    """Load a single key from a secret.

    Args:
        store: Object store to read from
        name: Name of the secret
        namespace: Namespace of the secret
        key: Key in the secret

    Returns:
        The decoded value

    Raises:
        NotFoundError: If the secret does not exist
        ConfigurationError: If the key is missing from the secret
    """
    secret = store.get(KIND_SECRET, name, namespace)
    data = decode_secret_data(secret)
    if key not in data:
        raise ConfigurationError(f"key '{key}' not found in secret '{name}'")
    return data[key]
