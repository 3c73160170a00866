"""Content hashing for generated artifacts."""

from __future__ import annotations

import hashlib
import json
from typing import Any


def calculate_job_spec_hash(job: dict[str, Any]) -> str:
    """Return a deterministic fingerprint of a job's executable specification.

    Only ``spec`` is hashed. Metadata, including the hash annotation itself and
    the owner references set after generation, never feeds the digest.
    """
    canonical = json.dumps(job.get("spec", {}), sort_keys=True, separators=(",", ":"))
    return hashlib.md5(canonical.encode("utf-8")).hexdigest()
