"""
Tile Auto-Mapper - Content Hashing

Content-derived identities used to key resources and cached rules.
These hashes are for cache/dedup only, not for integrity verification.
"""

import hashlib
import json
from typing import Any


def generate_hash_for(data: bytes) -> str:
    """Return the hex SHA-256 digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def canonical_json_hash(payload: Any) -> str:
    """Hash a JSON-serializable value independent of key order."""
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode(
        "utf-8"
    )
    return generate_hash_for(encoded)


def fmt_hash(digest: str) -> str:
    """Shortened hash used in file and resource names."""
    return digest[:16]


def name_and_hash(name: str, data: bytes) -> tuple[str, str]:
    """
    Derive a resource name and content hash from a file stem and its bytes.

    Returns:
        (name, full hex digest)
    """
    return name, generate_hash_for(data)


def resource_key(name: str, digest: str) -> str:
    """Key under which a resource and its rules are stored."""
    return f"{name}_{fmt_hash(digest)}"
