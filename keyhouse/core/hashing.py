"""Canonical key digest and identifier generation.

Keys are stored as unsalted SHA-256 digests, base64 encoded. The digest is
deterministic so a presented key can be looked up by hash, and it is the same
scheme callers declare as ``sha256_base64`` when migrating pre-hashed keys.
"""

import base64
import hashlib
import uuid

# Label of the only hashing scheme this store computes itself
CANONICAL_HASH_VARIANT = "sha256_base64"


def hash_key(raw_key: str) -> str:
    """Return the base64 SHA-256 digest of ``raw_key``."""
    return base64.b64encode(hashlib.sha256(raw_key.encode("utf-8")).digest()).decode("ascii")


def new_id(prefix: str) -> str:
    """Generate a prefixed identifier, e.g. ``key_3f2a...``."""
    return f"{prefix}_{uuid.uuid4().hex}"
