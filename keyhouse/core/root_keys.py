"""Root key registry: create, look up and revoke workspace root keys.

Root keys authenticate calls to the management API. They are stored as
sha256_base64 digests; the raw key is shown only once at creation time.

Permissions
-----------
Permission strings have the form ``api.<apiId>.<action>``. ``api.*.<action>``
grants the action on every API of the root key's workspace.

create_key: migrate/create keys in the API's key space
read_key: read key metadata
decrypt_key: read the recoverable plaintext of a key
"""

import logging
import secrets
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from keyhouse.core.exceptions import ForbiddenError
from keyhouse.core.hashing import hash_key, new_id
from keyhouse.db.models import RootKey

logger = logging.getLogger(__name__)

# Root keys are prefixed so they are recognisable (and redactable) in logs
ROOT_KEY_PREFIX = "root_"

# Characters of the raw key kept in ``start`` for display
START_LENGTH = 9

VALID_ACTIONS = {"create_key", "read_key", "decrypt_key"}


def api_permission(api_id: str, action: str) -> str:
    """Build the permission string for ``action`` on one API."""
    return f"api.{api_id}.{action}"


def parse_permission(permission: str) -> Optional[tuple[str, str]]:
    """Split ``api.<apiId>.<action>`` into (apiId, action); the apiId may contain dots."""
    prefix, _, rest = permission.partition(".")
    api_id, _, action = rest.rpartition(".")
    if prefix != "api" or not api_id or not action:
        return None
    return api_id, action


def generate_root_key() -> tuple[str, str]:
    """Generate a new (root_key_id, raw_key) pair."""
    return new_id("rk"), ROOT_KEY_PREFIX + secrets.token_urlsafe(32)


def create_root_key(
    db: Session,
    workspace_id: str,
    permissions: Iterable[str],
    name: Optional[str] = None,
) -> tuple[str, RootKey]:
    """Create and persist a root key.

    Returns (raw_key, record). The caller must hand raw_key to the user; it
    is never retrievable again.
    """
    perms = sorted(set(permissions))
    for perm in perms:
        parsed = parse_permission(perm)
        if parsed is None or parsed[1] not in VALID_ACTIONS:
            raise ValueError(
                f"Invalid permission '{perm}'. Expected api.<apiId|*>.<{'|'.join(sorted(VALID_ACTIONS))}>"
            )
    root_key_id, raw_key = generate_root_key()
    record = RootKey(
        id=root_key_id,
        workspace_id=workspace_id,
        hash=hash_key(raw_key),
        start=raw_key[:START_LENGTH],
        name=name,
        permissions=perms,
        is_active=True,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info("Created root key %s for workspace %s", root_key_id, workspace_id)
    return raw_key, record


def lookup_root_key(db: Session, raw_key: str) -> Optional[RootKey]:
    """Return the active RootKey matching raw_key, or None. Updates last_used_at on match."""
    record = (
        db.query(RootKey)
        .filter(RootKey.hash == hash_key(raw_key), RootKey.is_active.is_(True))
        .first()
    )
    if record:
        record.last_used_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(record)
    return record


def revoke_root_key(db: Session, root_key_id: str) -> Optional[RootKey]:
    """Revoke a root key by id. Returns the record or None if not found."""
    record = db.query(RootKey).filter(RootKey.id == root_key_id).first()
    if not record:
        return None
    record.is_active = False
    record.revoked_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(record)
    return record


def has_permission(record: RootKey, permission: str) -> bool:
    """Return True if the root key holds ``permission`` directly or via the api wildcard."""
    granted = set(record.permissions or [])
    if permission in granted:
        return True
    parsed = parse_permission(permission)
    if parsed is None:
        return False
    return api_permission("*", parsed[1]) in granted


def require_permissions(record: RootKey, permissions: Iterable[str]) -> None:
    """Raise ForbiddenError listing every permission the root key lacks."""
    missing = sorted({p for p in permissions if not has_permission(record, p)})
    if missing:
        logger.info("Root key %s denied: missing %s", record.id, missing)
        raise ForbiddenError(missing)
