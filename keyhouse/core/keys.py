"""Key reads, optionally recovering the plaintext of keys stored encrypted."""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple

from sqlalchemy.orm import Session

from keyhouse.core.exceptions import NotFoundError
from keyhouse.core.vault import SealedKey, Vault, get_vault
from keyhouse.db.models import Api, EncryptedKey, Key, KeyRole, Role
from keyhouse.models.keys import KeyResponse

logger = logging.getLogger(__name__)


def _epoch_ms(value: Optional[datetime]) -> Optional[int]:
    if value is None:
        return None
    # SQLite hands back naive datetimes; they were written as UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def find_key(db: Session, workspace_id: str, key_id: str) -> Tuple[Key, Api]:
    """Return the key and the API owning its key space.

    Keys of other workspaces are reported as not found.
    """
    row = (
        db.query(Key, Api)
        .join(Api, Api.key_auth_id == Key.key_auth_id)
        .filter(Key.id == key_id, Key.workspace_id == workspace_id)
        .first()
    )
    if row is None:
        raise NotFoundError(f"Key '{key_id}' was not found.", resource="key")
    return row[0], row[1]


def describe_key(
    db: Session,
    key: Key,
    api: Api,
    decrypt: bool = False,
    vault_factory: Callable[[], Vault] = get_vault,
) -> KeyResponse:
    """Build the read model for a key; ``plaintext`` is set only when decrypting a stored copy."""
    role_names = [
        name
        for (name,) in db.query(Role.name)
        .join(KeyRole, KeyRole.role_id == Role.id)
        .filter(KeyRole.key_id == key.id)
        .order_by(Role.name)
        .all()
    ]

    plaintext = None
    if decrypt:
        encrypted = db.query(EncryptedKey).filter(EncryptedKey.key_id == key.id).first()
        if encrypted is not None:
            plaintext = vault_factory().decrypt(
                key.workspace_id,
                key.id,
                SealedKey(encrypted=encrypted.encrypted, encryption_key_id=encrypted.encryption_key_id),
            )
            logger.info("Decrypted key %s", key.id)

    return KeyResponse(
        id=key.id,
        api_id=api.id,
        workspace_id=key.workspace_id,
        start=key.start,
        enabled=key.enabled,
        environment=key.environment,
        name=key.name,
        owner_id=key.owner_id,
        meta=key.meta,
        expires=_epoch_ms(key.expires),
        created_at=_epoch_ms(key.created_at),
        roles=role_names,
        plaintext=plaintext,
    )
