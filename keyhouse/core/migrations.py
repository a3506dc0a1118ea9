"""Bulk key migration: import existing credentials into a key space in one call.

A batch moves through ``Validating -> Normalizing -> Writing`` and ends either
``Committed`` (every key stored, ids returned in request order) or
``RolledBack`` (nothing stored). There is no partial commit and no retry.

Validating   shape checks that need no database: non-empty batch, size cap,
             exactly one of hash/plaintext per item, role names.
Normalizing  resolve each apiId to its key space, resolve role names to ids,
             turn each credential into the digest to store (plus a sealed copy
             of the plaintext when the space stores encrypted keys).
Writing      one transaction: key row, then encrypted row, then role rows per
             item. Any failure, usually the (key space, hash) uniqueness
             constraint, rolls the whole batch back.

Hash duplicates are never checked up front: the uniqueness constraint covers
both repeats inside the batch and collisions with stored keys, and the caller
cannot tell which of the two happened.
"""

import asyncio
import enum
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from keyhouse.core.config import settings
from keyhouse.core.exceptions import (
    InvalidInputError,
    KeyhouseError,
    RoleNotFoundError,
    TransactionFailedError,
    UniqueConstraintViolation,
)
from keyhouse.core.hashing import hash_key, new_id
from keyhouse.core.metrics import record_key_migration
from keyhouse.core.vault import SealedKey, Vault, get_vault
from keyhouse.db.models import Api, EncryptedKey, Key, KeyAuth, KeyRole, Role
from keyhouse.models.keys import MigrationRequestItem

logger = logging.getLogger(__name__)


class MigrationState(str, enum.Enum):
    VALIDATING = "validating"
    NORMALIZING = "normalizing"
    WRITING = "writing"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    REJECTED = "rejected"


# ---------------------------------------------------------------------------
# Credentials: exactly two shapes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PrehashedCredential:
    """Digest computed elsewhere; stored verbatim."""

    digest: str
    variant: str


@dataclass(frozen=True)
class PlaintextCredential:
    """Raw key material; hashed here, and sealed if the key space allows recovery."""

    plaintext: str


Credential = Union[PrehashedCredential, PlaintextCredential]


@dataclass(frozen=True)
class MigrationItem:
    """A request item that passed validation."""

    api_id: str
    credential: Credential
    start: str = ""
    enabled: bool = True
    environment: Optional[str] = None
    roles: tuple[str, ...] = ()
    name: Optional[str] = None
    owner_id: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None
    expires: Optional[datetime] = None


@dataclass(frozen=True)
class KeySpace:
    """What the migration needs to know about the API behind an apiId."""

    api_id: str
    key_auth_id: str
    workspace_id: str
    store_encrypted_keys: bool


@dataclass(frozen=True)
class NormalizedCredential:
    digest: str
    sealed: Optional[SealedKey] = None


@dataclass
class PreparedKey:
    """Everything the writer inserts for one item."""

    key_id: str
    item: MigrationItem
    space: KeySpace
    credential: NormalizedCredential
    role_ids: List[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Batch validator
# ---------------------------------------------------------------------------


def _to_credential(index: int, raw: MigrationRequestItem) -> Credential:
    if raw.hash is not None and raw.plaintext is not None:
        raise InvalidInputError(
            f"Item {index}: provide either 'hash' or 'plaintext', not both.", field="hash"
        )
    if raw.hash is not None:
        return PrehashedCredential(digest=raw.hash.value, variant=raw.hash.variant.value)
    if raw.plaintext is not None:
        if not raw.plaintext:
            raise InvalidInputError(f"Item {index}: 'plaintext' must not be empty.", field="plaintext")
        return PlaintextCredential(plaintext=raw.plaintext)
    raise InvalidInputError(
        f"Item {index}: one of 'hash' or 'plaintext' is required.", field="hash"
    )


def _validate_role_names(index: int, roles: Optional[List[str]]) -> tuple[str, ...]:
    if not roles:
        return ()
    names: List[str] = []
    for name in roles:
        if not name or not name.strip():
            raise InvalidInputError(f"Item {index}: role names must not be empty.", field="roles")
        if name not in names:
            names.append(name)
    return tuple(names)


def _check_encodable(index: int, raw: MigrationRequestItem) -> None:
    """Reject strings that cannot be stored or hashed as UTF-8 (e.g. lone surrogates)."""
    fields = [
        ("plaintext", raw.plaintext),
        ("hash", raw.hash.value if raw.hash is not None else None),
        ("start", raw.start),
        ("environment", raw.environment),
        ("name", raw.name),
        ("ownerId", raw.owner_id),
    ]
    fields.extend(("roles", name) for name in raw.roles or ())
    for field_name, value in fields:
        if value is None:
            continue
        try:
            value.encode("utf-8")
        except UnicodeEncodeError as exc:
            raise InvalidInputError(
                f"Item {index}: '{field_name}' is not valid UTF-8 text.", field=field_name
            ) from exc


def _expires_at(index: int, expires_ms: Optional[int]) -> Optional[datetime]:
    if expires_ms is None:
        return None
    try:
        return datetime.fromtimestamp(expires_ms / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise InvalidInputError(f"Item {index}: 'expires' is out of range.", field="expires") from exc


def validate_batch(
    items: Sequence[MigrationRequestItem], max_batch_size: Optional[int] = None
) -> List[MigrationItem]:
    """Check every item's shape and return the validated batch. No database access."""
    limit = max_batch_size or settings.max_migration_batch_size
    if not items:
        raise InvalidInputError("The batch must contain at least one key.")
    if len(items) > limit:
        raise InvalidInputError(
            f"The batch contains {len(items)} keys; at most {limit} are accepted per request.",
            recovery_hint=f"Split the migration into requests of at most {limit} keys.",
        )

    validated = []
    for index, raw in enumerate(items):
        _check_encodable(index, raw)
        validated.append(
            MigrationItem(
                api_id=raw.api_id,
                credential=_to_credential(index, raw),
                start=raw.start or "",
                enabled=raw.enabled,
                environment=raw.environment,
                roles=_validate_role_names(index, raw.roles),
                name=raw.name,
                owner_id=raw.owner_id,
                meta=raw.meta,
                expires=_expires_at(index, raw.expires),
            )
        )
    return validated


# ---------------------------------------------------------------------------
# Lookups: key spaces and roles
# ---------------------------------------------------------------------------


def resolve_key_spaces(db: Session, workspace_id: str, api_ids: Sequence[str]) -> Dict[str, KeySpace]:
    """Map each apiId to its key space. Unknown APIs and APIs of other workspaces are invalid input."""
    wanted = set(api_ids)
    rows = (
        db.query(Api, KeyAuth)
        .join(KeyAuth, Api.key_auth_id == KeyAuth.id)
        .filter(Api.id.in_(wanted), Api.workspace_id == workspace_id)
        .all()
    )
    spaces = {
        api.id: KeySpace(
            api_id=api.id,
            key_auth_id=key_auth.id,
            workspace_id=api.workspace_id,
            store_encrypted_keys=bool(key_auth.store_encrypted_keys),
        )
        for api, key_auth in rows
    }
    missing = sorted(wanted - spaces.keys())
    if missing:
        raise InvalidInputError(f"API '{missing[0]}' was not found.", field="apiId")
    return spaces


def resolve_roles(db: Session, workspace_id: str, names: Sequence[str]) -> Dict[str, str]:
    """Map role names to role ids within a workspace. Roles are never created here."""
    wanted = set(names)
    if not wanted:
        return {}
    rows = (
        db.query(Role.name, Role.id)
        .filter(Role.workspace_id == workspace_id, Role.name.in_(wanted))
        .all()
    )
    found = {name: role_id for name, role_id in rows}
    missing = sorted(wanted - found.keys())
    if missing:
        raise RoleNotFoundError(missing[0], workspace_id)
    return found


# ---------------------------------------------------------------------------
# Credential normalizer
# ---------------------------------------------------------------------------


def normalize_credential(
    credential: Credential,
    space: KeySpace,
    key_id: str,
    vault: Optional[Vault] = None,
) -> NormalizedCredential:
    """Reduce a credential to the digest to store and, if applicable, a sealed plaintext."""
    if isinstance(credential, PrehashedCredential):
        return NormalizedCredential(digest=credential.digest)
    if isinstance(credential, PlaintextCredential):
        sealed = None
        if space.store_encrypted_keys:
            if vault is None:
                raise TypeError("a vault is required for key spaces that store encrypted keys")
            sealed = vault.encrypt(space.workspace_id, key_id, credential.plaintext)
        return NormalizedCredential(digest=hash_key(credential.plaintext), sealed=sealed)
    raise TypeError(f"unsupported credential type: {type(credential).__name__}")


def prepare_batch(
    db: Session,
    workspace_id: str,
    items: Sequence[MigrationItem],
    vault_factory: Callable[[], Vault] = get_vault,
) -> List[PreparedKey]:
    """Resolve lookups and normalize every item. Read-only."""
    spaces = resolve_key_spaces(db, workspace_id, [item.api_id for item in items])
    role_ids = resolve_roles(db, workspace_id, [name for item in items for name in item.roles])

    vault = None
    if any(
        isinstance(item.credential, PlaintextCredential) and spaces[item.api_id].store_encrypted_keys
        for item in items
    ):
        vault = vault_factory()

    prepared = []
    for item in items:
        space = spaces[item.api_id]
        key_id = new_id("key")
        prepared.append(
            PreparedKey(
                key_id=key_id,
                item=item,
                space=space,
                credential=normalize_credential(item.credential, space, key_id, vault),
                role_ids=[role_ids[name] for name in item.roles],
            )
        )
    return prepared


# ---------------------------------------------------------------------------
# Transactional writer
# ---------------------------------------------------------------------------


def _rows_for(prepared: PreparedKey) -> list:
    item, space = prepared.item, prepared.space
    rows: list = [
        Key(
            id=prepared.key_id,
            key_auth_id=space.key_auth_id,
            workspace_id=space.workspace_id,
            hash=prepared.credential.digest,
            start=item.start,
            enabled=item.enabled,
            environment=item.environment,
            name=item.name,
            owner_id=item.owner_id,
            meta=item.meta,
            expires=item.expires,
        )
    ]
    sealed = prepared.credential.sealed
    if sealed is not None:
        rows.append(
            EncryptedKey(
                key_id=prepared.key_id,
                workspace_id=space.workspace_id,
                encrypted=sealed.encrypted,
                encryption_key_id=sealed.encryption_key_id,
            )
        )
    rows.extend(
        KeyRole(key_id=prepared.key_id, role_id=role_id, workspace_id=space.workspace_id)
        for role_id in prepared.role_ids
    )
    return rows


def write_batch(db: Session, batch: Sequence[PreparedKey]) -> List[str]:
    """Insert the whole batch in one transaction and return key ids in batch order.

    Raises UniqueConstraintViolation or TransactionFailedError after rolling
    back; in both cases no row of the batch is persisted.
    """
    try:
        for prepared in batch:
            db.add_all(_rows_for(prepared))
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise UniqueConstraintViolation(details={"constraint": type(exc.orig).__name__}) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise TransactionFailedError(details={"error": type(exc).__name__}) from exc
    except Exception:
        db.rollback()
        raise
    return [prepared.key_id for prepared in batch]


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


def create_migrated_keys(
    db: Session,
    workspace_id: str,
    items: Sequence[MigrationRequestItem],
    max_batch_size: Optional[int] = None,
    vault_factory: Callable[[], Vault] = get_vault,
) -> List[str]:
    """Run one migration batch for ``workspace_id`` and return the created key ids.

    The returned list has the same length and order as ``items``. Any error
    leaves the store untouched.
    """
    started = time.perf_counter()
    state = MigrationState.VALIDATING
    try:
        validated = validate_batch(items, max_batch_size)
        logger.info(
            "Key migration accepted: %d keys across %d APIs",
            len(validated),
            len({item.api_id for item in validated}),
        )

        state = MigrationState.NORMALIZING
        prepared = prepare_batch(db, workspace_id, validated, vault_factory)

        state = MigrationState.WRITING
        key_ids = write_batch(db, prepared)
    except Exception as exc:
        # Lookups may have opened a read transaction; end it before reporting
        db.rollback()
        outcome = MigrationState.ROLLED_BACK if state is MigrationState.WRITING else MigrationState.REJECTED
        reason = exc.error_code if isinstance(exc, KeyhouseError) else type(exc).__name__
        logger.warning("Key migration %s during %s: %s", outcome.value, state.value, reason)
        record_key_migration(outcome.value, 0, time.perf_counter() - started)
        raise

    state = MigrationState.COMMITTED
    logger.info("Key migration %s: %d keys created", state.value, len(key_ids))
    record_key_migration(state.value, len(key_ids), time.perf_counter() - started)
    return key_ids


async def migrate_keys(
    db: Session,
    workspace_id: str,
    items: Sequence[MigrationRequestItem],
    max_batch_size: Optional[int] = None,
) -> List[str]:
    """Async entry point; the blocking pipeline runs in a worker thread."""
    return await asyncio.to_thread(create_migrated_keys, db, workspace_id, items, max_batch_size)
