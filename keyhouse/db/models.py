"""Database models for workspaces, key-auth spaces, keys and their roles."""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from keyhouse.db.database import Base


class Workspace(Base):
    """Tenant. Every other row belongs to exactly one workspace."""

    __tablename__ = "workspaces"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class KeyAuth(Base):
    """Key-authentication space: the namespace keys of one API live in."""

    __tablename__ = "key_auth"

    id = Column(String(64), primary_key=True)
    workspace_id = Column(String(64), ForeignKey("workspaces.id"), nullable=False, index=True)
    store_encrypted_keys = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Api(Base):
    __tablename__ = "apis"

    id = Column(String(64), primary_key=True)
    workspace_id = Column(String(64), ForeignKey("workspaces.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    key_auth_id = Column(String(64), ForeignKey("key_auth.id"), nullable=True, unique=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    key_auth = relationship("KeyAuth")


class Key(Base):
    """A stored credential. Only the digest is kept; plaintext lives in EncryptedKey if at all."""

    __tablename__ = "keys"
    __table_args__ = (UniqueConstraint("key_auth_id", "hash", name="uq_keys_key_auth_hash"),)

    id = Column(String(64), primary_key=True)
    key_auth_id = Column(String(64), ForeignKey("key_auth.id"), nullable=False, index=True)
    workspace_id = Column(String(64), ForeignKey("workspaces.id"), nullable=False, index=True)
    hash = Column(String(255), nullable=False, index=True)
    start = Column(String(64), nullable=False, default="")
    enabled = Column(Boolean, nullable=False, default=True)
    environment = Column(String(255), nullable=True)
    name = Column(String(255), nullable=True)
    owner_id = Column(String(255), nullable=True)
    meta = Column(JSON, nullable=True)
    expires = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    encrypted = relationship("EncryptedKey", uselist=False, back_populates="key")
    roles = relationship("KeyRole", back_populates="key")


class EncryptedKey(Base):
    """Recoverable copy of a key's plaintext, sealed by the vault."""

    __tablename__ = "encrypted_keys"

    key_id = Column(String(64), ForeignKey("keys.id"), primary_key=True)
    workspace_id = Column(String(64), ForeignKey("workspaces.id"), nullable=False)
    encrypted = Column(Text, nullable=False)
    encryption_key_id = Column(String(64), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    key = relationship("Key", back_populates="encrypted")


class Role(Base):
    __tablename__ = "roles"
    __table_args__ = (UniqueConstraint("workspace_id", "name", name="uq_roles_workspace_name"),)

    id = Column(String(64), primary_key=True)
    workspace_id = Column(String(64), ForeignKey("workspaces.id"), nullable=False, index=True)
    name = Column(String(512), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class KeyRole(Base):
    """Join row binding a key to a role."""

    __tablename__ = "keys_roles"

    key_id = Column(String(64), ForeignKey("keys.id"), primary_key=True)
    role_id = Column(String(64), ForeignKey("roles.id"), primary_key=True)
    workspace_id = Column(String(64), ForeignKey("workspaces.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    key = relationship("Key", back_populates="roles")
    role = relationship("Role")


class RootKey(Base):
    """Workspace-level credential used to call the management API."""

    __tablename__ = "root_keys"

    id = Column(String(64), primary_key=True)
    workspace_id = Column(String(64), ForeignKey("workspaces.id"), nullable=False, index=True)
    hash = Column(String(255), unique=True, nullable=False)
    start = Column(String(64), nullable=False)
    name = Column(String(255), nullable=True)
    permissions = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    last_used_at = Column(DateTime(timezone=True), nullable=True)
    revoked_at = Column(DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        """Convert to dictionary (never includes the hash)."""
        return {
            "id": self.id,
            "workspace_id": self.workspace_id,
            "start": self.start,
            "name": self.name,
            "permissions": list(self.permissions or []),
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "last_used_at": self.last_used_at.isoformat() if self.last_used_at else None,
            "revoked_at": self.revoked_at.isoformat() if self.revoked_at else None,
        }
