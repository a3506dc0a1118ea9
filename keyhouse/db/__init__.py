"""Database models and connection management."""

from keyhouse.db.database import Base, SessionLocal, engine, get_db, init_db
from keyhouse.db.models import Api, EncryptedKey, Key, KeyAuth, KeyRole, Role, RootKey, Workspace

__all__ = [
    "get_db",
    "init_db",
    "engine",
    "SessionLocal",
    "Base",
    "Workspace",
    "KeyAuth",
    "Api",
    "Key",
    "EncryptedKey",
    "Role",
    "KeyRole",
    "RootKey",
]
