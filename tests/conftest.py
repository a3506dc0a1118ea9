"""Pytest configuration and shared fixtures."""

import base64
from dataclasses import dataclass
from typing import Callable, Generator, List

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from keyhouse.core.config import settings
from keyhouse.core.hashing import new_id
from keyhouse.core.root_keys import api_permission, create_root_key
from keyhouse.db.database import get_db, init_db
from keyhouse.db.models import Api, KeyAuth, Role, Workspace
from keyhouse.main import app

TEST_VAULT_KEY = base64.b64encode(b"k" * 32).decode("ascii")


@dataclass
class Resources:
    """Rows every test starts with: a user workspace with one API and a foreign workspace."""

    workspace_id: str
    api_id: str
    key_auth_id: str
    other_workspace_id: str
    other_api_id: str


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    # StaticPool shares the single in-memory connection across threads and sessions
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def vault_key(monkeypatch):
    monkeypatch.setattr(settings, "vault_master_key", TEST_VAULT_KEY)
    monkeypatch.setattr(settings, "vault_key_id", "test-v1")
    return TEST_VAULT_KEY


@pytest.fixture
def resources(db: Session) -> Resources:
    workspace_id = new_id("ws")
    other_workspace_id = new_id("ws")
    key_auth_id = new_id("ks")
    other_key_auth_id = new_id("ks")
    api_id = new_id("api")
    other_api_id = new_id("api")

    db.add_all(
        [
            Workspace(id=workspace_id, name="user"),
            Workspace(id=other_workspace_id, name="other"),
        ]
    )
    db.flush()
    db.add_all(
        [
            KeyAuth(id=key_auth_id, workspace_id=workspace_id, store_encrypted_keys=False),
            KeyAuth(id=other_key_auth_id, workspace_id=other_workspace_id, store_encrypted_keys=False),
        ]
    )
    db.flush()
    db.add_all(
        [
            Api(id=api_id, workspace_id=workspace_id, name="user-api", key_auth_id=key_auth_id),
            Api(id=other_api_id, workspace_id=other_workspace_id, name="other-api", key_auth_id=other_key_auth_id),
        ]
    )
    db.commit()
    return Resources(
        workspace_id=workspace_id,
        api_id=api_id,
        key_auth_id=key_auth_id,
        other_workspace_id=other_workspace_id,
        other_api_id=other_api_id,
    )


@pytest.fixture
def store_encrypted_keys(db: Session, resources: Resources) -> None:
    """Turn on encrypted key storage for the user API's key space."""
    key_auth = db.get(KeyAuth, resources.key_auth_id)
    key_auth.store_encrypted_keys = True
    db.commit()


@pytest.fixture
def make_roles(db: Session, resources: Resources) -> Callable[..., List[str]]:
    def _make(*names: str, workspace_id: str = "") -> List[str]:
        roles = [Role(id=new_id("role"), workspace_id=workspace_id or resources.workspace_id, name=n) for n in names]
        db.add_all(roles)
        db.commit()
        return [r.id for r in roles]

    return _make


@pytest.fixture
def root_key(db: Session, resources: Resources) -> Callable[..., str]:
    """Factory returning a raw root key with the given permissions in the user workspace."""

    def _create(*permissions: str, workspace_id: str = "") -> str:
        raw_key, _ = create_root_key(db, workspace_id or resources.workspace_id, permissions)
        return raw_key

    return _create


@pytest.fixture
def client(session_factory: sessionmaker) -> Generator[TestClient, None, None]:
    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def create_key_headers(root_key, resources: Resources) -> dict:
    raw = root_key(api_permission(resources.api_id, "create_key"))
    return {"Authorization": f"Bearer {raw}"}
