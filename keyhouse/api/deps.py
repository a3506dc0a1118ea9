"""FastAPI dependencies: database session and root key authentication."""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from keyhouse.core.exceptions import UnauthorizedError
from keyhouse.core.root_keys import lookup_root_key
from keyhouse.db.database import get_db
from keyhouse.db.models import RootKey

# auto_error=False so a missing header produces our own 401 envelope
_bearer_scheme = HTTPBearer(auto_error=False)


def get_root_key(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    db: Session = Depends(get_db),
) -> RootKey:
    """Resolve the Bearer root key, or raise UnauthorizedError."""
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Missing root key. Provide 'Authorization: Bearer <root key>'.")
    root_key = lookup_root_key(db, credentials.credentials)
    if root_key is None:
        raise UnauthorizedError("The root key is invalid or has been revoked.")
    request.state.workspace_id = root_key.workspace_id
    return root_key
