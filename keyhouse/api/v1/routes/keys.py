"""Key read route: GET /v1/keys.getKey."""

import asyncio

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from keyhouse.api.deps import get_root_key
from keyhouse.core.keys import describe_key, find_key
from keyhouse.core.root_keys import api_permission, require_permissions
from keyhouse.db.database import get_db
from keyhouse.db.models import RootKey
from keyhouse.models.keys import KeyResponse

router = APIRouter(prefix="/v1", tags=["keys"])


@router.get("/keys.getKey", response_model=KeyResponse, summary="Read a key")
async def get_key(
    key_id: str = Query(..., alias="keyId", min_length=1),
    decrypt: bool = Query(False, description="Include the plaintext if the key was stored encrypted"),
    root_key: RootKey = Depends(get_root_key),
    db: Session = Depends(get_db),
) -> KeyResponse:
    """Return key metadata. Decrypting additionally requires api.<apiId>.decrypt_key."""
    key, api = await asyncio.to_thread(find_key, db, root_key.workspace_id, key_id)
    required = [api_permission(api.id, "read_key")]
    if decrypt:
        required.append(api_permission(api.id, "decrypt_key"))
    require_permissions(root_key, required)
    return await asyncio.to_thread(describe_key, db, key, api, decrypt)
