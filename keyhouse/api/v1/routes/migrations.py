"""Key migration route: POST /v1/migrations.createKeys.

Imports a batch of existing keys in one all-or-nothing transaction. The root
key needs ``api.<apiId>.create_key`` for every API referenced in the batch.
"""

import logging
from typing import List

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from keyhouse.api.deps import get_root_key
from keyhouse.core.migrations import migrate_keys
from keyhouse.core.root_keys import api_permission, require_permissions
from keyhouse.db.database import get_db
from keyhouse.db.models import RootKey
from keyhouse.models.keys import MigrationRequestItem, MigrationResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["migrations"])


@router.post(
    "/migrations.createKeys",
    response_model=MigrationResponse,
    summary="Migrate existing keys",
    responses={
        400: {"description": "Malformed batch or unknown apiId"},
        401: {"description": "Missing or invalid root key"},
        403: {"description": "Root key lacks api.<apiId>.create_key"},
        404: {"description": "A referenced role does not exist"},
        500: {"description": "The batch was rolled back; no key was created"},
    },
)
async def create_keys(
    body: List[MigrationRequestItem] = Body(...),
    root_key: RootKey = Depends(get_root_key),
    db: Session = Depends(get_db),
) -> MigrationResponse:
    """
    Create keys from pre-hashed or plaintext credentials.

    On success the i-th returned id belongs to the i-th request item. On any
    failure no key from the batch is stored.
    """
    require_permissions(
        root_key,
        sorted({api_permission(item.api_id, "create_key") for item in body}),
    )
    key_ids = await migrate_keys(db, root_key.workspace_id, body)
    return MigrationResponse(key_ids=key_ids)
