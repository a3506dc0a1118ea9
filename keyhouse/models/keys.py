"""Pydantic models for key migration and key reads.

Field names are snake_case in Python and camelCase on the wire (``apiId``,
``keyIds``); both spellings are accepted on input.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class HashVariant(str, Enum):
    """Algorithm and encoding of a pre-computed hash. Informational only."""

    SHA256_BASE64 = "sha256_base64"


class KeyHash(BaseModel):
    """A key digest computed by the caller's previous system."""

    value: str = Field(..., min_length=1, max_length=255, description="The digest, exactly as it should be stored")
    variant: HashVariant = Field(..., description="How the digest was computed")


class MigrationRequestItem(BaseModel):
    """One key to migrate. Exactly one of ``hash`` or ``plaintext`` must be set."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "apiId": "api_123",
                    "start": "sk_live_",
                    "hash": {"value": "ZjhiNjM1...", "variant": "sha256_base64"},
                    "enabled": True,
                    "roles": ["admin"],
                },
                {"apiId": "api_123", "plaintext": "sk_live_abcdef", "environment": "test"},
            ]
        },
    )

    api_id: str = Field(..., alias="apiId", min_length=1, description="API whose key space receives the key")
    hash: Optional[KeyHash] = Field(None, description="Pre-computed digest of the key")
    plaintext: Optional[str] = Field(None, description="The key itself; hashed (and optionally encrypted) on ingest")
    start: Optional[str] = Field(None, max_length=64, description="Display prefix shown to users")
    enabled: bool = Field(default=True, description="Disabled keys fail verification")
    environment: Optional[str] = Field(None, max_length=255, description="Free-form environment tag, e.g. 'test'")
    roles: Optional[List[str]] = Field(None, description="Names of existing workspace roles to attach")
    name: Optional[str] = Field(None, max_length=255, description="Human label for the key")
    owner_id: Optional[str] = Field(None, alias="ownerId", max_length=255, description="Identifier of the key owner in your system")
    meta: Optional[Dict[str, Any]] = Field(None, description="Arbitrary JSON metadata")
    expires: Optional[int] = Field(None, ge=0, description="Expiry as unix epoch milliseconds")


class MigrationResponse(BaseModel):
    """Identifiers of the created keys, in request order."""

    model_config = ConfigDict(populate_by_name=True)

    key_ids: List[str] = Field(..., alias="keyIds")


class KeyResponse(BaseModel):
    """Key metadata returned by keys.getKey."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    api_id: str = Field(..., alias="apiId")
    workspace_id: str = Field(..., alias="workspaceId")
    start: str
    enabled: bool
    environment: Optional[str] = None
    name: Optional[str] = None
    owner_id: Optional[str] = Field(None, alias="ownerId")
    meta: Optional[Dict[str, Any]] = None
    expires: Optional[int] = None
    created_at: Optional[int] = Field(None, alias="createdAt")
    roles: List[str] = Field(default_factory=list)
    plaintext: Optional[str] = None
