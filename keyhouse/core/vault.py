"""Reversible encryption for key material of spaces that store encrypted keys.

HKDF(SHA-256) derives a per-workspace 256-bit key from the master key; the
plaintext is sealed with AES-GCM under a random 96-bit nonce and the key id as
associated data, so a ciphertext cannot be replayed onto another key row.

Stored blob: base64(nonce || ciphertext). The row also records which master
key sealed it (``encryption_key_id``).
"""

import base64
import binascii
import os
from dataclasses import dataclass
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from keyhouse.core.config import Settings, settings
from keyhouse.core.exceptions import ConfigurationError

NONCE_SIZE = 12
MASTER_KEY_SIZE = 32


@dataclass(frozen=True)
class SealedKey:
    encrypted: str
    encryption_key_id: str


class Vault:
    """Encrypts and decrypts key plaintext, keyed per workspace."""

    def __init__(self, master_key: bytes, key_id: str):
        if len(master_key) != MASTER_KEY_SIZE:
            raise ConfigurationError(
                f"Vault master key must be {MASTER_KEY_SIZE} bytes, got {len(master_key)}.",
                config_key="VAULT_MASTER_KEY",
            )
        self._master_key = master_key
        self.key_id = key_id

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "Vault":
        config = config or settings
        if not config.vault_master_key:
            raise ConfigurationError(
                "Encrypted key storage requires VAULT_MASTER_KEY.",
                config_key="VAULT_MASTER_KEY",
            )
        try:
            master_key = base64.b64decode(config.vault_master_key, validate=True)
        except binascii.Error as exc:
            raise ConfigurationError(
                "VAULT_MASTER_KEY is not valid base64.", config_key="VAULT_MASTER_KEY"
            ) from exc
        return cls(master_key, config.vault_key_id)

    def _derive(self, workspace_id: str) -> bytes:
        hkdf = HKDF(
            algorithm=hashes.SHA256(),
            length=32,
            salt=None,
            info=f"keyhouse-vault:{workspace_id}".encode("utf-8"),
        )
        return hkdf.derive(self._master_key)

    def encrypt(self, workspace_id: str, key_id: str, plaintext: str) -> SealedKey:
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = AESGCM(self._derive(workspace_id)).encrypt(
            nonce, plaintext.encode("utf-8"), key_id.encode("utf-8")
        )
        return SealedKey(
            encrypted=base64.b64encode(nonce + ciphertext).decode("ascii"),
            encryption_key_id=self.key_id,
        )

    def decrypt(self, workspace_id: str, key_id: str, sealed: SealedKey) -> str:
        if sealed.encryption_key_id != self.key_id:
            raise ConfigurationError(
                f"Key was sealed with vault key '{sealed.encryption_key_id}', "
                f"but only '{self.key_id}' is configured.",
                config_key="VAULT_KEY_ID",
            )
        blob = base64.b64decode(sealed.encrypted)
        nonce, ciphertext = blob[:NONCE_SIZE], blob[NONCE_SIZE:]
        try:
            plaintext = AESGCM(self._derive(workspace_id)).decrypt(
                nonce, ciphertext, key_id.encode("utf-8")
            )
        except InvalidTag as exc:
            raise ConfigurationError(
                "Stored key could not be decrypted with the configured vault key.",
                config_key="VAULT_MASTER_KEY",
            ) from exc
        return plaintext.decode("utf-8")


def get_vault() -> Vault:
    """Build a Vault from the current settings."""
    return Vault.from_settings(settings)
