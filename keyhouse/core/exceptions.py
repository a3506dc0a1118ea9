"""Exception classes for keyhouse.

Each exception carries:
  error_code: machine-readable code returned in the error envelope
  status_code: HTTP status the API layer maps it to
  message: human-readable description
  details: optional structured context, never rendered for opaque errors
  recovery_hint: actionable guidance for the API caller

Write-phase failures of a key migration are opaque: the caller
learns that the batch failed, never which item or row caused it.
"""

from typing import Any, Dict, Optional


class KeyhouseError(Exception):
    """Base exception for keyhouse errors."""

    status_code: int = 500
    opaque: bool = False

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recovery_hint: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "INTERNAL_SERVER_ERROR"
        self.details = details or {}
        self.recovery_hint = recovery_hint or (
            "An unexpected error occurred. If the problem persists, "
            "contact support with the request_id."
        )


class InvalidInputError(KeyhouseError):
    """Raised for malformed requests: bad item shape, empty batch, unknown apiId."""

    status_code = 400

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recovery_hint: Optional[str] = None,
    ):
        super().__init__(
            message,
            error_code="BAD_REQUEST",
            details={**(details or {}), **({"field": field} if field else {})},
            recovery_hint=recovery_hint or (
                "Fix the request body and retry. Every item needs an apiId and "
                "exactly one of 'hash' or 'plaintext'."
            ),
        )


class RoleNotFoundError(KeyhouseError):
    """Raised when a role name does not exist in the target workspace."""

    status_code = 404

    def __init__(self, role_name: str, workspace_id: Optional[str] = None):
        super().__init__(
            f"Role '{role_name}' does not exist in this workspace.",
            error_code="NOT_FOUND",
            details={"role": role_name, "workspace_id": workspace_id},
            recovery_hint="Create the role in the workspace before migrating keys that reference it.",
        )
        self.role_name = role_name


class NotFoundError(KeyhouseError):
    """Raised when a requested resource does not exist or is not visible to the caller."""

    status_code = 404

    def __init__(self, message: str, resource: Optional[str] = None):
        super().__init__(
            message,
            error_code="NOT_FOUND",
            details={"resource": resource} if resource else None,
            recovery_hint="Check the identifier and that it belongs to your workspace.",
        )


class UnauthorizedError(KeyhouseError):
    """Raised when the root key is missing or unknown."""

    status_code = 401

    def __init__(self, message: str = "Missing or invalid root key."):
        super().__init__(
            message,
            error_code="UNAUTHORIZED",
            recovery_hint="Send a valid root key as 'Authorization: Bearer <root key>'.",
        )


class ForbiddenError(KeyhouseError):
    """Raised when the root key lacks a required permission."""

    status_code = 403

    def __init__(self, missing: list[str]):
        super().__init__(
            f"Missing permissions: {', '.join(missing)}",
            error_code="INSUFFICIENT_PERMISSIONS",
            details={"missing": missing},
            recovery_hint="Grant the listed permissions to the root key and retry.",
        )
        self.missing = missing


class TransactionFailedError(KeyhouseError):
    """Raised when the migration write phase aborts. Nothing from the batch is persisted."""

    opaque = True

    def __init__(self, message: str = "The migration could not be committed.", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message,
            error_code="INTERNAL_SERVER_ERROR",
            details=details,
            recovery_hint=(
                "No keys were created. Check the batch for hashes that already "
                "exist or repeat within the batch, then resubmit."
            ),
        )


class UniqueConstraintViolation(TransactionFailedError):
    """Raised when a hash collides with an existing row or a sibling item in the batch."""


class ConfigurationError(KeyhouseError):
    """Raised for server configuration errors."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(
            message,
            error_code="INTERNAL_SERVER_ERROR",
            details={"config_key": config_key},
            recovery_hint=(
                f"The server is misconfigured (key: '{config_key}'). "
                "Contact your system administrator."
            ),
        )
        self.config_key = config_key
