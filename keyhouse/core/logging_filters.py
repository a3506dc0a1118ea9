"""Logging filters: secrets redaction and request-id stamping.

``SensitiveDataFilter`` replaces the VALUE of any ``extra`` field whose name
looks secret with ``[REDACTED]`` and scrubs secret-looking fragments from the
message string. ``RequestIdFilter`` copies the current X-Request-ID onto every
record so JSON logs can be correlated per request.

Usage::

    import logging
    from keyhouse.core.logging_filters import RequestIdFilter, SensitiveDataFilter

    handler.addFilter(SensitiveDataFilter())
    handler.addFilter(RequestIdFilter())
"""

import logging
import re

from keyhouse.middleware.request_id import request_id_var

# Keys whose values are always redacted (case-insensitive substring match on field name)
_SENSITIVE_FIELD_NAMES: tuple[str, ...] = (
    "plaintext",
    "hash",
    "root_key",
    "password",
    "secret",
    "token",
    "authorization",
    "credential",
    "master_key",
    "bearer",
)

# Regex patterns that match sensitive data embedded in log message strings
_SENSITIVE_PATTERNS: list[re.Pattern] = [
    re.compile(r"(Authorization:\s*)(Bearer\s+\S+)", re.IGNORECASE),
    re.compile(
        r'("?(?:plaintext|hash|secret|token|authorization|master_key)"?\s*[=:]\s*["\']?)([^"\'&\s,}{]+)',
        re.IGNORECASE,
    ),
    # Raw root keys; matches ROOT_KEY_PREFIX in root_keys.py
    re.compile(r"\broot_[A-Za-z0-9_\-]{10,}\b"),
]

# Attributes every LogRecord has; never treated as extra fields
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None)).keys()) | {
    "message",
    "asctime",
    "request_id",
}


def _redact_string(value: str) -> str:
    """Apply all pattern-based redactions to a string."""
    for pattern in _SENSITIVE_PATTERNS:
        if pattern.groups == 0:
            value = pattern.sub("[REDACTED]", value)
        else:
            value = pattern.sub(lambda m: m.group(1) + "[REDACTED]", value)
    return value


def _is_sensitive_key(key: str) -> bool:
    key_lower = key.lower()
    return any(name in key_lower for name in _SENSITIVE_FIELD_NAMES)


class SensitiveDataFilter(logging.Filter):
    """Scrubs secrets from log records before emission. Never drops a record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = _redact_string(record.msg)

        if record.args:
            if isinstance(record.args, dict):
                record.args = {
                    k: "[REDACTED]" if _is_sensitive_key(k) else (
                        _redact_string(v) if isinstance(v, str) else v
                    )
                    for k, v in record.args.items()
                }
            elif isinstance(record.args, tuple):
                record.args = tuple(
                    _redact_string(a) if isinstance(a, str) else a for a in record.args
                )

        for attr in list(vars(record).keys()):
            if attr.startswith("_") or attr in _RESERVED_ATTRS:
                continue
            if _is_sensitive_key(attr):
                setattr(record, attr, "[REDACTED]")
            elif isinstance(getattr(record, attr), str):
                setattr(record, attr, _redact_string(getattr(record, attr)))

        return True


class RequestIdFilter(logging.Filter):
    """Adds ``request_id`` from the request-scoped ContextVar to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = request_id_var.get() or "-"
        return True
