"""keyhouse: multi-tenant key store with bulk key migration."""

__version__ = "1.0.0"
