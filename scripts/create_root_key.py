#!/usr/bin/env python3
"""Bootstrap script to create or revoke a root key directly in the database.

Usage:
    python scripts/create_root_key.py --workspace-id ws_123 --permissions 'api.*.create_key'
    python scripts/create_root_key.py --workspace-id ws_123 --name migrator \
        --permissions api.api_abc.create_key,api.api_abc.read_key
    python scripts/create_root_key.py --revoke rk_3f2a...
"""

import argparse
import json
import sys

from keyhouse.core.root_keys import create_root_key, revoke_root_key
from keyhouse.db.database import SessionLocal
from keyhouse.db.models import Workspace


def _create(db, args) -> int:
    if not args.workspace_id or not args.permissions:
        print("ERROR: --workspace-id and --permissions are required", file=sys.stderr)
        return 2
    permissions = [p.strip() for p in args.permissions.split(",") if p.strip()]
    if db.get(Workspace, args.workspace_id) is None:
        print(f"ERROR: workspace '{args.workspace_id}' does not exist", file=sys.stderr)
        return 1
    try:
        raw_key, record = create_root_key(db, args.workspace_id, permissions, name=args.name)
    except ValueError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    print("Root key created successfully!")
    print(f"  ID:          {record.id}")
    print(f"  Workspace:   {record.workspace_id}")
    print(f"  Permissions: {', '.join(record.permissions)}")
    print(f"  Root Key:    {raw_key}")
    print()
    print("IMPORTANT: Save this key now, it cannot be retrieved again.")
    return 0


def _revoke(db, root_key_id: str) -> int:
    record = revoke_root_key(db, root_key_id)
    if record is None:
        print(f"ERROR: root key '{root_key_id}' does not exist", file=sys.stderr)
        return 1
    print(json.dumps(record.to_dict(), indent=2))
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create or revoke a keyhouse root key")
    parser.add_argument("--workspace-id", help="Workspace the root key belongs to")
    parser.add_argument("--name", default=None, help="Human-readable root key name")
    parser.add_argument(
        "--permissions",
        help="Comma-separated permissions, e.g. api.*.create_key,api.*.read_key",
    )
    parser.add_argument("--revoke", metavar="ROOT_KEY_ID", help="Revoke an existing root key instead")
    args = parser.parse_args(argv)

    db = SessionLocal()
    try:
        if args.revoke:
            return _revoke(db, args.revoke)
        return _create(db, args)
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
