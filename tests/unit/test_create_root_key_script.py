"""Unit tests for scripts/create_root_key.py."""

import importlib.util
import json
from pathlib import Path

import pytest

from keyhouse.core.hashing import hash_key
from keyhouse.core.root_keys import create_root_key, lookup_root_key
from keyhouse.db.models import RootKey

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "create_root_key.py"


@pytest.fixture
def script(monkeypatch, session_factory):
    spec = importlib.util.spec_from_file_location("create_root_key_script", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    monkeypatch.setattr(module, "SessionLocal", session_factory)
    return module


@pytest.mark.unit
class TestCreateRootKeyScript:
    def test_creates_key_and_prints_it_once(self, script, db, resources, capsys):
        code = script.main(
            ["--workspace-id", resources.workspace_id, "--name", "migrator", "--permissions", "api.*.create_key, api.*.read_key"]
        )
        assert code == 0
        out = capsys.readouterr().out
        raw = next(line.split()[-1] for line in out.splitlines() if "Root Key:" in line)
        assert raw.startswith("root_")

        record = db.query(RootKey).filter(RootKey.hash == hash_key(raw)).one()
        assert record.name == "migrator"
        assert record.permissions == ["api.*.create_key", "api.*.read_key"]

    def test_unknown_workspace_fails(self, script, resources, capsys):
        code = script.main(["--workspace-id", "ws_missing", "--permissions", "api.*.create_key"])
        assert code == 1
        assert "does not exist" in capsys.readouterr().err

    def test_invalid_permission_fails(self, script, resources, capsys):
        code = script.main(["--workspace-id", resources.workspace_id, "--permissions", "keys.write"])
        assert code == 1
        assert "Invalid permission" in capsys.readouterr().err

    def test_create_requires_workspace_and_permissions(self, script, capsys):
        assert script.main(["--name", "orphan"]) == 2
        assert "required" in capsys.readouterr().err

    def test_revoke_deactivates_key(self, script, db, resources, capsys):
        raw, record = create_root_key(db, resources.workspace_id, ["api.*.read_key"])

        code = script.main(["--revoke", record.id])

        assert code == 0
        printed = json.loads(capsys.readouterr().out)
        assert printed["id"] == record.id
        assert printed["is_active"] is False
        assert printed["revoked_at"] is not None
        assert "hash" not in printed
        assert lookup_root_key(db, raw) is None

    def test_revoke_unknown_key_fails(self, script, resources, capsys):
        assert script.main(["--revoke", "rk_missing"]) == 1
        assert "does not exist" in capsys.readouterr().err
