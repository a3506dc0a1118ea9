"""Unit tests for keyhouse/core/root_keys.py."""

import pytest

from keyhouse.core.exceptions import ForbiddenError
from keyhouse.core.hashing import hash_key
from keyhouse.core.root_keys import (
    ROOT_KEY_PREFIX,
    api_permission,
    create_root_key,
    generate_root_key,
    has_permission,
    lookup_root_key,
    parse_permission,
    require_permissions,
    revoke_root_key,
)
from keyhouse.db.models import RootKey

# ---------------------------------------------------------------------------
# Tests: generation and persistence
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestCreateRootKey:
    def test_generate_has_prefix(self):
        root_key_id, raw = generate_root_key()
        assert root_key_id.startswith("rk_")
        assert raw.startswith(ROOT_KEY_PREFIX)

    def test_only_digest_is_stored(self, db, resources):
        raw, record = create_root_key(db, resources.workspace_id, ["api.*.create_key"], name="ci")
        stored = db.get(RootKey, record.id)
        assert stored.hash == hash_key(raw)
        assert stored.start == raw[:9]
        assert stored.name == "ci"
        assert raw not in stored.to_dict().values()

    def test_permissions_are_deduplicated_and_sorted(self, db, resources):
        _, record = create_root_key(
            db, resources.workspace_id, ["api.b.read_key", "api.a.create_key", "api.b.read_key"]
        )
        assert record.permissions == ["api.a.create_key", "api.b.read_key"]

    def test_permission_on_api_id_with_dots_is_accepted(self, db, resources):
        _, record = create_root_key(db, resources.workspace_id, ["api.api.v2.create_key"])
        assert record.permissions == ["api.api.v2.create_key"]

    @pytest.mark.parametrize("perm", ["api.x", "apis.x.create_key", "api.x.delete_key", "create_key"])
    def test_invalid_permission_is_rejected(self, db, resources, perm):
        with pytest.raises(ValueError):
            create_root_key(db, resources.workspace_id, [perm])


@pytest.mark.unit
class TestLookupRootKey:
    def test_finds_active_key(self, db, resources):
        raw, record = create_root_key(db, resources.workspace_id, ["api.*.read_key"])
        found = lookup_root_key(db, raw)
        assert found.id == record.id
        assert found.last_used_at is not None

    def test_unknown_key_returns_none(self, db, resources):
        assert lookup_root_key(db, "root_nope") is None

    def test_revoked_key_returns_none(self, db, resources):
        raw, record = create_root_key(db, resources.workspace_id, ["api.*.read_key"])
        revoked = revoke_root_key(db, record.id)
        assert revoked.is_active is False
        assert revoked.revoked_at is not None
        assert lookup_root_key(db, raw) is None

    def test_revoke_unknown_returns_none(self, db):
        assert revoke_root_key(db, "rk_missing") is None


# ---------------------------------------------------------------------------
# Tests: permission checks
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestPermissions:
    def _key(self, *permissions):
        return RootKey(id="rk_1", workspace_id="ws_1", hash="h", start="root_", permissions=list(permissions))

    def test_api_permission_format(self):
        assert api_permission("api_1", "create_key") == "api.api_1.create_key"

    def test_exact_grant(self):
        assert has_permission(self._key("api.api_1.create_key"), "api.api_1.create_key")

    def test_other_api_not_granted(self):
        assert not has_permission(self._key("api.api_1.create_key"), "api.api_2.create_key")

    def test_other_action_not_granted(self):
        assert not has_permission(self._key("api.api_1.create_key"), "api.api_1.read_key")

    def test_wildcard_grant(self):
        assert has_permission(self._key("api.*.read_key"), "api.api_9.read_key")

    def test_wildcard_covers_api_id_with_dots(self):
        assert has_permission(self._key("api.*.create_key"), api_permission("api.v2", "create_key"))

    def test_exact_grant_for_api_id_with_dots(self):
        key = self._key("api.api.v2.read_key")
        assert has_permission(key, "api.api.v2.read_key")
        assert not has_permission(key, "api.api.v3.read_key")

    @pytest.mark.parametrize(
        "permission, expected",
        [
            ("api.api_1.create_key", ("api_1", "create_key")),
            ("api.api.v2.read_key", ("api.v2", "read_key")),
            ("api.*.decrypt_key", ("*", "decrypt_key")),
            ("api.create_key", None),
            ("keys.api_1.create_key", None),
        ],
    )
    def test_parse_permission(self, permission, expected):
        assert parse_permission(permission) == expected

    def test_wildcard_is_action_specific(self):
        assert not has_permission(self._key("api.*.read_key"), "api.api_9.decrypt_key")

    def test_require_lists_every_missing_permission(self):
        key = self._key("api.a.create_key")
        with pytest.raises(ForbiddenError) as exc_info:
            require_permissions(key, ["api.c.create_key", "api.a.create_key", "api.b.create_key"])
        assert exc_info.value.missing == ["api.b.create_key", "api.c.create_key"]
        assert exc_info.value.status_code == 403

    def test_require_passes_when_all_granted(self):
        require_permissions(self._key("api.*.create_key"), ["api.a.create_key", "api.b.create_key"])
