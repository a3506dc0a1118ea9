"""
Integration tests for GET /v1/keys.getKey.
"""

import pytest

from keyhouse.core.root_keys import api_permission

MIGRATE_URL = "/v1/migrations.createKeys"
GET_URL = "/v1/keys.getKey"


def _bearer(raw: str) -> dict:
    return {"Authorization": f"Bearer {raw}"}


@pytest.fixture
def reader(root_key, resources):
    """Root key allowed to create and read keys of the user API, but not decrypt them."""
    return _bearer(
        root_key(
            api_permission(resources.api_id, "create_key"),
            api_permission(resources.api_id, "read_key"),
        )
    )


def _migrate(client, headers, items) -> list:
    resp = client.post(MIGRATE_URL, json=items, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["keyIds"]


@pytest.mark.integration
class TestGetKey:
    def test_returns_key_metadata(self, client, resources, make_roles, reader):
        make_roles("admin", "billing")
        [key_id] = _migrate(
            client,
            reader,
            [
                {
                    "apiId": resources.api_id,
                    "plaintext": "legacy_secret",
                    "start": "legacy_",
                    "environment": "test",
                    "name": "old key",
                    "ownerId": "user_7",
                    "meta": {"tier": "gold"},
                    "expires": 1_900_000_000_000,
                    "roles": ["billing", "admin"],
                }
            ],
        )

        resp = client.get(GET_URL, params={"keyId": key_id}, headers=reader)

        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["id"] == key_id
        assert body["apiId"] == resources.api_id
        assert body["workspaceId"] == resources.workspace_id
        assert body["start"] == "legacy_"
        assert body["enabled"] is True
        assert body["environment"] == "test"
        assert body["name"] == "old key"
        assert body["ownerId"] == "user_7"
        assert body["meta"] == {"tier": "gold"}
        assert body["expires"] == 1_900_000_000_000
        assert body["roles"] == ["admin", "billing"]
        assert body["plaintext"] is None
        assert "hash" not in body

    def test_decrypt_requires_decrypt_permission(self, client, resources, reader, store_encrypted_keys):
        [key_id] = _migrate(client, reader, [{"apiId": resources.api_id, "plaintext": "abc"}])

        resp = client.get(GET_URL, params={"keyId": key_id, "decrypt": "true"}, headers=reader)

        assert resp.status_code == 403
        assert api_permission(resources.api_id, "decrypt_key") in resp.json()["error"]["message"]

    def test_decrypt_of_hash_only_key_has_no_plaintext(self, client, resources, root_key):
        headers = _bearer(root_key("api.*.create_key", "api.*.read_key", "api.*.decrypt_key"))
        [key_id] = _migrate(
            client,
            headers,
            [{"apiId": resources.api_id, "hash": {"value": "abc=", "variant": "sha256_base64"}}],
        )

        resp = client.get(GET_URL, params={"keyId": key_id, "decrypt": "true"}, headers=headers)

        assert resp.status_code == 200, resp.text
        assert resp.json()["plaintext"] is None

    def test_missing_read_permission_is_forbidden(self, client, resources, root_key, create_key_headers):
        [key_id] = _migrate(
            client,
            create_key_headers,
            [{"apiId": resources.api_id, "hash": {"value": "xyz=", "variant": "sha256_base64"}}],
        )
        resp = client.get(GET_URL, params={"keyId": key_id}, headers=create_key_headers)
        assert resp.status_code == 403

    def test_unknown_key_is_not_found(self, client, reader):
        resp = client.get(GET_URL, params={"keyId": "key_missing"}, headers=reader)
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "NOT_FOUND"

    def test_key_of_other_workspace_is_not_found(self, client, resources, root_key, reader):
        foreign = _bearer(
            root_key(
                "api.*.create_key",
                "api.*.read_key",
                workspace_id=resources.other_workspace_id,
            )
        )
        [key_id] = _migrate(
            client,
            foreign,
            [{"apiId": resources.other_api_id, "hash": {"value": "foreign=", "variant": "sha256_base64"}}],
        )

        resp = client.get(GET_URL, params={"keyId": key_id}, headers=reader)
        assert resp.status_code == 404

    def test_missing_auth_is_unauthorized(self, client):
        resp = client.get(GET_URL, params={"keyId": "key_x"})
        assert resp.status_code == 401


@pytest.mark.integration
class TestServiceEndpoints:
    def test_liveness(self, client):
        resp = client.get("/v1/liveness")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    def test_metrics_exposes_migration_counters(self, client, resources, create_key_headers):
        _migrate(
            client,
            create_key_headers,
            [{"apiId": resources.api_id, "hash": {"value": "m=", "variant": "sha256_base64"}}],
        )
        resp = client.get("/metrics")
        assert resp.status_code == 200
        assert "key_migration_batches_total" in resp.text
