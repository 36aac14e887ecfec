"""Tests for login, tokens and permission checks."""
from fieldops.auth.security import create_refresh_token
from conftest import auth_headers, make_user


class TestLogin:
    """Password login and token refresh."""

    def test_login_with_username_or_email(self, client, db):
        make_user(db, "dispatch1")
        for identifier in ("dispatch1", "dispatch1@example.com"):
            resp = client.post("/auth/login", json={"identifier": identifier, "password": "secret-password"})
            assert resp.status_code == 200
            assert resp.json()["token_type"] == "bearer"

    def test_bad_password(self, client, db):
        make_user(db, "dispatch1")
        resp = client.post("/auth/login", json={"identifier": "dispatch1", "password": "nope"})
        assert resp.status_code == 401

    def test_inactive_user(self, client, db):
        user = make_user(db, "gone")
        user.is_active = False
        db.commit()
        resp = client.post("/auth/login", json={"identifier": "gone", "password": "secret-password"})
        assert resp.status_code == 401

    def test_refresh_flow(self, client, db):
        make_user(db, "dispatch1")
        tokens = client.post("/auth/login", json={"identifier": "dispatch1", "password": "secret-password"}).json()

        resp = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert resp.status_code == 200

        resp = client.post("/auth/refresh", json={"refresh_token": tokens["access_token"]})
        assert resp.status_code == 400

    def test_refresh_token_is_not_an_access_token(self, client, db):
        user = make_user(db, "dispatch1")
        headers = {"Authorization": f"Bearer {create_refresh_token(str(user.id))}"}
        assert client.get("/auth/me", headers=headers).status_code == 401

    def test_garbage_token(self, client):
        assert client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"}).status_code == 401


class TestMe:
    """Profile and granted permissions."""

    def test_permissions_merge_roles_and_overrides(self, client, db):
        user = make_user(db, "mixed", roles=["dispatcher"], permissions={"billing:read": True, "jobs:write": False})
        role = user.roles[0]
        role.permissions = {"jobs:read": True, "jobs:write": True}
        db.commit()

        body = client.get("/auth/me", headers=auth_headers(user)).json()
        assert body["roles"] == ["dispatcher"]
        assert body["permissions"] == ["billing:read", "jobs:read"]

    def test_portal_user_carries_customer(self, client, db, customer):
        user = make_user(db, "portal", customer_id=customer.id)
        body = client.get("/auth/me", headers=auth_headers(user)).json()
        assert body["customer_id"] == str(customer.id)


class TestPermissions:
    """Route guards."""

    def test_admin_bypasses_checks(self, client, admin_headers):
        assert client.get("/jobs", headers=admin_headers).status_code == 200

    def test_missing_permission(self, client, db):
        user = make_user(db, "nobody")
        assert client.get("/jobs", headers=auth_headers(user)).status_code == 403

    def test_granted_permission(self, client, db):
        user = make_user(db, "reader", permissions={"jobs:read": True})
        headers = auth_headers(user)
        assert client.get("/jobs", headers=headers).status_code == 200
        assert client.post("/jobs/auto-assign", json={}, headers=headers).status_code == 403

    def test_area_access_false_overrides_grants(self, client, db):
        user = make_user(db, "locked", permissions={"jobs:access": False, "jobs:read": True})
        assert client.get("/jobs", headers=auth_headers(user)).status_code == 403


class TestUserAdmin:
    """Creating users and assigning roles."""

    def test_create_user_with_roles(self, client, admin_headers, db):
        resp = client.post(
            "/auth/users",
            json={"username": "driver2", "email": "driver2@example.com", "password": "long-enough", "is_driver": True, "roles": ["driver"]},
            headers=admin_headers,
        )
        assert resp.status_code == 201

        drivers = client.get("/auth/users", params={"drivers_only": True}, headers=admin_headers).json()
        assert [u["username"] for u in drivers] == ["driver2"]
        assert drivers[0]["roles"] == ["driver"]

    def test_duplicate_username(self, client, admin_headers, admin):
        resp = client.post(
            "/auth/users",
            json={"username": "admin", "email": "other@example.com", "password": "long-enough"},
            headers=admin_headers,
        )
        assert resp.status_code == 400

    def test_short_password(self, client, admin_headers):
        resp = client.post(
            "/auth/users",
            json={"username": "x", "email": "x@example.com", "password": "short"},
            headers=admin_headers,
        )
        assert resp.status_code == 422
