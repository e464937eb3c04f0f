"""Login, profile and the permission gate in front of write routes."""

from mfg_inventory.models.user import UserStatus
from tests.conftest import PASSWORD, auth_headers


class TestLogin:
    def test_login_returns_token_and_principal(self, client, operator, unit):
        response = client.post(
            "/api/auth/login", json={"email": operator.email, "password": PASSWORD}
        )
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["token_type"] == "bearer"
        assert body["data"]["user"]["unit_id"] == unit.id
        assert body["data"]["user"]["role"] == "user"

        profile = client.get(
            "/api/auth/profile",
            headers={"Authorization": f"Bearer {body['data']['access_token']}"},
        )
        assert profile.status_code == 200
        assert profile.json()["data"]["email"] == operator.email

    def test_wrong_password_is_401(self, client, operator):
        response = client.post(
            "/api/auth/login", json={"email": operator.email, "password": "not-it"}
        )
        assert response.status_code == 401
        assert response.json()["success"] is False


class TestAccessControl:
    def test_missing_token_is_rejected(self, client):
        response = client.get("/api/templates/fractiles")
        assert response.status_code in (401, 403)

    def test_invalid_token_is_401(self, client):
        response = client.get(
            "/api/templates/fractiles", headers={"Authorization": "Bearer garbage"}
        )
        assert response.status_code == 401

    def test_blocked_user_is_403(self, client, db, operator):
        operator.status = UserStatus.blocked
        db.commit()
        response = client.get("/api/templates/fractiles", headers=auth_headers(operator))
        assert response.status_code == 403

    def test_read_only_user_cannot_create(self, client, viewer_headers):
        response = client.post(
            "/api/templates/fractiles", json={"name": "F1"}, headers=viewer_headers
        )
        assert response.status_code == 403
        assert response.json()["success"] is False

    def test_read_only_user_can_list(self, client, viewer_headers):
        response = client.get("/api/templates/fractiles", headers=viewer_headers)
        assert response.status_code == 200
        assert response.json()["data"] == []
