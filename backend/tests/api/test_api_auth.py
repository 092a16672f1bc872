"""
认证 API 测试
"""
from fastapi.testclient import TestClient

from hmis.security.auth import create_access_token, decode_token, get_password_hash, verify_password


class TestLogin:

    def test_login_success(self, client: TestClient, admin_user):
        response = client.post("/auth/login", json={"username": "admin", "password": "123456"})

        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["user"]["role"] == "Admin"
        assert decode_token(data["access_token"])["sub"] == str(admin_user.id)

    def test_login_wrong_password(self, client: TestClient, admin_user):
        response = client.post("/auth/login", json={"username": "admin", "password": "wrong"})
        assert response.status_code == 401

    def test_login_unknown_user(self, client: TestClient):
        response = client.post("/auth/login", json={"username": "nobody", "password": "123456"})
        assert response.status_code == 401

    def test_login_disabled_user(self, client: TestClient, db_session, operator_user):
        operator_user.is_active = False
        db_session.commit()

        response = client.post("/auth/login", json={"username": "operator1", "password": "123456"})
        assert response.status_code == 401


class TestCurrentUser:

    def test_me(self, client: TestClient, operator_auth_headers):
        response = client.get("/auth/me", headers=operator_auth_headers)

        assert response.status_code == 200
        assert response.json()["username"] == "operator1"
        assert response.json()["role"] == "Operator"

    def test_invalid_token(self, client: TestClient):
        response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    def test_token_for_missing_user(self, client: TestClient):
        token = create_access_token(999, "Admin")
        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401


def test_password_hashing():
    hashed = get_password_hash("secret")
    assert hashed != "secret"
    assert verify_password("secret", hashed)
    assert not verify_password("other", hashed)


def test_health(client: TestClient):
    assert client.get("/health").json() == {"status": "healthy"}
