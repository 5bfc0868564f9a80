"""
Тесты регистрации, входа, refresh токенов и профиля.
"""

from factories import PASSWORD, auth_headers, make_user, set_setting
from storefront.db.models import AuditLog, Role, SuperAdminToken, User
from storefront.services import invite_service

REGISTER = "/api/v1/auth/register"
LOGIN = "/api/v1/auth/login"


def _register(client, email="new@example.com", **extra):
    body = {"email": email, "password": "hunter22", "first_name": "Nina", "last_name": "Simone"}
    body.update(extra)
    return client.post(REGISTER, json=body)


class TestRegister:
    def test_register_returns_token_and_sets_refresh_cookie(self, client, db):
        response = _register(client, email="New@Example.com")

        assert response.status_code == 201
        data = response.json()
        assert data["access_token"]
        assert data["user"]["email"] == "new@example.com"
        assert data["user"]["role"] == Role.USER
        assert "refreshToken" in response.cookies

        user = db.query(User).filter(User.email == "new@example.com").one()
        assert user.refresh_token
        assert user.password != "hunter22"

    def test_requested_admin_role_is_downgraded(self, client):
        response = _register(client, role=Role.ADMIN)

        assert response.status_code == 201
        assert response.json()["user"]["role"] == Role.USER

    def test_duplicate_email_conflict(self, client, user):
        response = _register(client, email=user.email.upper())

        assert response.status_code == 409

    def test_registration_disabled(self, client, db):
        set_setting(db, "new_user_registration", "false")

        response = _register(client)

        assert response.status_code == 403

    def test_super_admin_requires_valid_invite(self, client, db):
        response = _register(client, role=Role.SUPER_ADMIN, invite_token="bogus")

        assert response.status_code == 403
        denied = db.query(AuditLog).filter(AuditLog.action == "superadmin_register_denied").one()
        assert denied.severity == "critical"

    def test_super_admin_with_invite_consumes_token(self, client, db, super_admin):
        row, raw = invite_service.create_token(db, super_admin)

        response = _register(client, role=Role.SUPER_ADMIN, invite_token=raw)
        assert response.status_code == 201
        assert response.json()["user"]["role"] == Role.SUPER_ADMIN

        db.expire_all()
        assert db.get(SuperAdminToken, row.id).used_at is not None
        second = _register(client, email="other@example.com", role=Role.SUPER_ADMIN, invite_token=raw)
        assert second.status_code == 403


class TestLogin:
    def test_login_success(self, client, user):
        response = client.post(LOGIN, json={"email": user.email, "password": PASSWORD})

        assert response.status_code == 200
        assert response.json()["user"]["id"] == user.id
        assert "refreshToken" in response.cookies

    def test_wrong_password_is_audited(self, client, db, user):
        response = client.post(LOGIN, json={"email": user.email, "password": "nope"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"
        assert db.query(AuditLog).filter(AuditLog.action == "user_login_failed").count() == 1

    def test_unknown_email(self, client):
        response = client.post(LOGIN, json={"email": "ghost@example.com", "password": "x"})

        assert response.status_code == 401

    def test_suspended_user_rejected(self, client, db):
        make_user(db, email="banned@example.com", is_suspended=True)

        response = client.post(LOGIN, json={"email": "banned@example.com", "password": PASSWORD})

        assert response.status_code == 403


class TestRefreshAndLogout:
    def test_refresh_rotates_token(self, client, db, user):
        client.post(LOGIN, json={"email": user.email, "password": PASSWORD})
        db.expire_all()
        first = db.get(User, user.id).refresh_token

        response = client.post("/api/v1/auth/refresh")

        assert response.status_code == 200
        assert response.json()["access_token"]
        db.expire_all()
        assert db.get(User, user.id).refresh_token != first

    def test_refresh_without_cookie(self, client):
        response = client.post("/api/v1/auth/refresh")

        assert response.status_code == 401
        assert response.json()["detail"] == "Refresh token not found"

    def test_refresh_with_foreign_token(self, client, user):
        client.cookies.set("refreshToken", "not-a-jwt")

        response = client.post("/api/v1/auth/refresh")

        assert response.status_code == 401

    def test_logout_clears_stored_token(self, client, db, user):
        client.post(LOGIN, json={"email": user.email, "password": PASSWORD})

        response = client.post("/api/v1/auth/logout", headers=auth_headers(user))

        assert response.status_code == 200
        db.expire_all()
        assert db.get(User, user.id).refresh_token is None


class TestProfile:
    def test_verify_requires_token(self, client):
        assert client.get("/api/v1/auth/verify").status_code == 401

    def test_access_token_from_cookie(self, client, user):
        from storefront.core.auth import AuthService

        client.cookies.set("accessToken", AuthService.create_access_token(user))

        response = client.get("/api/v1/auth/verify")

        assert response.status_code == 200
        assert response.json()["user"]["email"] == user.email

    def test_update_profile(self, client, user):
        response = client.put(
            "/api/v1/auth/profile",
            json={"first_name": "Augusta", "phone": "+44 20 7946 0000"},
            headers=auth_headers(user),
        )

        assert response.status_code == 200
        assert response.json()["user"]["first_name"] == "Augusta"
        assert response.json()["user"]["phone"] == "+44 20 7946 0000"

    def test_update_profile_ignores_null_names(self, client, user):
        response = client.put(
            "/api/v1/auth/profile",
            json={"first_name": None, "last_name": None, "phone": None},
            headers=auth_headers(user),
        )

        assert response.status_code == 200
        profile = response.json()["user"]
        assert (profile["first_name"], profile["last_name"]) == ("Ada", "Lovelace")
        assert profile["phone"] is None

    def test_update_profile_rejects_blank_name(self, client, user):
        response = client.put(
            "/api/v1/auth/profile", json={"first_name": "   "}, headers=auth_headers(user)
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "first_name cannot be blank"
