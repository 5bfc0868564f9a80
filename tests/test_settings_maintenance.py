"""
Тесты настроек сайта и режима обслуживания.
"""

from factories import PASSWORD, auth_headers, set_setting
from storefront.db.models import AuditLog, Severity, SiteSetting
from storefront.middleware.maintenance import MAINTENANCE_DETAIL
from storefront.services import settings_service


class TestAdminSettings:
    def test_list_creates_defaults(self, client, db, admin):
        response = client.get("/api/v1/admin/settings", headers=auth_headers(admin))

        assert response.status_code == 200
        body = response.json()
        assert len(body["settings"]) == len(settings_service.DEFAULT_SETTINGS)
        feature_keys = {s["key"] for s in body["grouped"]["features"]}
        assert "maintenance_mode" in feature_keys

    def test_requires_admin(self, client, user):
        response = client.get("/api/v1/admin/settings", headers=auth_headers(user))

        assert response.status_code == 403

    def test_get_single(self, client, admin):
        response = client.get("/api/v1/admin/settings/store_name", headers=auth_headers(admin))

        assert response.json()["setting"]["value"] == "The Babel Edit"

    def test_update_converts_value(self, client, db, admin):
        response = client.patch(
            "/api/v1/admin/settings/guest_checkout",
            json={"value": True},
            headers=auth_headers(admin),
        )

        assert response.status_code == 200
        assert response.json()["setting"]["value"] == "true"
        entry = db.query(AuditLog).filter(AuditLog.action == "update_setting").one()
        assert entry.previous_values == {"guest_checkout": "false"}

    def test_maintenance_change_is_warning(self, client, db, admin):
        client.patch(
            "/api/v1/admin/settings/maintenance_mode",
            json={"value": "true"},
            headers=auth_headers(admin),
        )

        entry = db.query(AuditLog).filter(AuditLog.action == "update_setting").one()
        assert entry.severity == Severity.WARNING

    def test_update_requires_value(self, client, admin):
        response = client.patch(
            "/api/v1/admin/settings/store_name", json={}, headers=auth_headers(admin)
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Value is required"

    def test_update_unknown_key(self, client, admin):
        response = client.patch(
            "/api/v1/admin/settings/no_such_key", json={"value": "x"}, headers=auth_headers(admin)
        )

        assert response.status_code == 404

    def test_bulk_skips_unknown_and_unchanged(self, client, db, admin):
        response = client.put(
            "/api/v1/admin/settings/bulk",
            json={
                "settings": [
                    {"key": "store_name", "value": "Babel Vintage"},
                    {"key": "store_currency", "value": "USD"},
                    {"key": "no_such_key", "value": "x"},
                    {"key": "shipping_countries", "value": ["GB", "FR"]},
                ]
            },
            headers=auth_headers(admin),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "2 settings updated"
        assert {s["key"]: s["value"] for s in body["updated"]} == {
            "store_name": "Babel Vintage",
            "shipping_countries": '["GB", "FR"]',
        }
        entry = db.query(AuditLog).filter(AuditLog.action == "bulk_update_settings").one()
        assert entry.severity == Severity.INFO

    def test_reset_requires_super_admin(self, client, admin):
        response = client.post("/api/v1/admin/settings/reset", headers=auth_headers(admin))

        assert response.status_code == 403

    def test_reset(self, client, db, super_admin):
        set_setting(db, "store_name", "Renamed")

        response = client.post("/api/v1/admin/settings/reset", headers=auth_headers(super_admin))

        assert response.status_code == 200
        db.expire_all()
        row = db.query(SiteSetting).filter(SiteSetting.key == "store_name").one()
        assert row.value == "The Babel Edit"
        entry = db.query(AuditLog).filter(AuditLog.action == "reset_settings").one()
        assert entry.severity == Severity.CRITICAL
        assert entry.previous_values["store_name"] == "Renamed"


class TestPublicSettings:
    def test_only_public_keys(self, client):
        response = client.get("/api/v1/settings/public")

        assert response.status_code == 200
        settings = response.json()["settings"]
        assert settings["store_name"] == "The Babel Edit"
        assert "security_max_login_attempts" not in settings
        assert set(settings) <= set(settings_service.PUBLIC_KEYS)

    def test_single_public_key(self, client, db):
        set_setting(db, "store_tagline", "Pre-loved, re-edited")

        response = client.get("/api/v1/settings/public/store_tagline")

        assert response.json() == {"key": "store_tagline", "value": "Pre-loved, re-edited"}

    def test_private_key_hidden(self, client):
        response = client.get("/api/v1/settings/public/security_lockout_minutes")

        assert response.status_code == 404


class TestMaintenanceMode:
    def test_blocks_api(self, client, db, user):
        set_setting(db, "maintenance_mode", "true")

        response = client.get("/api/v1/cart", headers=auth_headers(user))

        assert response.status_code == 503
        assert response.json() == {"detail": MAINTENANCE_DETAIL, "maintenance": True}

    def test_blocks_anonymous_catalog(self, client, db):
        set_setting(db, "maintenance_mode", "true")

        assert client.get("/api/v1/products").status_code == 503

    def test_admin_bypass(self, client, db, admin):
        set_setting(db, "maintenance_mode", "true")

        response = client.get("/api/v1/admin/users", headers=auth_headers(admin))

        assert response.status_code == 200

    def test_suspended_admin_blocked(self, client, db, admin):
        admin.is_suspended = True
        db.commit()
        set_setting(db, "maintenance_mode", "true")

        response = client.get("/api/v1/products", headers=auth_headers(admin))

        assert response.status_code == 503

    def test_exempt_paths(self, client, db, user):
        set_setting(db, "maintenance_mode", "true")

        login = client.post(
            "/api/v1/auth/login", json={"email": user.email, "password": PASSWORD}
        )
        public = client.get("/api/v1/settings/public")

        assert login.status_code == 200
        assert public.status_code == 200
        assert public.json()["settings"]["maintenance_mode"] == "true"

    def test_non_api_paths(self, client, db):
        set_setting(db, "maintenance_mode", "true")

        assert client.get("/healthz").status_code == 200

    def test_disabled_by_default(self, client):
        assert client.get("/api/v1/products").status_code == 200


def test_healthz(client):
    response = client.get("/healthz")

    assert response.json() == {
        "status": "ok",
        "service": "The Babel Edit API",
        "version": "1.0.0",
        "database": "ok",
    }
