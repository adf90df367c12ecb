"""
Integration tests for user management, the audit log and GDPR tools.
"""

from datetime import timedelta

from models import AuditLog, SmsLog
from utils.datetime_utils import practice_now


class TestUserManagement:
    """Test admin user endpoints."""

    def test_create_then_update_by_email(self, client, admin_user, auth_headers):
        headers = auth_headers(admin_user)

        created = client.post(
            "/api/admin/users",
            json={"email": "Nuova@Studio.it", "role": "secretary", "name": "Nuova"},
            headers=headers,
        )
        assert created.status_code == 201
        assert created.json()["email"] == "nuova@studio.it"

        updated = client.post(
            "/api/admin/users",
            json={"email": "nuova@studio.it", "role": "manager"},
            headers=headers,
        )
        assert updated.json()["id"] == created.json()["id"]
        assert updated.json()["role"] == "manager"
        assert updated.json()["name"] == "Nuova"

        users = client.get("/api/admin/users", headers=headers).json()
        assert sorted(u["email"] for u in users) == ["admin@studio.it", "nuova@studio.it"]

    def test_invalid_role(self, client, admin_user, auth_headers):
        response = client.post(
            "/api/admin/users",
            json={"email": "x@studio.it", "role": "dentist"},
            headers=auth_headers(admin_user),
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Ruolo non valido"

    def test_duplicate_email_on_update(self, client, admin_user, manager_user, auth_headers):
        response = client.put(
            f"/api/admin/users/{manager_user.id}",
            json={"email": "admin@studio.it"},
            headers=auth_headers(admin_user),
        )
        assert response.status_code == 409

    def test_admin_cannot_delete_or_deactivate_self(self, client, admin_user, auth_headers):
        headers = auth_headers(admin_user)

        assert client.delete(f"/api/admin/users/{admin_user.id}", headers=headers).status_code == 400
        response = client.put(f"/api/admin/users/{admin_user.id}/status", json={"is_active": False}, headers=headers)
        assert response.status_code == 400

    def test_delete_user(self, client, admin_user, secretary_user, auth_headers):
        response = client.delete(f"/api/admin/users/{secretary_user.id}", headers=auth_headers(admin_user))
        assert response.status_code == 204


class TestAuditLog:
    def test_changes_are_audited_and_searchable(self, client, admin_user, manager_user, auth_headers):
        headers = auth_headers(admin_user)
        client.put(f"/api/admin/users/{manager_user.id}/role", json={"role": "secretary"}, headers=headers)

        entries = client.get("/api/admin/audit", params={"q": "user.role"}, headers=headers).json()

        assert len(entries) == 1
        assert entries[0]["action"] == "admin.user.role"
        assert entries[0]["entity_id"] == str(manager_user.id)
        assert entries[0]["metadata"] == {"role": "secretary"}


class TestGdprTools:
    """Test full export and retention cleanup."""

    def test_full_export_skips_password_hashes(self, client, admin_user, sample_patient, auth_headers):
        response = client.get("/api/admin/export", params={"tables": "users,patients"}, headers=auth_headers(admin_user))

        assert response.status_code == 200
        data = response.json()
        assert data["tables"] == ["users", "patients"]
        assert "password_hash" not in data["data"]["users"][0]
        assert data["data"]["patients"][0]["last_name"] == "Rossi"

    def test_export_unknown_table(self, client, admin_user, auth_headers):
        response = client.get("/api/admin/export", params={"tables": "segreti"}, headers=auth_headers(admin_user))
        assert response.status_code == 400

    def test_retention_cleanup(self, client, db_session, admin_user, auth_headers):
        old = practice_now() - timedelta(days=800)
        db_session.add_all([
            AuditLog(action="old.action", entity="Test", created_at=old),
            AuditLog(action="recent.action", entity="Test"),
            SmsLog(to="+393331234567", body="vecchio", status="SENT", created_at=old),
        ])
        db_session.commit()

        response = client.post("/api/admin/gdpr/retention", headers=auth_headers(admin_user))

        assert response.status_code == 200
        deleted = response.json()["deleted"]
        assert deleted["audit_logs"] == 1
        assert deleted["sms_logs"] == 1
        actions = {a for (a,) in db_session.query(AuditLog.action).all()}
        assert "old.action" not in actions
        assert "recent.action" in actions
        assert "gdpr.retention_cleanup" in actions
