"""
Integration tests for recall rules, manual recalls and the services catalogue.
"""

from decimal import Decimal

from models import Recall


class TestRecallRules:
    def test_rule_lifecycle(self, client, db_session, admin_user, manager_user, sample_patient, auth_headers):
        headers = auth_headers(manager_user)

        created = client.post(
            "/api/recalls/rules",
            json={"name": " Igiene semestrale ", "service_type": "Igiene", "interval_days": 180, "channel": "fax"},
            headers=headers,
        )
        assert created.status_code == 201
        rule = created.json()
        assert rule["name"] == "Igiene semestrale"
        # Unknown channels fall back to email
        assert rule["channel"] == "EMAIL"

        updated = client.put(
            f"/api/recalls/rules/{rule['id']}",
            json={"name": "Igiene annuale", "service_type": "Igiene", "interval_days": 365, "channel": "sms"},
            headers=headers,
        )
        assert updated.json()["interval_days"] == 365
        assert updated.json()["channel"] == "SMS"

        recall = client.post(
            "/api/recalls",
            json={"patient_id": sample_patient.id, "rule_id": rule["id"], "due_at": "2027-01-10T10:00:00"},
            headers=headers,
        )
        assert recall.status_code == 201
        assert recall.json()["status"] == "PENDING"

        # Managers cannot delete rules
        assert client.delete(f"/api/recalls/rules/{rule['id']}", headers=headers).status_code == 403

        deleted = client.delete(f"/api/recalls/rules/{rule['id']}", headers=auth_headers(admin_user))
        assert deleted.status_code == 204
        assert db_session.query(Recall).count() == 0

    def test_invalid_rule(self, client, manager_user, auth_headers):
        response = client.post(
            "/api/recalls/rules",
            json={"name": "Controllo", "service_type": "Visita", "interval_days": 0},
            headers=auth_headers(manager_user),
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Dati regola non validi"

    def test_schedule_recall_for_unknown_patient(self, client, manager_user, auth_headers):
        headers = auth_headers(manager_user)
        rule = client.post(
            "/api/recalls/rules",
            json={"name": "Controllo", "service_type": "Visita", "interval_days": 365},
            headers=headers,
        ).json()

        response = client.post(
            "/api/recalls",
            json={"patient_id": 999, "rule_id": rule["id"], "due_at": "2027-01-10T10:00:00"},
            headers=headers,
        )
        assert response.status_code == 404


class TestServicesCatalogue:
    def test_create_and_list(self, client, admin_user, secretary_user, auth_headers):
        created = client.post(
            "/api/services",
            json={"name": "Sbiancamento", "cost_basis": "79,9", "description": "Seduta singola"},
            headers=auth_headers(admin_user),
        )
        assert created.status_code == 201
        assert Decimal(created.json()["cost_basis"]) == Decimal("79.90")

        listed = client.get("/api/services", headers=auth_headers(secretary_user)).json()
        assert [s["name"] for s in listed] == ["Sbiancamento"]

    def test_invalid_cost(self, client, admin_user, auth_headers):
        response = client.post(
            "/api/services",
            json={"name": "Sbiancamento", "cost_basis": "gratis"},
            headers=auth_headers(admin_user),
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Costo base non valido"

    def test_only_admin_creates(self, client, manager_user, auth_headers):
        response = client.post(
            "/api/services",
            json={"name": "Sbiancamento", "cost_basis": "80"},
            headers=auth_headers(manager_user),
        )
        assert response.status_code == 403
