"""
Integration tests for patients, dental records, notes and consents.
"""

from models import AuditLog, Consent, Patient


class TestPatientCrud:
    """Test patient endpoints."""

    def test_create_normalizes_and_adds_default_consents(self, client, db_session, secretary_user, auth_headers):
        response = client.post(
            "/api/patients",
            json={
                "first_name": "  maria ",
                "last_name": "DE LUCA",
                "email": " Maria.DeLuca@Example.com ",
                "phone": "333 765 4321",
                "tax_id": "dlcmra80a41h501x",
            },
            headers=auth_headers(secretary_user),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["first_name"] == "Maria"
        assert data["last_name"] == "De Luca"
        assert data["email"] == "maria.deluca@example.com"
        assert data["phone"] == "+393337654321"
        assert data["tax_id"] == "DLCMRA80A41H501X"

        consents = db_session.query(Consent).filter(Consent.patient_id == data["id"]).all()
        assert sorted(c.type for c in consents) == ["PRIVACY", "TREATMENT"]
        assert all(c.status == "GRANTED" for c in consents)

    def test_create_requires_names(self, client, secretary_user, auth_headers):
        response = client.post(
            "/api/patients", json={"first_name": "Mario", "last_name": "  "}, headers=auth_headers(secretary_user)
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Nome e cognome sono obbligatori"

    def test_list_and_search(self, client, secretary_user, sample_patient, auth_headers):
        headers = auth_headers(secretary_user)

        all_patients = client.get("/api/patients", headers=headers).json()["patients"]
        found = client.get("/api/patients", params={"q": "ross"}, headers=headers).json()["patients"]
        missing = client.get("/api/patients", params={"q": "bianchi"}, headers=headers).json()["patients"]

        assert [p["id"] for p in all_patients] == [sample_patient.id]
        assert [p["id"] for p in found] == [sample_patient.id]
        assert missing == []

    def test_partial_update(self, client, secretary_user, sample_patient, auth_headers):
        response = client.put(
            f"/api/patients/{sample_patient.id}",
            json={"city": "Bologna"},
            headers=auth_headers(secretary_user),
        )

        assert response.status_code == 200
        assert response.json()["city"] == "Bologna"
        assert response.json()["email"] == "mario.rossi@example.com"

    def test_unknown_patient(self, client, secretary_user, auth_headers):
        response = client.get("/api/patients/999", headers=auth_headers(secretary_user))
        assert response.status_code == 404

    def test_only_admin_deletes(self, client, db_session, admin_user, secretary_user, sample_patient, auth_headers):
        forbidden = client.delete(f"/api/patients/{sample_patient.id}", headers=auth_headers(secretary_user))
        assert forbidden.status_code == 403

        deleted = client.delete(f"/api/patients/{sample_patient.id}", headers=auth_headers(admin_user))
        assert deleted.status_code == 204
        assert db_session.query(Patient).count() == 0


class TestPatientExport:
    def test_export_is_an_attachment_and_audited(self, client, db_session, manager_user, sample_patient, auth_headers):
        response = client.get(f"/api/patients/{sample_patient.id}/export", headers=auth_headers(manager_user))

        assert response.status_code == 200
        assert response.headers["content-disposition"] == (
            f'attachment; filename="paziente-{sample_patient.id}-export.json"'
        )
        data = response.json()
        assert data["patient_id"] == sample_patient.id
        assert data["data"]["patient"]["email"] == "mario.rossi@example.com"
        assert "appointments" in data["data"]

        audit = db_session.query(AuditLog).filter(AuditLog.action == "gdpr.exported").one()
        assert audit.entity_id == str(sample_patient.id)

    def test_secretary_cannot_export(self, client, secretary_user, sample_patient, auth_headers):
        response = client.get(f"/api/patients/{sample_patient.id}/export", headers=auth_headers(secretary_user))
        assert response.status_code == 403


class TestDentalRecordsAndNotes:
    def test_one_record_per_tooth(self, client, secretary_user, sample_patient, auth_headers):
        headers = auth_headers(secretary_user)
        url = f"/api/patients/{sample_patient.id}/dental-records"

        client.put(url, json={"tooth_number": 16, "procedure": "Otturazione"}, headers=headers)
        client.put(url, json={"tooth_number": 16, "procedure": "Devitalizzazione"}, headers=headers)
        records = client.get(url, headers=headers).json()

        assert len(records) == 1
        assert records[0]["procedure"] == "Devitalizzazione"

    def test_invalid_tooth(self, client, secretary_user, sample_patient, auth_headers):
        response = client.put(
            f"/api/patients/{sample_patient.id}/dental-records",
            json={"tooth_number": 99, "procedure": "Estrazione"},
            headers=auth_headers(secretary_user),
        )
        assert response.status_code == 400

    def test_clinical_notes(self, client, secretary_user, sample_patient, auth_headers):
        headers = auth_headers(secretary_user)
        url = f"/api/patients/{sample_patient.id}/notes"

        created = client.post(url, json={"title": "Anamnesi", "content": "Allergia alla penicillina"}, headers=headers)
        assert created.status_code == 201
        assert created.json()["user_id"] == secretary_user.id

        note_id = created.json()["id"]
        assert client.delete(f"{url}/{note_id}", headers=headers).status_code == 204
        assert client.get(url, headers=headers).json() == []


class TestConsents:
    def test_add_and_revoke(self, client, secretary_user, sample_patient, auth_headers):
        headers = auth_headers(secretary_user)
        url = f"/api/patients/{sample_patient.id}/consents"

        created = client.post(url, json={"type": "marketing", "channel": "email"}, headers=headers)
        assert created.status_code == 201
        assert created.json()["type"] == "MARKETING"

        revoked = client.post(f"{url}/{created.json()['id']}/revoke", headers=headers)
        assert revoked.status_code == 200
        assert revoked.json()["status"] == "REVOKED"
        assert revoked.json()["revoked_at"] is not None

    def test_duplicate_and_unknown_type(self, client, secretary_user, sample_patient, auth_headers):
        headers = auth_headers(secretary_user)
        url = f"/api/patients/{sample_patient.id}/consents"

        client.post(url, json={"type": "PHOTO"}, headers=headers)
        duplicate = client.post(url, json={"type": "PHOTO"}, headers=headers)
        unknown = client.post(url, json={"type": "TATUAGGIO"}, headers=headers)

        assert duplicate.status_code == 409
        assert unknown.status_code == 400
        assert unknown.json()["detail"] == "Tipo di consenso non valido."

    def test_sign_consent_module(self, client, admin_user, secretary_user, sample_patient, auth_headers):
        module = client.post(
            "/api/consent-modules",
            json={"name": "Consenso implantologia", "content": "Il paziente dichiara...", "required": True},
            headers=auth_headers(admin_user),
        )
        assert module.status_code == 201

        signed = client.post(
            f"/api/patients/{sample_patient.id}/consent-modules",
            json={"module_id": module.json()["id"], "signed_by": "Mario Rossi"},
            headers=auth_headers(secretary_user),
        )
        assert signed.status_code == 201
        assert signed.json()["module_id"] == module.json()["id"]

        listed = client.get(f"/api/patients/{sample_patient.id}/consent-modules", headers=auth_headers(secretary_user))
        assert len(listed.json()) == 1
