"""
Integration tests for the agenda: appointments, availability and closures.
"""

import pytest


@pytest.fixture
def monday_morning(client, admin_user, sample_doctor, auth_headers):
    """Doctor available on Mondays 09:00-13:00."""
    response = client.post(
        "/api/doctors/availability",
        json={"doctor_id": sample_doctor.id, "day_of_week": 1, "start_time": "09:00", "end_time": "13:00"},
        headers=auth_headers(admin_user),
    )
    assert response.status_code == 201
    return response.json()


def appointment_payload(patient, doctor, starts_at, ends_at, **extra):
    payload = {
        "patient_id": patient.id,
        "doctor_id": doctor.id if doctor else None,
        "title": "Controllo",
        "service_type": "Igiene",
        "starts_at": starts_at,
        "ends_at": ends_at,
    }
    payload.update(extra)
    return payload


class TestAvailabilityWindows:
    def test_window_is_stored_in_minutes(self, monday_morning):
        assert monday_morning["start_minute"] == 540
        assert monday_morning["end_minute"] == 780

    def test_invalid_window(self, client, admin_user, sample_doctor, auth_headers):
        response = client.post(
            "/api/doctors/availability",
            json={"doctor_id": sample_doctor.id, "day_of_week": 1, "start_time": "13:00", "end_time": "09:00"},
            headers=auth_headers(admin_user),
        )
        assert response.status_code == 400

    def test_secretary_cannot_edit_windows(self, client, secretary_user, sample_doctor, auth_headers):
        response = client.post(
            "/api/doctors/availability",
            json={"doctor_id": sample_doctor.id, "day_of_week": 1, "start_time": "09:00", "end_time": "13:00"},
            headers=auth_headers(secretary_user),
        )
        assert response.status_code == 403


class TestCreateAppointment:
    """Test appointment creation and its scheduling warning."""

    def test_create_inside_availability(self, client, secretary_user, sample_patient, sample_doctor,
                                        monday_morning, auth_headers):
        response = client.post(
            "/api/appointments",
            json=appointment_payload(sample_patient, sample_doctor, "2026-10-19T10:00:00", "2026-10-19T10:30:00"),
            headers=auth_headers(secretary_user),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["warning"] is None
        assert data["appointment"]["status"] == "TO_CONFIRM"
        assert data["appointment"]["starts_at"].startswith("2026-10-19T10:00:00")

    def test_create_outside_availability_is_saved_with_warning(self, client, secretary_user, sample_patient,
                                                               sample_doctor, monday_morning, auth_headers):
        response = client.post(
            "/api/appointments",
            json=appointment_payload(sample_patient, sample_doctor, "2026-10-19T15:00:00", "2026-10-19T15:30:00"),
            headers=auth_headers(secretary_user),
        )

        assert response.status_code == 201
        assert response.json()["warning"] == (
            "L'appuntamento è fuori dalla disponibilità del medico (Lunedì). Vuoi procedere comunque?"
        )

    def test_closure_warning(self, client, admin_user, secretary_user, sample_doctor, monday_morning, auth_headers):
        client.post(
            "/api/calendar/closures",
            json={"starts_at": "2026-10-19T00:00:00", "ends_at": "2026-10-20T00:00:00", "title": "Manutenzione"},
            headers=auth_headers(admin_user),
        )

        response = client.get(
            "/api/appointments/scheduling-warning",
            params={"startsAt": "2026-10-19T10:00:00", "endsAt": "2026-10-19T11:00:00", "doctorId": sample_doctor.id},
            headers=auth_headers(secretary_user),
        )

        assert response.status_code == 200
        assert response.json()["warning"] == (
            "Lo studio risulta chiuso in questo periodo (Manutenzione). Vuoi procedere comunque?"
        )

    def test_no_warning_without_doctor(self, client, admin_user, secretary_user, sample_patient, auth_headers):
        client.post(
            "/api/calendar/closures",
            json={"starts_at": "2026-08-10T00:00:00", "ends_at": "2026-08-22T00:00:00", "title": "Ferie estive"},
            headers=auth_headers(admin_user),
        )

        response = client.post(
            "/api/appointments",
            json=appointment_payload(sample_patient, None, "2026-08-12T10:00:00", "2026-08-12T11:00:00"),
            headers=auth_headers(secretary_user),
        )
        assert response.status_code == 201
        assert response.json()["warning"] is None

    def test_weekly_closure_warning(self, client, admin_user, secretary_user, sample_patient, sample_doctor,
                                    auth_headers):
        client.post(
            "/api/doctors/availability",
            json={"doctor_id": sample_doctor.id, "day_of_week": 6, "start_time": "09:00", "end_time": "13:00"},
            headers=auth_headers(admin_user),
        )
        saved = client.put(
            "/api/calendar/weekly-closures",
            json={"days": [{"day_of_week": 6, "enabled": True}, {"day_of_week": 7, "enabled": True}]},
            headers=auth_headers(admin_user),
        )
        assert [d["day_of_week"] for d in saved.json()] == [6, 7]

        response = client.post(
            "/api/appointments",
            json=appointment_payload(sample_patient, sample_doctor, "2026-10-24T10:00:00", "2026-10-24T10:30:00"),
            headers=auth_headers(secretary_user),
        )
        assert response.json()["warning"] == "Lo studio risulta chiuso ogni sabato. Vuoi procedere comunque?"

    def test_doctor_without_windows_gets_warning(self, client, secretary_user, sample_patient, sample_doctor,
                                                 auth_headers):
        response = client.post(
            "/api/appointments",
            json=appointment_payload(sample_patient, sample_doctor, "2026-10-20T10:00:00", "2026-10-20T10:30:00"),
            headers=auth_headers(secretary_user),
        )
        assert response.json()["warning"] == (
            "L'appuntamento è fuori dalla disponibilità del medico (Martedì). Vuoi procedere comunque?"
        )

    def test_end_before_start(self, client, secretary_user, sample_patient, sample_doctor, auth_headers):
        response = client.post(
            "/api/appointments",
            json=appointment_payload(sample_patient, sample_doctor, "2026-10-19T11:00:00", "2026-10-19T10:00:00"),
            headers=auth_headers(secretary_user),
        )
        assert response.status_code == 400

    def test_unknown_patient(self, client, secretary_user, sample_patient, sample_doctor, auth_headers):
        payload = appointment_payload(sample_patient, sample_doctor, "2026-10-19T10:00:00", "2026-10-19T10:30:00")
        payload["patient_id"] = 999
        response = client.post("/api/appointments", json=payload, headers=auth_headers(secretary_user))
        assert response.status_code == 404


class TestAppointmentLifecycle:
    def _create(self, client, headers, patient, doctor, start="2026-10-19T10:00:00", end="2026-10-19T10:30:00"):
        response = client.post("/api/appointments", json=appointment_payload(patient, doctor, start, end), headers=headers)
        return response.json()["appointment"]

    def test_check_conflict(self, client, secretary_user, sample_patient, sample_doctor, auth_headers):
        headers = auth_headers(secretary_user)
        appointment = self._create(client, headers, sample_patient, sample_doctor)

        overlapping = client.get("/api/appointments/check-conflict", params={
            "doctorId": sample_doctor.id, "startsAt": "2026-10-19T10:15:00", "endsAt": "2026-10-19T10:45:00",
        }, headers=headers).json()
        touching = client.get("/api/appointments/check-conflict", params={
            "doctorId": sample_doctor.id, "startsAt": "2026-10-19T10:30:00", "endsAt": "2026-10-19T11:00:00",
        }, headers=headers).json()
        excluded = client.get("/api/appointments/check-conflict", params={
            "doctorId": sample_doctor.id, "startsAt": "2026-10-19T10:15:00", "endsAt": "2026-10-19T10:45:00",
            "excludeId": appointment["id"],
        }, headers=headers).json()
        incomplete = client.get("/api/appointments/check-conflict", params={"startsAt": "2026-10-19T10:15:00"},
                                headers=headers).json()

        assert overlapping == {"conflict": True, "count": 1}
        assert touching["conflict"] is False
        assert excluded["conflict"] is False
        assert incomplete == {"conflict": False, "message": "Dati insufficienti"}

    def test_check_conflict_invalid_dates(self, client, secretary_user, sample_doctor, auth_headers):
        response = client.get("/api/appointments/check-conflict", params={
            "doctorId": sample_doctor.id, "startsAt": "ieri", "endsAt": "2026-10-19T10:45:00",
        }, headers=auth_headers(secretary_user))

        assert response.status_code == 200
        assert response.json() == {"conflict": False, "message": "Formato data non valido"}

    def test_update_status_and_delete(self, client, secretary_user, sample_patient, sample_doctor, auth_headers):
        headers = auth_headers(secretary_user)
        appointment = self._create(client, headers, sample_patient, sample_doctor)

        confirmed = client.put(f"/api/appointments/{appointment['id']}/status", json={"status": "confirmed"},
                               headers=headers)
        invalid = client.put(f"/api/appointments/{appointment['id']}/status", json={"status": "BOH"},
                             headers=headers)

        assert confirmed.status_code == 200
        assert confirmed.json()["status"] == "CONFIRMED"
        assert invalid.status_code == 400

        assert client.delete(f"/api/appointments/{appointment['id']}", headers=headers).status_code == 204
        assert client.get(f"/api/appointments/{appointment['id']}", headers=headers).status_code == 404

    def test_partial_update_keeps_other_fields(self, client, secretary_user, sample_patient, sample_doctor,
                                               auth_headers):
        headers = auth_headers(secretary_user)
        appointment = self._create(client, headers, sample_patient, sample_doctor)

        response = client.put(f"/api/appointments/{appointment['id']}", json={"notes": "Portare radiografie"},
                              headers=headers)

        assert response.status_code == 200
        updated = response.json()["appointment"]
        assert updated["notes"] == "Portare radiografie"
        assert updated["title"] == "Controllo"
        assert updated["doctor_id"] == sample_doctor.id

    def test_list_filters(self, client, secretary_user, sample_patient, sample_doctor, auth_headers):
        headers = auth_headers(secretary_user)
        self._create(client, headers, sample_patient, sample_doctor)
        self._create(client, headers, sample_patient, None, "2026-10-21T10:00:00", "2026-10-21T10:30:00")

        by_doctor = client.get("/api/appointments", params={"doctor_id": sample_doctor.id}, headers=headers).json()
        in_range = client.get("/api/appointments", params={
            "from": "2026-10-20T00:00:00", "to": "2026-10-22T00:00:00",
        }, headers=headers).json()

        assert len(by_doctor["appointments"]) == 1
        assert len(in_range["appointments"]) == 1
        assert in_range["appointments"][0]["starts_at"].startswith("2026-10-21")
