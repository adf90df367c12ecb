"""
Integration tests for the practice ledger.
"""

from decimal import Decimal

import pytest

from models import DentalRecord, Patient, Supplier
from utils.datetime_utils import practice_now


@pytest.fixture
def crown_record(db_session, sample_patient):
    record = DentalRecord(patient_id=sample_patient.id, tooth_number=26, procedure="Corona in ceramica",
                          performed_at=practice_now())
    db_session.add(record)
    db_session.commit()
    return record


class TestIncomeAndExpenses:
    """Test recording entries and the composed descriptions."""

    def test_record_income(self, client, manager_user, sample_patient, crown_record, auth_headers):
        response = client.post(
            "/api/finance/income",
            json={
                "patient_id": sample_patient.id,
                "dental_record_id": crown_record.id,
                "amount": "350,5",
                "delivered_at": "2026-10-19T11:00:00",
                "partial": True,
            },
            headers=auth_headers(manager_user),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["type"] == "INCOME"
        assert Decimal(data["amount"]) == Decimal("350.50")
        assert data["description"] == "Pagamento paziente Rossi Mario · Corona in ceramica · [Parziale]"

    def test_income_record_of_another_patient(self, client, db_session, manager_user, crown_record, auth_headers):
        other = Patient(first_name="Luca", last_name="Verdi")
        db_session.add(other)
        db_session.commit()

        response = client.post(
            "/api/finance/income",
            json={"patient_id": other.id, "dental_record_id": crown_record.id, "amount": 100,
                  "delivered_at": "2026-10-19T11:00:00"},
            headers=auth_headers(manager_user),
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Dati non validi"

    def test_income_missing_data(self, client, manager_user, auth_headers):
        response = client.post("/api/finance/income", json={"amount": 100}, headers=auth_headers(manager_user))
        assert response.status_code == 400
        assert response.json()["detail"] == "Dati mancanti"

    def test_record_expense(self, client, db_session, manager_user, auth_headers):
        supplier = Supplier(name="Dental Supply")
        db_session.add(supplier)
        db_session.commit()

        response = client.post(
            "/api/finance/expenses",
            json={
                "description": "Ordine mensile",
                "amount": "120",
                "purchase_date": "2026-10-18T09:00:00",
                "kind": "material",
                "payment": "cash",
                "supplier_id": supplier.id,
            },
            headers=auth_headers(manager_user),
        )

        assert response.status_code == 201
        assert response.json()["description"] == (
            "Spesa materiale · Ordine mensile · Fornitore: Dental Supply · Pagamento: contanti"
        )


class TestSummaryAndArchive:
    def test_summary_ignores_archived(self, client, manager_user, sample_patient, crown_record, auth_headers):
        headers = auth_headers(manager_user)
        income = client.post("/api/finance/income", json={
            "patient_id": sample_patient.id, "dental_record_id": crown_record.id,
            "amount": "500", "delivered_at": "2026-10-19T11:00:00",
        }, headers=headers).json()
        client.post("/api/finance/expenses", json={
            "description": "Affitto", "amount": "200", "purchase_date": "2026-10-01T09:00:00",
        }, headers=headers)
        archived_expense = client.post("/api/finance/expenses", json={
            "description": "Errore", "amount": "50", "purchase_date": "2026-10-02T09:00:00",
        }, headers=headers).json()

        archived = client.put(f"/api/finance/entries/{archived_expense['id']}/archive", json={"archived": True},
                              headers=headers)
        assert archived.json()["is_archived"] is True

        summary = client.get("/api/finance/summary", headers=headers).json()
        assert Decimal(summary["income"]) == Decimal("500")
        assert Decimal(summary["expenses"]) == Decimal("200")
        assert Decimal(summary["balance"]) == Decimal("300")

        active = client.get("/api/finance/entries", headers=headers).json()
        assert len(active) == 2
        assert income["id"] in {e["id"] for e in active}
        assert archived_expense["id"] not in {e["id"] for e in active}
        only_archived = client.get("/api/finance/entries", params={"archived": True}, headers=headers).json()
        assert [e["id"] for e in only_archived] == [archived_expense["id"]]

    def test_cash_advance(self, client, manager_user, sample_patient, auth_headers):
        headers = auth_headers(manager_user)
        created = client.post("/api/finance/cash-advances", json={
            "patient_id": sample_patient.id, "amount": "80", "issued_at": "2026-10-19T10:00:00", "note": "Acconto",
        }, headers=headers)

        assert created.status_code == 201
        listed = client.get("/api/finance/cash-advances", params={"patient_id": sample_patient.id}, headers=headers)
        assert len(listed.json()) == 1
        assert Decimal(listed.json()[0]["amount"]) == Decimal("80")
