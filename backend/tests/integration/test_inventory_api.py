"""
Integration tests for inventory: products, movements, levels and the implant register.
"""

from models import Patient, Product, StockMovement, Supplier

REGISTER_CSV = (
    "REGISTRO IMPIANTI 2024\n"
    "NOME E COGNOME PAZIENTE;TIPO DI DM;MARCA;DATA ACQUISTO;CODICE UDI-DI;CODICE UDI-PI;DATA INTERVENTO;SEDE INTERVENTO\n"
    "Mario Rossi;Impianto;Straumann;mar 2024;0123456789;LOT-1;15/03/2024;36\n"
    "Rossi Mario;Impianto;straumann;mar 2024;0123456789;LOT-2;16/03/2024;46\n"
    "Giulia Verdi;Vite;Nobel;;;;ott-23;\n"
    ";;;;;;;\n"
)


class TestStockLevels:
    """Test products, movements and computed stock levels."""

    def test_levels_from_movements(self, client, manager_user, auth_headers):
        headers = auth_headers(manager_user)
        supplier = client.post("/api/inventory/suppliers", json={"name": "Dental Supply"}, headers=headers).json()
        product = client.post(
            "/api/inventory/products",
            json={"name": "Guanti nitrile", "unit_cost": "4,90", "min_threshold": 10, "supplier_id": supplier["id"]},
            headers=headers,
        )
        assert product.status_code == 201
        assert product.json()["unit_cost"] == "4.90"
        product_id = product.json()["id"]

        client.post("/api/inventory/movements", json={"product_id": product_id, "movement": "in", "quantity": 20},
                    headers=headers)
        out = client.post("/api/inventory/movements", json={"product_id": product_id, "movement": "OUT", "quantity": -12},
                          headers=headers)
        assert out.json()["quantity"] == 12

        levels = client.get("/api/inventory/levels", headers=headers).json()
        assert levels == [{
            "product_id": product_id,
            "name": "Guanti nitrile",
            "sku": None,
            "service_type": None,
            "supplier": "Dental Supply",
            "min_threshold": 10,
            "quantity": 8,
            "below_threshold": True,
        }]

    def test_invalid_movement(self, client, manager_user, db_session, auth_headers):
        product = Product(name="Garze", min_threshold=0)
        db_session.add(product)
        db_session.commit()

        response = client.post(
            "/api/inventory/movements",
            json={"product_id": product.id, "movement": "LOST", "quantity": 1},
            headers=auth_headers(manager_user),
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Dati movimento non validi"

    def test_secretary_has_no_inventory_access(self, client, secretary_user, auth_headers):
        response = client.get("/api/inventory/levels", headers=auth_headers(secretary_user))
        assert response.status_code == 403


class TestImplantRegister:
    """Test CSV import and export of the implant register."""

    def test_import_matches_and_creates(self, client, db_session, manager_user, sample_patient, auth_headers):
        response = client.post(
            "/api/inventory/import",
            files={"file": ("registro.csv", ("\ufeff" + REGISTER_CSV).encode("utf-8"), "text/csv")},
            headers=auth_headers(manager_user),
        )

        assert response.status_code == 200
        assert response.json() == {"imported": 3}

        # "Mario Rossi" and "Rossi Mario" both match the existing patient
        patients = {p.full_name for p in db_session.query(Patient).all()}
        assert len(patients) == 2
        assert db_session.query(StockMovement).filter(StockMovement.patient_id == sample_patient.id).count() == 2

        # Suppliers and products are matched case-insensitively, products by UDI-DI
        assert db_session.query(Supplier).count() == 2
        assert db_session.query(Product).count() == 2

        movement = db_session.query(StockMovement).filter(StockMovement.udi_pi == "LOT-1").one()
        assert movement.movement == "OUT"
        assert movement.quantity == 1
        assert movement.intervention_site == "36"
        assert str(movement.purchase_date) == "2024-03-01"
        assert str(movement.intervention_date) == "2024-03-15"

    def test_import_without_file(self, client, manager_user, auth_headers):
        response = client.post("/api/inventory/import", headers=auth_headers(manager_user))
        assert response.status_code == 400
        assert response.json()["detail"] == "File mancante o vuoto"

    def test_export(self, client, manager_user, auth_headers):
        headers = auth_headers(manager_user)
        client.post(
            "/api/inventory/import",
            files={"file": ("registro.csv", REGISTER_CSV.encode("utf-8"), "text/csv")},
            headers=headers,
        )

        response = client.get("/api/inventory/export", headers=headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert 'filename="registro-impianti.csv"' in response.headers["content-disposition"]
        lines = response.text.strip().splitlines()
        assert lines[0].startswith("NOME E COGNOME PAZIENTE;TIPO DI DM")
        assert len(lines) == 4
        # Newest intervention first
        assert '"16/03/2024"' in lines[1]
