"""
Inventory service for suppliers, products and stock movements.

Also handles the implant register CSV (one device per row, `;`-separated) used
to import and export traceability data for medical devices.
"""

import csv
import io
import logging
import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status
from sqlalchemy import case, func, or_
from sqlalchemy.orm import Session, joinedload

from models import Patient, Product, StockMovement, Supplier
from services.audit_service import AuditService
from utils.datetime_utils import format_date_it

logger = logging.getLogger(__name__)

MOVEMENT_TYPES = ["IN", "OUT"]

EXPORT_HEADER = [
    "NOME E COGNOME PAZIENTE",
    "TIPO DI DM",
    "MARCA",
    "DATA ACQUISTO",
    "CODICE UDI-DI",
    "CODICE UDI-PI",
    "DATA INTERVENTO",
    "SEDE INTERVENTO",
]

# Italian month abbreviations as found in the register ("mar 2024", "ott-23")
MONTH_ABBREVIATIONS = {
    "gen": 1, "feb": 2, "mar": 3, "apr": 4, "mag": 5, "giu": 6,
    "lug": 7, "ago": 8, "set": 9, "ott": 10, "nov": 11, "dic": 12,
}

_DMY_PATTERN = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def parse_register_date(value: Optional[str]) -> Optional[date]:
    """
    Parse a register date.

    Accepts dd/mm/yyyy, or a month abbreviation with a year ("mar 2024",
    "ott-23"), which maps to the first of the month. Returns None otherwise.
    """
    value = (value or "").strip()
    if not value:
        return None

    match = _DMY_PATTERN.match(value)
    if match:
        day, month, year = (int(g) for g in match.groups())
        try:
            return date(year, month, day)
        except ValueError:
            return None

    parts = [p for p in re.split(r"[.\-\s]+", value.lower()) if p]
    month = next((MONTH_ABBREVIATIONS[p] for p in parts if p in MONTH_ABBREVIATIONS), None)
    year_part = next((p for p in parts if re.fullmatch(r"\d{2,4}", p)), None)
    if month is None or year_part is None:
        return None
    year = int(year_part)
    if year < 100:
        year += 2000
    return date(year, month, 1)


def parse_unit_cost(value: Any) -> Optional[Decimal]:
    """Parse a cost accepting a comma as decimal separator. Empty → None."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        cost = Decimal(str(value).strip().replace(",", "."))
    except InvalidOperation:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Costo unitario non valido"
        )
    if cost < 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Costo unitario non valido"
        )
    return cost


class InventoryService:
    """Service class for inventory operations."""

    # Suppliers

    @staticmethod
    def list_suppliers(db: Session) -> List[Supplier]:
        return db.query(Supplier).order_by(Supplier.name).all()

    @staticmethod
    def _get_supplier(db: Session, supplier_id: int) -> Supplier:
        supplier = db.query(Supplier).filter(Supplier.id == supplier_id).first()
        if not supplier:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Fornitore non trovato"
            )
        return supplier

    @staticmethod
    def create_supplier(
        db: Session,
        actor,
        name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Supplier:
        name = (name or "").strip()
        if not name:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Nome fornitore obbligatorio"
            )
        supplier = Supplier(name=name, email=_clean(email), phone=_clean(phone), notes=_clean(notes))
        db.add(supplier)
        db.flush()
        AuditService.log_audit(db, actor, "supplier.created", "Supplier", supplier.id, {"name": name})
        db.commit()
        return supplier

    @staticmethod
    def update_supplier(
        db: Session,
        actor,
        supplier_id: int,
        name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Supplier:
        name = (name or "").strip()
        if not name:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Nome fornitore obbligatorio"
            )
        supplier = InventoryService._get_supplier(db, supplier_id)
        supplier.name = name
        supplier.email = _clean(email)
        supplier.phone = _clean(phone)
        supplier.notes = _clean(notes)
        AuditService.log_audit(db, actor, "supplier.updated", "Supplier", supplier.id, {"name": name})
        db.commit()
        return supplier

    @staticmethod
    def delete_supplier(db: Session, actor, supplier_id: int) -> None:
        """Delete a supplier. Its products stay, without a supplier."""
        supplier = InventoryService._get_supplier(db, supplier_id)
        db.query(Product).filter(Product.supplier_id == supplier_id).update(
            {Product.supplier_id: None}, synchronize_session=False
        )
        db.delete(supplier)
        AuditService.log_audit(db, actor, "supplier.deleted", "Supplier", supplier_id, {"name": supplier.name})
        db.commit()

    # Products

    @staticmethod
    def list_products(db: Session) -> List[Product]:
        return db.query(Product).options(joinedload(Product.supplier)).order_by(Product.name).all()

    @staticmethod
    def get_product(db: Session, product_id: int) -> Product:
        product = db.query(Product).filter(Product.id == product_id).first()
        if not product:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Prodotto non trovato"
            )
        return product

    @staticmethod
    def create_product(
        db: Session,
        actor,
        name: str,
        sku: Optional[str] = None,
        service_type: Optional[str] = None,
        udi_di: Optional[str] = None,
        unit_cost: Any = None,
        min_threshold: int = 0,
        supplier_id: Optional[int] = None,
    ) -> Product:
        name = (name or "").strip()
        if not name:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Nome prodotto obbligatorio"
            )
        if supplier_id is not None:
            InventoryService._get_supplier(db, supplier_id)
        product = Product(
            name=name,
            sku=_clean(sku),
            service_type=_clean(service_type),
            udi_di=_clean(udi_di),
            unit_cost=parse_unit_cost(unit_cost),
            min_threshold=max(int(min_threshold or 0), 0),
            supplier_id=supplier_id,
        )
        db.add(product)
        db.flush()
        AuditService.log_audit(db, actor, "product.created", "Product", product.id, {"name": name})
        db.commit()
        return product

    @staticmethod
    def update_product(
        db: Session,
        actor,
        product_id: int,
        name: str,
        sku: Optional[str] = None,
        service_type: Optional[str] = None,
        udi_di: Optional[str] = None,
        unit_cost: Any = None,
        min_threshold: int = 0,
        supplier_id: Optional[int] = None,
    ) -> Product:
        name = (name or "").strip()
        if not name:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Dati prodotto non validi"
            )
        product = InventoryService.get_product(db, product_id)
        if supplier_id is not None:
            InventoryService._get_supplier(db, supplier_id)
        product.name = name
        product.sku = _clean(sku)
        product.service_type = _clean(service_type)
        product.udi_di = _clean(udi_di)
        product.unit_cost = parse_unit_cost(unit_cost)
        product.min_threshold = max(int(min_threshold or 0), 0)
        product.supplier_id = supplier_id
        AuditService.log_audit(db, actor, "product.updated", "Product", product.id, {"name": name})
        db.commit()
        return product

    @staticmethod
    def delete_product(db: Session, actor, product_id: int) -> None:
        """Delete a product together with its stock movements."""
        product = InventoryService.get_product(db, product_id)
        db.query(StockMovement).filter(StockMovement.product_id == product_id).delete(synchronize_session=False)
        db.delete(product)
        AuditService.log_audit(db, actor, "product.deleted", "Product", product_id, {"name": product.name})
        db.commit()

    # Stock movements

    @staticmethod
    def _validate_movement(movement: Optional[str], quantity: Any) -> tuple[str, int]:
        movement = (movement or "").strip().upper()
        try:
            qty = int(quantity)
        except (TypeError, ValueError):
            qty = 0
        if movement not in MOVEMENT_TYPES or qty == 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Dati movimento non validi"
            )
        return movement, abs(qty)

    @staticmethod
    def list_movements(db: Session, product_id: Optional[int] = None, limit: int = 500) -> List[StockMovement]:
        q = db.query(StockMovement).options(
            joinedload(StockMovement.product),
            joinedload(StockMovement.patient),
        )
        if product_id is not None:
            q = q.filter(StockMovement.product_id == product_id)
        return q.order_by(StockMovement.created_at.desc(), StockMovement.id.desc()).limit(limit).all()

    @staticmethod
    def add_movement(
        db: Session,
        actor,
        product_id: int,
        movement: str,
        quantity: Any,
        note: Optional[str] = None,
        patient_id: Optional[int] = None,
        udi_pi: Optional[str] = None,
        intervention_date: Optional[date] = None,
        intervention_site: Optional[str] = None,
        purchase_date: Optional[date] = None,
    ) -> StockMovement:
        """
        Record a stock movement. The quantity is stored as an absolute value;
        the direction comes from `movement`.
        """
        movement, qty = InventoryService._validate_movement(movement, quantity)
        InventoryService.get_product(db, product_id)
        row = StockMovement(
            product_id=product_id,
            movement=movement,
            quantity=qty,
            note=_clean(note),
            user_id=getattr(actor, "user_id", None),
            patient_id=patient_id,
            udi_pi=_clean(udi_pi),
            intervention_date=intervention_date,
            intervention_site=_clean(intervention_site),
            purchase_date=purchase_date,
        )
        db.add(row)
        db.flush()
        AuditService.log_audit(
            db, actor, "stockMovement.created", "StockMovement", row.id,
            {"productId": product_id, "movement": movement, "quantity": qty},
        )
        db.commit()
        return row

    @staticmethod
    def update_movement(
        db: Session,
        actor,
        movement_id: int,
        movement: str,
        quantity: Any,
        note: Optional[str] = None,
    ) -> StockMovement:
        movement, qty = InventoryService._validate_movement(movement, quantity)
        row = db.query(StockMovement).filter(StockMovement.id == movement_id).first()
        if not row:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Movimento non trovato"
            )
        row.movement = movement
        row.quantity = qty
        row.note = _clean(note)
        row.user_id = getattr(actor, "user_id", None)
        AuditService.log_audit(
            db, actor, "stockMovement.updated", "StockMovement", row.id,
            {"movement": movement, "quantity": qty},
        )
        db.commit()
        return row

    @staticmethod
    def delete_movement(db: Session, actor, movement_id: int) -> None:
        row = db.query(StockMovement).filter(StockMovement.id == movement_id).first()
        if not row:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Movimento non trovato"
            )
        db.delete(row)
        AuditService.log_audit(db, actor, "stockMovement.deleted", "StockMovement", movement_id)
        db.commit()

    @staticmethod
    def stock_levels(db: Session) -> List[Dict[str, Any]]:
        """
        Current quantity per product, computed as sum(IN) - sum(OUT).

        Returns:
            One dict per product with quantity and below_threshold
        """
        signed = case(
            (StockMovement.movement == "IN", StockMovement.quantity),
            else_=-StockMovement.quantity,
        )
        totals = dict(
            db.query(StockMovement.product_id, func.coalesce(func.sum(signed), 0))
            .group_by(StockMovement.product_id)
            .all()
        )
        levels = []
        for product in InventoryService.list_products(db):
            quantity = int(totals.get(product.id, 0))
            levels.append({
                "product_id": product.id,
                "name": product.name,
                "sku": product.sku,
                "service_type": product.service_type,
                "supplier": product.supplier.name if product.supplier else None,
                "min_threshold": product.min_threshold,
                "quantity": quantity,
                "below_threshold": quantity < (product.min_threshold or 0),
            })
        return levels

    # Implant register CSV

    @staticmethod
    def _match_patient(db: Session, raw_name: str) -> Patient:
        parts = raw_name.split()
        if len(parts) < 2:
            patient = Patient(first_name=raw_name, last_name="")
            db.add(patient)
            db.flush()
            return patient

        first, last = parts[0], " ".join(parts[1:])
        patient = db.query(Patient).filter(or_(
            (func.lower(Patient.first_name) == first.lower()) & (func.lower(Patient.last_name) == last.lower()),
            (func.lower(Patient.first_name) == last.lower()) & (func.lower(Patient.last_name) == first.lower()),
        )).first()
        if patient is None:
            patient = Patient(first_name=first, last_name=last)
            db.add(patient)
            db.flush()
        return patient

    @staticmethod
    def _match_supplier(db: Session, brand: Optional[str]) -> Optional[Supplier]:
        if not brand:
            return None
        supplier = db.query(Supplier).filter(func.lower(Supplier.name) == brand.lower()).first()
        if supplier is None:
            supplier = Supplier(name=brand)
            db.add(supplier)
            db.flush()
        return supplier

    @staticmethod
    def _match_product(
        db: Session,
        device_type: Optional[str],
        brand: Optional[str],
        udi_di: Optional[str],
        supplier: Optional[Supplier],
    ) -> Product:
        product_name = f"{device_type or 'Dispositivo'} {brand or ''}".strip()
        product = None

        if udi_di:
            product = db.query(Product).filter(func.lower(Product.udi_di) == udi_di.lower()).first()

        if product is None:
            q = db.query(Product).filter(func.lower(Product.name) == product_name.lower())
            if device_type:
                q = q.filter(func.lower(Product.service_type) == device_type.lower())
            else:
                q = q.filter(Product.service_type.is_(None))
            candidate = q.first()
            if candidate is not None:
                if udi_di and not candidate.udi_di:
                    candidate.udi_di = udi_di
                    product = candidate
                elif not udi_di:
                    product = candidate
                # A candidate with another UDI-DI is a different device

        if product is None:
            product = Product(
                name=product_name,
                service_type=device_type,
                supplier_id=supplier.id if supplier else None,
                udi_di=udi_di,
            )
            db.add(product)
            db.flush()
        return product

    @staticmethod
    def import_stock_csv(db: Session, actor, text: Optional[str]) -> Dict[str, int]:
        """
        Import the implant register.

        Each data row becomes an OUT movement of one device for the matched
        (or newly created) patient, supplier and product.

        Raises:
            HTTPException: 400 if the file is missing or empty
        """
        if not text or not text.strip():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="File mancante o vuoto"
            )

        lines = [line for line in text.splitlines() if line.strip()]
        header_idx = next(
            (i for i, line in enumerate(lines)
             if "paziente" in line.lower() and ("tipo di dm" in line.lower() or "marca" in line.lower())),
            None,
        )
        start_idx = header_idx + 1 if header_idx is not None else 0

        imported = 0
        for line in lines[start_idx:]:
            cols = [c.strip() for c in line.split(";")]
            if len(cols) < 2:
                continue
            cols += [""] * (8 - len(cols))
            patient_raw, device_type, brand, purchase_raw, udi_di, udi_pi, intervention_raw, site = cols[:8]
            if not patient_raw:
                continue

            patient = InventoryService._match_patient(db, patient_raw)
            supplier = InventoryService._match_supplier(db, _clean(brand))
            product = InventoryService._match_product(db, _clean(device_type), _clean(brand), _clean(udi_di), supplier)

            db.add(StockMovement(
                product_id=product.id,
                movement="OUT",
                quantity=1,
                user_id=getattr(actor, "user_id", None),
                patient_id=patient.id,
                udi_pi=_clean(udi_pi),
                intervention_date=parse_register_date(intervention_raw),
                intervention_site=_clean(site),
                purchase_date=parse_register_date(purchase_raw),
            ))
            db.flush()
            imported += 1

        AuditService.log_audit(db, actor, "inventory.imported", "StockMovement", metadata={"imported": imported})
        db.commit()
        logger.info(f"Imported {imported} stock movements from CSV")
        return {"imported": imported}

    @staticmethod
    def export_stock_csv(db: Session) -> str:
        """Render patient-linked movements as a `;`-separated register, newest intervention first."""
        movements = db.query(StockMovement).options(
            joinedload(StockMovement.product).joinedload(Product.supplier),
            joinedload(StockMovement.patient),
        ).filter(
            StockMovement.patient_id.isnot(None)
        ).order_by(StockMovement.intervention_date.desc(), StockMovement.id.desc()).all()

        buffer = io.StringIO()
        writer = csv.writer(buffer, delimiter=";", quoting=csv.QUOTE_ALL, lineterminator="\n")
        buffer.write(";".join(EXPORT_HEADER) + "\n")
        for m in movements:
            product = m.product
            writer.writerow([
                m.patient.full_name if m.patient else "",
                product.service_type or "Impianto",
                product.supplier.name if product.supplier else "",
                format_date_it(m.purchase_date) if m.purchase_date else "",
                product.udi_di or "",
                m.udi_pi or "",
                format_date_it(m.intervention_date) if m.intervention_date else "",
                m.intervention_site or "",
            ])
        return buffer.getvalue()
