"""
Finance service for the practice ledger: patient payments, expenses and cash advances.

Amounts are stored as Decimal. Descriptions are composed server-side from the
selected patient, dental record, supplier and product so the ledger reads
consistently regardless of how an entry was recorded.
"""

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from models import CashAdvance, DentalRecord, FinanceEntry, Patient, Product, Supplier
from services.audit_service import AuditService
from utils.datetime_utils import parse_datetime_to_local

logger = logging.getLogger(__name__)

ENTRY_TYPES = ["INCOME", "EXPENSE"]
DESCRIPTION_SEPARATOR = " · "


def _missing_data() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="Dati mancanti"
    )


def _invalid_data() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="Dati non validi"
    )


def parse_amount(value: Any) -> Decimal:
    """
    Parse a positive amount, accepting a comma as decimal separator.

    Raises:
        HTTPException: 400 "Dati mancanti" when empty, "Dati non validi" when not a positive number
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise _missing_data()
    try:
        amount = Decimal(str(value).strip().replace(",", "."))
    except InvalidOperation:
        raise _invalid_data()
    if not amount.is_finite() or amount <= 0:
        raise _invalid_data()
    return amount.quantize(Decimal("0.01"))


def _parse_when(value: Optional[datetime | str]) -> datetime:
    if not value:
        raise _missing_data()
    try:
        return parse_datetime_to_local(value)
    except ValueError:
        raise _invalid_data()


class FinanceService:
    """Service class for finance operations."""

    @staticmethod
    def record_income(
        db: Session,
        actor,
        patient_id: Optional[int],
        dental_record_id: Optional[int],
        amount: Any,
        delivered_at: Optional[datetime | str],
        partial: bool = False,
    ) -> FinanceEntry:
        """
        Record a patient payment for a delivered treatment.

        Raises:
            HTTPException: 400 "Dati mancanti" or "Dati non validi" (e.g. the
                dental record belongs to another patient)
        """
        if not patient_id or not dental_record_id or not delivered_at:
            raise _missing_data()
        parsed_amount = parse_amount(amount)
        occurred_at = _parse_when(delivered_at)

        patient = db.query(Patient).filter(Patient.id == patient_id).first()
        record = db.query(DentalRecord).filter(DentalRecord.id == dental_record_id).first()
        if not patient or not record or record.patient_id != patient_id:
            raise _invalid_data()

        parts = [f"Pagamento paziente {patient.last_name} {patient.first_name}".strip(), record.procedure]
        if record.notes:
            parts.append(record.notes)
        if partial:
            parts.append("[Parziale]")

        entry = FinanceEntry(
            type="INCOME",
            description=DESCRIPTION_SEPARATOR.join(parts),
            amount=parsed_amount,
            occurred_at=occurred_at,
            user_id=getattr(actor, "user_id", None),
            patient_id=patient_id,
        )
        db.add(entry)
        db.flush()
        AuditService.log_audit(
            db, actor, "finance.income_recorded", "FinanceEntry", entry.id,
            {"patientId": patient_id, "amount": str(parsed_amount), "partial": partial},
        )
        db.commit()
        return entry

    @staticmethod
    def record_expense(
        db: Session,
        actor,
        description: Optional[str],
        amount: Any,
        purchase_date: Optional[datetime | str],
        kind: str = "service",
        payment: str = "electronic",
        supplier_id: Optional[int] = None,
        product_id: Optional[int] = None,
        note: Optional[str] = None,
    ) -> FinanceEntry:
        """Record an expense. `kind` is material|service, `payment` is cash|electronic."""
        description = (description or "").strip()
        if not description or not purchase_date:
            raise _missing_data()
        parsed_amount = parse_amount(amount)
        occurred_at = _parse_when(purchase_date)

        supplier = db.query(Supplier).filter(Supplier.id == supplier_id).first() if supplier_id else None
        product = db.query(Product).filter(Product.id == product_id).first() if product_id else None

        parts = [
            "Spesa materiale" if (kind or "").lower() == "material" else "Spesa servizio",
            description,
        ]
        if supplier:
            parts.append(f"Fornitore: {supplier.name}")
        if product:
            parts.append(f"Materiale: {product.name}")
        parts.append(f"Pagamento: {'contanti' if (payment or '').lower() == 'cash' else 'elettronico'}")
        if note and note.strip():
            parts.append(note.strip())

        entry = FinanceEntry(
            type="EXPENSE",
            description=DESCRIPTION_SEPARATOR.join(parts),
            amount=parsed_amount,
            occurred_at=occurred_at,
            user_id=getattr(actor, "user_id", None),
        )
        db.add(entry)
        db.flush()
        AuditService.log_audit(
            db, actor, "finance.expense_recorded", "FinanceEntry", entry.id,
            {"amount": str(parsed_amount)},
        )
        db.commit()
        return entry

    @staticmethod
    def create_cash_advance(
        db: Session,
        actor,
        patient_id: Optional[int],
        amount: Any,
        issued_at: Optional[datetime | str],
        note: Optional[str] = None,
        doctor_id: Optional[int] = None,
    ) -> CashAdvance:
        if not patient_id or not issued_at:
            raise _missing_data()
        parsed_amount = parse_amount(amount)
        when = _parse_when(issued_at)
        if not db.query(Patient.id).filter(Patient.id == patient_id).first():
            raise _invalid_data()

        advance = CashAdvance(
            patient_id=patient_id,
            doctor_id=doctor_id,
            amount=parsed_amount,
            issued_at=when,
            note=(note or "").strip() or None,
            user_id=getattr(actor, "user_id", None),
        )
        db.add(advance)
        db.flush()
        AuditService.log_audit(
            db, actor, "finance.cash_advance_created", "CashAdvance", advance.id,
            {"patientId": patient_id, "amount": str(parsed_amount)},
        )
        db.commit()
        return advance

    @staticmethod
    def list_cash_advances(db: Session, patient_id: Optional[int] = None) -> List[CashAdvance]:
        q = db.query(CashAdvance)
        if patient_id is not None:
            q = q.filter(CashAdvance.patient_id == patient_id)
        return q.order_by(CashAdvance.issued_at.desc()).all()

    @staticmethod
    def archive_entry(db: Session, actor, entry_id: int, archived: bool = True) -> FinanceEntry:
        entry = db.query(FinanceEntry).filter(FinanceEntry.id == entry_id).first()
        if not entry:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Movimento non trovato"
            )
        entry.is_archived = archived
        AuditService.log_audit(
            db, actor, "finance.archived" if archived else "finance.unarchived",
            "FinanceEntry", entry.id,
        )
        db.commit()
        return entry

    @staticmethod
    def list_entries(
        db: Session,
        entry_type: Optional[str] = None,
        archived: bool = False,
        range_start: Optional[datetime] = None,
        range_end: Optional[datetime] = None,
    ) -> List[FinanceEntry]:
        q = db.query(FinanceEntry).filter(FinanceEntry.is_archived.is_(archived))
        if entry_type and entry_type.upper() in ENTRY_TYPES:
            q = q.filter(FinanceEntry.type == entry_type.upper())
        if range_start is not None:
            q = q.filter(FinanceEntry.occurred_at >= range_start)
        if range_end is not None:
            q = q.filter(FinanceEntry.occurred_at < range_end)
        return q.order_by(FinanceEntry.occurred_at.desc(), FinanceEntry.id.desc()).all()

    @staticmethod
    def summary(
        db: Session,
        range_start: Optional[datetime] = None,
        range_end: Optional[datetime] = None,
    ) -> Dict[str, Decimal]:
        """Income, expenses and balance of non-archived entries in the range."""
        q = db.query(FinanceEntry.type, func.coalesce(func.sum(FinanceEntry.amount), 0)).filter(
            FinanceEntry.is_archived.is_(False)
        )
        if range_start is not None:
            q = q.filter(FinanceEntry.occurred_at >= range_start)
        if range_end is not None:
            q = q.filter(FinanceEntry.occurred_at < range_end)
        totals = {entry_type: Decimal(str(total)) for entry_type, total in q.group_by(FinanceEntry.type).all()}

        income = totals.get("INCOME", Decimal("0")).quantize(Decimal("0.01"))
        expenses = totals.get("EXPENSE", Decimal("0")).quantize(Decimal("0.01"))
        return {"income": income, "expenses": expenses, "balance": income - expenses}
