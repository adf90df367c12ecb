"""
Service catalogue management: the treatments the practice offers and their cost basis.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from models import PracticeService
from services.audit_service import AuditService

logger = logging.getLogger(__name__)


def parse_cost_basis(raw: Any) -> Decimal:
    """
    Parse a cost basis such as "120", "79,90" or "79.90".

    Raises:
        HTTPException: 400 "Costo base non valido" when not a number
    """
    try:
        cost = Decimal(str(raw).strip().replace(",", "."))
    except InvalidOperation:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Costo base non valido"
        )
    if not cost.is_finite():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Costo base non valido"
        )
    return cost.quantize(Decimal("0.01"))


class ServiceManagementService:
    """Service class for the practice service catalogue."""

    @staticmethod
    def list_services(db: Session) -> List[PracticeService]:
        return db.query(PracticeService).order_by(PracticeService.name).all()

    @staticmethod
    def _get(db: Session, service_id: int) -> PracticeService:
        service = db.query(PracticeService).filter(PracticeService.id == service_id).first()
        if not service:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Servizio non valido"
            )
        return service

    @staticmethod
    def create_service(
        db: Session,
        actor,
        name: str,
        cost_basis: Any,
        description: Optional[str] = None,
    ) -> PracticeService:
        name = (name or "").strip()
        if not name or cost_basis is None or not str(cost_basis).strip():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Nome e costo base sono obbligatori"
            )
        cost = parse_cost_basis(cost_basis)

        service = PracticeService(
            name=name,
            description=(description or "").strip() or None,
            cost_basis=cost,
        )
        db.add(service)
        db.flush()
        AuditService.log_audit(
            db, actor, "service.created", "Service", service.id,
            {"name": name, "costBasis": str(cost)},
        )
        db.commit()
        return service

    @staticmethod
    def update_service(
        db: Session,
        actor,
        service_id: int,
        name: str,
        cost_basis: Any,
        description: Optional[str] = None,
    ) -> PracticeService:
        name = (name or "").strip()
        if not name or cost_basis is None or not str(cost_basis).strip():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Dati servizio non validi"
            )
        cost = parse_cost_basis(cost_basis)
        service = ServiceManagementService._get(db, service_id)
        service.name = name
        service.description = (description or "").strip() or None
        service.cost_basis = cost
        AuditService.log_audit(
            db, actor, "service.updated", "Service", service.id,
            {"name": name, "costBasis": str(cost)},
        )
        db.commit()
        return service

    @staticmethod
    def delete_service(db: Session, actor, service_id: int) -> None:
        service = ServiceManagementService._get(db, service_id)
        db.delete(service)
        AuditService.log_audit(db, actor, "service.deleted", "Service", service_id)
        db.commit()
