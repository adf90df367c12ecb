"""
Calendar settings service: dated practice closures and weekly closing days.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from models import PracticeClosure, PracticeWeeklyClosure
from services.audit_service import AuditService
from utils.datetime_utils import parse_datetime_to_local

logger = logging.getLogger(__name__)

CLOSURE_TYPES = ["HOLIDAY", "TIME_OFF"]


class ClosureService:
    """Service class for practice closures."""

    @staticmethod
    def _parse_range(starts_at: datetime | str, ends_at: datetime | str) -> tuple[datetime, datetime]:
        try:
            start = parse_datetime_to_local(starts_at)
            end = parse_datetime_to_local(ends_at)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Date non valide."
            )
        if end <= start:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="La data di fine deve essere dopo l'inizio."
            )
        return start, end

    @staticmethod
    def _validate_type(closure_type: str) -> str:
        closure_type = (closure_type or "HOLIDAY").strip().upper()
        if closure_type not in CLOSURE_TYPES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Tipo di chiusura non valido."
            )
        return closure_type

    @staticmethod
    def list_closures(
        db: Session,
        range_start: Optional[datetime] = None,
        range_end: Optional[datetime] = None,
    ) -> List[PracticeClosure]:
        """Closures overlapping the given range (all closures when no range is given)."""
        q = db.query(PracticeClosure)
        if range_start is not None:
            q = q.filter(PracticeClosure.ends_at > range_start)
        if range_end is not None:
            q = q.filter(PracticeClosure.starts_at < range_end)
        return q.order_by(PracticeClosure.starts_at).all()

    @staticmethod
    def create_closure(
        db: Session,
        actor,
        starts_at: datetime | str,
        ends_at: datetime | str,
        closure_type: str = "HOLIDAY",
        title: Optional[str] = None,
    ) -> PracticeClosure:
        start, end = ClosureService._parse_range(starts_at, ends_at)
        closure = PracticeClosure(
            type=ClosureService._validate_type(closure_type),
            title=(title or "").strip() or None,
            starts_at=start,
            ends_at=end,
        )
        db.add(closure)
        db.flush()
        AuditService.log_audit(
            db, actor, "practiceClosure.created", "PracticeClosure", closure.id,
            {"type": closure.type, "title": closure.title,
             "startsAt": start.isoformat(), "endsAt": end.isoformat()},
        )
        db.commit()
        return closure

    @staticmethod
    def update_closure(
        db: Session,
        actor,
        closure_id: int,
        starts_at: datetime | str,
        ends_at: datetime | str,
        closure_type: str = "HOLIDAY",
        title: Optional[str] = None,
    ) -> PracticeClosure:
        closure = db.query(PracticeClosure).filter(PracticeClosure.id == closure_id).first()
        if not closure:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Chiusura non trovata."
            )
        start, end = ClosureService._parse_range(starts_at, ends_at)
        closure.type = ClosureService._validate_type(closure_type)
        closure.title = (title or "").strip() or None
        closure.starts_at = start
        closure.ends_at = end
        AuditService.log_audit(
            db, actor, "practiceClosure.updated", "PracticeClosure", closure.id,
            {"type": closure.type, "title": closure.title,
             "startsAt": start.isoformat(), "endsAt": end.isoformat()},
        )
        db.commit()
        return closure

    @staticmethod
    def delete_closure(db: Session, actor, closure_id: int) -> None:
        closure = db.query(PracticeClosure).filter(PracticeClosure.id == closure_id).first()
        if not closure:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Chiusura non trovata."
            )
        db.delete(closure)
        AuditService.log_audit(db, actor, "practiceClosure.deleted", "PracticeClosure", closure_id)
        db.commit()

    @staticmethod
    def list_weekly_closures(db: Session, active_only: bool = False) -> List[PracticeWeeklyClosure]:
        q = db.query(PracticeWeeklyClosure)
        if active_only:
            q = q.filter(PracticeWeeklyClosure.is_active.is_(True))
        return q.order_by(PracticeWeeklyClosure.day_of_week).all()

    @staticmethod
    def save_weekly_closures(db: Session, actor, days: Iterable[Dict[str, Any]]) -> List[PracticeWeeklyClosure]:
        """
        Save the weekly closing days.

        Each item has day_of_week, enabled and an optional title. Enabled days
        are created or updated; disabled days are removed.
        """
        saved: List[int] = []
        for item in days:
            day = item.get("day_of_week")
            if not isinstance(day, int) or not 1 <= day <= 7:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Giorno della settimana non valido."
                )
            existing = db.query(PracticeWeeklyClosure).filter(PracticeWeeklyClosure.day_of_week == day).first()
            if item.get("enabled"):
                if existing is None:
                    existing = PracticeWeeklyClosure(day_of_week=day)
                    db.add(existing)
                existing.title = (item.get("title") or "").strip() or None
                existing.is_active = True
                saved.append(day)
            elif existing is not None:
                db.delete(existing)

        AuditService.log_audit(
            db, actor, "practiceWeeklyClosure.saved", "PracticeWeeklyClosure",
            metadata={"closedDays": saved},
        )
        db.commit()
        return ClosureService.list_weekly_closures(db)
