"""
Manually entered attendance deductions.

Live time-clock attendance is disabled, so these rows are the only
attendance facts payroll sees.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from brgy_payroll.core.exceptions import NotFoundError, StateError
from brgy_payroll.core.localtime import to_utc
from brgy_payroll.core.money import to_currency
from brgy_payroll.models.attendance_deduction import AttendanceDeduction
from brgy_payroll.schemas.attendance import AttendanceDeductionCreate, ManualAttendanceInput
from brgy_payroll.services import attendance_penalty
from brgy_payroll.services.audit import AuditService
from brgy_payroll.services.personnel_service import actor_fields, get_person

logger = logging.getLogger(__name__)


def _record_to_dict(rec: AttendanceDeduction) -> Dict[str, Any]:
    return {
        "id": rec.id,
        "users_id": rec.users_id,
        "name": rec.person.display_name if rec.person else None,
        "late_minutes": rec.late_minutes,
        "absent_days": str(rec.absent_days),
        "amount": str(to_currency(rec.amount)),
        "notes": rec.notes,
        "applied_at": rec.applied_at.isoformat() if rec.applied_at else None,
        "archived_at": rec.archived_at.isoformat() if rec.archived_at else None,
    }


def preview(data: ManualAttendanceInput) -> Dict[str, Any]:
    result = attendance_penalty.compute_manual_entry(
        late_hours=data.late_hours,
        late_minutes=data.late_minutes,
        absent_days=data.absent_days,
    )
    return {
        "late_hours": result.late_hours,
        "late_minutes": result.late_minutes,
        "absent_days": str(result.absent_days),
        "total_minutes": str(result.total_minutes),
        "rate_per_minute": str(result.rate_per_minute),
        "amount": str(to_currency(result.amount)),
        "description": result.describe(),
    }


def list_attendance_deductions(
    db: Session, archived: bool = False, users_id: Optional[int] = None
) -> List[Dict[str, Any]]:
    query = db.query(AttendanceDeduction)
    if archived:
        query = query.filter(AttendanceDeduction.archived_at.isnot(None))
    else:
        query = query.filter(AttendanceDeduction.archived_at.is_(None))
    if users_id is not None:
        query = query.filter(AttendanceDeduction.users_id == users_id)
    return [_record_to_dict(r) for r in query.order_by(AttendanceDeduction.id.desc()).all()]


def create_attendance_deduction(db: Session, data: AttendanceDeductionCreate, actor=None) -> Dict[str, Any]:
    person = get_person(db, data.users_id)
    result = attendance_penalty.compute_manual_entry(
        late_hours=data.late_hours,
        late_minutes=data.late_minutes,
        absent_days=data.absent_days,
    )
    rec = AttendanceDeduction(
        users_id=person.id,
        late_minutes=result.folded_late_minutes,
        absent_days=result.absent_days,
        amount=result.amount,
        notes=data.notes or result.describe(),
        applied_at=to_utc(data.applied_at) if data.applied_at else datetime.now(timezone.utc),
    )
    try:
        db.add(rec)
        db.flush()
        AuditService.log(
            db, action="create_attendance_deduction", entity_type="attendance_deduction", entity_id=rec.id,
            details={"users_id": person.id, "total_minutes": result.total_minutes, "amount": result.amount},
            **actor_fields(actor)
        )
        db.commit()
        db.refresh(rec)
    except Exception:
        db.rollback()
        raise
    logger.info(f"Attendance deduction {rec.id} for user {person.id}: {result.total_minutes} min = {result.amount}")
    return _record_to_dict(rec)


def archive_attendance_deduction(db: Session, record_id: int, actor=None) -> Dict[str, Any]:
    rec = db.query(AttendanceDeduction).filter(AttendanceDeduction.id == record_id).first()
    if not rec:
        raise NotFoundError("Attendance deduction", record_id)
    if rec.archived_at is not None:
        raise StateError(f"Attendance deduction {record_id} is already archived")
    try:
        rec.archived_at = datetime.now(timezone.utc)
        AuditService.log(
            db, action="archive_attendance_deduction", entity_type="attendance_deduction",
            entity_id=record_id, details={"users_id": rec.users_id}, **actor_fields(actor)
        )
        db.commit()
        db.refresh(rec)
    except Exception:
        db.rollback()
        raise
    return _record_to_dict(rec)
