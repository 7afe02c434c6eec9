"""
Additional (overload) pay: overtime, overload and custom-labelled pay added
on top of the basic salary.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from brgy_payroll.core.exceptions import NotFoundError, StateError
from brgy_payroll.core.localtime import to_utc
from brgy_payroll.core.money import to_currency
from brgy_payroll.models.overload_pay import OverloadPay
from brgy_payroll.schemas.overload_pay import OverloadPayCreate
from brgy_payroll.services.audit import AuditService
from brgy_payroll.services.personnel_service import actor_fields, resolve_targets

logger = logging.getLogger(__name__)


def _overload_to_dict(op: OverloadPay) -> Dict[str, Any]:
    return {
        "id": op.id,
        "users_id": op.users_id,
        "name": op.person.display_name if op.person else None,
        "type": op.type,
        "amount": str(to_currency(op.amount)),
        "notes": op.notes,
        "applied_at": op.applied_at.isoformat() if op.applied_at else None,
        "archived_at": op.archived_at.isoformat() if op.archived_at else None,
    }


def list_overload_pay(db: Session, archived: bool = False, users_id: Optional[int] = None) -> List[Dict[str, Any]]:
    query = db.query(OverloadPay)
    if archived:
        query = query.filter(OverloadPay.archived_at.isnot(None))
    else:
        query = query.filter(OverloadPay.archived_at.is_(None))
    if users_id is not None:
        query = query.filter(OverloadPay.users_id == users_id)
    return [_overload_to_dict(op) for op in query.order_by(OverloadPay.id.desc()).all()]


def create_overload_pay(db: Session, data: OverloadPayCreate, actor=None) -> Dict[str, Any]:
    """Add the same pay to every target in one transaction."""
    targets = resolve_targets(db, data.select_all, data.users_ids)
    applied_at = to_utc(data.applied_at) if data.applied_at else datetime.now(timezone.utc)
    created = []
    try:
        for person in targets:
            op = OverloadPay(
                users_id=person.id,
                type=data.type,
                amount=data.amount,
                notes=data.notes,
                applied_at=applied_at,
            )
            db.add(op)
            created.append(op)
        db.flush()
        AuditService.log(
            db, action="create_overload_pay", entity_type="overload_pay", entity_id=None,
            details={"type": data.type, "amount": data.amount, "ids": [op.id for op in created]},
            **actor_fields(actor)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Added {data.type} pay of {data.amount} for {len(created)} personnel")
    return {"created": len(created), "overload_pay": [_overload_to_dict(op) for op in created]}


def archive_overload_pay(db: Session, overload_id: int, actor=None) -> Dict[str, Any]:
    op = db.query(OverloadPay).filter(OverloadPay.id == overload_id).first()
    if not op:
        raise NotFoundError("Overload pay", overload_id)
    if op.archived_at is not None:
        raise StateError(f"Overload pay {overload_id} is already archived")
    try:
        op.archived_at = datetime.now(timezone.utc)
        AuditService.log(
            db, action="archive_overload_pay", entity_type="overload_pay", entity_id=overload_id,
            details={"users_id": op.users_id}, **actor_fields(actor)
        )
        db.commit()
        db.refresh(op)
    except Exception:
        db.rollback()
        raise
    return _overload_to_dict(op)
