"""
Deduction Router

Applies deduction types to personnel. A batch that would push anyone under
the net-pay floor is rejected whole; duplicates need explicit confirmation.
"""
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from brgy_payroll.database import get_db
from brgy_payroll.models.personnel import Personnel
from brgy_payroll.routers.auth_deps import require_admin
from brgy_payroll.schemas.deduction import DeductionApplyRequest
from brgy_payroll.services import deduction_service

router = APIRouter(prefix="/deductions", tags=["deductions"])


@router.get("")
def list_deductions(
    archived: bool = False,
    users_id: Optional[int] = None,
    db: Session = Depends(get_db),
    actor: Personnel = Depends(require_admin())
):
    return deduction_service.list_deductions(db, archived=archived, users_id=users_id)


@router.post("")
def apply_deductions(
    request: DeductionApplyRequest,
    db: Session = Depends(get_db),
    actor: Personnel = Depends(require_admin())
):
    """
    Returns `requires_confirmation: true` with the duplicate targets when any
    target already has an active instance of the type and `confirm_duplicates`
    was not set. Nothing is written in that case.
    """
    return deduction_service.apply_deductions(db, request, actor=actor)


@router.post("/{deduction_id}/archive")
def archive_deduction(
    deduction_id: int,
    db: Session = Depends(get_db),
    actor: Personnel = Depends(require_admin())
):
    return deduction_service.archive_deduction(db, deduction_id, actor=actor)
