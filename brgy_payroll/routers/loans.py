"""
Loan Router

Admin loan management and the personnel loan request endpoint.
"""
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from brgy_payroll.database import get_db
from brgy_payroll.models.loan import LoanStatus
from brgy_payroll.models.personnel import Personnel, UserRole
from brgy_payroll.routers.auth_deps import get_current_actor, require_admin
from brgy_payroll.schemas.loan import LoanApproveRequest, LoanCreate, LoanRejectRequest, LoanRequestCreate
from brgy_payroll.services import loan_service

router = APIRouter(prefix="/loans", tags=["loans"])


@router.get("")
def list_loans(
    users_id: Optional[int] = None,
    status: Optional[LoanStatus] = None,
    archived: bool = False,
    db: Session = Depends(get_db),
    actor: Personnel = Depends(get_current_actor)
):
    """Admins see every loan; personnel only their own."""
    if actor.role != UserRole.ADMIN:
        users_id = actor.id
    return loan_service.list_loans(db, users_id=users_id, status=status, archived=archived)


@router.post("", status_code=201)
def create_loan(
    request: LoanCreate,
    db: Session = Depends(get_db),
    actor: Personnel = Depends(require_admin())
):
    return loan_service.create_loan(db, request, actor=actor)


@router.post("/request", status_code=201)
def request_loan(
    request: LoanRequestCreate,
    db: Session = Depends(get_db),
    actor: Personnel = Depends(get_current_actor)
):
    return loan_service.request_loan(db, actor.id, request)


@router.post("/{loan_id}/approve")
def approve_loan(
    loan_id: int,
    request: Optional[LoanApproveRequest] = None,
    db: Session = Depends(get_db),
    actor: Personnel = Depends(require_admin())
):
    return loan_service.approve_loan(db, loan_id, start_date=request.start_date if request else None, actor=actor)


@router.post("/{loan_id}/reject")
def reject_loan(
    loan_id: int,
    request: Optional[LoanRejectRequest] = None,
    db: Session = Depends(get_db),
    actor: Personnel = Depends(require_admin())
):
    return loan_service.reject_loan(db, loan_id, reason=request.reason if request else None, actor=actor)


@router.post("/{loan_id}/cancel")
def cancel_loan(
    loan_id: int,
    db: Session = Depends(get_db),
    actor: Personnel = Depends(require_admin())
):
    return loan_service.cancel_loan(db, loan_id, actor=actor)


@router.post("/{loan_id}/archive")
def archive_loan(
    loan_id: int,
    db: Session = Depends(get_db),
    actor: Personnel = Depends(require_admin())
):
    return loan_service.archive_loan(db, loan_id, actor=actor)
