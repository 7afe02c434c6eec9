"""
Payroll Router

Handles HTTP endpoints for the payroll lifecycle.
All business logic is delegated to the payroll service layer.
"""

from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from brgy_payroll.database import get_db
from brgy_payroll.models.personnel import Personnel
from brgy_payroll.routers.auth_deps import require_admin
from brgy_payroll.schemas.payroll import (
    ArchivePayrollRequest,
    DeleteEntriesRequest,
    GeneratePayrollRequest,
    PayPeriod,
    ReleasePayrollRequest,
)
from brgy_payroll.services import payroll_service


router = APIRouter(
    prefix="/payroll",
    tags=["payroll"],
    dependencies=[Depends(require_admin())]
)


@router.get("/summary")
def get_payroll_summary(
    period_start: date,
    period_end: date,
    db: Session = Depends(get_db)
):
    """
    Totals for one period from the stored entries.
    """
    return payroll_service.get_period_summary(db, PayPeriod(start=period_start, end=period_end))


@router.post("/generate")
def generate_payroll(
    request: GeneratePayrollRequest,
    db: Session = Depends(get_db),
    actor: Personnel = Depends(require_admin())
):
    """
    Create or overwrite PENDING entries for the period.

    Released and archived entries are reported under `skipped`; personnel
    with incomplete salary setup under `errors`.
    """
    return payroll_service.generate_payroll(
        db, request.to_period(), users_ids=request.users_ids, actor=actor
    )


@router.post("/release")
def release_payroll(
    request: ReleasePayrollRequest,
    db: Session = Depends(get_db),
    actor: Personnel = Depends(require_admin())
):
    """
    Release PENDING entries, freezing each breakdown snapshot in the same
    transaction as the status change.
    """
    return payroll_service.release_payroll(
        db, request.to_period(), entry_ids=request.entry_ids, actor=actor
    )


@router.post("/archive")
def archive_payroll_period(
    request: ArchivePayrollRequest,
    db: Session = Depends(get_db),
    actor: Personnel = Depends(require_admin())
):
    return payroll_service.archive_period(db, request.to_period(), actor=actor)


@router.post("/delete")
def delete_payroll_entries(
    request: DeleteEntriesRequest,
    db: Session = Depends(get_db),
    actor: Personnel = Depends(require_admin())
):
    """
    Delete entries in any state. All or nothing: on failure nothing is
    deleted and the error carries the failing index.
    """
    return payroll_service.delete_entries(db, request.entry_ids, actor=actor)


@router.delete("/pending")
def clear_pending_payroll(
    period_start: date,
    period_end: date,
    db: Session = Depends(get_db),
    actor: Personnel = Depends(require_admin())
):
    return payroll_service.clear_pending(db, PayPeriod(start=period_start, end=period_end), actor=actor)


@router.get("/entries/{entry_id}/breakdown")
def get_entry_breakdown(entry_id: int, db: Session = Depends(get_db)):
    return payroll_service.get_entry_breakdown(db, entry_id)


@router.post("/entries/{entry_id}/refresh")
def refresh_pending_entry(
    entry_id: int,
    db: Session = Depends(get_db),
    actor: Personnel = Depends(require_admin())
):
    return payroll_service.refresh_pending_entry(db, entry_id, actor=actor)


@router.post("/entries/{entry_id}/archive")
def archive_payroll_entry(
    entry_id: int,
    db: Session = Depends(get_db),
    actor: Personnel = Depends(require_admin())
):
    return payroll_service.archive_entry(db, entry_id, actor=actor)
