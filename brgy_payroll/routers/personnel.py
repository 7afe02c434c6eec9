from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from brgy_payroll.database import get_db
from brgy_payroll.models.personnel import Personnel
from brgy_payroll.routers.auth_deps import require_self_or_admin
from brgy_payroll.services import payroll_service

router = APIRouter(prefix="/personnel", tags=["personnel"])


@router.get("/{users_id}/payslip")
def get_latest_payslip(
    users_id: int,
    db: Session = Depends(get_db),
    actor: Personnel = Depends(require_self_or_admin)
):
    """Latest released payslip, served from its frozen snapshot."""
    return payroll_service.get_latest_payslip(db, users_id)


@router.get("/{users_id}/payroll-history")
def get_payroll_history(
    users_id: int,
    db: Session = Depends(get_db),
    actor: Personnel = Depends(require_self_or_admin)
):
    return payroll_service.get_payroll_history(db, users_id)
