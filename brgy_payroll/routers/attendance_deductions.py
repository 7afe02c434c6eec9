"""
Attendance Deduction Router

Manual lateness/absence entries, with a preview endpoint that computes the
amount without saving anything.
"""
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from brgy_payroll.database import get_db
from brgy_payroll.models.personnel import Personnel
from brgy_payroll.routers.auth_deps import require_admin
from brgy_payroll.schemas.attendance import AttendanceDeductionCreate, ManualAttendanceInput
from brgy_payroll.services import attendance_deduction_service

router = APIRouter(
    prefix="/attendance-deductions",
    tags=["attendance-deductions"],
    dependencies=[Depends(require_admin())]
)


@router.post("/preview")
def preview_attendance_deduction(request: ManualAttendanceInput):
    return attendance_deduction_service.preview(request)


@router.get("")
def list_attendance_deductions(
    archived: bool = False,
    users_id: Optional[int] = None,
    db: Session = Depends(get_db)
):
    return attendance_deduction_service.list_attendance_deductions(db, archived=archived, users_id=users_id)


@router.post("", status_code=201)
def create_attendance_deduction(
    request: AttendanceDeductionCreate,
    db: Session = Depends(get_db),
    actor: Personnel = Depends(require_admin())
):
    return attendance_deduction_service.create_attendance_deduction(db, request, actor=actor)


@router.post("/{record_id}/archive")
def archive_attendance_deduction(
    record_id: int,
    db: Session = Depends(get_db),
    actor: Personnel = Depends(require_admin())
):
    return attendance_deduction_service.archive_attendance_deduction(db, record_id, actor=actor)
