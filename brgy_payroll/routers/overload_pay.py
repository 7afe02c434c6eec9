from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from brgy_payroll.database import get_db
from brgy_payroll.models.personnel import Personnel
from brgy_payroll.routers.auth_deps import require_admin
from brgy_payroll.schemas.overload_pay import OverloadPayCreate
from brgy_payroll.services import overload_pay_service

router = APIRouter(
    prefix="/overload-pay",
    tags=["overload-pay"],
    dependencies=[Depends(require_admin())]
)


@router.get("")
def list_overload_pay(
    archived: bool = False,
    users_id: Optional[int] = None,
    db: Session = Depends(get_db)
):
    return overload_pay_service.list_overload_pay(db, archived=archived, users_id=users_id)


@router.post("", status_code=201)
def create_overload_pay(
    request: OverloadPayCreate,
    db: Session = Depends(get_db),
    actor: Personnel = Depends(require_admin())
):
    return overload_pay_service.create_overload_pay(db, request, actor=actor)


@router.post("/{overload_id}/archive")
def archive_overload_pay(
    overload_id: int,
    db: Session = Depends(get_db),
    actor: Personnel = Depends(require_admin())
):
    return overload_pay_service.archive_overload_pay(db, overload_id, actor=actor)
