"""
Deduction Type Router

Catalog of deduction definitions. Business logic lives in deduction_service.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from brgy_payroll.database import get_db
from brgy_payroll.models.personnel import Personnel
from brgy_payroll.routers.auth_deps import require_admin
from brgy_payroll.schemas.deduction import DeductionTypeCreate, DeductionTypeUpdate
from brgy_payroll.services import deduction_service

router = APIRouter(prefix="/deduction-types", tags=["deduction-types"])


@router.get("")
def list_deduction_types(
    include_inactive: bool = True,
    db: Session = Depends(get_db),
    actor: Personnel = Depends(require_admin())
):
    return deduction_service.list_deduction_types(db, include_inactive=include_inactive)


@router.post("", status_code=201)
def create_deduction_type(
    request: DeductionTypeCreate,
    db: Session = Depends(get_db),
    actor: Personnel = Depends(require_admin())
):
    return deduction_service.create_deduction_type(db, request, actor=actor)


@router.put("/{type_id}")
def update_deduction_type(
    type_id: int,
    request: DeductionTypeUpdate,
    db: Session = Depends(get_db),
    actor: Personnel = Depends(require_admin())
):
    """
    Update a deduction type. Amount or percentage changes re-resolve every
    active instance; released payslips keep their frozen figures.
    """
    return deduction_service.update_deduction_type(db, type_id, request, actor=actor)


@router.delete("/{type_id}")
def delete_deduction_type(
    type_id: int,
    db: Session = Depends(get_db),
    actor: Personnel = Depends(require_admin())
):
    return deduction_service.delete_deduction_type(db, type_id, actor=actor)
