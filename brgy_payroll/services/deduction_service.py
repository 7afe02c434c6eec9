"""
Deduction Service Layer

Deduction type catalog and per-person deduction instances. New instances are
resolved by the deduction resolver and checked against the net-pay floor;
a batch either applies to every target or to none.
"""
import logging
from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from brgy_payroll.core.exceptions import (
    AppException, BulkOperationError, InvalidInputError, NotFoundError, StateError,
)
from brgy_payroll.core.localtime import to_utc
from brgy_payroll.core.money import ZERO, to_currency
from brgy_payroll.models.deduction import CalculationType, DeductionInstance, DeductionType
from brgy_payroll.schemas.deduction import DeductionApplyRequest, DeductionTypeCreate, DeductionTypeUpdate
from brgy_payroll.services import obligation_validator
from brgy_payroll.services.audit import AuditService
from brgy_payroll.services.deduction_resolver import resolve
from brgy_payroll.services.personnel_service import actor_fields, resolve_targets

logger = logging.getLogger(__name__)


def _type_to_dict(dtype: DeductionType) -> Dict[str, Any]:
    return {
        "id": dtype.id,
        "name": dtype.name,
        "description": dtype.description,
        "is_mandatory": dtype.is_mandatory,
        "calculation_type": dtype.calculation_type.value,
        "amount": str(dtype.amount) if dtype.amount is not None else None,
        "percentage_value": str(dtype.percentage_value) if dtype.percentage_value is not None else None,
        "is_active": dtype.is_active,
    }


def _instance_to_dict(inst: DeductionInstance) -> Dict[str, Any]:
    return {
        "id": inst.id,
        "users_id": inst.users_id,
        "name": inst.person.display_name if inst.person else None,
        "deduction_types_id": inst.deduction_types_id,
        "type": inst.deduction_type.name if inst.deduction_type else None,
        "is_mandatory": inst.deduction_type.is_mandatory if inst.deduction_type else False,
        "amount": str(to_currency(inst.amount)),
        "notes": inst.notes,
        "applied_at": inst.applied_at.isoformat() if inst.applied_at else None,
        "archived_at": inst.archived_at.isoformat() if inst.archived_at else None,
    }


def get_deduction_type(db: Session, type_id: int) -> DeductionType:
    dtype = db.query(DeductionType).filter(DeductionType.id == type_id).first()
    if not dtype:
        raise NotFoundError("Deduction type", type_id)
    return dtype


# --- Catalog ---

def list_deduction_types(db: Session, include_inactive: bool = True) -> List[Dict[str, Any]]:
    query = db.query(DeductionType)
    if not include_inactive:
        query = query.filter(DeductionType.is_active.is_(True))
    return [_type_to_dict(t) for t in query.order_by(DeductionType.name).all()]


def create_deduction_type(db: Session, data: DeductionTypeCreate, actor=None) -> Dict[str, Any]:
    name = data.name.strip()
    if db.query(DeductionType).filter(DeductionType.name == name).first():
        raise InvalidInputError(f"Deduction type '{name}' already exists")

    dtype = DeductionType(
        name=name,
        description=data.description,
        is_mandatory=data.is_mandatory,
        calculation_type=data.calculation_type,
        amount=data.amount if data.calculation_type == CalculationType.FIXED else None,
        percentage_value=data.percentage_value if data.calculation_type == CalculationType.PERCENTAGE else None,
    )
    try:
        db.add(dtype)
        db.flush()
        AuditService.log(
            db, action="create_deduction_type", entity_type="deduction_type", entity_id=dtype.id,
            details={"name": name}, after_state=_type_to_dict(dtype), **actor_fields(actor)
        )
        db.commit()
        db.refresh(dtype)
    except Exception:
        db.rollback()
        raise
    logger.info(f"Created deduction type {dtype.id} '{name}' ({dtype.calculation_type.value})")
    return _type_to_dict(dtype)


def update_deduction_type(db: Session, type_id: int, data: DeductionTypeUpdate, actor=None) -> Dict[str, Any]:
    """
    Update a catalog entry. Changing how the amount is calculated re-resolves
    every non-archived instance of the type. Released payroll keeps its own
    snapshot and is unaffected.
    """
    dtype = get_deduction_type(db, type_id)
    before = _type_to_dict(dtype)
    changes = data.model_dump(exclude_unset=True)

    if "name" in changes and changes["name"]:
        name = changes["name"].strip()
        clash = db.query(DeductionType).filter(DeductionType.name == name, DeductionType.id != type_id).first()
        if clash:
            raise InvalidInputError(f"Deduction type '{name}' already exists")
        dtype.name = name
    for key in ("description", "is_mandatory", "is_active"):
        if key in changes and changes[key] is not None:
            setattr(dtype, key, changes[key])

    calc_before = (dtype.calculation_type, dtype.amount, dtype.percentage_value)
    if changes.get("calculation_type") is not None:
        dtype.calculation_type = changes["calculation_type"]
    if dtype.calculation_type == CalculationType.FIXED:
        if "amount" in changes:
            dtype.amount = changes["amount"]
        dtype.percentage_value = None
        if dtype.amount is None:
            db.rollback()
            raise InvalidInputError("amount is required for FIXED deduction types")
    else:
        if "percentage_value" in changes:
            dtype.percentage_value = changes["percentage_value"]
        dtype.amount = None
        if dtype.percentage_value is None:
            db.rollback()
            raise InvalidInputError("percentage_value is required for PERCENTAGE deduction types")

    recalculated = 0
    try:
        if (dtype.calculation_type, dtype.amount, dtype.percentage_value) != calc_before:
            for inst in dtype.instances:
                if inst.archived_at is not None:
                    continue
                inst.amount = resolve(dtype, inst.person)
                recalculated += 1
        AuditService.log(
            db, action="update_deduction_type", entity_type="deduction_type", entity_id=dtype.id,
            details={"recalculated_instances": recalculated},
            before_state=before, after_state=_type_to_dict(dtype), **actor_fields(actor)
        )
        db.commit()
        db.refresh(dtype)
    except Exception:
        db.rollback()
        raise

    if recalculated:
        logger.info(f"Deduction type {type_id} changed; recalculated {recalculated} active instances")
    result = _type_to_dict(dtype)
    result["recalculated_instances"] = recalculated
    return result


def delete_deduction_type(db: Session, type_id: int, actor=None) -> Dict[str, Any]:
    dtype = get_deduction_type(db, type_id)
    before = _type_to_dict(dtype)
    removed = len(dtype.instances)
    try:
        db.delete(dtype)
        AuditService.log(
            db, action="delete_deduction_type", entity_type="deduction_type", entity_id=type_id,
            details={"removed_instances": removed}, before_state=before, **actor_fields(actor)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Deleted deduction type {type_id} and {removed} instances")
    return {"id": type_id, "deleted": True, "removed_instances": removed}


# --- Instances ---

def list_deductions(db: Session, archived: bool = False, users_id: Optional[int] = None) -> List[Dict[str, Any]]:
    query = db.query(DeductionInstance)
    if archived:
        query = query.filter(DeductionInstance.archived_at.isnot(None))
    else:
        query = query.filter(DeductionInstance.archived_at.is_(None))
    if users_id is not None:
        query = query.filter(DeductionInstance.users_id == users_id)
    return [_instance_to_dict(d) for d in query.order_by(DeductionInstance.id.desc()).all()]


def apply_deductions(db: Session, request: DeductionApplyRequest, actor=None) -> Dict[str, Any]:
    """
    Apply deduction types to their targets as one batch.

    Phase 1 validates every target against the net-pay floor, cumulatively for
    people that appear more than once. Any failure aborts with
    BulkOperationError and nothing is written.
    Phase 2 looks for targets that already carry an active instance of the
    same type. Unless `confirm_duplicates` is set, those are returned for
    confirmation and nothing is written.
    """
    planned = []
    errors: List[Dict[str, Any]] = []
    duplicates: List[Dict[str, Any]] = []
    batch_obligations: Dict[int, Decimal] = defaultdict(lambda: ZERO)
    seen_in_batch = set()
    index = 0

    for entry in request.entries:
        dtype = get_deduction_type(db, entry.deduction_types_id)
        targets = resolve_targets(db, entry.select_all, entry.users_ids)
        for person in targets:
            try:
                amount = resolve(dtype, person)
                check = obligation_validator.validate(
                    person, amount,
                    loans=person.loans,
                    deductions=person.deductions,
                    pending_in_batch=batch_obligations[person.id],
                )
                obligation_validator.ensure_within_floor(check)
            except AppException as exc:
                errors.append({
                    "index": index,
                    "users_id": person.id,
                    "reason": exc.message,
                    "code": exc.error_code,
                    "details": exc.details,
                })
                index += 1
                continue

            batch_obligations[person.id] += amount
            already_active = any(
                d.deduction_types_id == dtype.id and d.archived_at is None for d in person.deductions
            )
            if already_active or (person.id, dtype.id) in seen_in_batch:
                duplicates.append({
                    "index": index,
                    "users_id": person.id,
                    "name": person.display_name,
                    "deduction_types_id": dtype.id,
                    "type": dtype.name,
                })
            seen_in_batch.add((person.id, dtype.id))
            planned.append((index, person, dtype, amount, entry))
            index += 1

    if errors:
        first = errors[0]
        logger.info(f"Deduction batch rejected: {len(errors)} of {index} targets failed")
        raise BulkOperationError(
            first["reason"], index=first["index"], reason=first["reason"], errors=errors, succeeded=0
        )

    if duplicates and not request.confirm_duplicates:
        return {
            "requires_confirmation": True,
            "created": 0,
            "duplicates": duplicates,
            "message": f"{len(duplicates)} target(s) already have this deduction. Resubmit with confirm_duplicates to add anyway.",
        }

    created = []
    try:
        for _, person, dtype, amount, entry in planned:
            inst = DeductionInstance(
                users_id=person.id,
                deduction_types_id=dtype.id,
                amount=amount,
                notes=entry.notes,
                applied_at=to_utc(entry.applied_at) if entry.applied_at else datetime.now(timezone.utc),
            )
            db.add(inst)
            created.append(inst)
        db.flush()
        AuditService.log(
            db, action="apply_deductions", entity_type="deduction", entity_id=None,
            details={
                "count": len(created),
                "deduction_ids": [i.id for i in created],
                "confirmed_duplicates": len(duplicates),
            },
            **actor_fields(actor)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Applied {len(created)} deductions ({len(duplicates)} confirmed duplicates)")
    return {
        "requires_confirmation": False,
        "created": len(created),
        "duplicates": duplicates,
        "deductions": [_instance_to_dict(i) for i in created],
    }


def archive_deduction(db: Session, deduction_id: int, actor=None) -> Dict[str, Any]:
    inst = db.query(DeductionInstance).filter(DeductionInstance.id == deduction_id).first()
    if not inst:
        raise NotFoundError("Deduction", deduction_id)
    if inst.archived_at is not None:
        raise StateError(f"Deduction {deduction_id} is already archived")
    try:
        inst.archived_at = datetime.now(timezone.utc)
        AuditService.log(
            db, action="archive_deduction", entity_type="deduction", entity_id=deduction_id,
            details={"users_id": inst.users_id}, **actor_fields(actor)
        )
        db.commit()
        db.refresh(inst)
    except Exception:
        db.rollback()
        raise
    return _instance_to_dict(inst)
