import pytest
from datetime import datetime, timezone
from decimal import Decimal

from pydantic import ValidationError as SchemaValidationError

from brgy_payroll.core.exceptions import BulkOperationError, InvalidInputError, StateError
from brgy_payroll.models.audit_log import AuditLog
from brgy_payroll.models.deduction import CalculationType, DeductionInstance, DeductionType
from brgy_payroll.models.personnel import UserRole
from brgy_payroll.schemas.deduction import DeductionApplyRequest, DeductionTypeCreate, DeductionTypeUpdate
from brgy_payroll.services import deduction_service


def _fixed_type(db, name, amount, mandatory=False):
    return deduction_service.create_deduction_type(
        db, DeductionTypeCreate(name=name, calculation_type=CalculationType.FIXED,
                                amount=Decimal(amount), is_mandatory=mandatory)
    )


def test_create_deduction_type(db_session):
    created = deduction_service.create_deduction_type(
        db_session,
        DeductionTypeCreate(name=" GSIS ", is_mandatory=True, calculation_type=CalculationType.PERCENTAGE,
                            percentage_value=Decimal("9"), amount=Decimal("50")),
    )
    assert created["name"] == "GSIS"
    assert created["calculation_type"] == "PERCENTAGE"
    # the unused field is dropped
    assert created["amount"] is None

    with pytest.raises(InvalidInputError):
        deduction_service.create_deduction_type(
            db_session, DeductionTypeCreate(name="GSIS", amount=Decimal("10"))
        )


def test_deduction_type_requires_its_calculation_field():
    with pytest.raises(SchemaValidationError):
        DeductionTypeCreate(name="Broken", calculation_type=CalculationType.FIXED)
    with pytest.raises(SchemaValidationError):
        DeductionTypeCreate(name="Broken", calculation_type=CalculationType.PERCENTAGE)
    with pytest.raises(SchemaValidationError):
        DeductionTypeCreate(name="Broken", calculation_type=CalculationType.PERCENTAGE,
                            percentage_value=Decimal("120"))


def test_apply_resolves_amount_per_person(db_session, make_person):
    low, high = make_person(salary="10000.00"), make_person(salary="25000.00")
    dtype = deduction_service.create_deduction_type(
        db_session, DeductionTypeCreate(name="PhilHealth", calculation_type=CalculationType.PERCENTAGE,
                                        percentage_value=Decimal("4.5"), is_mandatory=True)
    )

    result = deduction_service.apply_deductions(
        db_session, DeductionApplyRequest(deduction_types_id=dtype["id"], users_ids=[low.id, high.id])
    )

    assert result["requires_confirmation"] is False
    assert result["created"] == 2
    assert [d["amount"] for d in result["deductions"]] == ["450.00", "1125.00"]
    assert db_session.query(AuditLog).filter(AuditLog.action == "apply_deductions").count() == 1


def test_batch_rejected_when_any_target_breaches_floor(db_session, make_person):
    comfortable = make_person(salary="20000.00")
    stretched = make_person(salary="5000.00")
    advance = DeductionType(name="Cash advance", calculation_type=CalculationType.FIXED, amount=Decimal("2000"))
    db_session.add(advance)
    db_session.flush()
    db_session.add(DeductionInstance(users_id=stretched.id, deduction_types_id=advance.id,
                                     amount=Decimal("2000"), applied_at=datetime.now(timezone.utc)))
    db_session.commit()
    uniform = _fixed_type(db_session, "Uniform", "3000")

    with pytest.raises(BulkOperationError) as exc:
        deduction_service.apply_deductions(
            db_session,
            DeductionApplyRequest(deduction_types_id=uniform["id"], users_ids=[comfortable.id, stretched.id]),
        )

    err = exc.value
    assert err.index == 1
    assert err.errors[0]["users_id"] == stretched.id
    assert err.errors[0]["code"] == "NET_PAY_FLOOR_VIOLATION"
    assert err.errors[0]["details"]["available"] == "2000.00"
    assert db_session.query(DeductionInstance).filter(
        DeductionInstance.deduction_types_id == uniform["id"]
    ).count() == 0


def test_same_person_twice_in_batch_is_checked_cumulatively(db_session, make_person):
    person = make_person(salary="10000.00")
    dtype = _fixed_type(db_session, "Rice subsidy payback", "5000")

    with pytest.raises(BulkOperationError) as exc:
        deduction_service.apply_deductions(
            db_session,
            DeductionApplyRequest(entries=[
                {"deduction_types_id": dtype["id"], "users_ids": [person.id]},
                {"deduction_types_id": dtype["id"], "users_ids": [person.id]},
            ], confirm_duplicates=True),
        )

    assert exc.value.index == 1
    assert db_session.query(DeductionInstance).count() == 0


def test_duplicates_need_confirmation(db_session, make_person):
    person = make_person(salary="20000.00")
    dtype = _fixed_type(db_session, "Mortuary aid", "200")
    deduction_service.apply_deductions(
        db_session, DeductionApplyRequest(deduction_types_id=dtype["id"], users_ids=[person.id])
    )

    pending = deduction_service.apply_deductions(
        db_session, DeductionApplyRequest(deduction_types_id=dtype["id"], users_ids=[person.id])
    )
    assert pending["requires_confirmation"] is True
    assert pending["created"] == 0
    assert pending["duplicates"][0]["users_id"] == person.id
    assert db_session.query(DeductionInstance).count() == 1

    confirmed = deduction_service.apply_deductions(
        db_session,
        DeductionApplyRequest(deduction_types_id=dtype["id"], users_ids=[person.id], confirm_duplicates=True),
    )
    assert confirmed["created"] == 1
    assert db_session.query(DeductionInstance).count() == 2


def test_select_all_targets_active_personnel_only(db_session, make_person):
    make_person(salary="20000.00")
    make_person(salary="18000.00")
    make_person(salary="18000.00", is_active=False)
    make_person(salary="30000.00", role=UserRole.ADMIN)
    dtype = _fixed_type(db_session, "Association dues", "100")

    result = deduction_service.apply_deductions(
        db_session, DeductionApplyRequest(deduction_types_id=dtype["id"], select_all=True)
    )
    assert result["created"] == 2


def test_empty_selection_is_rejected(db_session):
    dtype = _fixed_type(db_session, "Association dues", "100")
    with pytest.raises(InvalidInputError):
        deduction_service.apply_deductions(
            db_session, DeductionApplyRequest(deduction_types_id=dtype["id"], users_ids=[])
        )


def test_type_update_recalculates_active_instances(db_session, make_person):
    first, second = make_person(salary="20000.00"), make_person(salary="15000.00")
    dtype = deduction_service.create_deduction_type(
        db_session, DeductionTypeCreate(name="Pag-IBIG", calculation_type=CalculationType.PERCENTAGE,
                                        percentage_value=Decimal("2"))
    )
    applied = deduction_service.apply_deductions(
        db_session, DeductionApplyRequest(deduction_types_id=dtype["id"], users_ids=[first.id, second.id])
    )
    deduction_service.archive_deduction(db_session, applied["deductions"][1]["id"])

    updated = deduction_service.update_deduction_type(
        db_session, dtype["id"], DeductionTypeUpdate(percentage_value=Decimal("3"))
    )

    assert updated["recalculated_instances"] == 1
    active = deduction_service.list_deductions(db_session)
    archived = deduction_service.list_deductions(db_session, archived=True)
    assert [d["amount"] for d in active] == ["600.00"]
    assert [d["amount"] for d in archived] == ["300.00"]


def test_switching_calculation_type_clears_other_field(db_session):
    dtype = _fixed_type(db_session, "Welfare fund", "250")

    updated = deduction_service.update_deduction_type(
        db_session, dtype["id"],
        DeductionTypeUpdate(calculation_type=CalculationType.PERCENTAGE, percentage_value=Decimal("1.5")),
    )
    assert updated["amount"] is None
    assert Decimal(updated["percentage_value"]) == Decimal("1.5")

    with pytest.raises(InvalidInputError):
        deduction_service.update_deduction_type(
            db_session, dtype["id"], DeductionTypeUpdate(calculation_type=CalculationType.FIXED)
        )
    # failed update left the type as it was
    assert deduction_service.get_deduction_type(db_session, dtype["id"]).calculation_type == CalculationType.PERCENTAGE


def test_archive_deduction_twice(db_session, make_person):
    person = make_person()
    dtype = _fixed_type(db_session, "Canteen", "150")
    applied = deduction_service.apply_deductions(
        db_session, DeductionApplyRequest(deduction_types_id=dtype["id"], users_ids=[person.id])
    )
    deduction_id = applied["deductions"][0]["id"]

    assert deduction_service.archive_deduction(db_session, deduction_id)["archived_at"] is not None
    with pytest.raises(StateError):
        deduction_service.archive_deduction(db_session, deduction_id)


def test_delete_type_removes_instances(db_session, make_person):
    person = make_person()
    dtype = _fixed_type(db_session, "Canteen", "150")
    deduction_service.apply_deductions(
        db_session, DeductionApplyRequest(deduction_types_id=dtype["id"], users_ids=[person.id])
    )

    result = deduction_service.delete_deduction_type(db_session, dtype["id"])

    assert result["removed_instances"] == 1
    assert db_session.query(DeductionInstance).count() == 0
