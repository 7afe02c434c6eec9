import pytest
from decimal import Decimal
from types import SimpleNamespace

from brgy_payroll.core.exceptions import NetPayFloorError, ValidationError
from brgy_payroll.models.loan import LoanStatus
from brgy_payroll.models.personnel import Personnel, Position
from brgy_payroll.services.obligation_validator import ensure_within_floor, validate


def _person(salary):
    return Personnel(id=7, name="Juan", email="juan@test",
                     position=Position(name="Clerk", basic_salary=Decimal(salary)))


def _loan(amount, percent, status=LoanStatus.ACTIVE, archived_at=None):
    return SimpleNamespace(amount=Decimal(amount), monthly_payment_percent=Decimal(percent),
                           status=status, archived_at=archived_at)


def _deduction(amount, archived_at=None):
    return SimpleNamespace(amount=Decimal(amount), archived_at=archived_at)


def test_rejects_proposal_over_floor():
    """15,000 salary, 6,000/month loan, 6,500 proposal."""
    check = validate(_person("15000"), Decimal("6500"), loans=[_loan("60000", "10")])

    assert not check.ok
    assert check.max_allowed == Decimal("12000.00")
    assert check.existing == Decimal("6000")
    assert check.available == Decimal("6000.00")
    assert check.excess == Decimal("500.00")

    with pytest.raises(NetPayFloorError) as exc:
        ensure_within_floor(check)
    assert isinstance(exc.value, ValidationError)
    assert exc.value.error_code == "NET_PAY_FLOOR_VIOLATION"
    assert "Available: ₱6,000.00" in exc.value.message
    assert exc.value.details["available"] == "6000.00"
    assert exc.value.details["excess"] == "500.00"
    assert exc.value.details["max_allowed"] == "12000.00"


def test_accepts_up_to_exactly_the_floor():
    check = validate(_person("10000"), Decimal("3000"), deductions=[_deduction("5000")])
    assert check.total_obligation == Decimal("8000")
    assert check.ok
    assert ensure_within_floor(check) is check


def test_available_is_clamped_at_zero():
    check = validate(_person("10000"), Decimal("1"), deductions=[_deduction("9000")])
    assert not check.ok
    assert check.available == Decimal("0")


def test_ignores_inactive_and_archived_obligations():
    loans = [
        _loan("50000", "10", status=LoanStatus.COMPLETED),
        _loan("50000", "10", status=LoanStatus.PENDING),
        _loan("50000", "10", archived_at="2025-01-01"),
    ]
    deductions = [_deduction("4000", archived_at="2025-01-01")]
    check = validate(_person("10000"), Decimal("7000"), loans=loans, deductions=deductions)
    assert check.existing == Decimal("0")
    assert check.ok


def test_batch_obligations_count_cumulatively():
    person = _person("10000")
    first = validate(person, Decimal("5000"))
    assert first.ok
    second = validate(person, Decimal("5000"), pending_in_batch=Decimal("5000"))
    assert not second.ok
    assert second.available == Decimal("3000.00")


def test_projected_net_pay_in_details():
    check = validate(_person("15000"), Decimal("6500"), loans=[_loan("60000", "10")])
    assert check.projected_net_pay == Decimal("2500")
    assert check.to_dict()["minimum_net_pay"] == "3000.00"
