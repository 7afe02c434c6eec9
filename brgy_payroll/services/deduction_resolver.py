"""
Deduction Rule Resolver

Turns a DeductionType definition plus a person's monthly salary into a
concrete peso amount. Pure: no session, no clock, no side effects.
"""
from decimal import Decimal

from brgy_payroll.core.exceptions import ConfigurationError
from brgy_payroll.core.money import HUNDRED, to_decimal
from brgy_payroll.models.deduction import CalculationType


def resolve_basic_salary(person) -> Decimal:
    """
    Monthly basic salary of a person, read through their position.

    Raises ConfigurationError when the person has no position or the
    position carries no salary.
    """
    salary = getattr(person, "basic_salary", None)
    if salary is None:
        raise ConfigurationError(
            f"Personnel {getattr(person, 'id', '?')} has no assigned position or basic salary",
            details={"users_id": getattr(person, "id", None)},
        )
    return to_decimal(salary)


def resolve(deduction_type, person) -> Decimal:
    """
    Resolve the amount of one deduction for one person.

    FIXED returns the type's amount. PERCENTAGE returns
    basic_salary * percentage_value / 100 with no intermediate rounding.
    """
    if deduction_type.calculation_type == CalculationType.PERCENTAGE:
        if deduction_type.percentage_value is None:
            raise ConfigurationError(
                f"Deduction type '{deduction_type.name}' is PERCENTAGE but has no percentage value",
                details={"deduction_types_id": deduction_type.id},
            )
        salary = resolve_basic_salary(person)
        return salary * to_decimal(deduction_type.percentage_value) / HUNDRED

    if deduction_type.amount is None:
        raise ConfigurationError(
            f"Deduction type '{deduction_type.name}' is FIXED but has no amount",
            details={"deduction_types_id": deduction_type.id},
        )
    return to_decimal(deduction_type.amount)
