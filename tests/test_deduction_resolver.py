import pytest
from decimal import Decimal

from brgy_payroll.core.exceptions import ConfigurationError
from brgy_payroll.models.deduction import CalculationType, DeductionType
from brgy_payroll.models.personnel import Personnel, Position
from brgy_payroll.services.deduction_resolver import resolve, resolve_basic_salary


def _person(salary):
    return Personnel(id=1, email="p@test", position=Position(name="Clerk", basic_salary=Decimal(salary)))


def test_percentage_deduction_of_salary():
    """20,000 at 4.5% resolves to exactly 900.00."""
    dtype = DeductionType(name="PhilHealth", calculation_type=CalculationType.PERCENTAGE,
                          percentage_value=Decimal("4.5"))
    amount = resolve(dtype, _person("20000.00"))
    assert amount == Decimal("900.00")


@pytest.mark.parametrize("salary,percent", [
    ("15333.33", "3.25"),
    ("18000.10", "2.75"),
    ("27500.00", "0.1"),
])
def test_percentage_is_exact_decimal(salary, percent):
    dtype = DeductionType(name="X", calculation_type=CalculationType.PERCENTAGE,
                          percentage_value=Decimal(percent))
    assert resolve(dtype, _person(salary)) == Decimal(salary) * Decimal(percent) / Decimal("100")


def test_fixed_deduction_ignores_salary():
    dtype = DeductionType(name="Pag-IBIG", calculation_type=CalculationType.FIXED, amount=Decimal("200.00"))
    assert resolve(dtype, _person("12000.00")) == Decimal("200.00")


def test_percentage_without_value_is_configuration_error():
    dtype = DeductionType(id=9, name="Broken", calculation_type=CalculationType.PERCENTAGE)
    with pytest.raises(ConfigurationError) as exc:
        resolve(dtype, _person("20000.00"))
    assert "no percentage value" in exc.value.message


def test_fixed_without_amount_is_configuration_error():
    dtype = DeductionType(name="Empty", calculation_type=CalculationType.FIXED)
    with pytest.raises(ConfigurationError):
        resolve(dtype, _person("20000.00"))


def test_person_without_position_is_configuration_error():
    dtype = DeductionType(name="GSIS", calculation_type=CalculationType.PERCENTAGE,
                          percentage_value=Decimal("9"))
    person = Personnel(id=5, email="nopos@test")
    with pytest.raises(ConfigurationError):
        resolve(dtype, person)
    with pytest.raises(ConfigurationError):
        resolve_basic_salary(person)
