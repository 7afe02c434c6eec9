"""
Obligation Validator

Decides whether a person can take on a new monthly obligation (deduction or
loan) without net pay falling under the floor. Runs only when an obligation
is created; existing obligations are never re-checked.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional
import logging

from brgy_payroll.core.config import settings
from brgy_payroll.core.exceptions import NetPayFloorError
from brgy_payroll.core.money import HUNDRED, ZERO, dsum, peso, to_currency, to_decimal
from brgy_payroll.models.loan import LoanStatus
from brgy_payroll.services.deduction_resolver import resolve_basic_salary

logger = logging.getLogger(__name__)


@dataclass
class ObligationCheck:
    users_id: Optional[int]
    basic_salary: Decimal
    floor_ratio: Decimal
    existing_loan_monthly: Decimal
    existing_deduction_monthly: Decimal
    proposed: Decimal
    pending_in_batch: Decimal = ZERO
    name: Optional[str] = field(default=None)

    @property
    def existing(self) -> Decimal:
        return self.existing_loan_monthly + self.existing_deduction_monthly + self.pending_in_batch

    @property
    def total_obligation(self) -> Decimal:
        return self.existing + self.proposed

    @property
    def max_allowed(self) -> Decimal:
        return self.basic_salary * (Decimal("1") - self.floor_ratio)

    @property
    def minimum_net_pay(self) -> Decimal:
        return self.basic_salary * self.floor_ratio

    @property
    def available(self) -> Decimal:
        return max(ZERO, self.max_allowed - self.existing)

    @property
    def excess(self) -> Decimal:
        return max(ZERO, self.total_obligation - self.max_allowed)

    @property
    def projected_net_pay(self) -> Decimal:
        return self.basic_salary - self.total_obligation

    @property
    def ok(self) -> bool:
        return self.total_obligation <= self.max_allowed

    def message(self) -> str:
        who = self.name or f"Personnel {self.users_id}"
        floor_pct = (self.floor_ratio * HUNDRED).normalize()
        cap_pct = ((Decimal("1") - self.floor_ratio) * HUNDRED).normalize()
        return (
            f"{who}: total monthly obligations would exceed {cap_pct:f}% of basic salary. "
            f"Available: {peso(self.available)} (maximum {peso(self.max_allowed)}, "
            f"existing {peso(self.existing)}); proposed {peso(self.proposed)} exceeds by {peso(self.excess)}. "
            f"Net pay must stay at or above {floor_pct:f}% ({peso(self.minimum_net_pay)}); "
            f"projected net pay {peso(self.projected_net_pay)}."
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "users_id": self.users_id,
            "basic_salary": str(to_currency(self.basic_salary)),
            "existing_loan_monthly": str(to_currency(self.existing_loan_monthly)),
            "existing_deduction_monthly": str(to_currency(self.existing_deduction_monthly)),
            "existing": str(to_currency(self.existing)),
            "proposed": str(to_currency(self.proposed)),
            "total_obligation": str(to_currency(self.total_obligation)),
            "max_allowed": str(to_currency(self.max_allowed)),
            "available": str(to_currency(self.available)),
            "excess": str(to_currency(self.excess)),
            "minimum_net_pay": str(to_currency(self.minimum_net_pay)),
            "projected_net_pay": str(to_currency(self.projected_net_pay)),
        }


def loan_monthly_obligation(loans: Iterable) -> Decimal:
    """Sum of amount * percent / 100 over ACTIVE, non-archived loans."""
    return dsum(
        to_decimal(loan.amount) * to_decimal(loan.monthly_payment_percent) / HUNDRED
        for loan in loans
        if loan.status == LoanStatus.ACTIVE and loan.archived_at is None
    )


def deduction_monthly_obligation(deductions: Iterable) -> Decimal:
    return dsum(d.amount for d in deductions if d.archived_at is None)


def validate(
    person,
    proposed_monthly_amount,
    loans: Iterable = (),
    deductions: Iterable = (),
    pending_in_batch=ZERO,
    floor_ratio: Optional[Decimal] = None,
) -> ObligationCheck:
    """
    Build the obligation check for `person`.

    `pending_in_batch` carries obligations already accepted earlier in the
    same batch request for this person, so two rows for the same person in
    one bulk call are validated cumulatively.
    """
    ratio = to_decimal(settings.payroll.net_pay_floor_ratio if floor_ratio is None else floor_ratio)
    return ObligationCheck(
        users_id=getattr(person, "id", None),
        name=getattr(person, "display_name", None),
        basic_salary=resolve_basic_salary(person),
        floor_ratio=ratio,
        existing_loan_monthly=loan_monthly_obligation(loans),
        existing_deduction_monthly=deduction_monthly_obligation(deductions),
        proposed=to_decimal(proposed_monthly_amount),
        pending_in_batch=to_decimal(pending_in_batch),
    )


def ensure_within_floor(check: ObligationCheck) -> ObligationCheck:
    if not check.ok:
        logger.info(
            f"Net-pay floor rejection for user {check.users_id}: "
            f"proposed={check.proposed} available={check.available}"
        )
        raise NetPayFloorError(check.message(), details=check.to_dict())
    return check
