"""
Loan Amortizer

Scheduled per-period payment of a loan or fixed-term staff deduction. Only
computes; balances are moved by the payment posting in loan_service.
"""
from decimal import Decimal
from typing import Optional

from brgy_payroll.core.config import settings
from brgy_payroll.core.money import HUNDRED, ZERO, to_decimal
from brgy_payroll.models.loan import LoanStatus

HALF = Decimal("0.5")
FULL = Decimal("1")


def period_factor(period_length_days: int, semi_monthly_max_days: Optional[int] = None) -> Decimal:
    limit = settings.payroll.semi_monthly_max_days if semi_monthly_max_days is None else semi_monthly_max_days
    return HALF if period_length_days <= limit else FULL


def compute_monthly_payment(loan) -> Decimal:
    return to_decimal(loan.amount) * to_decimal(loan.monthly_payment_percent) / HUNDRED


def is_amortizing(loan) -> bool:
    return loan.status == LoanStatus.ACTIVE and loan.archived_at is None


def compute_period_payment(loan, period_length_days: int) -> Decimal:
    if not is_amortizing(loan):
        return ZERO
    return compute_monthly_payment(loan) * period_factor(period_length_days)
