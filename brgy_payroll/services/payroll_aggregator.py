"""
Payroll Aggregator

Composes resolver, attendance calculator and amortizer output into one
gross-to-net PayrollBreakdown for one person and one PayPeriod.

All inputs are passed in; the caller decides which rows are loaded. Item
amounts keep full precision until each category subtotal is rounded once to
centavos, and the totals are built from those rounded subtotals so that
net_pay == gross_pay - total_deductions holds to the cent.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, List, Optional

from brgy_payroll.core.localtime import local_date
from brgy_payroll.core.money import dsum, to_currency, to_decimal
from brgy_payroll.models.loan import LoanKind
from brgy_payroll.schemas.payroll import (
    AttendanceLine,
    DeductionLine,
    LoanLine,
    OverloadLine,
    PayPeriod,
    PayrollBreakdown,
)
from brgy_payroll.services import attendance_penalty, loan_amortizer
from brgy_payroll.services.deduction_resolver import resolve_basic_salary

logger = logging.getLogger(__name__)


def _overload_lines(overload_pays: Iterable) -> List[tuple]:
    lines = []
    for op in overload_pays:
        if op.archived_at is not None:
            continue
        raw = to_decimal(op.amount)
        lines.append((raw, OverloadLine(
            id=op.id,
            type=op.type,
            amount=to_currency(raw),
            notes=op.notes,
            applied_at=op.applied_at,
        )))
    return lines


def _manual_attendance_description(record) -> str:
    if record.notes:
        return record.notes
    parts = []
    if record.late_minutes:
        hours, minutes = divmod(int(record.late_minutes), 60)
        parts.append(f"Late {hours}h {minutes}m" if hours else f"Late {minutes}m")
    absent = to_decimal(record.absent_days)
    if absent:
        parts.append(f"Absent {absent.normalize():f} day(s)")
    return ", ".join(parts) or "Attendance deduction"


def _attendance_lines(period: PayPeriod, attendance_deductions: Iterable, penalties: Iterable) -> List[tuple]:
    lines = []
    for rec in attendance_deductions:
        if rec.archived_at is not None or not period.ends_on_or_after(rec.applied_at):
            continue
        raw = to_decimal(rec.amount)
        lines.append((raw, AttendanceLine(
            id=rec.id,
            date=local_date(rec.applied_at),
            source="manual",
            description=_manual_attendance_description(rec),
            amount=to_currency(raw),
        )))
    for penalty in penalties:
        lines.append((penalty.amount, AttendanceLine(
            date=penalty.day or period.end,
            source="time_clock",
            description=penalty.description,
            amount=to_currency(penalty.amount),
        )))
    return lines


def _deduction_lines(period: PayPeriod, deductions: Iterable):
    mandatory, other = [], []
    for inst in deductions:
        if inst.archived_at is not None:
            continue
        dtype = inst.deduction_type
        is_mandatory = bool(dtype.is_mandatory) if dtype is not None else False
        # mandatory types recur every period; others only in the period they were applied
        if not is_mandatory and not period.contains(inst.applied_at):
            continue
        raw = to_decimal(inst.amount)
        line = DeductionLine(
            id=inst.id,
            deduction_types_id=inst.deduction_types_id,
            type=dtype.name if dtype is not None else "Deduction",
            description=dtype.description if dtype is not None else None,
            amount=to_currency(raw),
            is_mandatory=is_mandatory,
            applied_at=inst.applied_at,
            notes=inst.notes,
        )
        (mandatory if is_mandatory else other).append((raw, line))
    return mandatory, other


def _loan_lines(period: PayPeriod, loans: Iterable):
    true_loans, staff = [], []
    factor = loan_amortizer.period_factor(period.length_days)
    for loan in loans:
        if not loan_amortizer.is_amortizing(loan):
            continue
        raw = loan_amortizer.compute_period_payment(loan, period.length_days)
        line = LoanLine(
            id=loan.id,
            kind=loan.kind or LoanKind.LOAN,
            purpose=loan.purpose,
            principal=to_currency(loan.amount),
            monthly_payment_percent=to_decimal(loan.monthly_payment_percent),
            monthly_payment=to_currency(loan_amortizer.compute_monthly_payment(loan)),
            period_factor=factor,
            payment=to_currency(raw),
            balance=to_currency(loan.balance),
        )
        (staff if line.kind == LoanKind.STAFF_DEDUCTION else true_loans).append((raw, line))
    return true_loans, staff


def _subtotal(lines) -> Decimal:
    return to_currency(dsum(raw for raw, _ in lines))


def aggregate(
    person,
    period: PayPeriod,
    *,
    deductions: Iterable = (),
    loans: Iterable = (),
    overload_pays: Iterable = (),
    attendance_deductions: Iterable = (),
    time_clock_records: Iterable = (),
    working_days: Optional[int] = None,
    computed_at: Optional[datetime] = None,
) -> PayrollBreakdown:
    monthly_basic = to_currency(resolve_basic_salary(person))

    overload = _overload_lines(overload_pays)
    overload_total = _subtotal(overload)
    gross_pay = monthly_basic + overload_total

    daily = attendance_penalty.daily_salary(monthly_basic, working_days)
    penalties = attendance_penalty.penalties_from_time_clock(time_clock_records, daily)
    attendance = _attendance_lines(period, attendance_deductions, penalties)
    attendance_total = _subtotal(attendance)

    mandatory, other = _deduction_lines(period, deductions)
    mandatory_total = _subtotal(mandatory)
    other_total = _subtotal(other)

    true_loans, staff = _loan_lines(period, loans)
    loan_total = _subtotal(true_loans + staff)

    total_deductions = attendance_total + mandatory_total + other_total + loan_total
    net_pay = gross_pay - total_deductions
    if net_pay < 0:
        logger.warning(
            f"Negative net pay for user {person.id} in {period.key}: "
            f"gross={gross_pay} deductions={total_deductions} net={net_pay}"
        )

    return PayrollBreakdown(
        users_id=person.id,
        name=getattr(person, "display_name", None),
        period=period,
        computed_at=computed_at or datetime.now(timezone.utc),
        monthly_basic_salary=monthly_basic,
        overload_total=overload_total,
        gross_pay=gross_pay,
        attendance_total=attendance_total,
        mandatory_total=mandatory_total,
        other_total=other_total,
        loan_total=loan_total,
        total_deductions=total_deductions,
        net_pay=net_pay,
        overload_items=[line for _, line in overload],
        attendance_items=[line for _, line in attendance],
        mandatory_items=[line for _, line in mandatory],
        other_items=[line for _, line in other],
        loan_items=[line for _, line in true_loans],
        staff_deduction_items=[line for _, line in staff],
    )
