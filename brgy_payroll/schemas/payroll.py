from calendar import monthrange
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from brgy_payroll.core.localtime import local_date
from brgy_payroll.models.loan import LoanKind


class PayPeriod(BaseModel):
    """
    Inclusive pay period. Every engine call receives one explicitly; nothing in
    the engine derives "the current period" from the clock.
    """
    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    @model_validator(mode="after")
    def _check_order(self):
        if self.end < self.start:
            raise ValueError(f"period end {self.end} is before start {self.start}")
        return self

    @property
    def length_days(self) -> int:
        return (self.end - self.start).days + 1

    def contains(self, moment) -> bool:
        if moment is None:
            return False
        day = local_date(moment)
        return self.start <= day <= self.end

    def ends_on_or_after(self, moment) -> bool:
        if moment is None:
            return False
        day = local_date(moment)
        return day <= self.end

    @property
    def key(self) -> str:
        return f"{self.start.isoformat()}_{self.end.isoformat()}"

    @classmethod
    def semi_monthly_containing(cls, day: date) -> "PayPeriod":
        """1st-15th or 16th-end of month around `day`."""
        if day.day <= 15:
            return cls(start=day.replace(day=1), end=day.replace(day=15))
        last = monthrange(day.year, day.month)[1]
        return cls(start=day.replace(day=16), end=day.replace(day=last))

    @classmethod
    def month_containing(cls, day: date) -> "PayPeriod":
        last = monthrange(day.year, day.month)[1]
        return cls(start=day.replace(day=1), end=day.replace(day=last))


# --- Breakdown snapshot ---

class OverloadLine(BaseModel):
    id: Optional[int] = None
    type: str
    amount: Decimal
    notes: Optional[str] = None
    applied_at: Optional[datetime] = None


class AttendanceLine(BaseModel):
    id: Optional[int] = None
    date: date
    source: str  # "manual" or "time_clock"
    description: str
    amount: Decimal


class DeductionLine(BaseModel):
    id: Optional[int] = None
    deduction_types_id: Optional[int] = None
    type: str
    description: Optional[str] = None
    amount: Decimal
    is_mandatory: bool
    applied_at: Optional[datetime] = None
    notes: Optional[str] = None


class LoanLine(BaseModel):
    id: Optional[int] = None
    kind: LoanKind
    purpose: Optional[str] = None
    principal: Decimal
    monthly_payment_percent: Decimal
    monthly_payment: Decimal
    period_factor: Decimal
    payment: Decimal
    balance: Decimal


class PayrollBreakdown(BaseModel):
    """
    Gross-to-net itemization for one person and one period.

    This is exactly what gets frozen on release. Loading a snapshot runs the
    same identity checks as computing one, so a tampered or truncated
    snapshot fails loudly instead of displaying inconsistent figures.
    """
    snapshot_version: int = 1
    users_id: int
    name: Optional[str] = None
    period: PayPeriod
    computed_at: datetime

    monthly_basic_salary: Decimal
    overload_total: Decimal
    gross_pay: Decimal

    attendance_total: Decimal
    mandatory_total: Decimal
    other_total: Decimal
    loan_total: Decimal
    total_deductions: Decimal
    net_pay: Decimal

    overload_items: List[OverloadLine] = Field(default_factory=list)
    attendance_items: List[AttendanceLine] = Field(default_factory=list)
    mandatory_items: List[DeductionLine] = Field(default_factory=list)
    other_items: List[DeductionLine] = Field(default_factory=list)
    loan_items: List[LoanLine] = Field(default_factory=list)
    staff_deduction_items: List[LoanLine] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_identity(self):
        if self.gross_pay != self.monthly_basic_salary + self.overload_total:
            raise ValueError(
                f"gross_pay {self.gross_pay} != basic {self.monthly_basic_salary} + overload {self.overload_total}"
            )
        parts = self.attendance_total + self.mandatory_total + self.other_total + self.loan_total
        if self.total_deductions != parts:
            raise ValueError(f"total_deductions {self.total_deductions} != sum of categories {parts}")
        if self.net_pay != self.gross_pay - self.total_deductions:
            raise ValueError(
                f"net_pay {self.net_pay} != gross {self.gross_pay} - deductions {self.total_deductions}"
            )
        return self

    @property
    def loan_line_items(self) -> List[LoanLine]:
        return self.loan_items + self.staff_deduction_items

    def to_snapshot(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_snapshot(cls, data: Dict[str, Any]) -> "PayrollBreakdown":
        return cls.model_validate(data)


# --- API payloads ---

class PeriodRequest(BaseModel):
    period_start: date
    period_end: date

    def to_period(self) -> PayPeriod:
        return PayPeriod(start=self.period_start, end=self.period_end)


class GeneratePayrollRequest(PeriodRequest):
    users_ids: Optional[List[int]] = None


class ReleasePayrollRequest(PeriodRequest):
    entry_ids: Optional[List[int]] = None


class ArchivePayrollRequest(PeriodRequest):
    pass


class DeleteEntriesRequest(BaseModel):
    entry_ids: List[int] = Field(min_length=1)
