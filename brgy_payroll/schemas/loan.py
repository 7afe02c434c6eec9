from pydantic import BaseModel, Field, model_validator
from datetime import date
from decimal import Decimal
from typing import Optional

from brgy_payroll.models.loan import LoanKind

# Legacy purpose marker for staff deductions stored as loans
STAFF_DEDUCTION_PREFIX = "[DEDUCTION]"


def split_purpose(purpose: Optional[str], kind: Optional[LoanKind] = None):
    """
    Return (kind, purpose) with any `[DEDUCTION]` marker parsed into the kind
    and stripped from the text. An explicit kind wins over the marker.
    """
    text = (purpose or "").strip()
    parsed = LoanKind.LOAN
    if text.upper().startswith(STAFF_DEDUCTION_PREFIX):
        parsed = LoanKind.STAFF_DEDUCTION
        text = text[len(STAFF_DEDUCTION_PREFIX):].strip()
    return (kind or parsed), (text or None)


class _LoanTerms(BaseModel):
    amount: Decimal = Field(gt=0)
    monthly_payment_percent: Decimal = Field(gt=0, le=100)
    term_months: int = Field(gt=0)
    purpose: Optional[str] = None
    kind: Optional[LoanKind] = None

    @model_validator(mode="after")
    def _normalize_purpose(self):
        kind, purpose = split_purpose(self.purpose, self.kind)
        self.kind = kind
        self.purpose = purpose
        return self


class LoanCreate(_LoanTerms):
    """Admin-created loan; starts ACTIVE."""
    users_id: int
    start_date: Optional[date] = None


class LoanRequestCreate(_LoanTerms):
    """Personnel self-service request; starts PENDING."""
    purpose: str = Field(min_length=1)


class LoanRejectRequest(BaseModel):
    reason: Optional[str] = None


class LoanApproveRequest(BaseModel):
    start_date: Optional[date] = None
