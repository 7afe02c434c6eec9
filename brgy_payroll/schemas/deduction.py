from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from brgy_payroll.models.deduction import CalculationType


class DeductionTypeCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    is_mandatory: bool = False
    calculation_type: CalculationType = CalculationType.FIXED
    amount: Optional[Decimal] = Field(default=None, ge=0)
    percentage_value: Optional[Decimal] = Field(default=None, gt=0, le=100)

    @model_validator(mode="after")
    def _check_calculation_fields(self):
        if self.calculation_type == CalculationType.FIXED and self.amount is None:
            raise ValueError("amount is required for FIXED deduction types")
        if self.calculation_type == CalculationType.PERCENTAGE and self.percentage_value is None:
            raise ValueError("percentage_value is required for PERCENTAGE deduction types")
        return self


class DeductionTypeUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    is_mandatory: Optional[bool] = None
    is_active: Optional[bool] = None
    calculation_type: Optional[CalculationType] = None
    amount: Optional[Decimal] = Field(default=None, ge=0)
    percentage_value: Optional[Decimal] = Field(default=None, gt=0, le=100)


class DeductionApplyEntry(BaseModel):
    deduction_types_id: int
    notes: Optional[str] = None
    select_all: bool = False
    users_ids: Optional[List[int]] = None
    applied_at: Optional[datetime] = None


class DeductionApplyRequest(BaseModel):
    """
    One or more (type, targets) entries applied in a single all-or-nothing batch.
    A bare entry is accepted and wrapped.
    """
    entries: List[DeductionApplyEntry] = Field(min_length=1)
    confirm_duplicates: bool = False

    @model_validator(mode="before")
    @classmethod
    def _wrap_single_entry(cls, data):
        if isinstance(data, dict) and "entries" not in data and "deduction_types_id" in data:
            confirm = data.get("confirm_duplicates", False)
            entry = {k: v for k, v in data.items() if k != "confirm_duplicates"}
            return {"entries": [entry], "confirm_duplicates": confirm}
        return data
