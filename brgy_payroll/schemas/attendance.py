from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional


class ManualAttendanceInput(BaseModel):
    late_hours: int = Field(default=0, ge=0)
    late_minutes: int = Field(default=0, ge=0)
    absent_days: Decimal = Field(default=Decimal("0"), ge=0)


class AttendanceDeductionCreate(ManualAttendanceInput):
    users_id: int
    notes: Optional[str] = None
    applied_at: Optional[datetime] = None
