from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from decimal import Decimal
from typing import List, Optional


class OverloadPayCreate(BaseModel):
    select_all: bool = False
    users_ids: Optional[List[int]] = None
    type: str = Field(default="OVERTIME", min_length=1)
    amount: Decimal = Field(gt=0)
    notes: Optional[str] = None
    applied_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _normalize_type(self):
        self.type = self.type.strip().upper()
        return self
