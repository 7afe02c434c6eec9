from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Numeric, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from datetime import datetime, timezone
from brgy_payroll.database import Base
import enum


class OverloadPayType(str, enum.Enum):
    OVERTIME = "OVERTIME"
    OVERLOAD = "OVERLOAD"


class OverloadPay(Base):
    """Additional pay on top of the basic salary. `type` also accepts custom labels."""
    __tablename__ = "overload_pays"

    id = Column(Integer, primary_key=True, index=True)
    users_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    type = Column(String, default=OverloadPayType.OVERTIME.value, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    notes = Column(Text, nullable=True)
    applied_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    archived_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    person = relationship("Personnel", back_populates="overload_pays")
