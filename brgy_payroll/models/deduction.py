from sqlalchemy import Column, Integer, String, Boolean, Enum, ForeignKey, DateTime, Numeric, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from datetime import datetime, timezone
from brgy_payroll.database import Base
import enum


def _utcnow():
    return datetime.now(timezone.utc)


class CalculationType(str, enum.Enum):
    FIXED = "FIXED"
    PERCENTAGE = "PERCENTAGE"


class DeductionType(Base):
    __tablename__ = "deduction_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, index=True, unique=True, nullable=False)
    description = Column(Text, nullable=True)
    is_mandatory = Column(Boolean, default=False, nullable=False)
    calculation_type = Column(Enum(CalculationType), default=CalculationType.FIXED, nullable=False)
    amount = Column(Numeric(14, 4), nullable=True)  # used when FIXED
    percentage_value = Column(Numeric(7, 4), nullable=True)  # percent of basic salary, used when PERCENTAGE
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    instances = relationship("DeductionInstance", back_populates="deduction_type", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<DeductionType {self.name} ({self.calculation_type})>"


class DeductionInstance(Base):
    __tablename__ = "deductions"

    id = Column(Integer, primary_key=True, index=True)
    users_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    deduction_types_id = Column(Integer, ForeignKey("deduction_types.id"), index=True, nullable=False)
    amount = Column(Numeric(14, 4), nullable=False)
    notes = Column(Text, nullable=True)
    applied_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    archived_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    person = relationship("Personnel", back_populates="deductions")
    deduction_type = relationship("DeductionType", back_populates="instances")
