from sqlalchemy import Column, Integer, ForeignKey, DateTime, Numeric, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from datetime import datetime, timezone
from brgy_payroll.database import Base


class AttendanceDeduction(Base):
    """One manually entered lateness/absence incident."""
    __tablename__ = "attendance_deductions"

    id = Column(Integer, primary_key=True, index=True)
    users_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    late_minutes = Column(Integer, default=0, nullable=False)  # late hours folded in
    absent_days = Column(Numeric(5, 2), default=0, nullable=False)
    amount = Column(Numeric(14, 4), nullable=False)
    notes = Column(Text, nullable=True)
    applied_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    archived_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    person = relationship("Personnel", back_populates="attendance_deductions")
