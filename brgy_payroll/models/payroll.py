from sqlalchemy import (
    Column, Integer, Date, DateTime, Enum, ForeignKey, Numeric, JSON,
    UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from brgy_payroll.database import Base
import enum

class PayrollStatus(str, enum.Enum):
    PENDING = "PENDING"
    RELEASED = "RELEASED"
    ARCHIVED = "ARCHIVED"

class PayrollEntry(Base):
    __tablename__ = "payroll_entries"
    __table_args__ = (
        UniqueConstraint("users_id", "period_start", "period_end", name="uq_payroll_entry_person_period"),
        # A released or archived entry always carries its frozen breakdown
        CheckConstraint(
            "status = 'PENDING' OR breakdown_snapshot IS NOT NULL",
            name="ck_payroll_entry_snapshot_present",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    users_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    period_start = Column(Date, nullable=False, index=True)
    period_end = Column(Date, nullable=False, index=True)
    basic_salary = Column(Numeric(14, 2), nullable=False)  # base + overload, as stored
    overtime = Column(Numeric(14, 2), default=0, nullable=False)  # overload pay total
    deductions = Column(Numeric(14, 2), default=0, nullable=False)
    net_pay = Column(Numeric(14, 2), nullable=False)
    status = Column(Enum(PayrollStatus, native_enum=False), default=PayrollStatus.PENDING, nullable=False)
    breakdown_snapshot = Column(JSON(none_as_null=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    released_at = Column(DateTime(timezone=True), nullable=True)
    archived_at = Column(DateTime(timezone=True), nullable=True)

    person = relationship("Personnel", back_populates="payroll_entries")

    def __repr__(self):
        return f"<PayrollEntry {self.id} user={self.users_id} {self.period_start}..{self.period_end} {self.status}>"
