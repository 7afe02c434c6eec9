from sqlalchemy import Column, Integer, Enum, ForeignKey, Date, DateTime, Numeric, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from brgy_payroll.database import Base
import enum


class LoanStatus(str, enum.Enum):
    PENDING = "PENDING"  # personnel request awaiting admin decision
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    REJECTED = "REJECTED"


class LoanKind(str, enum.Enum):
    """
    Both variants amortize the same way (percent of principal per month).
    STAFF_DEDUCTION is a fixed-term staff deduction that is not a real loan
    and is shown under its own heading on the payslip.
    """
    LOAN = "LOAN"
    STAFF_DEDUCTION = "STAFF_DEDUCTION"


class Loan(Base):
    __tablename__ = "loans"

    id = Column(Integer, primary_key=True, index=True)
    users_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    kind = Column(Enum(LoanKind), default=LoanKind.LOAN, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)  # principal
    balance = Column(Numeric(14, 4), nullable=False)  # remaining principal
    monthly_payment_percent = Column(Numeric(7, 4), nullable=False)
    term_months = Column(Integer, nullable=False)
    status = Column(Enum(LoanStatus), default=LoanStatus.ACTIVE, nullable=False)
    purpose = Column(Text, nullable=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    archived_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    person = relationship("Personnel", back_populates="loans")

    def __repr__(self):
        return f"<Loan {self.id} {self.kind} {self.status} {self.amount}>"
