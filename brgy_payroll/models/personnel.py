"""
Personnel directory tables.

Owned by the staff-management side of the system; the payroll engine only
reads them. Salary lives on the position (personnel type), not the person.
"""
from sqlalchemy import Column, Integer, String, Enum, DateTime, Boolean, ForeignKey, Numeric
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from brgy_payroll.database import Base


class UserRole(str, enum.Enum):
    PERSONNEL = "PERSONNEL"
    ADMIN = "ADMIN"


class Position(Base):
    __tablename__ = "personnel_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    department = Column(String, nullable=True)
    basic_salary = Column(Numeric(14, 2), nullable=False)  # monthly

    personnel = relationship("Personnel", back_populates="position")

    def __repr__(self):
        return f"<Position {self.name} ({self.basic_salary})>"


class Personnel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=True)
    email = Column(String, unique=True, index=True, nullable=False)
    role = Column(Enum(UserRole), default=UserRole.PERSONNEL, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    position_id = Column(Integer, ForeignKey("personnel_types.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    position = relationship("Position", back_populates="personnel")
    deductions = relationship("DeductionInstance", back_populates="person", cascade="all, delete-orphan")
    loans = relationship("Loan", back_populates="person", cascade="all, delete-orphan")
    overload_pays = relationship("OverloadPay", back_populates="person", cascade="all, delete-orphan")
    attendance_deductions = relationship("AttendanceDeduction", back_populates="person", cascade="all, delete-orphan")
    payroll_entries = relationship("PayrollEntry", back_populates="person", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Personnel {self.email} ({self.role.value if self.role else None})>"

    @property
    def display_name(self) -> str:
        return self.name or self.email

    @property
    def basic_salary(self):
        """Monthly basic salary from the assigned position, or None if unassigned."""
        if self.position is None:
            return None
        return self.position.basic_salary

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
