# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import (
    personnel, deduction, loan, overload_pay,
    attendance_deduction, payroll, audit_log
)
from .immutability import register_snapshot_guards

# Explicit class exports for cleaner imports
from .personnel import Personnel, Position, UserRole
from .deduction import DeductionType, DeductionInstance, CalculationType
from .loan import Loan, LoanStatus, LoanKind
from .overload_pay import OverloadPay, OverloadPayType
from .attendance_deduction import AttendanceDeduction
from .payroll import PayrollEntry, PayrollStatus
from .audit_log import AuditLog

register_snapshot_guards()

__all__ = [
    "Personnel",
    "Position",
    "UserRole",
    "DeductionType",
    "DeductionInstance",
    "CalculationType",
    "Loan",
    "LoanStatus",
    "LoanKind",
    "OverloadPay",
    "OverloadPayType",
    "AttendanceDeduction",
    "PayrollEntry",
    "PayrollStatus",
    "AuditLog",
]
