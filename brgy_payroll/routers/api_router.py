from fastapi import APIRouter
from brgy_payroll.routers import (
    deduction_types, deductions, loans, overload_pay,
    attendance_deductions, payroll, personnel
)

# Centralized API router hub
# Routers are aggregated here and main.py only imports this single hub.
api_router = APIRouter()

api_router.include_router(deduction_types.router, tags=["Deduction Types"])
api_router.include_router(deductions.router, tags=["Deductions"])
api_router.include_router(loans.router, tags=["Loans"])
api_router.include_router(overload_pay.router, tags=["Additional Pay"])
api_router.include_router(attendance_deductions.router, tags=["Attendance Deductions"])
api_router.include_router(payroll.router, tags=["Payroll"])
api_router.include_router(personnel.router, tags=["Personnel"])
