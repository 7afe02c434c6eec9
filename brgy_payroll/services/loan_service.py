"""
Loan Service Layer

Loan and staff-deduction workflow (admin create, personnel request, approve,
reject, cancel, archive) and the payment posting run on payroll release.
"""
import logging
from calendar import monthrange
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from brgy_payroll.core.exceptions import NotFoundError, StateError
from brgy_payroll.core.localtime import local_date
from brgy_payroll.core.money import ZERO, to_currency, to_decimal
from brgy_payroll.models.loan import Loan, LoanStatus
from brgy_payroll.schemas.loan import LoanCreate, LoanRequestCreate
from brgy_payroll.services import loan_amortizer, obligation_validator
from brgy_payroll.services.audit import AuditService
from brgy_payroll.services.personnel_service import actor_fields, get_person

logger = logging.getLogger(__name__)


def add_months(start: date, months: int) -> date:
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, monthrange(year, month)[1])
    return date(year, month, day)


def _loan_to_dict(loan: Loan) -> Dict[str, Any]:
    return {
        "id": loan.id,
        "users_id": loan.users_id,
        "name": loan.person.display_name if loan.person else None,
        "kind": loan.kind.value,
        "amount": str(to_currency(loan.amount)),
        "balance": str(to_currency(loan.balance)),
        "monthly_payment_percent": str(to_decimal(loan.monthly_payment_percent)),
        "monthly_payment": str(to_currency(loan_amortizer.compute_monthly_payment(loan))),
        "term_months": loan.term_months,
        "status": loan.status.value,
        "purpose": loan.purpose,
        "start_date": loan.start_date.isoformat() if loan.start_date else None,
        "end_date": loan.end_date.isoformat() if loan.end_date else None,
        "archived_at": loan.archived_at.isoformat() if loan.archived_at else None,
    }


def get_loan(db: Session, loan_id: int) -> Loan:
    loan = db.query(Loan).filter(Loan.id == loan_id).first()
    if not loan:
        raise NotFoundError("Loan", loan_id)
    return loan


def _check_floor(person, loan_like) -> None:
    proposed = loan_amortizer.compute_monthly_payment(loan_like)
    check = obligation_validator.validate(
        person, proposed,
        loans=[other for other in person.loans if other is not loan_like],
        deductions=person.deductions,
    )
    obligation_validator.ensure_within_floor(check)


def _activate(loan: Loan, start: Optional[date]) -> None:
    loan.status = LoanStatus.ACTIVE
    loan.start_date = start or local_date(datetime.now(timezone.utc))
    loan.end_date = add_months(loan.start_date, loan.term_months)


def list_loans(
    db: Session,
    users_id: Optional[int] = None,
    status: Optional[LoanStatus] = None,
    archived: bool = False
) -> List[Dict[str, Any]]:
    query = db.query(Loan)
    if archived:
        query = query.filter(Loan.archived_at.isnot(None))
    else:
        query = query.filter(Loan.archived_at.is_(None))
    if users_id is not None:
        query = query.filter(Loan.users_id == users_id)
    if status is not None:
        query = query.filter(Loan.status == status)
    return [_loan_to_dict(item) for item in query.order_by(Loan.id.desc()).all()]


def create_loan(db: Session, data: LoanCreate, actor=None) -> Dict[str, Any]:
    """Admin-created loan. Starts ACTIVE, so the net-pay floor is checked now."""
    person = get_person(db, data.users_id)
    loan = Loan(
        users_id=person.id,
        kind=data.kind,
        amount=data.amount,
        balance=data.amount,
        monthly_payment_percent=data.monthly_payment_percent,
        term_months=data.term_months,
        purpose=data.purpose,
    )
    _check_floor(person, loan)
    _activate(loan, data.start_date)
    try:
        db.add(loan)
        db.flush()
        AuditService.log(
            db, action="create_loan", entity_type="loan", entity_id=loan.id,
            details={"users_id": person.id}, after_state=_loan_to_dict(loan), **actor_fields(actor)
        )
        db.commit()
        db.refresh(loan)
    except Exception:
        db.rollback()
        raise
    logger.info(f"Created {loan.kind.value} {loan.id} for user {person.id}: {loan.amount}")
    return _loan_to_dict(loan)


def request_loan(db: Session, users_id: int, data: LoanRequestCreate) -> Dict[str, Any]:
    """Personnel request. Stays PENDING until an admin decides; the floor is checked on approval."""
    person = get_person(db, users_id)
    loan = Loan(
        users_id=person.id,
        kind=data.kind,
        amount=data.amount,
        balance=data.amount,
        monthly_payment_percent=data.monthly_payment_percent,
        term_months=data.term_months,
        purpose=data.purpose,
        status=LoanStatus.PENDING,
    )
    try:
        db.add(loan)
        db.flush()
        AuditService.log(
            db, action="request_loan", entity_type="loan", entity_id=loan.id,
            actor_id=person.id, actor_role=person.role,
            details={"amount": data.amount, "term_months": data.term_months}
        )
        db.commit()
        db.refresh(loan)
    except Exception:
        db.rollback()
        raise
    return _loan_to_dict(loan)


def approve_loan(db: Session, loan_id: int, start_date: Optional[date] = None, actor=None) -> Dict[str, Any]:
    loan = get_loan(db, loan_id)
    if loan.status != LoanStatus.PENDING:
        raise StateError(f"Loan {loan_id} is {loan.status.value}; only PENDING requests can be approved")
    _check_floor(loan.person, loan)
    try:
        _activate(loan, start_date)
        AuditService.log(
            db, action="approve_loan", entity_type="loan", entity_id=loan.id,
            details={"users_id": loan.users_id}, after_state=_loan_to_dict(loan), **actor_fields(actor)
        )
        db.commit()
        db.refresh(loan)
    except Exception:
        db.rollback()
        raise
    logger.info(f"Approved loan {loan_id} for user {loan.users_id}")
    return _loan_to_dict(loan)


def reject_loan(db: Session, loan_id: int, reason: Optional[str] = None, actor=None) -> Dict[str, Any]:
    loan = get_loan(db, loan_id)
    if loan.status != LoanStatus.PENDING:
        raise StateError(f"Loan {loan_id} is {loan.status.value}; only PENDING requests can be rejected")
    try:
        loan.status = LoanStatus.REJECTED
        if reason:
            loan.purpose = f"{loan.purpose or ''} | Rejected: {reason}".lstrip(" |")
        AuditService.log(
            db, action="reject_loan", entity_type="loan", entity_id=loan.id,
            details={"reason": reason}, **actor_fields(actor)
        )
        db.commit()
        db.refresh(loan)
    except Exception:
        db.rollback()
        raise
    return _loan_to_dict(loan)


def cancel_loan(db: Session, loan_id: int, actor=None) -> Dict[str, Any]:
    loan = get_loan(db, loan_id)
    if loan.status not in (LoanStatus.ACTIVE, LoanStatus.PENDING):
        raise StateError(f"Loan {loan_id} is {loan.status.value} and cannot be cancelled")
    try:
        previous = loan.status.value
        loan.status = LoanStatus.CANCELLED
        AuditService.log(
            db, action="cancel_loan", entity_type="loan", entity_id=loan.id,
            details={"previous_status": previous, "balance": loan.balance}, **actor_fields(actor)
        )
        db.commit()
        db.refresh(loan)
    except Exception:
        db.rollback()
        raise
    return _loan_to_dict(loan)


def archive_loan(db: Session, loan_id: int, actor=None) -> Dict[str, Any]:
    loan = get_loan(db, loan_id)
    if loan.archived_at is not None:
        raise StateError(f"Loan {loan_id} is already archived")
    try:
        loan.archived_at = datetime.now(timezone.utc)
        AuditService.log(
            db, action="archive_loan", entity_type="loan", entity_id=loan.id,
            details={"status": loan.status.value}, **actor_fields(actor)
        )
        db.commit()
        db.refresh(loan)
    except Exception:
        db.rollback()
        raise
    return _loan_to_dict(loan)


def post_period_payments(db: Session, loan_lines: Iterable) -> Tuple[int, int]:
    """
    Post the released period's scheduled loan payments against balances.

    Runs inside the caller's release transaction and does not commit. A loan
    whose balance reaches zero is marked COMPLETED and archived. Returns
    (posted, completed).
    """
    posted = completed = 0
    for line in loan_lines:
        if line.id is None:
            continue
        loan = db.query(Loan).filter(Loan.id == line.id).first()
        if loan is None or not loan_amortizer.is_amortizing(loan):
            continue
        loan.balance = max(ZERO, to_decimal(loan.balance) - to_decimal(line.payment))
        posted += 1
        if loan.balance == ZERO:
            loan.status = LoanStatus.COMPLETED
            loan.archived_at = datetime.now(timezone.utc)
            completed += 1
            logger.info(f"Loan {loan.id} fully paid; marked COMPLETED")
    return posted, completed
