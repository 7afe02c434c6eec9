"""
Payroll Service Layer

This module owns the persistence side of the payroll lifecycle: generating
PENDING entries, releasing them with a frozen breakdown snapshot, archiving,
deleting, and reading entries back for the summary and payslip views.

Architecture:
- Router -> Service (this module) -> Aggregator / Lifecycle / Models
- Computation is delegated to payroll_aggregator; state rules to payroll_lifecycle
- Every mutating call is one transaction: commit once, or roll back everything
"""

from sqlalchemy.orm import Session
from typing import Dict, Any, List, Optional
from datetime import datetime, timezone
import logging

from pydantic import ValidationError as SchemaValidationError

from brgy_payroll.core.config import settings
from brgy_payroll.core.exceptions import (
    BulkOperationError, ConfigurationError, NotFoundError, StateError,
)
from brgy_payroll.core.money import ZERO, dsum, to_currency
from brgy_payroll.models.attendance_deduction import AttendanceDeduction
from brgy_payroll.models.deduction import DeductionInstance
from brgy_payroll.models.payroll import PayrollEntry, PayrollStatus
from brgy_payroll.models.personnel import Personnel
from brgy_payroll.schemas.payroll import PayPeriod, PayrollBreakdown
from brgy_payroll.services import loan_service, payroll_lifecycle
from brgy_payroll.services.attendance_penalty import DisabledTimeClock, TimeClockSource
from brgy_payroll.services.audit import AuditService
from brgy_payroll.services.payroll_aggregator import aggregate
from brgy_payroll.services.personnel_service import active_personnel, actor_fields, get_person

logger = logging.getLogger(__name__)

# Live time-clock attendance is disabled; swap in a real source here if it returns
_time_clock: TimeClockSource = DisabledTimeClock()


def _entry_to_dict(entry: PayrollEntry) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "users_id": entry.users_id,
        "name": entry.person.display_name if entry.person else None,
        "period_start": entry.period_start.isoformat(),
        "period_end": entry.period_end.isoformat(),
        "basic_salary": str(to_currency(entry.basic_salary)),
        "overtime": str(to_currency(entry.overtime)),
        "deductions": str(to_currency(entry.deductions)),
        "net_pay": str(to_currency(entry.net_pay)),
        "status": entry.status.value,
        "released_at": entry.released_at.isoformat() if entry.released_at else None,
        "archived_at": entry.archived_at.isoformat() if entry.archived_at else None,
    }


def _now() -> datetime:
    return datetime.now(timezone.utc)


def get_entry(db: Session, entry_id: int) -> PayrollEntry:
    entry = db.query(PayrollEntry).filter(PayrollEntry.id == entry_id).first()
    if not entry:
        raise NotFoundError("Payroll entry", entry_id)
    return entry


def _find_entry(db: Session, users_id: int, period: PayPeriod) -> Optional[PayrollEntry]:
    return db.query(PayrollEntry).filter(
        PayrollEntry.users_id == users_id,
        PayrollEntry.period_start == period.start,
        PayrollEntry.period_end == period.end
    ).first()


def _period_entries(db: Session, period: PayPeriod, status: Optional[PayrollStatus] = None):
    query = db.query(PayrollEntry).filter(
        PayrollEntry.period_start == period.start,
        PayrollEntry.period_end == period.end
    )
    if status is not None:
        query = query.filter(PayrollEntry.status == status)
    return query.order_by(PayrollEntry.users_id).all()


def compute_breakdown(db: Session, person: Personnel, period: PayPeriod) -> PayrollBreakdown:
    """Live breakdown for one person from the current ledger state."""
    return aggregate(
        person,
        period,
        deductions=person.deductions,
        loans=person.loans,
        overload_pays=person.overload_pays,
        attendance_deductions=person.attendance_deductions,
        time_clock_records=_time_clock.records_for(person.id, period),
        working_days=settings.payroll.working_days_in_period,
    )


def _write_totals(entry: PayrollEntry, breakdown: PayrollBreakdown) -> None:
    entry.basic_salary = breakdown.gross_pay
    entry.overtime = breakdown.overload_total
    entry.deductions = breakdown.total_deductions
    entry.net_pay = breakdown.net_pay


def load_snapshot(entry: PayrollEntry) -> PayrollBreakdown:
    """
    The frozen breakdown of a released or archived entry.

    Never falls back to recomputing: a missing or inconsistent snapshot is an
    error, and `backfill_snapshot` is the explicit repair path.
    """
    if entry.breakdown_snapshot is None:
        raise StateError(
            f"Payroll entry {entry.id} is {entry.status.value} but has no breakdown snapshot; "
            f"run the snapshot backfill",
            details={"entry_id": entry.id},
        )
    try:
        return PayrollBreakdown.from_snapshot(entry.breakdown_snapshot)
    except SchemaValidationError as exc:
        logger.error(f"Corrupt breakdown snapshot on payroll entry {entry.id}: {exc}")
        raise StateError(
            f"Payroll entry {entry.id} has an inconsistent breakdown snapshot",
            details={
                "entry_id": entry.id,
                "errors": exc.errors(include_url=False, include_context=False, include_input=False),
            },
        )


# --- Generate ---

def generate_payroll(
    db: Session,
    period: PayPeriod,
    users_ids: Optional[List[int]] = None,
    actor=None
) -> Dict[str, Any]:
    """
    Create or overwrite PENDING entries for a period.

    RELEASED and ARCHIVED entries are skipped, never recomputed. A person
    whose salary or deduction setup is incomplete is reported in `errors`;
    everyone else is committed together.
    """
    if users_ids:
        # one entry per (person, period) even when an id is repeated
        people = [get_person(db, uid) for uid in dict.fromkeys(users_ids)]
    else:
        people = active_personnel(db)

    created = overwritten = 0
    skipped: List[Dict[str, Any]] = []
    errors: List[Dict[str, Any]] = []
    entries: List[PayrollEntry] = []

    try:
        for person in people:
            existing = _find_entry(db, person.id, period)
            if existing is not None and payroll_lifecycle.is_frozen(existing):
                skipped.append({"users_id": person.id, "entry_id": existing.id, "status": existing.status.value})
                continue
            try:
                breakdown = compute_breakdown(db, person, period)
            except ConfigurationError as exc:
                errors.append({"users_id": person.id, "reason": exc.message, "code": exc.error_code})
                continue

            if existing is None:
                entry = PayrollEntry(
                    users_id=person.id,
                    period_start=period.start,
                    period_end=period.end,
                    status=PayrollStatus.PENDING,
                )
                db.add(entry)
                created += 1
            else:
                entry = existing
                overwritten += 1
            _write_totals(entry, breakdown)
            entry.breakdown_snapshot = breakdown.to_snapshot()
            entries.append(entry)

        db.flush()
        AuditService.log(
            db, action="generate_payroll", entity_type="payroll_period", entity_id=period.key,
            details={"created": created, "overwritten": overwritten, "skipped": len(skipped), "errors": errors},
            **actor_fields(actor)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    if errors:
        logger.warning(f"Payroll generation for {period.key}: {len(errors)} personnel could not be computed")
    logger.info(f"Generated payroll for {period.key}: created={created} overwritten={overwritten} skipped={len(skipped)}")
    return {
        "period": period.model_dump(mode="json"),
        "created": created,
        "overwritten": overwritten,
        "skipped": skipped,
        "errors": errors,
        "entry_ids": [e.id for e in entries],
    }


def refresh_pending_entry(db: Session, entry_id: int, actor=None) -> Dict[str, Any]:
    entry = get_entry(db, entry_id)
    payroll_lifecycle.assert_pending(entry, action="recompute")
    period = PayPeriod(start=entry.period_start, end=entry.period_end)
    breakdown = compute_breakdown(db, entry.person, period)
    try:
        _write_totals(entry, breakdown)
        entry.breakdown_snapshot = breakdown.to_snapshot()
        AuditService.log(
            db, action="refresh_payroll_entry", entity_type="payroll_entry", entity_id=entry.id,
            details={"net_pay": breakdown.net_pay}, **actor_fields(actor)
        )
        db.commit()
        db.refresh(entry)
    except Exception:
        db.rollback()
        raise
    return {"entry": _entry_to_dict(entry), "breakdown": breakdown.to_snapshot()}


# --- Release ---

def _archive_consumed_items(db: Session, breakdown: PayrollBreakdown, when: datetime):
    """Non-mandatory deductions and attendance deductions are paid once; archive the ones just released."""
    deduction_ids = [line.id for line in breakdown.other_items if line.id is not None]
    attendance_ids = [line.id for line in breakdown.attendance_items if line.id is not None]
    archived_deductions = archived_attendance = 0
    if deduction_ids:
        archived_deductions = db.query(DeductionInstance).filter(
            DeductionInstance.id.in_(deduction_ids),
            DeductionInstance.archived_at.is_(None)
        ).update({DeductionInstance.archived_at: when}, synchronize_session=False)
    if attendance_ids:
        archived_attendance = db.query(AttendanceDeduction).filter(
            AttendanceDeduction.id.in_(attendance_ids),
            AttendanceDeduction.archived_at.is_(None)
        ).update({AttendanceDeduction.archived_at: when}, synchronize_session=False)
    return archived_deductions, archived_attendance


def _archive_previous_periods(db: Session, period: PayPeriod, when: datetime) -> int:
    previous = db.query(PayrollEntry).filter(
        PayrollEntry.status == PayrollStatus.RELEASED,
        PayrollEntry.period_end < period.start
    ).all()
    for entry in previous:
        payroll_lifecycle.assert_transition(entry, PayrollStatus.ARCHIVED)
        entry.status = PayrollStatus.ARCHIVED
        entry.archived_at = when
    return len(previous)


def release_payroll(
    db: Session,
    period: PayPeriod,
    entry_ids: Optional[List[int]] = None,
    actor=None
) -> Dict[str, Any]:
    """
    Release PENDING entries of a period.

    Each entry is recomputed from live state at this instant and its snapshot,
    totals, status and released_at are written in the same transaction as the
    follow-up bookkeeping (consumed items archived, loan payments posted,
    earlier released periods archived). Any failure rolls back all of it.
    """
    if entry_ids:
        entries = db.query(PayrollEntry).filter(PayrollEntry.id.in_(entry_ids)).all()
        found = {e.id for e in entries}
        missing = [i for i in entry_ids if i not in found]
        if missing:
            raise NotFoundError("Payroll entry", ", ".join(str(i) for i in missing))
        for entry in entries:
            if entry.period_start != period.start or entry.period_end != period.end:
                raise StateError(
                    f"Payroll entry {entry.id} belongs to {entry.period_start}..{entry.period_end}, not {period.key}"
                )
    else:
        entries = _period_entries(db, period, PayrollStatus.PENDING)

    if not entries:
        raise StateError(f"No pending payroll entries to release for {period.key}")

    when = _now()
    report = {
        "period": period.model_dump(mode="json"),
        "released": 0,
        "entry_ids": [],
        "archived_previous": 0,
        "archived_deductions": 0,
        "archived_attendance_deductions": 0,
        "loans_posted": 0,
        "loans_completed": 0,
    }
    try:
        for entry in entries:
            payroll_lifecycle.assert_transition(entry, PayrollStatus.RELEASED)
            breakdown = compute_breakdown(db, entry.person, period)
            _write_totals(entry, breakdown)
            entry.breakdown_snapshot = breakdown.to_snapshot()
            entry.status = PayrollStatus.RELEASED
            entry.released_at = when

            archived_d, archived_a = _archive_consumed_items(db, breakdown, when)
            report["archived_deductions"] += archived_d
            report["archived_attendance_deductions"] += archived_a
            if settings.payroll.post_loan_payments_on_release:
                posted, completed = loan_service.post_period_payments(db, breakdown.loan_line_items)
                report["loans_posted"] += posted
                report["loans_completed"] += completed

            report["released"] += 1
            report["entry_ids"].append(entry.id)

        report["archived_previous"] = _archive_previous_periods(db, period, when)
        AuditService.log(
            db, action="release_payroll", entity_type="payroll_period", entity_id=period.key,
            details=report, **actor_fields(actor)
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.error(f"Payroll release for {period.key} failed; nothing was released", exc_info=True)
        raise

    logger.info(f"Released {report['released']} payroll entries for {period.key}")
    return report


# --- Archive / delete ---

def archive_entry(db: Session, entry_id: int, actor=None) -> Dict[str, Any]:
    entry = get_entry(db, entry_id)
    payroll_lifecycle.assert_transition(entry, PayrollStatus.ARCHIVED)
    try:
        entry.status = PayrollStatus.ARCHIVED
        entry.archived_at = _now()
        AuditService.log(
            db, action="archive_payroll_entry", entity_type="payroll_entry", entity_id=entry.id,
            details={"users_id": entry.users_id}, **actor_fields(actor)
        )
        db.commit()
        db.refresh(entry)
    except Exception:
        db.rollback()
        raise
    return _entry_to_dict(entry)


def archive_period(db: Session, period: PayPeriod, actor=None) -> Dict[str, Any]:
    entries = _period_entries(db, period, PayrollStatus.RELEASED)
    if not entries:
        raise StateError(f"No released payroll entries to archive for {period.key}")
    when = _now()
    try:
        for entry in entries:
            payroll_lifecycle.assert_transition(entry, PayrollStatus.ARCHIVED)
            entry.status = PayrollStatus.ARCHIVED
            entry.archived_at = when
        AuditService.log(
            db, action="archive_payroll_period", entity_type="payroll_period", entity_id=period.key,
            details={"archived": len(entries)}, **actor_fields(actor)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Archived {len(entries)} payroll entries for {period.key}")
    return {"period": period.model_dump(mode="json"), "archived": len(entries), "entry_ids": [e.id for e in entries]}


def delete_entries(db: Session, entry_ids: List[int], actor=None) -> Dict[str, Any]:
    """
    Delete entries in any state, all or nothing.

    The first failure rolls back the whole request; the error reports the
    failing index, the reason and how many deletes had gone through before it
    (none of which are committed). A repeated id is deleted once.
    """
    entry_ids = list(dict.fromkeys(entry_ids))
    deleted = 0
    try:
        for index, entry_id in enumerate(entry_ids):
            entry = db.query(PayrollEntry).filter(PayrollEntry.id == entry_id).first()
            if entry is None:
                raise BulkOperationError(
                    f"Payroll entry {entry_id} not found; no entries were deleted",
                    index=index,
                    reason=f"Payroll entry {entry_id} not found",
                    succeeded=deleted,
                )
            db.delete(entry)
            db.flush()
            deleted += 1
        AuditService.log(
            db, action="delete_payroll_entries", entity_type="payroll_entry", entity_id=None,
            details={"entry_ids": entry_ids}, **actor_fields(actor)
        )
        db.commit()
    except BulkOperationError:
        db.rollback()
        raise
    except Exception as exc:
        db.rollback()
        raise BulkOperationError(
            f"Bulk delete aborted at item {deleted}: {exc}; no entries were deleted",
            index=deleted,
            reason=str(exc),
            succeeded=deleted,
        ) from exc

    logger.warning(f"Deleted {deleted} payroll entries: {entry_ids}")
    return {"deleted": deleted, "entry_ids": entry_ids}


def clear_pending(db: Session, period: PayPeriod, actor=None) -> Dict[str, Any]:
    entries = _period_entries(db, period, PayrollStatus.PENDING)
    try:
        for entry in entries:
            db.delete(entry)
        AuditService.log(
            db, action="clear_pending_payroll", entity_type="payroll_period", entity_id=period.key,
            details={"deleted": len(entries)}, **actor_fields(actor)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return {"period": period.model_dump(mode="json"), "deleted": len(entries)}


# --- Read side ---

def get_entry_breakdown(db: Session, entry_id: int) -> Dict[str, Any]:
    """Snapshot for released/archived entries, live computation for PENDING ones."""
    entry = get_entry(db, entry_id)
    if payroll_lifecycle.is_frozen(entry):
        breakdown = load_snapshot(entry)
        source = "snapshot"
    else:
        breakdown = compute_breakdown(db, entry.person, PayPeriod(start=entry.period_start, end=entry.period_end))
        source = "live"
    return {"entry": _entry_to_dict(entry), "source": source, "breakdown": breakdown.to_snapshot()}


def get_period_summary(db: Session, period: PayPeriod) -> Dict[str, Any]:
    entries = _period_entries(db, period)
    return {
        "period": period.model_dump(mode="json"),
        "total_employees": len(entries),
        "total_gross_salary": str(to_currency(dsum(e.basic_salary for e in entries))),
        "total_deductions": str(to_currency(dsum(e.deductions for e in entries))),
        "total_net_salary": str(to_currency(dsum(e.net_pay for e in entries))),
        "has_generated": bool(entries),
        "has_released": any(payroll_lifecycle.is_frozen(e) for e in entries),
        "status_counts": {
            status.value: sum(1 for e in entries if e.status == status) for status in PayrollStatus
        },
        "entries": [_entry_to_dict(e) for e in entries],
    }


def get_latest_payslip(db: Session, users_id: int) -> Dict[str, Any]:
    get_person(db, users_id)
    entry = db.query(PayrollEntry).filter(
        PayrollEntry.users_id == users_id,
        PayrollEntry.status == PayrollStatus.RELEASED
    ).order_by(PayrollEntry.period_end.desc()).first()
    if not entry:
        raise NotFoundError("Released payslip for personnel", users_id)
    return {"entry": _entry_to_dict(entry), "breakdown": load_snapshot(entry).to_snapshot()}


def get_payroll_history(db: Session, users_id: int) -> List[Dict[str, Any]]:
    get_person(db, users_id)
    entries = db.query(PayrollEntry).filter(
        PayrollEntry.users_id == users_id,
        PayrollEntry.status.in_([PayrollStatus.RELEASED, PayrollStatus.ARCHIVED])
    ).order_by(PayrollEntry.period_end.desc()).all()
    return [_entry_to_dict(e) for e in entries]


# --- Migration ---

def backfill_snapshot(db: Session, entry_id: int, actor=None) -> Dict[str, Any]:
    """
    Write a snapshot for a released/archived entry that has none.

    The breakdown is rebuilt from today's ledger state, which may differ from
    what was paid; the stored totals are left untouched and any difference is
    logged and audited for manual review.
    """
    entry = get_entry(db, entry_id)
    if not payroll_lifecycle.is_frozen(entry):
        raise StateError(f"Payroll entry {entry_id} is PENDING; regenerate it instead")
    if entry.breakdown_snapshot is not None:
        raise StateError(f"Payroll entry {entry_id} already has a snapshot")

    period = PayPeriod(start=entry.period_start, end=entry.period_end)
    breakdown = compute_breakdown(db, entry.person, period)
    drift = to_currency(entry.net_pay) - breakdown.net_pay
    try:
        entry.breakdown_snapshot = breakdown.to_snapshot()
        AuditService.log(
            db, action="backfill_snapshot", entity_type="payroll_entry", entity_id=entry.id,
            details={"stored_net_pay": entry.net_pay, "recomputed_net_pay": breakdown.net_pay, "drift": drift},
            **actor_fields(actor)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    if drift != ZERO:
        logger.warning(f"Backfilled snapshot for entry {entry_id} differs from stored net pay by {drift}")
    return {"entry_id": entry_id, "drift": str(drift)}
