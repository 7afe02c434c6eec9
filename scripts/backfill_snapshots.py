"""
One-off migration: write breakdown snapshots for released or archived payroll
entries that predate them.

The breakdown is rebuilt from the current ledger, so any drift from the
stored net pay is printed for manual review.

Usage: python scripts/backfill_snapshots.py [--dry-run]
"""
import sys

from brgy_payroll.core.exceptions import AppException
from brgy_payroll.core.logging import setup_logging
from brgy_payroll.database import SessionLocal
from brgy_payroll.models.payroll import PayrollEntry, PayrollStatus
from brgy_payroll.services import payroll_service


def backfill(dry_run=False):
    db = SessionLocal()
    try:
        entries = db.query(PayrollEntry).filter(
            PayrollEntry.status.in_([PayrollStatus.RELEASED, PayrollStatus.ARCHIVED]),
            PayrollEntry.breakdown_snapshot.is_(None)
        ).order_by(PayrollEntry.id).all()
        print(f"{len(entries)} entries without a snapshot")
        if dry_run:
            for entry in entries:
                print(f" - entry {entry.id} user {entry.users_id} {entry.period_start}..{entry.period_end}")
            return 0

        failed = 0
        for entry in entries:
            try:
                result = payroll_service.backfill_snapshot(db, entry.id)
            except AppException as exc:
                failed += 1
                print(f"Entry {entry.id}: {exc.message}")
                continue
            flag = "" if result["drift"] == "0.00" else "  <-- review"
            print(f"Entry {entry.id}: drift {result['drift']}{flag}")
        return 1 if failed else 0
    finally:
        db.close()


if __name__ == "__main__":
    setup_logging()
    sys.exit(backfill(dry_run="--dry-run" in sys.argv))
