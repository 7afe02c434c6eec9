"""
ORM-level freeze of released payroll entries.

Once an entry has been RELEASED its breakdown snapshot and money columns are
final. SQLAlchemy fires `before_update` before the SQL is emitted, so a
violating flush raises StateError and nothing reaches the database.

The previous status and snapshot are read from the row as stored rather than
from attribute history, which is empty for expired instances.

Allowed on a released/archived row: RELEASED -> ARCHIVED, archived_at,
updated_at, and writing a snapshot where the stored one is NULL (backfill).
The PENDING -> RELEASED flush itself is allowed because the stored status is
still PENDING.
"""
import logging

from sqlalchemy import event, inspect, select

from brgy_payroll.core.exceptions import StateError
from brgy_payroll.models.payroll import PayrollEntry, PayrollStatus

logger = logging.getLogger(__name__)

FROZEN_COLUMNS = (
    "breakdown_snapshot",
    "basic_salary",
    "overtime",
    "deductions",
    "net_pay",
    "users_id",
    "period_start",
    "period_end",
    "released_at",
)

_FROZEN_STATES = (PayrollStatus.RELEASED, PayrollStatus.ARCHIVED)


def _stored_row(connection, entry_id):
    table = PayrollEntry.__table__
    return connection.execute(
        select(table.c.status, table.c.breakdown_snapshot).where(table.c.id == entry_id)
    ).first()


def _check_payroll_entry_update(mapper, connection, target):
    state = inspect(target)
    changed = [key for key in FROZEN_COLUMNS if state.attrs[key].history.has_changes()]
    status_changed = state.attrs["status"].history.has_changes()
    if not changed and not status_changed:
        return

    stored = _stored_row(connection, target.id)
    if stored is None or stored.status not in _FROZEN_STATES:
        return
    previous_status = stored.status

    if changed == ["breakdown_snapshot"] and stored.breakdown_snapshot is None:
        # first snapshot for a row released before snapshots existed (backfill)
        return
    if changed:
        logger.warning(
            f"Blocked update of frozen payroll entry {target.id}: {', '.join(changed)}"
        )
        raise StateError(
            f"Payroll entry {target.id} is {previous_status.value}; its breakdown is frozen",
            details={"entry_id": target.id, "fields": changed},
        )

    new_status = target.status
    if new_status != previous_status and (
        previous_status == PayrollStatus.ARCHIVED or new_status == PayrollStatus.PENDING
    ):
        raise StateError(
            f"Payroll entry {target.id} cannot move from {previous_status.value} to {new_status.value}",
            details={"entry_id": target.id},
        )


def register_snapshot_guards():
    if not event.contains(PayrollEntry, "before_update", _check_payroll_entry_update):
        event.listen(PayrollEntry, "before_update", _check_payroll_entry_update)
