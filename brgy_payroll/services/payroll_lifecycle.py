"""
Payroll entry state machine: PENDING -> RELEASED -> ARCHIVED.

Deletion is allowed from any state and is handled by payroll_service; it is
not a transition.
"""
from brgy_payroll.core.exceptions import StateError
from brgy_payroll.models.payroll import PayrollStatus

ALLOWED_TRANSITIONS = {
    PayrollStatus.PENDING: {PayrollStatus.RELEASED},
    PayrollStatus.RELEASED: {PayrollStatus.ARCHIVED},
    PayrollStatus.ARCHIVED: set(),
}


def can_transition(current: PayrollStatus, target: PayrollStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


def assert_transition(entry, target: PayrollStatus) -> None:
    current = entry.status
    if not can_transition(current, target):
        raise StateError(
            f"Payroll entry {entry.id} cannot move from {current.value} to {target.value}",
            details={"entry_id": entry.id, "from": current.value, "to": target.value},
        )


def assert_pending(entry, action: str = "modify") -> None:
    if entry.status != PayrollStatus.PENDING:
        raise StateError(
            f"Cannot {action} payroll entry {entry.id}: it is {entry.status.value}",
            details={"entry_id": entry.id, "status": entry.status.value},
        )


def is_frozen(entry) -> bool:
    return entry.status in (PayrollStatus.RELEASED, PayrollStatus.ARCHIVED)
