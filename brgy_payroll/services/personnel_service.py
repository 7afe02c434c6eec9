"""
Read-only access to the personnel directory.

Personnel and positions are maintained by the staff-management side; payroll
only looks people up and picks bulk targets.
"""
from sqlalchemy.orm import Session
from typing import Iterable, List, Optional

from brgy_payroll.core.exceptions import InvalidInputError, NotFoundError
from brgy_payroll.models.personnel import Personnel, UserRole


def get_person(db: Session, users_id: int) -> Personnel:
    person = db.query(Personnel).filter(Personnel.id == users_id).first()
    if not person:
        raise NotFoundError("Personnel", users_id)
    return person


def active_personnel(db: Session) -> List[Personnel]:
    return db.query(Personnel).filter(
        Personnel.is_active.is_(True),
        Personnel.role == UserRole.PERSONNEL
    ).order_by(Personnel.id).all()


def resolve_targets(db: Session, select_all: bool, users_ids: Optional[Iterable[int]]) -> List[Personnel]:
    """
    Bulk target selection: every active PERSONNEL when `select_all`,
    otherwise the listed ids in the order given (duplicates kept).
    """
    if select_all:
        people = active_personnel(db)
        if not people:
            raise InvalidInputError("No active personnel found")
        return people

    ids = list(users_ids or [])
    if not ids:
        raise InvalidInputError("No employees selected. Select employees or enable 'select all'")

    found = {p.id: p for p in db.query(Personnel).filter(Personnel.id.in_(set(ids))).all()}
    missing = [i for i in ids if i not in found]
    if missing:
        raise NotFoundError("Personnel", ", ".join(str(i) for i in missing))
    return [found[i] for i in ids]


def actor_fields(actor) -> dict:
    """actor_id / actor_role for audit rows; actor may be None for scripts."""
    if actor is None:
        return {"actor_id": None, "actor_role": "system"}
    return {"actor_id": actor.id, "actor_role": actor.role}
