"""
Actor and role dependencies.

Session management lives in the front-end gateway, which forwards the
authenticated user's id in the X-Actor-Id header. These dependencies resolve
that id against the personnel directory and enforce roles.
"""
import logging
from typing import Callable, List, Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from brgy_payroll.core.exceptions import AccessDeniedError
from brgy_payroll.database import get_db
from brgy_payroll.models.personnel import Personnel, UserRole

logger = logging.getLogger(__name__)


def get_current_actor(
    x_actor_id: Optional[str] = Header(default=None, alias="X-Actor-Id"),
    db: Session = Depends(get_db)
) -> Personnel:
    """Resolves the acting user from the gateway header."""
    if not x_actor_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-Actor-Id header")
    try:
        actor_id = int(x_actor_id)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid X-Actor-Id header")

    actor = db.query(Personnel).filter(Personnel.id == actor_id).first()
    if actor is None:
        logger.warning(f"Unknown actor {actor_id}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown actor")
    if not actor.is_active:
        logger.warning(f"Inactive actor {actor_id}")
        raise AccessDeniedError("User is inactive")
    return actor


def require_role(allowed_roles: List[UserRole]) -> Callable:
    """
    Dependency factory that checks if the actor has one of the allowed roles.

    Usage:
        @router.post("/release")
        def release(actor: Personnel = Depends(require_role([UserRole.ADMIN]))):
            ...
    """
    def role_checker(actor: Personnel = Depends(get_current_actor)):
        if actor.role not in allowed_roles:
            required = [r.value for r in allowed_roles]
            raise AccessDeniedError(f"Access denied. Required roles: {required}", required_roles=required)
        return actor
    return role_checker


def require_admin():
    """Shorthand for requiring the ADMIN role."""
    return require_role([UserRole.ADMIN])


def require_self_or_admin(users_id: int, actor: Personnel = Depends(get_current_actor)) -> Personnel:
    """Personnel may read their own payroll; admins may read anyone's."""
    if actor.role != UserRole.ADMIN and actor.id != users_id:
        raise AccessDeniedError("Access denied. You can only view your own payroll.")
    return actor
