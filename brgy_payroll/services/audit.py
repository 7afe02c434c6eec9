from decimal import Decimal
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from brgy_payroll.services.base import BaseService
from brgy_payroll.models.audit_log import AuditLog


def _sanitize(obj):
    """JSON-safe copy of details/state payloads (pydantic models, Decimals, enums, dates)."""
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json")
    if isinstance(obj, dict):
        return {str(k): _sanitize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set)):
        return [_sanitize(i) for i in obj]
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    return obj


class AuditService(BaseService):
    def log_action(
        self,
        action: str,
        entity_type: str,
        entity_id: Optional[Any],
        actor_id: Optional[int] = None,
        actor_role: Optional[str] = None,
        details: Optional[dict] = None,
        before_state: Optional[dict] = None,
        after_state: Optional[dict] = None
    ):
        """
        Append an audit row to the current session.
        Not committed here: the row lands in the same transaction as the action
        it describes, so a rolled-back action leaves no audit trace.
        """
        db_log = AuditLog(
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            actor_id=actor_id,
            actor_role=getattr(actor_role, "value", actor_role),
            details=_sanitize(details or {}),
            before_state=_sanitize(before_state),
            after_state=_sanitize(after_state)
        )
        self.db.add(db_log)
        self.db.flush()
        self._logger.debug(f"Audit {action} on {entity_type} {entity_id}")
        return db_log

    # Static wrapper used by the function-style services
    @staticmethod
    def log(db, *args, **kwargs):
        service = AuditService(db)
        return service.log_action(*args, **kwargs)
