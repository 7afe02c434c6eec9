from typing import Any, Dict, List, Optional

class AppException(Exception):
    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "BUSINESS_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)

class ConfigurationError(AppException):
    """A deduction type or position is missing a field the computation needs."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=422,
            error_code="CONFIGURATION_ERROR",
            details=details
        )

class ValidationError(AppException):
    """
    Recoverable input/policy rejection.
    Lives in the app namespace; import pydantic's ValidationError under an alias where both are needed.
    """
    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: str = "VALIDATION_ERROR"
    ):
        super().__init__(
            message=message,
            status_code=400,
            error_code=error_code,
            details=details
        )

class InvalidInputError(ValidationError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details, error_code="INVALID_INPUT")

class NetPayFloorError(ValidationError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details, error_code="NET_PAY_FLOOR_VIOLATION")

class BulkOperationError(ValidationError):
    """An all-or-nothing batch was aborted; nothing from the batch was committed."""
    def __init__(
        self,
        message: str,
        index: int,
        reason: str,
        errors: Optional[List[Dict[str, Any]]] = None,
        succeeded: int = 0
    ):
        self.index = index
        self.reason = reason
        self.errors = errors or []
        self.succeeded = succeeded
        super().__init__(
            message,
            details={
                "index": index,
                "reason": reason,
                "errors": self.errors,
                "succeeded": succeeded,
                "committed": 0,
            },
            error_code="BULK_OPERATION_ABORTED"
        )

class NotFoundError(AppException):
    def __init__(self, entity: str, entity_id: Any):
        super().__init__(
            message=f"{entity} {entity_id} not found",
            status_code=404,
            error_code="NOT_FOUND",
            details={"entity": entity, "id": str(entity_id)}
        )

class StateError(AppException):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=409,
            error_code="INVALID_STATE",
            details=details
        )

class AccessDeniedError(AppException):
    """Raised when the acting user's role or identity does not allow the action."""
    def __init__(self, message: str = "Insufficient permissions", required_roles: Optional[List[str]] = None):
        super().__init__(
            message=message,
            status_code=403,
            error_code="PERMISSION_DENIED",
            details={"required_roles": required_roles} if required_roles else None
        )
