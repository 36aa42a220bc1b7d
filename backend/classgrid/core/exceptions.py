class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict | None = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class InputError(AppError):
    """Raised when a request references missing or malformed catalog data."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=400, details=details)

class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} with id {resource_id} not found",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )

class ConflictStateError(AppError):
    """Raised when an operation is not allowed in the entity's current lifecycle state."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=409, details=details)

class PersistenceError(AppError):
    """Raised when a unit of work could not be written."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=500, details=details)

class AuditLogImmutableError(AppError):
    """Raised when code attempts to rewrite or delete a recorded audit entry."""
    def __init__(self, log_id: int | None = None):
        super().__init__(
            "Audit log entries are append-only",
            status_code=500,
            details={"log_id": log_id} if log_id is not None else None,
        )