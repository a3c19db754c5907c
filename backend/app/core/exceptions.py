class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class ValidationError(AppError):
    """Raised when submitted input is missing or malformed. Never retried."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=422, details=details)

class NotFoundError(AppError):
    """Raised when a referenced class or person does not exist."""
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} with id {resource_id} not found",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )

class ScheduleConflictError(AppError):
    """Raised when a schedule entry changed underneath a substitute assignment."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=409, details=details)

class UpstreamUnavailable(AppError):
    """Raised when the roster, the schedule store or the push gateway cannot be reached."""
    def __init__(self, service: str, message: str | None = None):
        super().__init__(
            message or f"{service} is unavailable",
            status_code=503,
            details={"service": service},
        )

class PushDeliveryError(AppError):
    """A single push leg failed. Captured per recipient, never surfaced to callers."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=502, details=details)
