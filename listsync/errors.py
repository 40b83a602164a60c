# listsync/errors.py
# Error hierarchy shared by the record store service and the device-side engine.
# The service renders these as JSON; the HTTP client maps the codes back.

from typing import Optional


class AppError(Exception):
    """Base application error with structured response."""

    def __init__(
        self,
        message: str,
        error_code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        details: Optional[dict] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}


class AccountUnavailableError(AppError):
    """No usable account identity for the record store."""
    def __init__(self, message: str = "Record store account is not available. Please sign in.", details: dict = None):
        super().__init__(
            message=message,
            error_code="NOT_AUTHENTICATED",
            status_code=401,
            details=details
        )


class StoreUnavailableError(AppError):
    """Record store could not be reached or failed to answer."""
    def __init__(self, message: str = "Record store is unavailable", details: dict = None):
        super().__init__(
            message=message,
            error_code="SERVICE_UNAVAILABLE",
            status_code=503,
            details=details
        )


class DatabaseError(StoreUnavailableError):
    """Database operation failed."""
    def __init__(self, message: str = "Database operation failed", details: dict = None):
        super().__init__(message=message, details=details)
        self.error_code = "DATABASE_ERROR"


class RecordNotFoundError(AppError):
    """Record does not exist."""
    def __init__(self, message: str = "Record not found", details: dict = None):
        super().__init__(
            message=message,
            error_code="UNKNOWN_ITEM",
            status_code=404,
            details=details
        )


class InvalidCodeError(AppError):
    """Join code is unknown or its share record is malformed."""
    def __init__(self, message: str = "Invalid code or missing share link.", details: dict = None):
        super().__init__(
            message=message,
            error_code="INVALID_CODE",
            status_code=404,
            details=details
        )


class ShareNotFoundError(AppError):
    """Share locator does not resolve to a share."""
    def __init__(self, message: str = "Share metadata missing.", details: dict = None):
        super().__init__(
            message=message,
            error_code="SHARE_NOT_FOUND",
            status_code=404,
            details=details
        )


class ZoneNotFoundError(AppError):
    """Zone does not exist."""
    def __init__(self, message: str = "Zone not found", details: dict = None):
        super().__init__(
            message=message,
            error_code="ZONE_NOT_FOUND",
            status_code=404,
            details=details
        )


class PermissionDeniedError(AppError):
    """Caller is neither owner nor participant of the zone."""
    def __init__(self, message: str = "Permission denied", details: dict = None):
        super().__init__(
            message=message,
            error_code="PERMISSION_DENIED",
            status_code=403,
            details=details
        )


class ZoneConflictError(AppError):
    """Zone already exists under a different owner."""
    def __init__(self, message: str = "Zone already exists under another owner", details: dict = None):
        super().__init__(
            message=message,
            error_code="ZONE_CONFLICT",
            status_code=409,
            details=details
        )


class SubscriptionExistsError(AppError):
    """Subscription with the same id is already registered."""
    def __init__(self, message: str = "Subscription already exists", details: dict = None):
        super().__init__(
            message=message,
            error_code="SUBSCRIPTION_EXISTS",
            status_code=409,
            details=details
        )


class ValidationError(AppError):
    """Request validation failed."""
    def __init__(self, message: str = "Validation failed", details: dict = None):
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            status_code=400,
            details=details
        )


ERRORS_BY_CODE: dict[str, type[AppError]] = {
    "NOT_AUTHENTICATED": AccountUnavailableError,
    "SERVICE_UNAVAILABLE": StoreUnavailableError,
    "DATABASE_ERROR": DatabaseError,
    "UNKNOWN_ITEM": RecordNotFoundError,
    "INVALID_CODE": InvalidCodeError,
    "SHARE_NOT_FOUND": ShareNotFoundError,
    "ZONE_NOT_FOUND": ZoneNotFoundError,
    "PERMISSION_DENIED": PermissionDeniedError,
    "ZONE_CONFLICT": ZoneConflictError,
    "SUBSCRIPTION_EXISTS": SubscriptionExistsError,
    "VALIDATION_ERROR": ValidationError,
}


def error_from_payload(status_code: int, payload: object) -> AppError:
    """Rebuild an AppError from a JSON error body returned by the service."""
    error = payload.get("error") if isinstance(payload, dict) else None
    if not isinstance(error, dict):
        error = {}
    code = str(error.get("code") or "")
    message = str(error.get("message") or f"Record store returned HTTP {status_code}")
    details = error.get("details") if isinstance(error.get("details"), dict) else None

    error_cls = ERRORS_BY_CODE.get(code)
    if error_cls is not None:
        return error_cls(message, details=details)
    if status_code >= 500:
        return StoreUnavailableError(message, details=details)
    return AppError(message, error_code=code or "HTTP_ERROR", status_code=status_code, details=details)


def user_facing(exc: BaseException) -> str:
    """Short human-readable text for an error."""
    if isinstance(exc, AppError):
        return exc.message
    return str(exc) or type(exc).__name__
