"""Custom exceptions for the service layer."""

from typing import Any, Optional


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, code: str = "SERVICE_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(ServiceError):
    """Malformed or out-of-bound input, rejected before any side effect."""

    def __init__(self, message: str, field: Optional[str] = None, code: str = "VALIDATION_ERROR"):
        self.field = field
        super().__init__(message=message, code=code)


class FileTooLargeError(ValidationError):
    """Declared upload size exceeds the configured maximum."""

    def __init__(self, size: int, max_size: int):
        self.size = size
        self.max_size = max_size
        super().__init__(
            message=f"File size exceeds maximum allowed size of {max_size // (1024 * 1024)} MB",
            field="size",
            code="FILE_TOO_LARGE",
        )


class NotFoundError(ServiceError):
    """Resource not found error."""

    def __init__(self, resource_type: str, resource_id: Any):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            message=f"{resource_type} with ID {resource_id} not found",
            code=f"{resource_type.upper()}_NOT_FOUND"
        )


class UploadNotFoundError(NotFoundError):
    """Upload intent not found error."""

    def __init__(self, upload_id: int):
        super().__init__("Upload", upload_id)


class UserNotFoundError(NotFoundError):
    """User not found error."""

    def __init__(self, user_id: str):
        super().__init__("User", user_id)


class AuthenticationError(ServiceError):
    """Authentication failed error."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message=message, code="AUTHENTICATION_FAILED")


class AuthorizationError(ServiceError):
    """Authenticated, but not entitled to the resource."""

    def __init__(self, message: str = "Access denied"):
        super().__init__(message=message, code="ACCESS_DENIED")


class InvalidStatusTransitionError(ServiceError):
    """Requested upload status change is not allowed from the current status."""

    def __init__(self, upload_id: int, current: str, target: str):
        self.upload_id = upload_id
        self.current = current
        self.target = target
        super().__init__(
            message=f"Upload {upload_id} cannot move from {current} to {target}",
            code="INVALID_STATUS_TRANSITION",
        )


class PersistenceError(ServiceError):
    """The database was unreachable or rejected the statement."""

    def __init__(self, message: str = "Persistence failure"):
        super().__init__(message=message, code="PERSISTENCE_ERROR")


class CapabilityIssuerError(ServiceError):
    """Object storage failed to issue a presigned URL or answer a listing."""

    def __init__(self, message: str = "Storage capability could not be issued"):
        super().__init__(message=message, code="CAPABILITY_ISSUER_ERROR")


class IdentityProviderError(ServiceError):
    """The external identity provider rejected the exchange or was unreachable."""

    def __init__(self, message: str = "Identity provider request failed"):
        super().__init__(message=message, code="IDENTITY_PROVIDER_ERROR")
