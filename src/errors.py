"""
Errors - Exception types raised while reconciling Sentinel alert rules.

Two kinds of remote failure matter to reconcilers: "not found", which is
benign (it drives state removal on read and means "safe to proceed" before a
create), and everything else, which is fatal and surfaced with the operation
and resource ID attached.
"""

from typing import Optional


class SentinelError(Exception):
    """Base class for all sentinelctl errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidResourceIDError(SentinelError):
    """Raised when a string cannot be parsed as the expected Azure resource ID."""


class ValidationError(SentinelError):
    """Raised when a declarative resource spec does not match its schema."""

    def __init__(self, address: str, errors: list[str]):
        self.address = address
        self.errors = errors
        super().__init__(f"{address}: {'; '.join(errors)}")


class AzureAPIError(SentinelError):
    """Raised for any non-successful response from Azure Resource Manager."""

    def __init__(
        self,
        status: int,
        code: Optional[str] = None,
        message: str = "",
        url: Optional[str] = None,
    ):
        self.status = status
        self.code = code
        self.url = url
        detail = f"Status={status}"
        if code:
            detail += f" Code={code!r}"
        if message:
            detail += f" Message={message!r}"
        super().__init__(detail)


class ResourceNotFoundError(AzureAPIError):
    """Raised when Azure Resource Manager answers 404."""


class KindMismatchError(SentinelError):
    """Raised when a remote alert rule is not of the expected kind."""

    def __init__(self, expected: str, actual: str, resource_id: Optional[str] = None):
        self.expected = expected
        self.actual = actual
        self.resource_id = resource_id
        message = (
            f"Sentinel Alert Rule has mismatched kind, "
            f"expected: {expected!r}, got {actual!r}"
        )
        if resource_id:
            message = f"asserting alert rule of {resource_id!r}: {message}"
        super().__init__(message)


class ResourceAlreadyExistsError(SentinelError):
    """Raised when a create finds a rule already present at the target ID."""

    def __init__(self, resource_type: str, resource_id: str):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            f"A resource with the ID {resource_id!r} already exists - to be "
            f"managed by sentinelctl this resource needs to be imported into "
            f"the state. Please see the documentation for {resource_type!r} "
            f"for more information."
        )


class ResourceOperationError(SentinelError):
    """A fatal remote failure, wrapped with the operation and resource ID."""

    def __init__(self, description: str, resource_id: str, cause: Exception):
        self.description = description
        self.resource_id = resource_id
        self.cause = cause
        super().__init__(f"{description} {resource_id!r}: {cause}")


class OperationTimeoutError(SentinelError):
    """Raised when an operation exceeds its deadline."""

    def __init__(self, operation: str, seconds: float):
        self.operation = operation
        self.seconds = seconds
        super().__init__(f"{operation} timed out after {seconds:g}s")
