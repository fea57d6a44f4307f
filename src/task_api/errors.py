from __future__ import annotations

from typing import Optional


# PUBLIC_INTERFACE
class TaskValidationError(ValueError):
    """
    Raised when a task document fails schema rules.

    Attributes:
    - field: name of the offending field (e.g. "title")
    - message: human readable reason
    """

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


# PUBLIC_INTERFACE
class MalformedIdentifier(ValueError):
    """Raised when a task id does not parse as a store identifier."""

    def __init__(self, value: object) -> None:
        super().__init__(f"Invalid task ID format: {value!r}")
        self.value = value


# PUBLIC_INTERFACE
class StoreFailure(RuntimeError):
    """
    Raised by storage backends when the underlying store operation fails
    (connectivity, server error). Never retried inside this package.
    """

    def __init__(self, operation: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"Store operation '{operation}' failed")
        self.operation = operation
        self.cause = cause
