"""Exception hierarchy for the recommendation service.

Every application error carries the HTTP status it maps to.
"""

from typing import Any


class AppException(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response format."""
        return {
            "success": False,
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details,
            },
        }


class ValidationError(AppException):
    """Invalid or missing request parameters."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            message=message,
            status_code=400,
            error_code="VALIDATION_ERROR",
            details=details,
        )


class NotFoundError(AppException):
    """Entity not found."""

    def __init__(self, resource: str, identifier: str) -> None:
        super().__init__(
            message=f"{resource} not found: {identifier}",
            status_code=404,
            error_code="NOT_FOUND",
            details={"resource": resource, "identifier": identifier},
        )


class UpstreamError(AppException):
    """Cache, queue or database connection failure."""

    def __init__(self, service_name: str, reason: str = "Unknown") -> None:
        super().__init__(
            message=f"Upstream service unavailable: {service_name} ({reason})",
            status_code=503,
            error_code="UPSTREAM_UNAVAILABLE",
            details={"service": service_name, "reason": reason},
        )


class ComputationError(AppException):
    """A scoring or job-processing step failed."""

    def __init__(self, stage: str, reason: str = "Unknown error") -> None:
        super().__init__(
            message=f"Computation failed in {stage}: {reason}",
            status_code=500,
            error_code="COMPUTATION_ERROR",
            details={"stage": stage, "reason": reason},
        )


class RequestTimeoutError(AppException):
    """The request deadline elapsed before a result was ready."""

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(
            message=f"Request exceeded deadline of {timeout_seconds}s",
            status_code=504,
            error_code="REQUEST_TIMEOUT",
            details={"timeout_seconds": timeout_seconds},
        )


class ConfigurationError(AppException):
    """Environment or configuration is unusable; the process cannot start."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            message=message,
            status_code=500,
            error_code="CONFIGURATION_ERROR",
            details=details,
        )
