"""
API error taxonomy.

Almost every failure the request pipeline produces is a client-input
problem (4xx); unexpected exceptions become a generic 500. Errors
carry everything needed to render the response body, so the HTTP
layer only has to pick a status code and serialize.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional


class ErrorCode(Enum):
    """Machine-readable error codes for client-side handling."""
    FORBIDDEN = "FORBIDDEN"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


# Human-readable label used as the "error" field of response bodies
_ERROR_LABELS = {
    ErrorCode.FORBIDDEN: "Forbidden",
    ErrorCode.VALIDATION_ERROR: "Validation Error",
    ErrorCode.RESOURCE_NOT_FOUND: "Not Found",
    ErrorCode.INTERNAL_SERVER_ERROR: "Internal Server Error",
}


@dataclass(frozen=True)
class FieldViolation:
    """One invalid field: where it is and what is wrong with it."""
    field: str
    message: str
    code: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if self.code is None:
            del data["code"]
        return data


@dataclass(eq=False)
class APIError(Exception):
    """
    Error that maps directly onto an HTTP error response.

    Use the factory methods rather than the constructor so status codes
    and codes stay consistent across the codebase.
    """
    code: ErrorCode
    message: str
    status_code: int = 500
    violations: list[FieldViolation] = field(default_factory=list)

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message

    @property
    def label(self) -> str:
        return _ERROR_LABELS[self.code]

    @classmethod
    def forbidden(cls, message: str = "Access denied") -> "APIError":
        return cls(ErrorCode.FORBIDDEN, message, 403)

    @classmethod
    def validation(
        cls,
        message: str = "Validation failed",
        violations: Optional[list[FieldViolation]] = None,
    ) -> "APIError":
        return cls(ErrorCode.VALIDATION_ERROR, message, 400, list(violations or []))

    @classmethod
    def not_found(cls, resource: str = "Resource") -> "APIError":
        return cls(ErrorCode.RESOURCE_NOT_FOUND, f"{resource} not found", 404)

    @classmethod
    def internal(
        cls,
        message: str = "Internal server error. Please contact support if this persists.",
    ) -> "APIError":
        return cls(ErrorCode.INTERNAL_SERVER_ERROR, message, 500)

    def to_dict(self) -> dict[str, Any]:
        """
        Response body for this error.

        Shape: {"error": label, "message": ..., "details": [{field, message}, ...]}
        "details" is only present for validation errors.
        """
        body: dict[str, Any] = {
            "error": self.label,
            "code": self.code.value,
            "message": self.message,
        }
        if self.code is ErrorCode.VALIDATION_ERROR:
            body["details"] = [v.to_dict() for v in self.violations]
        return body
