"""
Declarative request validation.

Schemas are Pydantic models. Pydantic already validates a whole object
in one pass and reports every problem it finds, which is exactly the
contract we need: a client fixing a form should see all of its mistakes
at once, not one per round trip.

This module stays independent of FastAPI; api/validation.py wires it
into route dependencies.
"""

import logging
from typing import Any, Iterable, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import APIError, FieldViolation

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)


def format_violations(
    errors: Iterable[dict[str, Any]],
    prefix: Optional[str] = None,
) -> list[FieldViolation]:
    """
    Convert Pydantic error dicts into FieldViolations.

    The field path is the dotted error location ("privacy.accessLevel",
    "tags.2"), optionally prefixed with the request part it came from.
    """
    violations = []
    for error in errors:
        path = ".".join(str(part) for part in error.get("loc", ()))
        if prefix:
            path = f"{prefix}.{path}" if path else prefix
        violations.append(FieldViolation(
            field=path,
            message=error.get("msg", "Invalid value"),
            code=error.get("type"),
        ))
    return violations


def collect_violations(
    schema: type[SchemaT],
    data: Any,
    target: Optional[str] = None,
) -> tuple[Optional[SchemaT], list[FieldViolation]]:
    """
    Validate data against schema without raising.

    Returns (model, []) on success and (None, violations) on failure.
    Used when several request parts must be checked before failing.
    """
    try:
        return schema.model_validate(data), []
    except ValidationError as e:
        return None, format_violations(e.errors(), prefix=target)


def validate_payload(
    schema: type[SchemaT],
    data: Any,
    target: Optional[str] = None,
) -> SchemaT:
    """
    Validate data against schema, raising on any violation.

    The returned model is normalized: unknown fields are dropped and
    defaults applied.

    Raises:
        APIError: validation error carrying every violation found
    """
    model, violations = collect_violations(schema, data, target)
    if violations:
        logger.debug(
            "Payload failed validation",
            extra={
                "schema": schema.__name__,
                "violation_count": len(violations),
            }
        )
        raise APIError.validation("Validation failed", violations)
    return model


# ---------------------------------------------------------------------------
# File Rules
# ---------------------------------------------------------------------------

def mime_type_allowed(mime_type: str, allowed: Iterable[str]) -> bool:
    """
    Check a MIME type against allowed patterns.

    A pattern ending in "/*" accepts a whole family ("audio/*" accepts
    "audio/mpeg"); anything else must match exactly.
    """
    mime_type = mime_type.strip().lower()
    for pattern in allowed:
        if pattern.endswith("/*"):
            if mime_type.startswith(pattern[:-1]):
                return True
        elif mime_type == pattern:
            return True
    return False


def check_file_rules(
    size_bytes: int,
    mime_type: str,
    max_size_bytes: int,
    allowed_mime_types: list[str],
    prefix: Optional[str] = None,
) -> list[FieldViolation]:
    """Size and type checks for a declared upload. Returns all violations."""
    def _field(name: str) -> str:
        return f"{prefix}.{name}" if prefix else name

    violations = []
    if size_bytes > max_size_bytes:
        violations.append(FieldViolation(
            field=_field("sizeBytes"),
            message=f"File size exceeds maximum allowed size of {max_size_bytes} bytes",
            code="file_too_large",
        ))
    if not mime_type_allowed(mime_type, allowed_mime_types):
        violations.append(FieldViolation(
            field=_field("mimeType"),
            message=(
                f"File type {mime_type} is not allowed. "
                f"Allowed types: {', '.join(allowed_mime_types)}"
            ),
            code="invalid_file_type",
        ))
    return violations
