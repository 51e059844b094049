"""
Access-reason gate for privacy-sensitive resources.

Some resources (coach notes flagged by their author) may only be opened
when the caller states why. The justification ends up in the resource's
audit trail, so it has to be more than a token effort.

The gate is a plain predicate over the resource already resolved for the
request. It knows nothing about HTTP beyond the three places a reason
can come from.
"""

from typing import Any, Optional, Protocol

from .errors import APIError, FieldViolation

ACCESS_REASON_HEADER = "X-Access-Reason"
ACCESS_REASON_PARAM = "reasonForAccess"
DEFAULT_MIN_REASON_LENGTH = 5


class PrivacyFlags(Protocol):
    """The privacy attributes the gate looks at."""
    require_reason_for_access: bool
    sensitive_content: bool


def requires_access_reason(resource: Any) -> bool:
    """
    Does opening this resource need a justification?

    True when the resource has a privacy object with either the explicit
    require-reason flag or the general sensitive-content flag. Resources
    without privacy settings (or no resource at all) pass freely.
    """
    if resource is None:
        return False
    privacy: Optional[PrivacyFlags] = getattr(resource, "privacy", None)
    if privacy is None:
        return False
    return bool(
        getattr(privacy, "require_reason_for_access", False)
        or getattr(privacy, "sensitive_content", False)
    )


def extract_access_reason(
    header: Optional[str] = None,
    query: Optional[str] = None,
    body: Any = None,
) -> Optional[str]:
    """
    Pick the caller's justification.

    Precedence: header, then query parameter, then body field. Blank
    values count as absent, like blank id headers. The first non-blank
    source wins even if it turns out too short. Body values that aren't
    strings are ignored.
    """
    for candidate in (header, query, body):
        if isinstance(candidate, str) and candidate.strip():
            return candidate
    return None


def enforce_access_reason(
    resource: Any,
    header: Optional[str] = None,
    query: Optional[str] = None,
    body: Any = None,
    min_length: int = DEFAULT_MIN_REASON_LENGTH,
) -> Optional[str]:
    """
    Apply the gate.

    Returns None when the resource doesn't need a reason, otherwise the
    trimmed reason.

    Raises:
        APIError: validation error if the reason is missing or shorter
            than min_length after trimming
    """
    if not requires_access_reason(resource):
        return None

    raw = extract_access_reason(header=header, query=query, body=body)
    reason = raw.strip() if raw is not None else ""

    if len(reason) < min_length:
        message = (
            f"Access to this resource requires a reason. Provide the "
            f"{ACCESS_REASON_HEADER} header or the {ACCESS_REASON_PARAM} "
            f"parameter with at least {min_length} characters."
        )
        raise APIError.validation(message, [
            FieldViolation(
                field=ACCESS_REASON_PARAM,
                message=f"Reason for access must be at least {min_length} characters",
                code="too_short" if reason else "missing",
            )
        ])

    return reason
