"""
HTTP rendering of API errors.

Middleware runs outside FastAPI's exception handlers, so it can't just
raise an APIError; both it and the handlers in main.py build responses
through error_response() to keep the body shape identical.
"""

from typing import Optional

from fastapi.responses import JSONResponse

from ..core.context import RequestContext
from ..core.errors import APIError


def error_response(
    error: APIError,
    context: Optional[RequestContext] = None,
) -> JSONResponse:
    """
    Render an APIError as JSON.

    The request's identifiers are included so a client reporting a
    failure can quote them.
    """
    body = error.to_dict()
    if context is not None:
        body.update(context.log_fields())
    return JSONResponse(status_code=error.status_code, content=body)
