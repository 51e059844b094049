"""
Route-level validation dependencies.

Validation is opt-in per route: a route lists the schemas it needs and
gets back normalized models.

    @router.post("")
    async def create(payload: Annotated[NoteCreate, Depends(validate_body(NoteCreate))]):
        ...

validate_request() checks several request parts at once and reports the
violations of all of them together, with field paths prefixed by the
part ("body.title", "query.limit").

Validated models are also kept on request.state.validated[target].
"""

import json
from typing import Any, Awaitable, Callable, Optional

from fastapi import Request
from pydantic import BaseModel

from ..core.errors import APIError, FieldViolation
from ..core.validation import collect_violations, validate_payload

TARGETS = ("body", "query", "params")


async def read_json_body(request: Request) -> tuple[Any, list[FieldViolation]]:
    """
    Parse the request body as JSON.

    An empty body reads as {} so schemas report missing fields instead
    of a parse error. Starlette caches the body, so dependencies that
    read it again get the same bytes.
    """
    raw = await request.body()
    if not raw.strip():
        return {}, []
    try:
        return json.loads(raw), []
    except ValueError:
        return None, [FieldViolation(
            field="body",
            message="Request body is not valid JSON",
            code="json_invalid",
        )]


async def _read_target(request: Request, target: str) -> tuple[Any, list[FieldViolation]]:
    if target == "body":
        return await read_json_body(request)
    if target == "query":
        return dict(request.query_params), []
    return dict(request.path_params), []


def _remember(request: Request, target: str, model: BaseModel) -> None:
    validated = getattr(request.state, "validated", None)
    if validated is None:
        validated = {}
        request.state.validated = validated
    validated[target] = model


def validate_request(
    body: Optional[type[BaseModel]] = None,
    query: Optional[type[BaseModel]] = None,
    params: Optional[type[BaseModel]] = None,
) -> Callable[[Request], Awaitable[dict[str, BaseModel]]]:
    """
    Build a dependency validating several request parts in one pass.

    The dependency returns {target: model}. Field paths in violations
    are prefixed with the target name.
    """
    schemas = {"body": body, "query": query, "params": params}
    targets = [(target, schemas[target]) for target in TARGETS if schemas[target] is not None]
    if not targets:
        raise ValueError("validate_request() needs at least one schema")

    async def dependency(request: Request) -> dict[str, BaseModel]:
        violations: list[FieldViolation] = []
        validated: dict[str, BaseModel] = {}

        for target, schema in targets:
            data, read_errors = await _read_target(request, target)
            if read_errors:
                violations.extend(read_errors)
                continue
            model, target_violations = collect_violations(schema, data, target=target)
            if target_violations:
                violations.extend(target_violations)
            else:
                validated[target] = model

        if violations:
            raise APIError.validation("Validation failed", violations)

        for target, model in validated.items():
            _remember(request, target, model)
        return validated

    return dependency


def _validate_target(target: str, schema: type[BaseModel]) -> Callable[[Request], Awaitable[BaseModel]]:
    async def dependency(request: Request) -> BaseModel:
        data, violations = await _read_target(request, target)
        if violations:
            raise APIError.validation("Validation failed", violations)
        model = validate_payload(schema, data)
        _remember(request, target, model)
        return model

    dependency.__name__ = f"validate_{target}_{schema.__name__}"
    return dependency


def validate_body(schema: type[BaseModel]) -> Callable[[Request], Awaitable[BaseModel]]:
    """Dependency validating the JSON body against schema."""
    return _validate_target("body", schema)


def validate_query(schema: type[BaseModel]) -> Callable[[Request], Awaitable[BaseModel]]:
    """Dependency validating query parameters against schema."""
    return _validate_target("query", schema)


def validate_params(schema: type[BaseModel]) -> Callable[[Request], Awaitable[BaseModel]]:
    """Dependency validating path parameters against schema."""
    return _validate_target("params", schema)
