"""
Base class for request/response schemas.

The web client speaks camelCase JSON; Python code uses snake_case.
Aliases bridge the two, and validation errors report the camelCase
name the client actually sent.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Schema with camelCase aliases. Unknown fields are ignored (stripped)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )
