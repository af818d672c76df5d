"""Immutable records produced by endpoint sanitization.

All models are frozen. Mapping fields are stored as read-only
``MappingProxyType`` views and sequences as tuples, so nothing reachable from
a sanitized endpoint can be mutated after it is returned.
"""

from types import MappingProxyType
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from api_schema_guard.schema.nodes import BaseSchema

HttpMethod = Literal["DELETE", "GET", "PATCH", "POST", "PUT"]


class _FrozenRecord(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True, populate_by_name=True)


class QueryParameterDoc(_FrozenRecord):
    """Human documentation for one query parameter."""

    description: str | None = None
    example: Any = None
    examples: tuple[Any, ...] | None = None


class ResponseDefinition(_FrozenRecord):
    """One status code's response: a description, a JSON schema shorthand and/or a content map."""

    description: str | None = None
    schema_: BaseSchema | None = Field(default=None, alias="schema")
    content: dict[str, BaseSchema] | None = None

    @field_validator("content", mode="after")
    @classmethod
    def _freeze_content(cls, value):
        return None if value is None else MappingProxyType(value)


class RequestBodyDefinition(_FrozenRecord):
    """A request body described as a media type → schema map."""

    content: dict[str, BaseSchema]
    description: str | None = None
    required: bool | None = None

    @field_validator("content", mode="after")
    @classmethod
    def _freeze_content(cls, value):
        return MappingProxyType(value)


class SanitizedEndpoint(_FrozenRecord):
    """A validated, bounded endpoint definition."""

    method: HttpMethod
    path: str | None = None
    summary: str | None = None
    description: str | None = None
    operation_id: str | None = None
    deprecated: bool | None = None
    tags: tuple[str, ...] = ()
    query: BaseSchema | None = None
    query_params: dict[str, QueryParameterDoc] | None = None
    body: BaseSchema | RequestBodyDefinition | None = None
    responses: dict[str, ResponseDefinition]
    security: tuple[Any, ...] | None = None

    @field_validator("query_params", "responses", mode="after")
    @classmethod
    def _freeze_mapping(cls, value):
        return None if value is None else MappingProxyType(value)


class SanitizedModule(_FrozenRecord):
    """The endpoints one route module exposes, keyed by HTTP method."""

    endpoints: dict[str, SanitizedEndpoint]

    @field_validator("endpoints", mode="after")
    @classmethod
    def _freeze_endpoints(cls, value):
        return MappingProxyType(value)
