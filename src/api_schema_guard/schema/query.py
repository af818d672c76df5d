"""Query schema unwrapping.

OpenAPI query parameters are a flat, fixed list, so a query schema must be an
object, possibly behind optional/nullable/nullish/pipe wrappers, or a union
whose branches all expose exactly the same fields.
"""

from typing import Any, Mapping

from api_schema_guard.errors import ResourceLimitError, ShapeValidationError
from api_schema_guard.schema.nodes import (
    BaseSchema,
    NullableSchema,
    NullishSchema,
    ObjectSchema,
    OptionalSchema,
    PipeSchema,
    UnionSchema,
    assert_schema,
)

MAX_QUERY_WRAPPER_DEPTH = 8


def unwrap_query_schema(schema: Any, label: str = "endpoint.query", depth: int = 0) -> BaseSchema:
    """Return an object-shaped schema usable for query parameters, or raise.

    Wrappers are stripped one layer at a time. A union is validated, not
    restructured: when every branch unwraps to an object with the same field
    names, the original union is returned.
    """
    if depth > MAX_QUERY_WRAPPER_DEPTH:
        raise ResourceLimitError(label, "maximum wrapper depth exceeded")

    node = assert_schema(schema, label)

    if isinstance(node, ObjectSchema):
        if not isinstance(node.entries, Mapping):
            raise ShapeValidationError(label, "object schema missing entries")
        return node

    if isinstance(node, (OptionalSchema, NullableSchema, NullishSchema)):
        if node.wrapped is None:
            raise ShapeValidationError(label, f'{node.type} schema missing "wrapped"')
        return unwrap_query_schema(node.wrapped, label, depth + 1)

    if isinstance(node, PipeSchema):
        if node.inner is None:
            raise ShapeValidationError(label, 'pipe schema missing "inner"')
        return unwrap_query_schema(node.inner, label, depth + 1)

    if isinstance(node, UnionSchema):
        _union_field_names(node, label, depth)
        return node

    raise ShapeValidationError(
        label, "must be an object schema or a union/pipe/optional/nullable/nullish of objects"
    )


def query_field_names(schema: Any, label: str = "endpoint.query") -> tuple[str, ...]:
    """Top-level field names of a query schema, in declaration order."""
    node = unwrap_query_schema(schema, label)
    if isinstance(node, UnionSchema):
        return _union_field_names(node, label, 0)
    return tuple(node.entries)


def _union_field_names(node: UnionSchema, label: str, depth: int) -> tuple[str, ...]:
    options = node.options
    if not isinstance(options, tuple) or not options:
        raise ShapeValidationError(label, "union schema missing options")

    base: tuple[str, ...] | None = None
    for index, option in enumerate(options):
        unwrapped = unwrap_query_schema(option, f"{label}.unionOption[{index}]", depth + 1)
        if isinstance(unwrapped, UnionSchema):
            names = _union_field_names(unwrapped, label, depth + 1)
        else:
            names = tuple(unwrapped.entries)
        if base is None:
            base = names
        elif len(base) != len(names) or set(base) != set(names):
            raise ShapeValidationError(
                label,
                "union branches must expose identical fields "
                f"(option 0: {sorted(base)}, option {index}: {sorted(names)})",
            )
    return base
