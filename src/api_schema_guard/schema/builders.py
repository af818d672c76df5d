"""Builder functions for schema trees.

Route modules import these to describe their query, body and response shapes:

    from api_schema_guard.schema import builders as s

    Query = s.object({"search": s.optional(s.string()), "page": s.integer()})

The ``*_async`` variants mark nodes whose runtime validation would be
asynchronous. Only their shape is ever documented.
"""

from typing import Any, Callable, Iterable, Mapping

from api_schema_guard.errors import ShapeValidationError
from api_schema_guard.schema.nodes import (
    LITERAL_VALUE_TYPES,
    ArraySchema,
    BaseSchema,
    BooleanSchema,
    DateSchema,
    EnumSchema,
    IntegerSchema,
    LiteralSchema,
    NeverSchema,
    NullableSchema,
    NullishSchema,
    NumberSchema,
    ObjectSchema,
    OptionalSchema,
    PipeSchema,
    RecordSchema,
    StringSchema,
    TupleSchema,
    UnionSchema,
    UnknownSchema,
)

# The ``tuple`` builder below shadows the builtin.
_tuple = tuple


def string(*, description: str | None = None) -> StringSchema:
    return StringSchema(description=description)


def number(*, description: str | None = None) -> NumberSchema:
    return NumberSchema(description=description)


def integer(*, description: str | None = None) -> IntegerSchema:
    return IntegerSchema(description=description)


def boolean(*, description: str | None = None) -> BooleanSchema:
    return BooleanSchema(description=description)


def date(*, description: str | None = None) -> DateSchema:
    return DateSchema(description=description)


def never() -> NeverSchema:
    return NeverSchema()


def unknown(*, description: str | None = None) -> UnknownSchema:
    return UnknownSchema(description=description)


def literal(value: Any, *, description: str | None = None) -> LiteralSchema:
    if not isinstance(value, LITERAL_VALUE_TYPES):
        raise ShapeValidationError("literal", f"unsupported literal value {value!r}")
    return LiteralSchema(value=value, description=description)


def enum(values: Iterable[Any], *, description: str | None = None) -> EnumSchema:
    values = _tuple(values)
    if not values:
        raise ShapeValidationError("enum", "must have at least one value")
    if not all(isinstance(v, LITERAL_VALUE_TYPES) for v in values):
        raise ShapeValidationError("enum", "values must be scalars")
    return EnumSchema(values=values, description=description)


def optional(wrapped: BaseSchema, default: Any = None, *, description: str | None = None) -> OptionalSchema:
    return OptionalSchema(wrapped=wrapped, default=default, description=description)


def nullable(wrapped: BaseSchema, *, description: str | None = None) -> NullableSchema:
    return NullableSchema(wrapped=wrapped, description=description)


def nullish(wrapped: BaseSchema, default: Any = None, *, description: str | None = None) -> NullishSchema:
    return NullishSchema(wrapped=wrapped, default=default, description=description)


def pipe(inner: BaseSchema, *actions: Callable[..., Any]) -> PipeSchema:
    return PipeSchema(inner=inner, actions=actions)


def object(entries: Mapping[str, BaseSchema], *, description: str | None = None) -> ObjectSchema:
    return ObjectSchema(entries=entries, description=description)


def array(item: BaseSchema, *, description: str | None = None) -> ArraySchema:
    return ArraySchema(item=item, description=description)


def record(key: BaseSchema, value: BaseSchema, *, description: str | None = None) -> RecordSchema:
    return RecordSchema(key=key, value=value, description=description)


def tuple(items: Iterable[BaseSchema], *, description: str | None = None) -> TupleSchema:
    return TupleSchema(items=_tuple(items), description=description)


def union(options: Iterable[BaseSchema], *, description: str | None = None) -> UnionSchema:
    return UnionSchema(options=_tuple(options), description=description)


def optional_async(wrapped: BaseSchema, default: Any = None) -> OptionalSchema:
    return OptionalSchema(wrapped=wrapped, default=default, is_async=True)


def nullable_async(wrapped: BaseSchema) -> NullableSchema:
    return NullableSchema(wrapped=wrapped, is_async=True)


def nullish_async(wrapped: BaseSchema, default: Any = None) -> NullishSchema:
    return NullishSchema(wrapped=wrapped, default=default, is_async=True)


def pipe_async(inner: BaseSchema, *actions: Callable[..., Any]) -> PipeSchema:
    return PipeSchema(inner=inner, actions=actions, is_async=True)


def object_async(entries: Mapping[str, BaseSchema]) -> ObjectSchema:
    return ObjectSchema(entries=entries, is_async=True)


def array_async(item: BaseSchema) -> ArraySchema:
    return ArraySchema(item=item, is_async=True)


def record_async(key: BaseSchema, value: BaseSchema) -> RecordSchema:
    return RecordSchema(key=key, value=value, is_async=True)


def tuple_async(items: Iterable[BaseSchema]) -> TupleSchema:
    return TupleSchema(items=_tuple(items), is_async=True)


def union_async(options: Iterable[BaseSchema]) -> UnionSchema:
    return UnionSchema(options=_tuple(options), is_async=True)
