"""Schema node model.

A schema is a tree of frozen nodes, one class per node kind. Nodes compare
and hash by identity so they can key the weak structural caches used during
normalization and export. Trees are built with the lowercase builder
functions in ``api_schema_guard.schema.builders``:

    object({"search": optional(string()), "page": integer()})
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, ClassVar, Mapping

from api_schema_guard.errors import ShapeValidationError

SUPPORTED_TYPES = frozenset({
    "array",
    "boolean",
    "date",
    "enum",
    "integer",
    "literal",
    "never",
    "nullable",
    "nullish",
    "number",
    "object",
    "optional",
    "pipe",
    "record",
    "string",
    "tuple",
    "union",
    "unknown",
})

LITERAL_VALUE_TYPES = (str, int, float, bool, type(None))


@dataclass(frozen=True, eq=False)
class BaseSchema:
    """Common base for every schema node."""

    kind: ClassVar[str] = "schema"
    type: ClassVar[str] = ""

    is_async: bool = field(default=False, kw_only=True)
    description: str | None = field(default=None, kw_only=True)


@dataclass(frozen=True, eq=False)
class StringSchema(BaseSchema):
    type: ClassVar[str] = "string"


@dataclass(frozen=True, eq=False)
class NumberSchema(BaseSchema):
    type: ClassVar[str] = "number"


@dataclass(frozen=True, eq=False)
class IntegerSchema(BaseSchema):
    type: ClassVar[str] = "integer"


@dataclass(frozen=True, eq=False)
class BooleanSchema(BaseSchema):
    type: ClassVar[str] = "boolean"


@dataclass(frozen=True, eq=False)
class DateSchema(BaseSchema):
    type: ClassVar[str] = "date"


@dataclass(frozen=True, eq=False)
class NeverSchema(BaseSchema):
    type: ClassVar[str] = "never"


@dataclass(frozen=True, eq=False)
class UnknownSchema(BaseSchema):
    type: ClassVar[str] = "unknown"


@dataclass(frozen=True, eq=False)
class LiteralSchema(BaseSchema):
    type: ClassVar[str] = "literal"

    value: Any = None


@dataclass(frozen=True, eq=False)
class EnumSchema(BaseSchema):
    type: ClassVar[str] = "enum"

    values: tuple = ()

    def __post_init__(self):
        object.__setattr__(self, "values", tuple(self.values))


@dataclass(frozen=True, eq=False)
class OptionalSchema(BaseSchema):
    type: ClassVar[str] = "optional"

    wrapped: Any = None
    default: Any = None


@dataclass(frozen=True, eq=False)
class NullableSchema(BaseSchema):
    type: ClassVar[str] = "nullable"

    wrapped: Any = None


@dataclass(frozen=True, eq=False)
class NullishSchema(BaseSchema):
    """May be missing or null."""

    type: ClassVar[str] = "nullish"

    wrapped: Any = None
    default: Any = None


@dataclass(frozen=True, eq=False)
class PipeSchema(BaseSchema):
    """A schema followed by validation/transformation actions.

    Actions are opaque callables; only ``inner`` is ever inspected.
    """

    type: ClassVar[str] = "pipe"

    inner: Any = None
    actions: tuple = ()

    def __post_init__(self):
        object.__setattr__(self, "actions", tuple(self.actions))


@dataclass(frozen=True, eq=False)
class ObjectSchema(BaseSchema):
    type: ClassVar[str] = "object"

    entries: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if isinstance(self.entries, Mapping):
            object.__setattr__(self, "entries", MappingProxyType(dict(self.entries)))


@dataclass(frozen=True, eq=False)
class ArraySchema(BaseSchema):
    type: ClassVar[str] = "array"

    item: Any = None


@dataclass(frozen=True, eq=False)
class RecordSchema(BaseSchema):
    """A string-keyed map whose values all share one schema."""

    type: ClassVar[str] = "record"

    key: Any = None
    value: Any = None


@dataclass(frozen=True, eq=False)
class TupleSchema(BaseSchema):
    type: ClassVar[str] = "tuple"

    items: tuple = ()

    def __post_init__(self):
        if isinstance(self.items, (list, tuple)):
            object.__setattr__(self, "items", tuple(self.items))


@dataclass(frozen=True, eq=False)
class UnionSchema(BaseSchema):
    type: ClassVar[str] = "union"

    options: tuple = ()

    def __post_init__(self):
        if isinstance(self.options, (list, tuple)):
            object.__setattr__(self, "options", tuple(self.options))


def is_schema(value: Any) -> bool:
    """Return True if ``value`` is a genuine, supported schema node.

    Objects that merely look like nodes (dicts with a ``type`` key, foreign
    classes carrying a ``kind`` attribute, subclasses with unknown tags) are
    impostors.
    """
    if not isinstance(value, BaseSchema):
        return False
    if getattr(value, "kind", None) != "schema":
        return False
    node_type = getattr(value, "type", None)
    return isinstance(node_type, str) and node_type in SUPPORTED_TYPES


def assert_schema(value: Any, label: str) -> BaseSchema:
    """Return ``value`` if it is a schema node, raise otherwise."""
    if not is_schema(value):
        raise ShapeValidationError(label, "must be a schema node")
    return value


def is_async_schema(value: Any) -> bool:
    return is_schema(value) and value.is_async is True
