"""Async reduction and bounded normalization of schema trees.

Normalization rewrites an arbitrary schema tree into the canonical form the
JSON Schema exporter accepts:

- async nodes are reduced to their synchronous shape (nothing is executed);
- ``date`` becomes ``string`` (JSON Schema has no date primitive);
- ``never`` means "not documentable": object fields holding it are dropped,
  wrappers, arrays, records and tuples around it disappear, unions lose that
  option;
- ``pipe`` layers are removed, only their inner schema survives.

Traversal is bounded by node count, depth, array nesting, object width and
union/tuple width. Exceeding any bound aborts the conversion of the whole
root.

Results are memoized by node identity in a process-wide weak cache. Unchanged
subtrees are returned as-is, so normalizing an already canonical tree returns
the very same object. Every cache entry remembers the footprint of its
subtree (expanded node count, depth, array nesting) and a cache hit charges
that footprint again: a subtree shared by many parents costs as much as the
tree the exporter will eventually walk.
"""

import dataclasses
import weakref
from contextlib import contextmanager
from typing import Any, Iterator, Mapping, NamedTuple

from api_schema_guard.errors import NonConvertibleSchemaError, ResourceLimitError, ShapeValidationError
from api_schema_guard.schema.nodes import (
    ArraySchema,
    BaseSchema,
    DateSchema,
    EnumSchema,
    LiteralSchema,
    NeverSchema,
    NullableSchema,
    NullishSchema,
    ObjectSchema,
    OptionalSchema,
    PipeSchema,
    RecordSchema,
    StringSchema,
    TupleSchema,
    UnionSchema,
    is_async_schema,
    is_schema,
)

MAX_SCHEMA_DEPTH = 32
MAX_SCHEMA_NODES = 10_000
MAX_OBJECT_PROPERTIES = 128
MAX_UNION_OPTIONS = 32
MAX_TUPLE_ITEMS = 32
MAX_ARRAY_NESTING = 16

# Cache markers. A value must never reference its own key, otherwise the
# weak key could not be collected.
_ABSENT = object()
_SAME = object()


class Footprint(NamedTuple):
    """Cost of a normalized subtree, relative to its root."""

    size: int
    height: int
    array_height: int


_normalized_cache: "weakref.WeakKeyDictionary[BaseSchema, tuple[Any, Footprint]]" = weakref.WeakKeyDictionary()


@dataclasses.dataclass
class SchemaBudget:
    """Counters for one root conversion, shared by every recursive call."""

    label: str = "schema"
    node_count: int = 0
    depth: int = 0
    array_depth: int = 0
    deepest: int = 0
    deepest_array: int = 0
    path: list[str] = dataclasses.field(default_factory=list)

    def charge(self, nodes: int = 1) -> None:
        self.node_count += nodes
        if self.node_count > MAX_SCHEMA_NODES:
            raise ResourceLimitError(self.location(), f"schema node limit of {MAX_SCHEMA_NODES} exceeded")

    @contextmanager
    def descend(self, segment: str = "", array: bool = False) -> Iterator["SchemaBudget"]:
        self.depth += 1
        if array:
            self.array_depth += 1
        self.deepest = max(self.deepest, self.depth)
        self.deepest_array = max(self.deepest_array, self.array_depth)
        self.path.append(segment)
        try:
            yield self
        finally:
            self.path.pop()
            self.depth -= 1
            if array:
                self.array_depth -= 1

    def location(self) -> str:
        return self.label + "".join(self.path)


def reduce_async(node: Any, depth: int = 0, budget: SchemaBudget | None = None) -> Any:
    """Rebuild an async schema node as its synchronous structural equivalent.

    Non-async values are returned unchanged. An async pipe is replaced by its
    reduced inner schema. Past ``MAX_SCHEMA_DEPTH`` an empty object is
    returned instead of failing; async behaviour carries nothing worth
    documenting precisely.

    A node shared by several parents is rebuilt once and the copies stay
    shared. With a ``budget`` every rebuilt node is charged against the node
    limit.
    """
    return _reduce(node, depth, budget, {})


def _reduce(node: Any, depth: int, budget: SchemaBudget | None, memo: dict[int, Any]) -> Any:
    if not is_async_schema(node):
        return node

    if depth > MAX_SCHEMA_DEPTH:
        return ObjectSchema(entries={})

    reduced = memo.get(id(node))
    if reduced is not None:
        return reduced
    if budget is not None:
        budget.charge()

    def child(value: Any) -> Any:
        return _reduce(value, depth + 1, budget, memo)

    if isinstance(node, ObjectSchema):
        entries = node.entries if isinstance(node.entries, Mapping) else {}
        reduced = ObjectSchema(
            entries={name: child(value) for name, value in entries.items()},
            description=node.description,
        )
    elif isinstance(node, ArraySchema):
        reduced = ArraySchema(item=child(node.item), description=node.description)
    elif isinstance(node, RecordSchema):
        reduced = RecordSchema(key=child(node.key), value=child(node.value), description=node.description)
    elif isinstance(node, TupleSchema):
        items = node.items if isinstance(node.items, tuple) else ()
        reduced = TupleSchema(items=tuple(child(item) for item in items), description=node.description)
    elif isinstance(node, (OptionalSchema, NullishSchema)):
        reduced = type(node)(wrapped=child(node.wrapped), default=node.default, description=node.description)
    elif isinstance(node, NullableSchema):
        reduced = NullableSchema(wrapped=child(node.wrapped), description=node.description)
    elif isinstance(node, UnionSchema):
        options = node.options if isinstance(node.options, tuple) else ()
        reduced = UnionSchema(options=tuple(child(option) for option in options), description=node.description)
    elif isinstance(node, PipeSchema) and node.inner is not None:
        reduced = child(node.inner)
    else:
        reduced = dataclasses.replace(node, is_async=False)

    memo[id(node)] = reduced
    return reduced


def normalize_schema(node: Any, budget: SchemaBudget) -> BaseSchema | None:
    """Normalize one node. Returns None when the node is not documentable."""
    budget.charge()
    if budget.depth > MAX_SCHEMA_DEPTH:
        raise ResourceLimitError(budget.location(), f"schema depth limit of {MAX_SCHEMA_DEPTH} exceeded")

    if not is_schema(node):
        raise ShapeValidationError(budget.location(), f"unsupported schema node {type(node).__name__}")

    entry = _normalized_cache.get(node)
    if entry is not None:
        return _replay(node, entry, budget)

    original = node
    start = budget.node_count
    outer_deepest, outer_deepest_array = budget.deepest, budget.deepest_array
    budget.deepest, budget.deepest_array = budget.depth, budget.array_depth

    if node.is_async:
        node = reduce_async(node, budget.depth, budget)
        if not is_schema(node):
            raise ShapeValidationError(budget.location(), "async schema reduced to an unsupported node")
        entry = _normalized_cache.get(node)
        result = _replay(node, entry, budget) if entry is not None else _normalize_node(node, budget)
    else:
        result = _normalize_node(node, budget)

    footprint = Footprint(
        size=budget.node_count - start + 1,
        height=budget.deepest - budget.depth,
        array_height=budget.deepest_array - budget.array_depth,
    )
    budget.deepest = max(outer_deepest, budget.deepest)
    budget.deepest_array = max(outer_deepest_array, budget.deepest_array)

    if node is not original:
        _remember(node, result, footprint)
    return _remember(original, result, footprint)


def normalize_root(node: Any, label: str = "schema") -> BaseSchema:
    """Normalize a root schema with a fresh budget.

    Raises ``NonConvertibleSchemaError`` when the whole schema normalizes to
    nothing; there is no fallback to a permissive schema.
    """
    result = normalize_schema(node, SchemaBudget(label=label))
    if result is None:
        raise NonConvertibleSchemaError(label, "non-convertible schema encountered")
    return result


def _normalize_node(node: BaseSchema, budget: SchemaBudget) -> BaseSchema | None:
    if isinstance(node, DateSchema):
        return StringSchema(description=node.description)

    if isinstance(node, NeverSchema):
        return None

    if isinstance(node, (OptionalSchema, NullableSchema, NullishSchema)):
        if node.wrapped is None:
            return None
        with budget.descend():
            child = normalize_schema(node.wrapped, budget)
        if child is None:
            return None
        if child is node.wrapped:
            return node
        return dataclasses.replace(node, wrapped=child)

    if isinstance(node, PipeSchema):
        if node.inner is None:
            return None
        with budget.descend():
            return normalize_schema(node.inner, budget)

    if isinstance(node, ObjectSchema):
        return _normalize_object(node, budget)

    if isinstance(node, ArraySchema):
        _check_array_nesting(budget)
        if node.item is None:
            raise ShapeValidationError(budget.location(), "array schema missing item")
        with budget.descend("[]", array=True):
            item = normalize_schema(node.item, budget)
        if item is None:
            return None
        if item is node.item:
            return node
        return dataclasses.replace(node, item=item)

    if isinstance(node, RecordSchema):
        return _normalize_record(node, budget)

    if isinstance(node, TupleSchema):
        return _normalize_tuple(node, budget)

    if isinstance(node, UnionSchema):
        return _normalize_union(node, budget)

    return node


def _normalize_object(node: ObjectSchema, budget: SchemaBudget) -> ObjectSchema:
    entries = node.entries
    if not isinstance(entries, Mapping) or not all(isinstance(name, str) for name in entries):
        raise ShapeValidationError(budget.location(), "object schema missing entries")
    if len(entries) > MAX_OBJECT_PROPERTIES:
        raise ResourceLimitError(
            budget.location(), f"object schema has more than {MAX_OBJECT_PROPERTIES} properties"
        )

    changed = False
    next_entries = {}
    for name, child in entries.items():
        with budget.descend(f".{name}"):
            normalized = normalize_schema(child, budget)
        if normalized is None:
            changed = True
            continue
        if normalized is not child:
            changed = True
        next_entries[name] = normalized

    if not changed:
        return node
    return dataclasses.replace(node, entries=next_entries)


def _normalize_record(node: RecordSchema, budget: SchemaBudget) -> RecordSchema | None:
    if node.key is None or node.value is None:
        raise ShapeValidationError(budget.location(), "record schema missing key or value")

    with budget.descend("{key}"):
        key = normalize_schema(node.key, budget)
    if not _is_string_key(key):
        raise ShapeValidationError(budget.location(), "record keys must be strings")

    with budget.descend("{}"):
        value = normalize_schema(node.value, budget)
    if value is None:
        return None
    if key is node.key and value is node.value:
        return node
    return dataclasses.replace(node, key=key, value=value)


def _is_string_key(key: BaseSchema | None) -> bool:
    if isinstance(key, StringSchema):
        return True
    if isinstance(key, LiteralSchema):
        return isinstance(key.value, str)
    if isinstance(key, EnumSchema):
        return all(isinstance(value, str) for value in key.values)
    return False


def _normalize_tuple(node: TupleSchema, budget: SchemaBudget) -> TupleSchema | None:
    items = node.items
    if not isinstance(items, tuple):
        raise ShapeValidationError(budget.location(), "tuple schema missing items")
    if len(items) > MAX_TUPLE_ITEMS:
        raise ResourceLimitError(budget.location(), f"tuple schema has more than {MAX_TUPLE_ITEMS} items")
    _check_array_nesting(budget)

    changed = False
    next_items = []
    for index, item in enumerate(items):
        with budget.descend(f"[{index}]", array=True):
            normalized = normalize_schema(item, budget)
        # A position that cannot hold a value makes the whole tuple impossible.
        if normalized is None:
            return None
        if normalized is not item:
            changed = True
        next_items.append(normalized)

    if not changed:
        return node
    return dataclasses.replace(node, items=tuple(next_items))


def _normalize_union(node: UnionSchema, budget: SchemaBudget) -> UnionSchema | None:
    options = node.options
    if not isinstance(options, tuple):
        raise ShapeValidationError(budget.location(), "union schema missing options")
    if len(options) > MAX_UNION_OPTIONS:
        raise ResourceLimitError(budget.location(), f"union schema has more than {MAX_UNION_OPTIONS} options")

    changed = False
    next_options = []
    for index, option in enumerate(options):
        with budget.descend(f"[{index}]"):
            normalized = normalize_schema(option, budget)
        if normalized is None:
            changed = True
            continue
        if normalized is not option:
            changed = True
        next_options.append(normalized)

    if not next_options:
        return None
    if not changed:
        return node
    return dataclasses.replace(node, options=tuple(next_options))


def _check_array_nesting(budget: SchemaBudget) -> None:
    if budget.array_depth > MAX_ARRAY_NESTING:
        raise ResourceLimitError(budget.location(), f"array nesting depth of {MAX_ARRAY_NESTING} exceeded")


def _replay(node: BaseSchema, entry: tuple[Any, Footprint], budget: SchemaBudget) -> BaseSchema | None:
    """Charge a cached subtree to the budget as if it were walked again."""
    marker, footprint = entry
    # The node itself was already charged by the caller.
    budget.charge(footprint.size - 1)
    if budget.depth + footprint.height > MAX_SCHEMA_DEPTH:
        raise ResourceLimitError(budget.location(), f"schema depth limit of {MAX_SCHEMA_DEPTH} exceeded")
    if footprint.array_height and budget.array_depth + footprint.array_height - 1 > MAX_ARRAY_NESTING:
        raise ResourceLimitError(budget.location(), f"array nesting depth of {MAX_ARRAY_NESTING} exceeded")
    budget.deepest = max(budget.deepest, budget.depth + footprint.height)
    budget.deepest_array = max(budget.deepest_array, budget.array_depth + footprint.array_height)
    return _unmark(node, marker)


def _remember(node: BaseSchema, result: BaseSchema | None, footprint: Footprint) -> BaseSchema | None:
    if result is None:
        marker = _ABSENT
    elif result is node:
        marker = _SAME
    else:
        marker = result
    # First writer wins; entries are never overwritten.
    stored, _ = _normalized_cache.setdefault(node, (marker, footprint))
    return _unmark(node, stored)


def _unmark(node: BaseSchema, marker: Any) -> BaseSchema | None:
    if marker is _ABSENT:
        return None
    if marker is _SAME:
        return node
    return marker
