"""JSON Schema export for normalized schema trees.

The normalized tree is translated into the equivalent pydantic types and
pydantic produces the JSON Schema. The result is made embeddable in an
OpenAPI document: ``$defs`` references are inlined (they would otherwise
resolve against the document root), and ``$schema`` and generated ``title``
keywords are dropped.
"""

import copy
import itertools
import weakref
from typing import Annotated, Any, Iterator, Literal, Optional, Union

from pydantic import Field, TypeAdapter, create_model

from api_schema_guard.diagnostics import Diagnostics
from api_schema_guard.errors import ShapeValidationError
from api_schema_guard.schema.nodes import (
    ArraySchema,
    BaseSchema,
    BooleanSchema,
    EnumSchema,
    IntegerSchema,
    LiteralSchema,
    NullableSchema,
    NullishSchema,
    NumberSchema,
    ObjectSchema,
    OptionalSchema,
    RecordSchema,
    StringSchema,
    TupleSchema,
    UnionSchema,
    UnknownSchema,
)
from api_schema_guard.schema.normalize import normalize_root

ExportMode = Literal["input", "output"]

PYDANTIC_MODES = {"input": "validation", "output": "serialization"}

_DEFS_PREFIX = "#/$defs/"
_VALUE_KEYWORDS = frozenset({"const", "default", "enum", "example", "examples"})

_export_cache: "weakref.WeakKeyDictionary[BaseSchema, dict[str, dict]]" = weakref.WeakKeyDictionary()


def to_json_schema(
    schema: Any,
    mode: ExportMode = "input",
    diagnostics: Diagnostics | None = None,
    label: str = "schema",
) -> dict:
    """Normalize ``schema`` and export it as a JSON Schema dict.

    ``mode`` selects the direction: ``input`` documents what a client sends,
    ``output`` what the server returns. Exported schemas are cached per
    normalized node; callers always receive their own copy.

    Backend failures are reported through ``diagnostics`` and re-raised
    unchanged.
    """
    if mode not in PYDANTIC_MODES:
        raise ValueError(f"unknown export mode {mode!r}")
    diagnostics = diagnostics or Diagnostics()

    prepared = normalize_root(schema, label)

    exported = _export_cache.get(prepared)
    if exported is None or mode not in exported:
        result = _export(prepared, mode, diagnostics)
        exported = _export_cache.setdefault(prepared, {})
        exported.setdefault(mode, result)
    return copy.deepcopy(exported[mode])


def _export(prepared: BaseSchema, mode: str, diagnostics: Diagnostics) -> dict:
    try:
        annotation = _annotation(prepared, itertools.count(1))
        raw = TypeAdapter(annotation).json_schema(mode=PYDANTIC_MODES[mode])
    except Exception as exc:
        diagnostics.error(
            "[openapi] Failed to convert schema to JSON Schema",
            {"message": str(exc), "mode": mode},
        )
        raise
    return _inline_refs(raw, raw.get("$defs", {}))


def _annotation(node: BaseSchema, counter: Iterator[int]) -> Any:
    if isinstance(node, ObjectSchema):
        return _model(node, counter)

    if isinstance(node, StringSchema):
        base = str
    elif isinstance(node, NumberSchema):
        base = float
    elif isinstance(node, IntegerSchema):
        base = int
    elif isinstance(node, BooleanSchema):
        base = bool
    elif isinstance(node, UnknownSchema):
        base = Any
    elif isinstance(node, LiteralSchema):
        base = Literal[node.value]
    elif isinstance(node, EnumSchema):
        base = Literal[node.values]
    elif isinstance(node, ArraySchema):
        base = list[_annotation(node.item, counter)]
    elif isinstance(node, RecordSchema):
        base = dict[_annotation(node.key, counter), _annotation(node.value, counter)]
    elif isinstance(node, TupleSchema):
        base = tuple[tuple(_annotation(item, counter) for item in node.items)]
    elif isinstance(node, UnionSchema):
        base = Union[tuple(_annotation(option, counter) for option in node.options)]
    elif isinstance(node, (NullableSchema, NullishSchema)):
        base = Optional[_annotation(node.wrapped, counter)]
    elif isinstance(node, OptionalSchema):
        # Outside an object "may be missing" has no JSON Schema spelling.
        base = _annotation(node.wrapped, counter)
    else:
        raise ShapeValidationError("schema", f"cannot export {node.type!r} node")

    if node.description:
        return Annotated[base, Field(description=node.description)]
    return base


def _model(node: ObjectSchema, counter: Iterator[int]) -> type:
    fields = {}
    for index, (name, child) in enumerate(node.entries.items()):
        if isinstance(child, (OptionalSchema, NullishSchema)):
            extra = _drop_default if child.default is None else None
            wrapped = _annotation(child.wrapped, counter)
            if isinstance(child, NullishSchema):
                wrapped = Optional[wrapped]
            info = Field(
                default=child.default,
                alias=name,
                description=child.description,
                json_schema_extra=extra,
            )
            fields[f"field_{index}"] = (wrapped, info)
        else:
            fields[f"field_{index}"] = (_annotation(child, counter), Field(alias=name))
    return create_model(f"Object{next(counter)}", __doc__=node.description, **fields)


def _drop_default(schema: dict) -> None:
    schema.pop("default", None)


def _inline_refs(node: Any, defs: dict) -> Any:
    if isinstance(node, list):
        return [_inline_refs(item, defs) for item in node]
    if not isinstance(node, dict):
        return node

    ref = node.get("$ref")
    if isinstance(ref, str) and ref.startswith(_DEFS_PREFIX):
        target = _inline_refs(defs[ref[len(_DEFS_PREFIX):]], defs)
        siblings = _inline_refs({k: v for k, v in node.items() if k != "$ref"}, defs)
        return {**target, **siblings}

    cleaned = {}
    for key, value in node.items():
        if key in ("$defs", "$schema"):
            continue
        if key == "title" and isinstance(value, str):
            continue
        if key in _VALUE_KEYWORDS:
            cleaned[key] = copy.deepcopy(value)
        elif key == "properties" and isinstance(value, dict):
            cleaned[key] = {name: _inline_refs(sub, defs) for name, sub in value.items()}
        else:
            cleaned[key] = _inline_refs(value, defs)

    if list(cleaned) == ["allOf"] and len(cleaned["allOf"]) == 1:
        return cleaned["allOf"][0]
    return cleaned
