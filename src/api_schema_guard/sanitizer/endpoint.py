"""Hardened sanitization of route-module endpoint definitions.

A route module exposes its endpoints through a module-level mapping, by
default ``_openapi``:

    _openapi = {
        "GET": {
            "method": "GET",
            "summary": "List todos",
            "query": s.object({"search": s.optional(s.string())}),
            "responses": {200: {"description": "Todos", "schema": TodoList}},
        },
    }

Route modules are arbitrary code, so every value is treated as hostile until
proven otherwise: plain records only, whitelisted keys, bounded strings and
lists, real schema nodes, valid media types and status codes. The result is
an immutable ``SanitizedModule``.
"""

import inspect
import itertools
import re
from types import MappingProxyType, ModuleType
from typing import Any, Iterator, Mapping

from api_schema_guard.diagnostics import Diagnostics
from api_schema_guard.errors import ResourceLimitError, SchemaGuardError, ShapeValidationError
from api_schema_guard.sanitizer.base import (
    QueryParameterDoc,
    RequestBodyDefinition,
    ResponseDefinition,
    SanitizedEndpoint,
    SanitizedModule,
)
from api_schema_guard.sanitizer.guard import assert_plain_record
from api_schema_guard.schema.nodes import BaseSchema, assert_schema, is_schema
from api_schema_guard.schema.query import query_field_names, unwrap_query_schema

DEFAULT_ENDPOINTS_ATTRIBUTE = "_openapi"

VALID_METHODS = frozenset({"DELETE", "GET", "PATCH", "POST", "PUT"})

ALLOWED_ENDPOINT_KEYS = frozenset({
    "body",
    "deprecated",
    "description",
    "method",
    "operationId",
    "path",
    "query",
    "queryParams",
    "responses",
    "security",
    "summary",
    "tags",
})
ALLOWED_BODY_KEYS = frozenset({"content", "description", "required"})
ALLOWED_RESPONSE_KEYS = frozenset({"content", "description", "schema"})
ALLOWED_QUERY_DOC_KEYS = frozenset({"description", "example", "examples"})

# Untrusted modules could inject huge structures; these caps keep the
# generated document enumerable.
MAX_ENDPOINTS_PER_MODULE = 32
MAX_RESPONSES_PER_ENDPOINT = 32
MAX_TAGS_PER_ENDPOINT = 16
MAX_TAG_LENGTH = 64
MAX_DOC_STRING_LENGTH = 512
MAX_OPERATION_ID_LENGTH = 256
MAX_FROZEN_DEPTH = 16
MAX_FROZEN_NODES = 1_000

JSON_SCALAR_TYPES = (str, int, float, bool, type(None))

MEDIA_TYPE_RE = re.compile(r"[A-Za-z0-9!#$&^_.+-]+/[A-Za-z0-9!#$&^_.+-]+")
STATUS_CODE_RE = re.compile(r"[0-9]{3}")


def sanitize_module(
    module: Any,
    diagnostics: Diagnostics | None = None,
    attribute: str = DEFAULT_ENDPOINTS_ATTRIBUTE,
) -> SanitizedModule:
    """Sanitize every endpoint a route module exposes.

    A module without the endpoint mapping has no endpoints. The mapping itself
    must be a plain record, otherwise ``StructuralIntegrityError`` is raised.
    At most ``MAX_ENDPOINTS_PER_MODULE`` endpoints are accepted.
    Entries with unknown methods or the wrong shape are dropped silently;
    entries that fail sanitization are reported through ``diagnostics`` and
    dropped without affecting their siblings.
    """
    diagnostics = diagnostics or Diagnostics()

    raw = _read_endpoint_map(module, attribute)
    if raw is None:
        return SanitizedModule(endpoints={})
    api = assert_plain_record(raw, f"module.{attribute}")

    endpoints: dict[str, SanitizedEndpoint] = {}
    for method, definition in api.items():
        if len(endpoints) >= MAX_ENDPOINTS_PER_MODULE:
            break
        if method not in VALID_METHODS or not isinstance(definition, Mapping):
            continue
        try:
            record = assert_plain_record(definition, method)
            if _endpoint_shape_problem(record) is not None:
                continue
            endpoints[method] = _sanitize_fields(record, method)
        except SchemaGuardError as exc:
            diagnostics.error(
                "[openapi] Rejected endpoint definition",
                {"method": method, "field": exc.path, "message": exc.reason},
            )

    return SanitizedModule(endpoints=endpoints)


def sanitize_endpoint(definition: Any, label: str = "endpoint") -> SanitizedEndpoint:
    """Sanitize a single endpoint definition; any violation raises."""
    record = assert_plain_record(definition, label)
    problem = _endpoint_shape_problem(record)
    if problem is not None:
        raise ShapeValidationError(label, problem)
    return _sanitize_fields(record, label)


def sanitize_response(status: str, definition: Any, label: str = "endpoint") -> ResponseDefinition:
    """Sanitize the response definition of one status code."""
    where = f'{label}.responses["{status}"]'
    record = assert_plain_record(definition, where)

    for key in record:
        if key not in ALLOWED_RESPONSE_KEYS:
            raise ShapeValidationError(where, f'contains unsupported key "{key}"')

    description = sanitize_doc_string(record.get("description"), MAX_DOC_STRING_LENGTH)

    schema = None
    if record.get("schema") is not None:
        schema = assert_schema(record["schema"], f"{where}.schema")

    content = None
    if record.get("content") is not None:
        content = _sanitize_content(record["content"], f"{where}.content")

    if description is None and schema is None and content is None:
        raise ShapeValidationError(where, "must define at least description, schema, or content")

    return ResponseDefinition(description=description, schema=schema, content=content)


def sanitize_doc_string(value: Any, max_length: int) -> str | None:
    """Trim and bound free text. Non-strings and blank strings become None."""
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    if not trimmed:
        return None
    return trimmed[:max_length]


def sanitize_tags(raw: Any) -> tuple[str, ...]:
    tags: list[str] = []
    for tag in raw:
        if not isinstance(tag, str):
            continue
        trimmed = tag.strip()
        if not trimmed:
            continue
        tags.append(trimmed[:MAX_TAG_LENGTH])
        if len(tags) >= MAX_TAGS_PER_ENDPOINT:
            break
    return tuple(tags)


def is_valid_media_type(media_type: Any) -> bool:
    return isinstance(media_type, str) and MEDIA_TYPE_RE.fullmatch(media_type) is not None


def freeze_value(value: Any, where: str) -> Any:
    """Deep-copy a JSON-like value into tuples and read-only mappings.

    Nested dicts must pass the plain-record guard. Anything that is not a
    scalar, list, tuple or dict is rejected, and so are values nested deeper
    than ``MAX_FROZEN_DEPTH`` or larger than ``MAX_FROZEN_NODES``.
    """
    return _freeze(value, where, 0, itertools.count(1))


def thaw_value(value: Any) -> Any:
    """Plain dicts and lists for a frozen value, ready for JSON or YAML output."""
    if isinstance(value, Mapping):
        return {key: thaw_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [thaw_value(item) for item in value]
    return value


def _freeze(value: Any, where: str, depth: int, counter: Iterator[int]) -> Any:
    if next(counter) > MAX_FROZEN_NODES:
        raise ResourceLimitError(where, f"value has more than {MAX_FROZEN_NODES} nodes")
    if depth > MAX_FROZEN_DEPTH:
        raise ResourceLimitError(where, f"value is nested deeper than {MAX_FROZEN_DEPTH} levels")

    if isinstance(value, JSON_SCALAR_TYPES):
        return value
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item, f"{where}[{index}]", depth + 1, counter) for index, item in enumerate(value))
    if type(value) is dict:
        record = assert_plain_record(value, where)
        return MappingProxyType({
            key: _freeze(item, f"{where}.{key}", depth + 1, counter) for key, item in record.items()
        })
    raise ShapeValidationError(where, f"unsupported value of type {type(value).__name__}")


def _read_endpoint_map(module: Any, attribute: str) -> Any:
    # Never trigger descriptors or __getattr__ hooks on untrusted objects.
    if isinstance(module, ModuleType):
        return vars(module).get(attribute)
    if type(module) is dict:
        return module.get(attribute)
    return inspect.getattr_static(module, attribute, None)


def _endpoint_shape_problem(record: dict[str, Any]) -> str | None:
    method = record.get("method")
    if not isinstance(method, str) or method not in VALID_METHODS:
        return "`method` must be one of " + ", ".join(sorted(VALID_METHODS))
    for key in record:
        if key not in ALLOWED_ENDPOINT_KEYS:
            return f'unsupported key "{key}"'
    if record.get("responses") is None:
        return "`responses` is required"
    return None


def _sanitize_fields(record: dict[str, Any], label: str) -> SanitizedEndpoint:
    fields: dict[str, Any] = {"method": record["method"]}

    path = record.get("path")
    if isinstance(path, str):
        path = path.strip()
        if path.startswith("/") and not re.search(r"\s", path):
            fields["path"] = path

    fields["summary"] = sanitize_doc_string(record.get("summary"), MAX_DOC_STRING_LENGTH)
    fields["description"] = sanitize_doc_string(record.get("description"), MAX_DOC_STRING_LENGTH)
    fields["operation_id"] = sanitize_doc_string(record.get("operationId"), MAX_OPERATION_ID_LENGTH)

    if isinstance(record.get("deprecated"), bool):
        fields["deprecated"] = record["deprecated"]

    if isinstance(record.get("tags"), (list, tuple)):
        fields["tags"] = sanitize_tags(record["tags"])

    if record.get("query") is not None:
        fields["query"] = _sanitize_query(record["query"], f"{label}.query")

    if record.get("queryParams") is not None:
        fields["query_params"] = _sanitize_query_params(record["queryParams"], fields.get("query"), label)

    if record.get("body") is not None:
        fields["body"] = _sanitize_body(record["body"], f"{label}.body")

    fields["responses"] = _sanitize_responses(record["responses"], label)

    if isinstance(record.get("security"), (list, tuple)):
        fields["security"] = freeze_value(record["security"], f"{label}.security")

    return SanitizedEndpoint(**fields)


def _sanitize_query(raw: Any, label: str) -> BaseSchema:
    unwrap_query_schema(raw, label)
    return raw


def _sanitize_query_params(raw: Any, query: BaseSchema | None, label: str) -> dict[str, QueryParameterDoc]:
    where = f"{label}.queryParams"
    record = assert_plain_record(raw, where)
    if query is None:
        raise ShapeValidationError(where, "requires a `query` schema to document")

    allowed = set(query_field_names(query, f"{label}.query"))
    docs = {}
    for name, doc in record.items():
        if name not in allowed:
            raise ShapeValidationError(where, f'"{name}" does not match any field in query schema')
        docs[name] = _sanitize_query_doc(doc, f'{where}["{name}"]')
    return docs


def _sanitize_query_doc(raw: Any, where: str) -> QueryParameterDoc:
    record = assert_plain_record(raw, where)
    for key in record:
        if key not in ALLOWED_QUERY_DOC_KEYS:
            raise ShapeValidationError(where, f'contains unsupported key "{key}"')

    examples = record.get("examples")
    if examples is not None:
        if not isinstance(examples, (list, tuple)):
            raise ShapeValidationError(f"{where}.examples", "must be a list")
        examples = freeze_value(examples, f"{where}.examples")

    return QueryParameterDoc(
        description=sanitize_doc_string(record.get("description"), MAX_DOC_STRING_LENGTH),
        example=freeze_value(record.get("example"), f"{where}.example"),
        examples=examples,
    )


def _sanitize_body(raw: Any, where: str) -> BaseSchema | RequestBodyDefinition:
    if is_schema(raw):
        return raw

    record = assert_plain_record(raw, where)
    if "content" not in record:
        raise ShapeValidationError(where, "must contain a `content` map or be a schema")
    for key in record:
        if key not in ALLOWED_BODY_KEYS:
            raise ShapeValidationError(where, f'contains unsupported key "{key}"')

    required = record.get("required")
    if required is not None and not isinstance(required, bool):
        raise ShapeValidationError(f"{where}.required", "must be a boolean")

    return RequestBodyDefinition(
        content=_sanitize_content(record["content"], f"{where}.content"),
        description=sanitize_doc_string(record.get("description"), MAX_DOC_STRING_LENGTH),
        required=required,
    )


def _sanitize_content(raw: Any, where: str) -> dict[str, BaseSchema]:
    record = assert_plain_record(raw, where)
    content = {}
    for media_type, schema in record.items():
        if not is_valid_media_type(media_type):
            raise ShapeValidationError(where, f'media type "{media_type}" is invalid')
        content[media_type] = assert_schema(schema, f'{where}["{media_type}"]')
    return content


def _sanitize_responses(raw: Any, label: str) -> dict[str, ResponseDefinition]:
    where = f"{label}.responses"
    if type(raw) is dict:
        raw = _stringify_status_keys(raw, where)
    record = assert_plain_record(raw, where)

    if not record:
        raise ShapeValidationError(where, "must define at least one response")
    if len(record) > MAX_RESPONSES_PER_ENDPOINT:
        raise ResourceLimitError(where, f"must not define more than {MAX_RESPONSES_PER_ENDPOINT} responses")

    responses = {}
    for status, definition in record.items():
        if STATUS_CODE_RE.fullmatch(status) is None:
            raise ShapeValidationError(where, f'key "{status}" is not a 3-digit status code')
        responses[status] = sanitize_response(status, definition, label)
    return responses


def _stringify_status_keys(raw: dict, where: str) -> dict:
    """Accept ``{200: ...}`` as well as ``{"200": ...}``."""
    result = {}
    for key, value in raw.items():
        if type(key) is int:
            key = str(key)
            if key in raw:
                raise ShapeValidationError(where, f'status code "{key}" is defined twice')
        result[key] = value
    return result
