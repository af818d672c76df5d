"""OpenAPI 3.1 document assembly.

Turns route modules into an OpenAPI document: every module is sanitized,
every endpoint becomes one operation. A module or endpoint that fails is
reported through the diagnostics sink and left out; it never aborts the
whole document.
"""

import copy
from typing import Any, Mapping

from api_schema_guard.diagnostics import Diagnostics, shorten_file_path
from api_schema_guard.errors import ShapeValidationError
from api_schema_guard.generator.loader import resolve_module
from api_schema_guard.generator.paths import infer_path_from_file, infer_path_params
from api_schema_guard.options import OpenApiOptions
from api_schema_guard.sanitizer.base import (
    QueryParameterDoc,
    RequestBodyDefinition,
    ResponseDefinition,
    SanitizedEndpoint,
)
from api_schema_guard.sanitizer.endpoint import is_valid_media_type, sanitize_module, thaw_value
from api_schema_guard.schema.export import ExportMode, to_json_schema
from api_schema_guard.schema.nodes import BaseSchema, assert_schema

OPENAPI_VERSION = "3.1.0"
SCALAR_TYPES = frozenset({"boolean", "integer", "number", "string"})
SCALAR_VALUE_TYPES = (str, int, float, bool, type(None))


def create_openapi_spec(
    modules: Mapping[str, Any],
    options: OpenApiOptions | None = None,
    diagnostics: Diagnostics | None = None,
) -> dict:
    """Build an OpenAPI document from ``{file path: module or loader}``."""
    options = options or OpenApiOptions()
    diagnostics = diagnostics or Diagnostics()
    paths: dict[str, dict] = {}

    for file, entry in modules.items():
        try:
            sanitized = sanitize_module(resolve_module(entry), diagnostics)
        except Exception as exc:  # route modules are arbitrary code
            diagnostics.error(
                "[openapi] Failed to load route module",
                {"file": shorten_file_path(file), "message": str(exc)},
            )
            continue

        for method, endpoint in sanitized.endpoints.items():
            try:
                path = endpoint.path or infer_path_from_file(file, options.base_dir, diagnostics)
                if options.base_path and not path.startswith(options.base_path):
                    continue
                operation = build_operation(endpoint, path, options, diagnostics)
            except Exception as exc:
                diagnostics.error(
                    "[openapi] Failed to build OpenAPI operation from endpoint definition",
                    {"file": shorten_file_path(file), "method": method, "message": str(exc)},
                )
                continue
            paths.setdefault(path, {})[endpoint.method.lower()] = operation

    info = {"title": options.title, "version": options.version}
    if options.description:
        info["description"] = options.description

    spec: dict[str, Any] = {"openapi": OPENAPI_VERSION, "info": info, "paths": paths}
    if options.servers:
        spec["servers"] = [server.model_dump(exclude_none=True) for server in options.servers]
    if options.security_schemes:
        spec["components"] = {"securitySchemes": copy.deepcopy(options.security_schemes)}
    if options.security is not None:
        spec["security"] = copy.deepcopy(options.security)
    return spec


def build_operation(
    endpoint: SanitizedEndpoint,
    path: str,
    options: OpenApiOptions,
    diagnostics: Diagnostics,
) -> dict:
    operation: dict[str, Any] = {}
    if endpoint.summary is not None:
        operation["summary"] = endpoint.summary
    if endpoint.description is not None:
        operation["description"] = endpoint.description
    if endpoint.operation_id is not None:
        operation["operationId"] = endpoint.operation_id
    if endpoint.tags:
        operation["tags"] = list(endpoint.tags)
    if endpoint.deprecated is not None:
        operation["deprecated"] = endpoint.deprecated

    parameters = infer_path_params(path)
    if endpoint.query is not None:
        parameters += convert_query_to_parameters(endpoint.query, endpoint.query_params, diagnostics)
    if parameters:
        operation["parameters"] = parameters

    if endpoint.body is not None:
        request_body = convert_request_body(endpoint.body, diagnostics)
        if request_body is not None:
            operation["requestBody"] = request_body

    operation["responses"] = convert_responses(endpoint.responses, diagnostics)

    security = endpoint.security if endpoint.security is not None else options.security
    if security:
        operation["security"] = thaw_value(security)
    return operation


def convert_query_to_parameters(
    schema: BaseSchema,
    docs: Mapping[str, QueryParameterDoc] | None = None,
    diagnostics: Diagnostics | None = None,
) -> list[dict]:
    """Turn the top-level fields of a query schema into ``in: query`` parameters.

    Only scalar fields (string, integer, number, boolean, or an enum of
    scalars, optionally nullable) become parameters; query strings are flat.
    When the schema is a union of objects, a parameter is required only if
    every branch requires it.
    """
    exported = to_json_schema(schema, "input", diagnostics, label="query")
    branches = _object_branches(exported)
    if not branches:
        return []

    required = set(branches[0].get("required", []))
    for branch in branches[1:]:
        required &= set(branch.get("required", []))

    params = []
    for name, prop in branches[0]["properties"].items():
        if not isinstance(prop, dict) or not _is_scalar(prop):
            continue
        param: dict[str, Any] = {"in": "query", "name": name, "required": name in required, "schema": prop}
        doc = docs.get(name) if docs else None
        if doc is not None:
            if doc.description is not None:
                param["description"] = doc.description
            if doc.example is not None:
                param["example"] = thaw_value(doc.example)
            if doc.examples is not None:
                param["examples"] = thaw_value(doc.examples)
        params.append(param)
    return params


def convert_request_body(
    body: BaseSchema | RequestBodyDefinition, diagnostics: Diagnostics | None = None
) -> dict | None:
    """A bare schema is a required JSON body; a content map keeps its own media types."""
    if isinstance(body, RequestBodyDefinition):
        content = convert_content_map(body.content, "input", diagnostics)
        if not content:
            return None
        request_body: dict[str, Any] = {}
        if body.description is not None:
            request_body["description"] = body.description
        if body.required is not None:
            request_body["required"] = body.required
        request_body["content"] = content
        return request_body

    schema = to_json_schema(body, "input", diagnostics, label="body")
    return {"content": {"application/json": {"schema": schema}}, "required": True}


def convert_responses(
    responses: Mapping[str, ResponseDefinition], diagnostics: Diagnostics | None = None
) -> dict:
    """Convert response definitions into an OpenAPI ``responses`` object.

    ``content`` wins; ``schema`` only fills ``application/json`` when the
    content map does not already define it.
    """
    out = {}
    for status, definition in responses.items():
        response: dict[str, Any] = {"description": definition.description or ""}
        content = {}
        if definition.content:
            content.update(convert_content_map(definition.content, "output", diagnostics))
        if definition.schema_ is not None and "application/json" not in content:
            content["application/json"] = {
                "schema": to_json_schema(
                    definition.schema_, "output", diagnostics, label=f'responses["{status}"].schema'
                )
            }
        if content:
            response["content"] = content
        out[status] = response
    return out


def convert_content_map(
    content: Mapping[str, Any], mode: ExportMode, diagnostics: Diagnostics | None = None
) -> dict:
    out = {}
    for media_type, schema in content.items():
        if not is_valid_media_type(media_type):
            raise ShapeValidationError("content", f'invalid media type "{media_type}"')
        label = f'content["{media_type}"]'
        assert_schema(schema, label)
        out[media_type] = {"schema": to_json_schema(schema, mode, diagnostics, label=label)}
    return out


def _object_branches(exported: dict) -> list[dict]:
    if isinstance(exported.get("properties"), dict):
        return [exported]
    return [
        branch
        for branch in exported.get("anyOf", [])
        if isinstance(branch, dict) and isinstance(branch.get("properties"), dict)
    ]


def _is_scalar(prop: dict, allow_null: bool = False) -> bool:
    if isinstance(prop.get("anyOf"), list):
        branches = prop["anyOf"]
        return bool(branches) and all(isinstance(b, dict) and _is_scalar(b, allow_null=True) for b in branches)

    type_field = prop.get("type")
    types = type_field if isinstance(type_field, list) else [type_field] if type_field else []
    if any(t in SCALAR_TYPES for t in types):
        return True
    if allow_null and types == ["null"]:
        return True

    values = prop.get("enum")
    if isinstance(values, list) and values:
        return all(isinstance(v, SCALAR_VALUE_TYPES) for v in values)
    return "const" in prop and isinstance(prop["const"], SCALAR_VALUE_TYPES)
