import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from api_schema_guard.diagnostics import Diagnostics
from api_schema_guard.generator.loader import discover_route_modules
from api_schema_guard.generator.openapi import (
    convert_query_to_parameters,
    convert_responses,
    create_openapi_spec,
)
from api_schema_guard.options import OpenApiOptions, OpenApiServer
from api_schema_guard.sanitizer.base import QueryParameterDoc
from api_schema_guard.sanitizer.endpoint import sanitize_response
from api_schema_guard.schema import builders as s

FIXTURES = Path(__file__).parent / "fixtures"


def _module(**endpoints):
    return {"_openapi": endpoints}


class TestConvertQueryToParameters:
    def test_object_fields(self):
        params = convert_query_to_parameters(s.object({
            "search": s.optional(s.string()),
            "page": s.integer(),
        }))
        assert params == [
            {"in": "query", "name": "search", "required": False, "schema": {"type": "string"}},
            {"in": "query", "name": "page", "required": True, "schema": {"type": "integer"}},
        ]

    def test_only_scalar_fields_become_parameters(self):
        params = convert_query_to_parameters(s.object({
            "q": s.string(),
            "filter": s.object({"a": s.string()}),
            "ids": s.array(s.integer()),
            "mode": s.enum(["fast", "slow"]),
            "maybe": s.optional(s.nullable(s.boolean())),
        }))
        assert [p["name"] for p in params] == ["q", "mode", "maybe"]

    def test_nullish_field_is_an_optional_parameter(self):
        params = convert_query_to_parameters(s.object({"sort": s.nullish(s.string()), "tags": s.record(s.string(), s.string())}))
        assert [(p["name"], p["required"]) for p in params] == [("sort", False)]

    def test_wrapped_query(self):
        params = convert_query_to_parameters(s.nullable(s.object({"q": s.string()})))
        assert [(p["name"], p["required"]) for p in params] == [("q", True)]

    def test_union_requires_field_in_every_branch(self):
        params = convert_query_to_parameters(s.union([
            s.object({"a": s.string(), "b": s.integer()}),
            s.object({"a": s.string(), "b": s.optional(s.string())}),
        ]))
        assert {p["name"]: p["required"] for p in params} == {"a": True, "b": False}

    def test_docs_are_applied(self):
        docs = {"q": QueryParameterDoc(description="Search text", example="milk", examples=("a", "b"))}
        params = convert_query_to_parameters(s.object({"q": s.string()}), docs)
        assert params[0]["description"] == "Search text"
        assert params[0]["example"] == "milk"
        assert params[0]["examples"] == ["a", "b"]


class TestConvertResponses:
    def test_description_defaults_to_empty(self):
        responses = {"200": sanitize_response("200", {"schema": s.string()})}
        result = convert_responses(responses)
        assert result["200"]["description"] == ""
        assert result["200"]["content"]["application/json"]["schema"] == {"type": "string"}

    def test_content_takes_precedence_over_schema(self):
        responses = {"200": sanitize_response("200", {
            "schema": s.string(),
            "content": {"application/json": s.integer(), "text/plain": s.string()},
        })}
        content = convert_responses(responses)["200"]["content"]
        assert content["application/json"]["schema"] == {"type": "integer"}
        assert content["text/plain"]["schema"] == {"type": "string"}

    def test_description_only(self):
        responses = {"204": sanitize_response("204", {"description": "Gone"})}
        assert convert_responses(responses) == {"204": {"description": "Gone"}}


class TestCreateOpenApiSpec:
    @pytest.fixture
    def on_error(self):
        return MagicMock()

    @pytest.fixture
    def spec(self, on_error):
        modules = discover_route_modules(FIXTURES / "routes")
        return create_openapi_spec(modules, OpenApiOptions(base_dir=""), Diagnostics(on_error=on_error))

    def test_document_header(self, spec):
        assert spec["openapi"] == "3.1.0"
        assert spec["info"] == {"title": "API", "version": "1.0.0"}

    def test_paths(self, spec):
        assert sorted(spec["paths"]) == ["/api/legacy", "/api/todos", "/api/todos/{id}"]
        assert sorted(spec["paths"]["/api/todos"]) == ["get", "post"]
        assert sorted(spec["paths"]["/api/todos/{id}"]) == ["delete", "patch"]

    def test_failures_are_reported(self, spec, on_error):
        messages = [call.args[0] for call in on_error.call_args_list]
        assert "[openapi] Failed to load route module" in messages
        assert "[openapi] Rejected endpoint definition" in messages
        assert list(spec["paths"]["/api/legacy"]) == ["get"]

    def test_query_parameters(self, spec):
        operation = spec["paths"]["/api/todos"]["get"]
        params = {p["name"]: p for p in operation["parameters"]}
        assert params["search"]["description"] == "Full-text filter"
        assert params["search"]["example"] == "milk"
        assert params["limit"]["required"] is False
        assert params["limit"]["schema"]["default"] == 20
        assert operation["tags"] == ["todos"]

    def test_response_schema(self, spec):
        response = spec["paths"]["/api/todos"]["get"]["responses"]["200"]
        schema = response["content"]["application/json"]["schema"]
        assert response["description"] == "All todos"
        assert schema["type"] == "array"
        assert schema["items"]["properties"]["due"] == {"type": "string"}
        assert schema["items"]["required"] == ["id", "title", "done"]

    def test_bare_body_is_required_json(self, spec):
        operation = spec["paths"]["/api/todos"]["post"]
        body = operation["requestBody"]
        assert body["required"] is True
        assert list(body["content"]["application/json"]["schema"]["properties"]) == ["title"]
        assert operation["operationId"] == "createTodo"

    def test_content_body_and_path_params(self, spec):
        operation = spec["paths"]["/api/todos/{id}"]["patch"]
        assert operation["parameters"][0]["in"] == "path"
        assert operation["parameters"][0]["name"] == "id"
        assert operation["requestBody"]["required"] is False
        assert operation["requestBody"]["description"] == "Fields to change"
        assert sorted(operation["requestBody"]["content"]) == [
            "application/json",
            "application/merge-patch+json",
        ]
        assert operation["responses"] == {"204": {"description": "Updated"}}

    def test_endpoint_security_and_deprecation(self, spec):
        operation = spec["paths"]["/api/todos/{id}"]["delete"]
        assert operation["deprecated"] is True
        assert operation["security"] == [{"bearer": []}]


class TestDocumentOptions:
    def test_global_options(self):
        options = OpenApiOptions(
            title="Todo API",
            version="2.0.0",
            description="Todos",
            servers=[OpenApiServer(url="https://api.example.com")],
            security_schemes={"bearer": {"type": "http", "scheme": "bearer"}},
            security=[{"bearer": []}],
        )
        modules = {"/src/routes/api/ping/+server.py": _module(GET={"method": "GET", "responses": {200: {"description": "pong"}}})}
        spec = create_openapi_spec(modules, options)
        assert spec["info"] == {"title": "Todo API", "version": "2.0.0", "description": "Todos"}
        assert spec["servers"] == [{"url": "https://api.example.com"}]
        assert spec["components"] == {"securitySchemes": {"bearer": {"type": "http", "scheme": "bearer"}}}
        assert spec["security"] == [{"bearer": []}]
        assert spec["paths"]["/api/ping"]["get"]["security"] == [{"bearer": []}]

    def test_explicit_path_wins(self):
        modules = {"/src/routes/anything/+server.py": _module(
            GET={"method": "GET", "path": "/custom", "responses": {"200": {"description": "OK"}}},
        )}
        assert list(create_openapi_spec(modules)["paths"]) == ["/custom"]

    def test_base_path_filter(self):
        ok = {"method": "GET", "responses": {"200": {"description": "OK"}}}
        modules = {
            "/src/routes/api/a/+server.py": _module(GET=ok),
            "/src/routes/internal/b/+server.py": _module(GET=ok),
        }
        spec = create_openapi_spec(modules, OpenApiOptions(base_path="/api"))
        assert list(spec["paths"]) == ["/api/a"]

    def test_loader_entries(self):
        module = _module(GET={"method": "GET", "responses": {"200": {"description": "OK"}}})
        spec = create_openapi_spec({"/src/routes/x/+server.py": lambda: module})
        assert list(spec["paths"]) == ["/x"]

    def test_failing_endpoint_is_skipped(self):
        on_error = MagicMock()
        modules = {"/src/routes/api/x/+server.py": _module(
            GET={"method": "GET", "responses": {"200": {"schema": s.never()}}},
            POST={"method": "POST", "responses": {"200": {"description": "OK"}}},
        )}
        spec = create_openapi_spec(modules, diagnostics=Diagnostics(on_error=on_error))
        assert list(spec["paths"]["/api/x"]) == ["post"]
        message, context = on_error.call_args.args
        assert message == "[openapi] Failed to build OpenAPI operation from endpoint definition"
        assert context["method"] == "GET"
        assert context["file"] == "…/api/x/+server.py"
        assert "non-convertible" in context["message"]

    def test_frozen_values_are_emitted_as_plain_data(self):
        modules = {"/src/routes/api/range/+server.py": _module(GET={
            "method": "GET",
            "query": s.object({"range": s.string()}),
            "queryParams": {"range": {"example": {"from": 1, "to": [2]}, "examples": [{"from": 3}]}},
            "security": [{"oauth": ["read", "write"]}],
            "responses": {"200": {"description": "OK"}},
        })}
        operation = create_openapi_spec(modules)["paths"]["/api/range"]["get"]
        param = operation["parameters"][0]
        assert param["example"] == {"from": 1, "to": [2]}
        assert type(param["example"]) is dict
        assert param["examples"] == [{"from": 3}]
        assert operation["security"] == [{"oauth": ["read", "write"]}]
        assert json.loads(json.dumps(operation)) == operation
