from unittest.mock import MagicMock, patch

import pytest

from api_schema_guard.diagnostics import Diagnostics
from api_schema_guard.errors import NonConvertibleSchemaError, ResourceLimitError
from api_schema_guard.schema import builders as s
from api_schema_guard.schema.export import to_json_schema


class TestScalars:
    def test_string(self):
        assert to_json_schema(s.string()) == {"type": "string"}

    def test_integer_and_number(self):
        assert to_json_schema(s.integer()) == {"type": "integer"}
        assert to_json_schema(s.number()) == {"type": "number"}

    def test_date_exports_as_string(self):
        assert to_json_schema(s.date())["type"] == "string"

    def test_unknown_is_unconstrained(self):
        assert to_json_schema(s.unknown()) == {}

    def test_description_is_kept(self):
        result = to_json_schema(s.string(description="A name"))
        assert result == {"type": "string", "description": "A name"}

    def test_literal_and_enum(self):
        assert to_json_schema(s.literal("on"))["const"] == "on"
        assert to_json_schema(s.enum(["a", "b"]))["enum"] == ["a", "b"]

    def test_nullable(self):
        result = to_json_schema(s.nullable(s.string()))
        assert {"type": "null"} in result["anyOf"]
        assert {"type": "string"} in result["anyOf"]


class TestObjects:
    def test_required_and_optional_fields(self):
        result = to_json_schema(s.object({"name": s.string(), "age": s.optional(s.integer())}))
        assert result["type"] == "object"
        assert list(result["properties"]) == ["name", "age"]
        assert result["required"] == ["name"]
        assert result["properties"]["age"] == {"type": "integer"}

    def test_optional_default_is_exported(self):
        result = to_json_schema(s.object({"limit": s.optional(s.integer(), 20)}))
        assert result["properties"]["limit"]["default"] == 20
        assert "required" not in result

    def test_field_names_are_preserved(self):
        result = to_json_schema(s.object({"first-name": s.string(), "title": s.string()}))
        assert list(result["properties"]) == ["first-name", "title"]

    def test_nested_objects_are_inlined(self):
        result = to_json_schema(s.object({
            "owner": s.object({"id": s.integer()}),
            "tags": s.array(s.object({"label": s.string()})),
        }))
        assert "$defs" not in result
        assert result["properties"]["owner"]["properties"]["id"] == {"type": "integer"}
        assert result["properties"]["tags"]["items"]["required"] == ["label"]
        assert "$ref" not in str(result)

    def test_never_fields_are_omitted(self):
        result = to_json_schema(s.object({"a": s.string(), "b": s.never()}))
        assert list(result["properties"]) == ["a"]

    def test_object_union(self):
        result = to_json_schema(s.union([
            s.object({"kind": s.literal("a")}),
            s.object({"kind": s.literal("b")}),
        ]))
        assert len(result["anyOf"]) == 2
        assert all(option["type"] == "object" for option in result["anyOf"])

    def test_titles_are_dropped(self):
        result = to_json_schema(s.object({"a": s.string()}))
        assert "title" not in result
        assert "title" not in result["properties"]["a"]


class TestRecordTupleNullish:
    def test_record_exports_additional_properties(self):
        result = to_json_schema(s.record(s.string(), s.integer()))
        assert result["type"] == "object"
        assert result["additionalProperties"] == {"type": "integer"}

    def test_record_of_objects_is_inlined(self):
        result = to_json_schema(s.record(s.string(), s.object({"id": s.integer()})))
        value = result["additionalProperties"]
        assert value["properties"] == {"id": {"type": "integer"}}
        assert "$defs" not in result

    def test_tuple_exports_prefix_items(self):
        result = to_json_schema(s.tuple([s.string(), s.integer()]))
        assert result["type"] == "array"
        assert result["prefixItems"] == [{"type": "string"}, {"type": "integer"}]
        assert result["minItems"] == result["maxItems"] == 2

    def test_nullish_root_allows_null(self):
        result = to_json_schema(s.nullish(s.string()))
        assert {"type": "null"} in result["anyOf"]
        assert {"type": "string"} in result["anyOf"]

    def test_nullish_field_is_not_required(self):
        result = to_json_schema(s.object({"name": s.string(), "note": s.nullish(s.string())}))
        assert result["required"] == ["name"]
        note = result["properties"]["note"]
        assert {"type": "null"} in note["anyOf"]
        assert "default" not in note

    def test_nullish_default_is_exported(self):
        result = to_json_schema(s.object({"sort": s.nullish(s.enum(["asc", "desc"]), "asc")}))
        assert result["properties"]["sort"]["default"] == "asc"
        assert "required" not in result


class TestExportBehaviour:
    def test_results_are_independent_copies(self):
        node = s.object({"a": s.string()})
        first = to_json_schema(node)
        first["properties"]["a"]["type"] = "integer"
        assert to_json_schema(node)["properties"]["a"]["type"] == "string"

    def test_output_mode(self):
        result = to_json_schema(s.array(s.boolean()), mode="output")
        assert result == {"type": "array", "items": {"type": "boolean"}}

    def test_unknown_mode_is_rejected(self):
        with pytest.raises(ValueError, match="unknown export mode"):
            to_json_schema(s.string(), mode="both")

    def test_non_convertible_root(self):
        with pytest.raises(NonConvertibleSchemaError):
            to_json_schema(s.never())

    def test_backend_failure_is_reported_and_reraised(self):
        on_error = MagicMock()
        with patch("api_schema_guard.schema.export.TypeAdapter", side_effect=RuntimeError("boom")):
            with pytest.raises(RuntimeError, match="boom"):
                to_json_schema(s.string(), diagnostics=Diagnostics(on_error=on_error))
        on_error.assert_called_once_with(
            "[openapi] Failed to convert schema to JSON Schema",
            {"message": "boom", "mode": "input"},
        )

    def test_shared_subtrees_cannot_blow_up_the_export(self):
        node = s.string()
        for _ in range(22):
            node = s.object({"x": node, "y": node})
        with pytest.raises(ResourceLimitError, match="node limit"):
            to_json_schema(node)
