import logging
from unittest.mock import MagicMock

from api_schema_guard.diagnostics import Diagnostics
from api_schema_guard.errors import NonConvertibleSchemaError, SchemaGuardError, ShapeValidationError


class TestDiagnostics:
    def test_hooks_receive_message_and_context(self):
        on_error = MagicMock()
        on_warn = MagicMock()
        diagnostics = Diagnostics(on_error=on_error, on_warn=on_warn)

        diagnostics.error("bad", {"method": "GET"})
        diagnostics.warn("odd")

        on_error.assert_called_once_with("bad", {"method": "GET"})
        on_warn.assert_called_once_with("odd", {})

    def test_context_is_copied(self):
        on_error = MagicMock()
        context = {"a": 1}
        Diagnostics(on_error=on_error).error("bad", context)
        assert on_error.call_args.args[1] is not context

    def test_defaults_to_logging(self, caplog):
        with caplog.at_level(logging.WARNING, logger="api_schema_guard"):
            Diagnostics().error("[openapi] broken", {"file": "x"})
            Diagnostics().warn("[openapi] suspicious")
        assert [r.levelname for r in caplog.records] == ["ERROR", "WARNING"]
        assert "[openapi] broken" in caplog.records[0].getMessage()


class TestErrors:
    def test_message_format(self):
        error = ShapeValidationError("GET.query", "must be an object schema")
        assert str(error) == "[openapi] GET.query: must be an object schema"
        assert error.path == "GET.query"
        assert error.reason == "must be an object schema"

    def test_hierarchy(self):
        error = NonConvertibleSchemaError("schema", "non-convertible schema encountered")
        assert isinstance(error, ShapeValidationError)
        assert isinstance(error, SchemaGuardError)
        assert isinstance(error, ValueError)
