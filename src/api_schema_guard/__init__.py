"""Safe OpenAPI generation from untrusted route modules."""

from api_schema_guard.diagnostics import Diagnostics
from api_schema_guard.errors import (
    NonConvertibleSchemaError,
    ResourceLimitError,
    SchemaGuardError,
    ShapeValidationError,
    StructuralIntegrityError,
)
from api_schema_guard.generator.openapi import create_openapi_spec
from api_schema_guard.options import OpenApiOptions, OpenApiServer
from api_schema_guard.sanitizer.endpoint import sanitize_endpoint, sanitize_module
from api_schema_guard.schema.export import to_json_schema

__version__ = "0.1.0"

__all__ = [
    "Diagnostics",
    "NonConvertibleSchemaError",
    "OpenApiOptions",
    "OpenApiServer",
    "ResourceLimitError",
    "SchemaGuardError",
    "ShapeValidationError",
    "StructuralIntegrityError",
    "create_openapi_spec",
    "sanitize_endpoint",
    "sanitize_module",
    "to_json_schema",
]
