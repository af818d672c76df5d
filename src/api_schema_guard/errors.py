"""Error taxonomy for schema normalization and endpoint sanitization.

Every error carries the offending field path and a human-readable reason so
callers can report exactly which part of an endpoint definition was rejected.
"""


class SchemaGuardError(ValueError):
    """Base class for all sanitization and normalization failures."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"[openapi] {path}: {reason}")


class StructuralIntegrityError(SchemaGuardError):
    """A value is not a safe plain record (forbidden keys, accessors, wrong type)."""


class ShapeValidationError(SchemaGuardError):
    """A value has the wrong type, misses a field or uses an unsupported construct."""


class ResourceLimitError(SchemaGuardError):
    """A structural budget (nodes, depth, fan-out) was exceeded."""


class NonConvertibleSchemaError(ShapeValidationError):
    """The schema normalized to nothing and cannot be documented."""
