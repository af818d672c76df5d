"""Plain-record guard for untrusted values.

Route modules are arbitrary code. Before any endpoint logic looks at a value
it must be a plain ``dict`` with plain string keys, no reserved keys and no
accessor objects. The check is shallow; nested values are checked by the
sanitizer that consumes them.
"""

from typing import Any

from api_schema_guard.errors import StructuralIntegrityError

FORBIDDEN_KEYS = frozenset({"__proto__", "constructor", "prototype"})


def is_accessor(value: Any) -> bool:
    """True for properties and other data descriptors (``__get__`` plus ``__set__``/``__delete__``)."""
    if isinstance(value, property):
        return True
    kind = type(value)
    return hasattr(kind, "__get__") and (hasattr(kind, "__set__") or hasattr(kind, "__delete__"))


def assert_plain_record(value: Any, label: str) -> dict[str, Any]:
    """Return ``value`` if it is a safe plain record, raise ``StructuralIntegrityError`` otherwise."""
    if type(value) is not dict:
        raise StructuralIntegrityError(label, "must be a plain object")

    for key in value:
        if type(key) is not str:
            raise StructuralIntegrityError(label, f"must only use string keys, got {type(key).__name__}")
        if key in FORBIDDEN_KEYS:
            raise StructuralIntegrityError(label, f'contains forbidden key "{key}"')

    for key, item in value.items():
        if is_accessor(item):
            raise StructuralIntegrityError(label, f'property "{key}" must not use accessors')

    return value
