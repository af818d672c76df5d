"""Route module discovery and loading.

Route modules live in ``+server.py`` files below a routes directory, mirroring
the URL layout (``api/users/[id]/+server.py`` serves ``/api/users/{id}``).
Loading a module executes it; the host decides which directory to trust.
"""

import hashlib
import importlib.util
import inspect
from pathlib import Path
from types import ModuleType
from typing import Any, Callable

SERVER_FILE_NAME = "+server.py"
MAX_LOADER_DEPTH = 2


def discover_route_modules(root: Path) -> dict[str, Callable[[], ModuleType]]:
    """Map "/relative/path/+server.py" to a lazy loader for every route file under ``root``."""
    modules = {}
    for file_path in sorted(root.rglob(SERVER_FILE_NAME)):
        if not file_path.is_file():
            continue
        key = "/" + file_path.relative_to(root).as_posix()
        modules[key] = _make_loader(file_path)
    return modules


def load_module_from_path(file_path: Path) -> ModuleType:
    """Import a Python file under a name derived from its absolute path."""
    digest = hashlib.sha1(str(file_path.resolve()).encode("utf-8")).hexdigest()[:12]
    name = f"api_schema_guard_routes.m_{digest}"
    spec = importlib.util.spec_from_file_location(name, file_path)
    if spec is None or spec.loader is None:
        raise ImportError(f"cannot load route module {file_path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def resolve_module(entry: Any, depth: int = 0) -> Any:
    """Follow zero-argument loaders until a module-like value is reached.

    Bundled or lazily imported modules may be wrapped in one or two loader
    callables. Anything still callable past ``MAX_LOADER_DEPTH`` resolves to
    None.
    """
    if not inspect.isroutine(entry):
        return entry
    if depth >= MAX_LOADER_DEPTH:
        return None
    return resolve_module(entry(), depth + 1)


def _make_loader(file_path: Path) -> Callable[[], ModuleType]:
    def load() -> ModuleType:
        return load_module_from_path(file_path)

    return load
