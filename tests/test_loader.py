from pathlib import Path

import pytest

from api_schema_guard.generator.loader import (
    discover_route_modules,
    load_module_from_path,
    resolve_module,
)

FIXTURES = Path(__file__).parent / "fixtures"
ROUTES = FIXTURES / "routes"


class TestDiscoverRouteModules:
    def test_finds_server_files(self):
        modules = discover_route_modules(ROUTES)
        assert sorted(modules) == [
            "/api/broken/+server.py",
            "/api/legacy/+server.py",
            "/api/todos/+server.py",
            "/api/todos/[id]/+server.py",
        ]

    def test_loaders_are_lazy(self, tmp_path):
        (tmp_path / "+server.py").write_text("raise RuntimeError('loaded')\n")
        modules = discover_route_modules(tmp_path)
        with pytest.raises(RuntimeError, match="loaded"):
            modules["/+server.py"]()


class TestLoadModule:
    def test_loads_endpoint_map(self):
        module = load_module_from_path(ROUTES / "api" / "todos" / "+server.py")
        assert set(module._openapi) == {"GET", "POST"}


class TestResolveModule:
    def test_plain_value(self):
        module = object()
        assert resolve_module(module) is module

    def test_follows_loaders(self):
        module = {"_openapi": {}}
        assert resolve_module(lambda: module) is module
        assert resolve_module(lambda: lambda: module) is module

    def test_gives_up_after_two_levels(self):
        module = {"_openapi": {}}
        assert resolve_module(lambda: lambda: lambda: module) is None
