"""
test_import_safety.py — Import and layering checks.

Verifies that:
  1. Every service and model module imports on its own, without circular import failures.
  2. The calculation engines stay free of the web layer (no fastapi / starlette import).
  3. overtime_engine does not import absence_engine (absence_engine builds on it).

No data directory, network, or running server is required.
"""

import importlib

import pytest


_SERVICE_MODULES = [
    "app.services.errors",
    "app.services.overtime_engine",
    "app.services.absence_engine",
    "app.services.payroll_engine",
    "app.services.dashboard_engine",
    "app.services.cv_migration",
    "app.services.payslip_migration",
    "app.services.state_store",
    "app.services.data_exchange",
    "app.services.webhook_client",
    "app.services.logging_config",
    "app.services.middleware",
]

_ENGINE_MODULES = [
    "app.services.overtime_engine",
    "app.services.absence_engine",
    "app.services.payroll_engine",
    "app.services.dashboard_engine",
    "app.services.cv_migration",
    "app.services.payslip_migration",
]

_API_MODULES = [
    "app.api.employee_routes",
    "app.api.overtime_routes",
    "app.api.absence_routes",
    "app.api.payroll_routes",
    "app.api.dashboard_routes",
    "app.api.settings_routes",
    "app.api.cv_routes",
]


class TestModuleImports:

    @pytest.mark.parametrize("module_path", _SERVICE_MODULES + ["app.models.payroll_schema"])
    def test_service_module_imports(self, module_path):
        mod = importlib.import_module(module_path)
        assert mod is not None, f"Module {module_path} is None after import"

    @pytest.mark.parametrize("module_path", _API_MODULES)
    def test_router_modules_expose_router(self, module_path):
        mod = importlib.import_module(module_path)
        assert mod.router.prefix.startswith("/api/")


class TestLayering:

    @pytest.mark.parametrize("module_path", _ENGINE_MODULES)
    def test_engines_do_not_use_web_layer(self, module_path):
        mod = importlib.import_module(module_path)
        for name in ("fastapi", "starlette", "httpx"):
            assert name not in vars(mod), f"{module_path} imports {name}"

    def test_overtime_engine_independent_of_absence_engine(self):
        import app.services.overtime_engine as ot
        assert "absence_engine" not in dir(ot), (
            "overtime_engine appears to import absence_engine (circular risk)"
        )
