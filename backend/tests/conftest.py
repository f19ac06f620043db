"""
conftest.py — Shared pytest fixtures for the payroll backend test suite.

Engine tests are pure unit tests.  API tests run the FastAPI app through
``TestClient`` against an in-memory StateStore; outbound webhook calls go to
an ``httpx.MockTransport`` that records every request.

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``app.*`` imports resolve correctly regardless of where pytest is invoked.
"""

import json
import sys
import os
import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any app imports occur.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)


# ---------------------------------------------------------------------------
# Engine fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def payroll_engine():
    """PayrollEngine (stateless)."""
    from app.services.payroll_engine import PayrollEngine
    return PayrollEngine()


@pytest.fixture(scope="session")
def dashboard_engine():
    """DashboardEngine (stateless)."""
    from app.services.dashboard_engine import DashboardEngine
    return DashboardEngine()


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------

@pytest.fixture
def default_settings():
    """
    Default settings: multiplier 2, no fixed rate, reference basic 9500,
    30 working days, 8 hours/day  →  rate = 9500/30/8×2 ≈ 79.17/h.
    """
    from app.models.payroll_schema import PayrollSettings
    return PayrollSettings()


@pytest.fixture
def employees():
    """
    Three-person roster:
      emp-001 Rahim Sheikh  Production       basic 15000, allowances 4000, deductions 500
      emp-002 Karim Ahmed   Quality Control  basic 18000, allowances 4300, deductions 800
      emp-003 Fatema Akter  Packaging        basic 12000, allowances 2500, deductions 0
    """
    from app.services.state_store import DEMO_EMPLOYEES
    return [e.model_copy(deep=True) for e in DEMO_EMPLOYEES]


@pytest.fixture
def make_record():
    """Factory for OvertimeRecord with totalAmount derived from hours × rate."""
    from app.models.payroll_schema import OvertimeRecord

    counter = {"n": 0}

    def _make(employee_id="emp-001", date="2026-10-05", hours=2.0, rate=80.0,
              absent_id=None, absent_name=None, employee_name=None):
        counter["n"] += 1
        return OvertimeRecord(
            id=f"ot-test-{counter['n']}",
            employee_id=employee_id,
            employee_name=employee_name or employee_id,
            date=date,
            hours=hours,
            rate=rate,
            total_amount=round(hours * rate, 2),
            absent_employee_id=absent_id,
            absent_employee_name=absent_name,
        )

    return _make


@pytest.fixture
def october_records(make_record):
    """
    October 2026 at rate 80:
      Rahim 2h (covers Karim by id) on 10-05, Rahim 3h (covers Karim by id) on 10-12,
      Fatema 4h (covers "Jamal", not on roster) on 10-12.
    Plus Rahim 5h in September (outside the month).
    """
    return [
        make_record("emp-001", "2026-10-05", 2, 80, absent_id="emp-002", absent_name="Karim Ahmed",
                    employee_name="Rahim Sheikh"),
        make_record("emp-001", "2026-10-12", 3, 80, absent_id="emp-002", absent_name="Karim Ahmed",
                    employee_name="Rahim Sheikh"),
        make_record("emp-003", "2026-10-12", 4, 80, absent_name="Jamal",
                    employee_name="Fatema Akter"),
        make_record("emp-001", "2026-09-28", 5, 80, absent_id="emp-003", absent_name="Fatema Akter",
                    employee_name="Rahim Sheikh"),
    ]


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def webhook_calls():
    """Bodies of every request sent through the mocked webhook transport."""
    return []


@pytest.fixture
def webhook_client(webhook_calls):
    import httpx
    from app.services.webhook_client import WebhookClient

    def handler(request: httpx.Request) -> httpx.Response:
        webhook_calls.append({"url": str(request.url), "body": json.loads(request.content)})
        return httpx.Response(200, text="ok")

    return WebhookClient(timeout=5, transport=httpx.MockTransport(handler))


@pytest.fixture
def store(employees):
    """In-memory store seeded with the sample roster."""
    from app.services.state_store import AppState, StateStore
    return StateStore.in_memory(AppState(employees=employees))


@pytest.fixture
def client(store, webhook_client):
    from fastapi.testclient import TestClient
    from app.main import create_app
    return TestClient(create_app(store=store, webhook=webhook_client))
