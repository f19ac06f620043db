"""
test_state_store.py — Tests for AppState transitions and JSON-file persistence.

Tests cover:
  - remove_employee: cascade to payslips, overtime records and CV
  - add/update employee, CV upsert, settings merge
  - StateStore: round trip through the data directory, unreadable files, CV upgrade on load
  - browser-era payslip months shifted once and the directory marked
"""

import json
import logging

import pytest

from app.models.payroll_schema import EmployeeCV, Payslip, PayrollSettings
from app.services.cv_migration import default_cv
from app.services.errors import RecordNotFoundError
from app.services.state_store import (
    AppState,
    StateStore,
    add_employee,
    merge_settings,
    remove_employee,
    update_employee,
    upsert_cv,
)


def payslip(employee_id, month=10, year=2026):
    return Payslip(id=f"payslip-{employee_id}-{month}-{year}", employee_id=employee_id,
                   month=month, year=year)


@pytest.fixture
def populated_state(employees, october_records):
    return AppState(
        employees=employees,
        overtime_records=october_records,
        payslips=[payslip("emp-001"), payslip("emp-002"), payslip("emp-001", 9)],
        employee_cvs=[EmployeeCV.model_validate(default_cv("emp-001")),
                      EmployeeCV.model_validate(default_cv("emp-003"))],
    )


# ===========================================================================
# Class 1: Transitions
# ===========================================================================

class TestTransitions:

    def test_delete_cascades(self, populated_state):
        state = remove_employee(populated_state, "emp-001")
        assert all(e.id != "emp-001" for e in state.employees)
        assert all(p.employee_id != "emp-001" for p in state.payslips)
        assert all(r.employee_id != "emp-001" for r in state.overtime_records)
        assert all(cv.employee_id != "emp-001" for cv in state.employee_cvs)
        assert len(state.payslips) == 1
        assert len(state.employee_cvs) == 1

    def test_delete_leaves_original_snapshot(self, populated_state):
        remove_employee(populated_state, "emp-001")
        assert len(populated_state.employees) == 3

    def test_delete_unknown_employee(self, populated_state):
        with pytest.raises(RecordNotFoundError):
            remove_employee(populated_state, "emp-404")

    def test_new_employee_prepended(self, populated_state, employees):
        newcomer = employees[0].model_copy(update={"id": "emp-new", "name": "New Hire"})
        state = add_employee(populated_state, newcomer)
        assert state.employees[0].id == "emp-new"

    def test_update_employee(self, populated_state, employees):
        raised = employees[1].model_copy(update={"basic_salary": 19000})
        state = update_employee(populated_state, raised)
        assert state.employee("emp-002").basic_salary == 19000

    def test_cv_upsert_keeps_one_per_employee(self, populated_state):
        cv = EmployeeCV.model_validate(default_cv("emp-001")).model_copy(update={"about_me": "Operator"})
        state = upsert_cv(populated_state, cv)
        mine = [c for c in state.employee_cvs if c.employee_id == "emp-001"]
        assert len(mine) == 1
        assert mine[0].about_me == "Operator"

    def test_settings_merge_over_defaults(self):
        settings = merge_settings({"overtimeRate": 100, "googleSheetsUrl": "https://example.test/hook"})
        assert settings.overtime_rate == 100
        assert settings.google_sheets_url == "https://example.test/hook"
        assert settings.working_days_per_month == 30


# ===========================================================================
# Class 2: Persistence
# ===========================================================================

class TestPersistence:

    def test_round_trip(self, tmp_path, populated_state):
        store = StateStore(tmp_path)
        store.load()
        store.commit(populated_state)

        reloaded = StateStore(tmp_path).load()
        assert [e.id for e in reloaded.employees] == ["emp-001", "emp-002", "emp-003"]
        assert len(reloaded.overtime_records) == 4
        assert reloaded.payslips == populated_state.payslips

    def test_files_use_storage_keys_and_camel_case(self, tmp_path, populated_state):
        store = StateStore(tmp_path)
        store.commit(populated_state)
        raw = json.loads((tmp_path / "factory_employees.json").read_text(encoding="utf-8"))
        assert raw[0]["employeeId"] == "F-101"
        assert "basicSalary" in raw[0]
        assert (tmp_path / "factory_overtime_records.json").exists()

    def test_only_changed_collections_written(self, tmp_path, populated_state):
        store = StateStore(tmp_path)
        store.commit(populated_state)
        (tmp_path / "factory_payslips.json").unlink()
        store.commit(remove_employee(store.state, "emp-003"))
        # emp-003 has no payslips, so that collection is unchanged and not rewritten
        assert not (tmp_path / "factory_payslips.json").exists()
        assert not (tmp_path / "factory_notes.json").exists()
        roster = json.loads((tmp_path / "factory_employees.json").read_text(encoding="utf-8"))
        assert len(roster) == 2

    def test_corrupt_file_falls_back_to_default(self, tmp_path, caplog):
        (tmp_path / "factory_employees.json").write_text("{not json", encoding="utf-8")
        (tmp_path / "factory_settings.json").write_text(
            json.dumps({"overtimeRate": 55}), encoding="utf-8"
        )
        with caplog.at_level(logging.WARNING, logger="payroll-store"):
            state = StateStore(tmp_path).load()
        assert state.employees == []
        assert state.settings.overtime_rate == 55
        assert any("factory_employees" in r.getMessage() for r in caplog.records)

    def test_invalid_shape_falls_back_to_default(self, tmp_path):
        (tmp_path / "factory_payslips.json").write_text(json.dumps([{"id": 1}]), encoding="utf-8")
        assert StateStore(tmp_path).load().payslips == []

    def test_missing_directory_gives_empty_state(self, tmp_path):
        state = StateStore(tmp_path / "nope").load()
        assert state.employees == []
        assert state.settings == PayrollSettings()

    def test_demo_seed_only_without_saved_roster(self, tmp_path):
        state = StateStore(tmp_path, seed_demo=True).load()
        assert [e.employee_id for e in state.employees] == ["F-101", "F-102", "F-103"]

    def test_flat_cvs_upgraded_on_load(self, tmp_path):
        (tmp_path / "factory_employee_cvs.json").write_text(
            json.dumps([{"employeeId": "emp-001", "contactNo": "017"}]), encoding="utf-8"
        )
        [cv] = StateStore(tmp_path).load().employee_cvs
        assert cv.sections[0].id == "contact"

    def test_malformed_cv_entries_discarded(self, tmp_path):
        (tmp_path / "factory_employee_cvs.json").write_text(json.dumps(["oops", 5]), encoding="utf-8")
        (tmp_path / "factory_settings.json").write_text(json.dumps({"overtimeRate": 55}), encoding="utf-8")
        state = StateStore(tmp_path).load()
        assert state.employee_cvs == []
        assert state.settings.overtime_rate == 55

    def test_cvs_not_a_list_discarded(self, tmp_path):
        (tmp_path / "factory_employee_cvs.json").write_text(json.dumps({"employeeId": "x"}), encoding="utf-8")
        assert StateStore(tmp_path).load().employee_cvs == []


# ===========================================================================
# Class 3: Browser-era payslip months
# ===========================================================================

class TestPayslipMonths:

    def write_browser_payslips(self, path):
        path.write_text(json.dumps([
            {"id": "payslip-emp-001-0-2026", "employeeId": "emp-001", "month": 0, "year": 2026},
            {"id": "payslip-emp-002-11-2025", "employeeId": "emp-002", "month": 11, "year": 2025},
        ]), encoding="utf-8")

    def test_unmarked_directory_shifted_once(self, tmp_path):
        self.write_browser_payslips(tmp_path / "factory_payslips.json")

        slips = StateStore(tmp_path).load().payslips
        assert [(p.id, p.month) for p in slips] == [
            ("payslip-emp-001-1-2026", 1),
            ("payslip-emp-002-12-2025", 12),
        ]
        assert json.loads((tmp_path / "factory_meta.json").read_text(encoding="utf-8")) == {"monthBase": 1}
        saved = json.loads((tmp_path / "factory_payslips.json").read_text(encoding="utf-8"))
        assert [p["month"] for p in saved] == [1, 12]

        again = StateStore(tmp_path).load().payslips
        assert [p.month for p in again] == [1, 12]

    def test_marked_directory_not_shifted(self, tmp_path, populated_state):
        StateStore(tmp_path).commit(populated_state)
        assert (tmp_path / "factory_meta.json").exists()
        reloaded = StateStore(tmp_path).load()
        assert sorted(p.month for p in reloaded.payslips) == [9, 10, 10]
