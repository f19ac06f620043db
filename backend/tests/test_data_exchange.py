"""
test_data_exchange.py — Tests for the JSON data bundle and the employee CSV.

Tests cover:
  - export_bundle / import_bundle: section keys, required sections, all-or-nothing import,
    settings merged over defaults, CV upgrade on import, browser payslip months,
    untouched collections
  - parse_employee_csv: headers, quoting (commas and newlines), short rows,
    row-numbered errors, salary parsing
  - merge_imported_employees: duplicate skipping, prepend order
  - employees_to_csv
"""

import pytest

from app.models.payroll_schema import Note
from app.services.data_exchange import (
    CSV_HEADERS,
    employees_to_csv,
    export_bundle,
    import_bundle,
    merge_imported_employees,
    parse_employee_csv,
)
from app.services.errors import ImportValidationError
from app.services.state_store import AppState


CSV_TEXT = (
    "employeeId,name,department,designation,joiningDate,basicSalary\n"
    '"F-201","Nasir Uddin","Production","Helper",2024-02-01,11000\n'
    "\n"
    "F-202, Shila Rani ,Packaging,Packer,2024-03-15,abc\n"
)


# ===========================================================================
# Class 1: Data bundle
# ===========================================================================

class TestBundle:

    def test_export_keys(self, employees, october_records):
        bundle = export_bundle(AppState(employees=employees, overtime_records=october_records))
        assert set(bundle) == {
            "monthBase", "settings", "employees", "payslips", "overtimeRecords", "employeeCVs",
            "factory_categories", "factory_categorized_employees",
        }
        assert bundle["employees"][0]["employeeId"] == "F-101"
        assert bundle["overtimeRecords"][0]["totalAmount"] == 160
        assert bundle["monthBase"] == 1

    def test_export_import_restores_state(self, employees, october_records):
        original = AppState(employees=employees, overtime_records=october_records)
        restored = import_bundle(export_bundle(original), AppState())
        assert restored.employees == original.employees
        assert restored.overtime_records == original.overtime_records
        assert restored.settings == original.settings

    @pytest.mark.parametrize("missing", ["employees", "payslips", "overtimeRecords", "settings"])
    def test_missing_section_rejected(self, missing):
        bundle = {"employees": [], "payslips": [], "overtimeRecords": [], "settings": {}}
        del bundle[missing]
        with pytest.raises(ImportValidationError, match="Missing required data sections"):
            import_bundle(bundle, AppState())

    def test_not_an_object_rejected(self):
        with pytest.raises(ImportValidationError):
            import_bundle([1, 2, 3], AppState())

    def test_invalid_section_changes_nothing(self, employees):
        current = AppState(employees=employees)
        bundle = {"employees": [{"name": "no ids"}], "payslips": [], "overtimeRecords": [], "settings": {}}
        with pytest.raises(ImportValidationError):
            import_bundle(bundle, current)
        assert current.employees == employees

    def test_settings_merged_over_defaults(self):
        bundle = {"employees": [], "payslips": [], "overtimeRecords": [],
                  "settings": {"overtimeMultiplier": 1.5}}
        state = import_bundle(bundle, AppState())
        assert state.settings.overtime_multiplier == 1.5
        assert state.settings.overtime_calculation_basic_salary == 9500

    def test_flat_cvs_upgraded(self):
        bundle = {"employees": [], "payslips": [], "overtimeRecords": [], "settings": {},
                  "employeeCVs": [{"employeeId": "emp-001", "email": "r@example.test"}]}
        [cv] = import_bundle(bundle, AppState()).employee_cvs
        assert cv.sections[0].items[0].value == "r@example.test"

    def test_browser_payslip_months_shifted(self):
        bundle = {"employees": [], "overtimeRecords": [], "settings": {}, "payslips": [
            {"id": "payslip-emp-001-0-2026", "employeeId": "emp-001", "month": 0, "year": 2026},
            {"id": "slip-7", "employeeId": "emp-002", "month": 1, "year": 2026},
        ]}
        slips = import_bundle(bundle, AppState()).payslips
        assert [(p.id, p.month) for p in slips] == [("payslip-emp-001-1-2026", 1), ("slip-7", 2)]
        assert "monthBase" not in bundle
        assert bundle["payslips"][0]["month"] == 0

    def test_marked_bundle_months_kept(self):
        bundle = {"monthBase": 1, "employees": [], "overtimeRecords": [], "settings": {}, "payslips": [
            {"id": "payslip-emp-001-1-2026", "employeeId": "emp-001", "month": 1, "year": 2026},
        ]}
        [slip] = import_bundle(bundle, AppState()).payslips
        assert slip.month == 1

    def test_exported_payslips_not_shifted_on_reimport(self):
        from app.models.payroll_schema import Payslip
        original = AppState(payslips=[Payslip(id="payslip-emp-001-12-2025", employee_id="emp-001",
                                              month=12, year=2025)])
        restored = import_bundle(export_bundle(original), AppState())
        assert restored.payslips == original.payslips

    @pytest.mark.parametrize("cvs", [[5], ["cv"], "not a list"])
    def test_malformed_cvs_rejected(self, cvs):
        bundle = {"employees": [], "payslips": [], "overtimeRecords": [], "settings": {},
                  "employeeCVs": cvs}
        with pytest.raises(ImportValidationError):
            import_bundle(bundle, AppState())

    def test_settings_must_be_object(self):
        bundle = {"employees": [], "payslips": [], "overtimeRecords": [], "settings": [1]}
        with pytest.raises(ImportValidationError, match="settings must be an object"):
            import_bundle(bundle, AppState())

    def test_notes_and_remarks_kept(self):
        current = AppState(notes=[Note(id="note-1", title="Shift")], absence_remarks={"A-1": "x"})
        bundle = {"employees": [], "payslips": [], "overtimeRecords": [], "settings": {}}
        state = import_bundle(bundle, current)
        assert state.notes == current.notes
        assert state.absence_remarks == {"A-1": "x"}


# ===========================================================================
# Class 2: Employee CSV
# ===========================================================================

class TestEmployeeCsv:

    def test_parse_rows(self):
        rows = parse_employee_csv(CSV_TEXT)
        assert [e.employee_id for e in rows] == ["F-201", "F-202"]
        assert rows[0].name == "Nasir Uddin"
        assert rows[0].basic_salary == 11000
        assert rows[1].name == "Shila Rani"
        assert rows[0].allowances == [] and rows[0].deductions == []

    def test_unparsable_salary_is_zero(self):
        assert parse_employee_csv(CSV_TEXT)[1].basic_salary == 0

    def test_generated_ids_unique(self):
        rows = parse_employee_csv(CSV_TEXT)
        assert rows[0].id != rows[1].id
        assert rows[0].id.startswith("emp-imported-")

    def test_missing_headers(self):
        with pytest.raises(ImportValidationError, match="missing required headers"):
            parse_employee_csv("employeeId,name\nF-1,A\n")

    def test_empty_file(self):
        with pytest.raises(ImportValidationError):
            parse_employee_csv("\n\n")

    def test_row_without_name_reports_line(self):
        """Header is row 1, so the second data row is row 3."""
        text = ",".join(CSV_HEADERS) + "\nF-1,Ali,P,H,2024-01-01,100\nF-2,,P,H,2024-01-01,100\n"
        with pytest.raises(ImportValidationError, match="Row 3 is missing required employeeId or name."):
            parse_employee_csv(text)

    def test_quoted_field_with_comma_and_newline(self):
        text = ",".join(CSV_HEADERS) + '\nF-7,"Akter, Moni","Finishing\nLine 2",Iron,,9000\n'
        [emp] = parse_employee_csv(text)
        assert emp.name == "Akter, Moni"
        assert emp.department == "Finishing\nLine 2"
        assert emp.basic_salary == 9000

    def test_short_row_fills_blanks(self):
        [emp] = parse_employee_csv(",".join(CSV_HEADERS) + "\nF-8,Rubel\n")
        assert (emp.department, emp.joining_date, emp.basic_salary) == ("", "", 0)

    def test_headers_in_any_order(self):
        text = "name,basicSalary,employeeId,department,designation,joiningDate\nAli,500,F-9,,,\n"
        [emp] = parse_employee_csv(text)
        assert emp.employee_id == "F-9"
        assert emp.basic_salary == 500

    def test_duplicates_skipped(self, employees):
        imported = parse_employee_csv(
            ",".join(CSV_HEADERS) + "\nF-101,Dup,P,H,,1\nF-300,New,P,H,,1\nF-300,Again,P,H,,1\n"
        )
        roster, added, skipped = merge_imported_employees(employees, imported)
        assert (added, skipped) == (1, 2)
        assert roster[0].employee_id == "F-300"
        assert len(roster) == 4

    def test_export_header_and_rows(self, employees):
        lines = employees_to_csv(employees).splitlines()
        assert lines[0] == ",".join(CSV_HEADERS)
        assert lines[1] == "F-101,Rahim Sheikh,Production,Machine Operator,2022-01-15,15000"

    def test_export_then_import(self, employees):
        rows = parse_employee_csv(employees_to_csv(employees))
        assert [(e.employee_id, e.name, e.basic_salary) for e in rows] == [
            (e.employee_id, e.name, e.basic_salary) for e in employees
        ]
