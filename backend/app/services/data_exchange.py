"""
data_exchange.py — Bulk import/export.

Covers:
  - Full data bundle (JSON) export and all-or-nothing import
  - Employee roster CSV import with duplicate skipping, and CSV export
"""

import csv
import io
import logging
import time
from dataclasses import replace
from typing import Any, Dict, List, Sequence, Tuple

import pandas as pd
from pydantic import ValidationError

from app.models.payroll_schema import Employee
from app.services.errors import ImportValidationError
from app.services.payslip_migration import (
    LEGACY_MONTH_BASE,
    MONTH_BASE,
    MONTH_BASE_KEY,
    upgrade_payslips,
)
from app.services.state_store import (
    AppState,
    dump_collection,
    merge_settings,
    parse_collection,
)

logger = logging.getLogger("payroll-exchange")


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

REQUIRED_BUNDLE_SECTIONS: List[str] = ["employees", "payslips", "overtimeRecords", "settings"]

# bundle key -> AppState field
BUNDLE_SECTIONS: Dict[str, str] = {
    "employees":                     "employees",
    "payslips":                      "payslips",
    "overtimeRecords":               "overtime_records",
    "employeeCVs":                   "employee_cvs",
    "factory_categories":            "categories",
    "factory_categorized_employees": "categorized_employees",
}

CSV_HEADERS: List[str] = [
    "employeeId", "name", "department", "designation", "joiningDate", "basicSalary",
]


# ---------------------------------------------------------------------------
# 1. Data bundle
# ---------------------------------------------------------------------------

def export_bundle(state: AppState) -> Dict[str, Any]:
    bundle: Dict[str, Any] = {
        MONTH_BASE_KEY: MONTH_BASE,
        "settings": dump_collection("settings", state.settings),
    }
    for key, attr in BUNDLE_SECTIONS.items():
        bundle[key] = dump_collection(attr, getattr(state, attr))
    return bundle


def import_bundle(payload: Any, current: AppState) -> AppState:
    """
    Replace employees, payslips, overtime records, CVs, settings and categories
    with the bundle's content.

    The bundle must carry employees, payslips, overtimeRecords and settings;
    otherwise, or if any section fails validation, nothing is applied.
    Optional sections that are absent keep their current value.  Notes, users
    and absence remarks are never touched.
    A bundle without ``monthBase: 1`` comes from the browser build and has its
    0-based payslip months shifted on the way in.
    """
    if not isinstance(payload, dict) or any(payload.get(k) is None for k in REQUIRED_BUNDLE_SECTIONS):
        raise ImportValidationError(
            "Invalid data file. Missing required data sections "
            "(employees, payslips, overtimeRecords, settings)."
        )
    if not isinstance(payload["settings"], dict):
        raise ImportValidationError("Invalid data file: settings must be an object")

    updates: Dict[str, Any] = {}
    try:
        for key, attr in BUNDLE_SECTIONS.items():
            if key in payload and payload[key] is not None:
                raw = payload[key]
                if attr == "payslips":
                    raw = upgrade_payslips(raw, payload.get(MONTH_BASE_KEY, LEGACY_MONTH_BASE))
                updates[attr] = parse_collection(attr, raw)
        updates["settings"] = merge_settings(payload["settings"])
    except ValidationError as e:
        raise ImportValidationError(f"Invalid data file: {e.error_count()} invalid field(s)") from e

    logger.info(
        f"Bundle imported: {len(updates['employees'])} employees, "
        f"{len(updates['overtime_records'])} overtime records, "
        f"{len(updates['payslips'])} payslips"
    )
    return replace(current, **updates)


# ---------------------------------------------------------------------------
# 2. Employee CSV
# ---------------------------------------------------------------------------

def _clean(value: Any) -> str:
    return str(value or "").strip().replace('"', "")


def _parse_salary(value: str) -> float:
    try:
        return float(value)
    except ValueError:
        return 0.0


def _format_salary(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def parse_employee_csv(text: str) -> List[Employee]:
    """
    Parse a roster CSV into new Employee objects.

    Blank lines are ignored.  The header row must contain every CSV_HEADERS
    column (in any order).  A row without employeeId or name aborts the whole
    import; the reported row number counts the header as row 1.
    """
    try:
        df = pd.read_csv(
            io.StringIO(text or ""),
            dtype=str,
            skip_blank_lines=True,
            keep_default_na=False,
            index_col=False,
        )
    except pd.errors.EmptyDataError:
        raise ImportValidationError("CSV file is missing required headers.")
    except pd.errors.ParserError as e:
        raise ImportValidationError(f"CSV file could not be parsed: {e}") from e

    df.columns = [str(c).strip() for c in df.columns]
    if not all(h in df.columns for h in CSV_HEADERS):
        raise ImportValidationError("CSV file is missing required headers.")
    df = df.fillna("")

    stamp = int(time.time() * 1000)
    employees: List[Employee] = []
    for index, record in enumerate(df.to_dict("records")):
        data = {h: _clean(v) for h, v in record.items()}
        if not data.get("employeeId") or not data.get("name"):
            raise ImportValidationError(f"Row {index + 2} is missing required employeeId or name.")
        try:
            employees.append(Employee(
                id=f"emp-imported-{stamp}-{index}",
                employee_id=data["employeeId"],
                name=data["name"],
                department=data.get("department", ""),
                designation=data.get("designation", ""),
                joining_date=data.get("joiningDate", ""),
                basic_salary=_parse_salary(data.get("basicSalary", "")),
            ))
        except ValidationError as e:
            raise ImportValidationError(f"Row {index + 2} is invalid: {e.errors()[0]['msg']}") from e
    return employees


def merge_imported_employees(
    existing: Sequence[Employee], imported: Sequence[Employee]
) -> Tuple[List[Employee], int, int]:
    """
    Prepend imported employees whose employeeId is not on the roster yet.

    Returns (roster, added, skipped).
    """
    seen = {e.employee_id for e in existing}
    added: List[Employee] = []
    for emp in imported:
        if emp.employee_id in seen:
            continue
        seen.add(emp.employee_id)
        added.append(emp)
    skipped = len(imported) - len(added)
    if skipped:
        logger.info(f"CSV import skipped {skipped} duplicate employee id(s)")
    return added + list(existing), len(added), skipped


def employees_to_csv(employees: Sequence[Employee]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for emp in employees:
        writer.writerow([
            emp.employee_id,
            emp.name,
            emp.department,
            emp.designation,
            emp.joining_date,
            _format_salary(emp.basic_salary),
        ])
    return buffer.getvalue()
