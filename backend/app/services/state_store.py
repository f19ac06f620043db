"""
state_store.py — Application state and its JSON-file persistence.

All state lives in one immutable ``AppState`` snapshot.  Handlers derive a
new snapshot with the pure helpers below and hand it to
``StateStore.commit``, which swaps it in and rewrites only the collections
that changed.  Each collection is one ``<key>.json`` file in the data
directory; a missing or unreadable file yields the default collection.
"""

import json
import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import TypeAdapter, ValidationError

from app.models.payroll_schema import (
    Employee,
    EmployeeCV,
    Note,
    OvertimeRecord,
    PayItem,
    Payslip,
    PayrollSettings,
)
from app.services.cv_migration import upgrade_all
from app.services.errors import RecordNotFoundError
from app.services.payslip_migration import (
    LEGACY_MONTH_BASE,
    MONTH_BASE,
    MONTH_BASE_KEY,
    upgrade_payslips,
)

logger = logging.getLogger("payroll-store")


# ---------------------------------------------------------------------------
# Storage keys
# ---------------------------------------------------------------------------

STORAGE_KEYS: Dict[str, str] = {
    "employees":             "factory_employees",
    "payslips":              "factory_payslips",
    "overtime_records":      "factory_overtime_records",
    "settings":              "factory_settings",
    "notes":                 "factory_notes",
    "users":                 "factory_users",
    "employee_cvs":          "factory_employee_cvs",
    "absence_remarks":       "factory_absence_remarks",
    "categories":            "factory_categories",
    "categorized_employees": "factory_categorized_employees",
}

# Format marker for the directory; a directory without it holds browser-era payslips
META_FILE = "factory_meta.json"

DEMO_EMPLOYEES: List[Employee] = [
    Employee(
        id="emp-001", employee_id="F-101", name="Rahim Sheikh",
        department="Production", designation="Machine Operator",
        joining_date="2022-01-15", basic_salary=15000,
        allowances=[PayItem(type="House Rent", amount=3000), PayItem(type="Medical", amount=1000)],
        deductions=[PayItem(type="Provident Fund", amount=500)],
    ),
    Employee(
        id="emp-002", employee_id="F-102", name="Karim Ahmed",
        department="Quality Control", designation="QC Inspector",
        joining_date="2021-11-20", basic_salary=18000,
        allowances=[PayItem(type="House Rent", amount=3500), PayItem(type="Conveyance", amount=800)],
        deductions=[PayItem(type="Provident Fund", amount=600), PayItem(type="Tax", amount=200)],
    ),
    Employee(
        id="emp-003", employee_id="F-103", name="Fatema Akter",
        department="Packaging", designation="Packer",
        joining_date="2023-03-10", basic_salary=12000,
        allowances=[PayItem(type="House Rent", amount=2500)],
        deductions=[],
    ),
]


# ---------------------------------------------------------------------------
# AppState
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AppState:
    employees: List[Employee] = field(default_factory=list)
    payslips: List[Payslip] = field(default_factory=list)
    overtime_records: List[OvertimeRecord] = field(default_factory=list)
    settings: PayrollSettings = field(default_factory=PayrollSettings)
    notes: List[Note] = field(default_factory=list)
    users: List[Dict[str, Any]] = field(default_factory=list)
    employee_cvs: List[EmployeeCV] = field(default_factory=list)
    absence_remarks: Dict[str, str] = field(default_factory=dict)
    categories: List[Any] = field(default_factory=list)
    categorized_employees: Dict[str, Any] = field(default_factory=dict)

    def employee(self, employee_id: str) -> Employee:
        for emp in self.employees:
            if emp.id == employee_id:
                return emp
        raise RecordNotFoundError(f"Employee {employee_id} not found")


# Validators for each collection; "employee_cvs" upgrades old documents first
_ADAPTERS: Dict[str, Tuple[TypeAdapter, Callable[[Any], Any]]] = {
    "employees":             (TypeAdapter(List[Employee]), lambda raw: raw),
    "payslips":              (TypeAdapter(List[Payslip]), lambda raw: raw),
    "overtime_records":      (TypeAdapter(List[OvertimeRecord]), lambda raw: raw),
    "settings":              (TypeAdapter(PayrollSettings), lambda raw: raw),
    "notes":                 (TypeAdapter(List[Note]), lambda raw: raw),
    "users":                 (TypeAdapter(List[Dict[str, Any]]), lambda raw: raw),
    "employee_cvs":          (TypeAdapter(List[EmployeeCV]), upgrade_all),
    "absence_remarks":       (TypeAdapter(Dict[str, str]), lambda raw: raw),
    "categories":            (TypeAdapter(List[Any]), lambda raw: raw),
    "categorized_employees": (TypeAdapter(Dict[str, Any]), lambda raw: raw),
}


def parse_collection(name: str, raw: Any) -> Any:
    """Validate one collection's raw JSON value; raises ValidationError."""
    adapter, prepare = _ADAPTERS[name]
    return adapter.validate_python(prepare(raw))


def dump_collection(name: str, value: Any) -> Any:
    adapter, _ = _ADAPTERS[name]
    return adapter.dump_python(value, mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# State transitions
# ---------------------------------------------------------------------------

def add_employee(state: AppState, employee: Employee) -> AppState:
    """New employees go to the top of the roster."""
    return replace(state, employees=[employee] + list(state.employees))


def update_employee(state: AppState, employee: Employee) -> AppState:
    state.employee(employee.id)
    return replace(state, employees=[
        employee if e.id == employee.id else e for e in state.employees
    ])


def remove_employee(state: AppState, employee_id: str) -> AppState:
    """Delete an employee with their payslips, overtime records and CV."""
    state.employee(employee_id)
    return replace(
        state,
        employees=[e for e in state.employees if e.id != employee_id],
        payslips=[p for p in state.payslips if p.employee_id != employee_id],
        overtime_records=[r for r in state.overtime_records if r.employee_id != employee_id],
        employee_cvs=[cv for cv in state.employee_cvs if cv.employee_id != employee_id],
    )


def upsert_cv(state: AppState, cv: EmployeeCV) -> AppState:
    others = [c for c in state.employee_cvs if c.employee_id != cv.employee_id]
    return replace(state, employee_cvs=others + [cv])


def merge_settings(update: Dict[str, Any]) -> PayrollSettings:
    """Settings from a partial dict, missing keys falling back to defaults."""
    base = PayrollSettings().model_dump(by_alias=True)
    base.update({k: v for k, v in (update or {}).items() if v is not None})
    return PayrollSettings.model_validate(base)


# ---------------------------------------------------------------------------
# StateStore
# ---------------------------------------------------------------------------

class StateStore:
    """
    Holder of the current AppState.

    ``data_dir=None`` keeps everything in memory (used by tests).
    """

    def __init__(self, data_dir: Optional[Path] = None, seed_demo: bool = False) -> None:
        self.data_dir = Path(data_dir) if data_dir is not None else None
        self.seed_demo = seed_demo
        self._state = AppState()
        self.loaded = False

    @classmethod
    def in_memory(cls, state: Optional[AppState] = None) -> "StateStore":
        store = cls()
        store._state = state or AppState()
        store.loaded = True
        return store

    @property
    def state(self) -> AppState:
        return self._state

    def _path(self, name: str) -> Path:
        return self.data_dir / f"{STORAGE_KEYS[name]}.json"

    # -----------------------------------------------------------------------
    # Load
    # -----------------------------------------------------------------------

    def _stored_month_base(self) -> Any:
        path = self.data_dir / META_FILE
        if not path.exists():
            return LEGACY_MONTH_BASE
        try:
            meta = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            # Only this store writes the marker, so a damaged one still means 1-based
            logger.warning(f"Unreadable {META_FILE}: {e}")
            return MONTH_BASE
        return meta.get(MONTH_BASE_KEY, LEGACY_MONTH_BASE) if isinstance(meta, dict) else MONTH_BASE

    def load(self) -> AppState:
        """
        Read every collection file; unreadable ones fall back to defaults.

        A directory without the meta marker holds browser-era payslips: their
        months are shifted to 1-based and written back together with the marker.
        """
        if self.data_dir is None:
            self.loaded = True
            return self._state

        month_base = self._stored_month_base()
        values: Dict[str, Any] = {}
        for f in fields(AppState):
            path = self._path(f.name)
            if not path.exists():
                continue
            try:
                raw = json.loads(path.read_text(encoding="utf-8"))
                if f.name == "payslips":
                    raw = upgrade_payslips(raw, month_base)
                values[f.name] = parse_collection(f.name, raw)
            except (json.JSONDecodeError, ValidationError, UnicodeDecodeError) as e:
                logger.warning(
                    f"Discarding unreadable collection {STORAGE_KEYS[f.name]}: {e}",
                    extra={"collection": STORAGE_KEYS[f.name]},
                )

        if month_base != MONTH_BASE and self.data_dir.exists():
            if "payslips" in values:
                logger.info(f"Converted {len(values['payslips'])} payslip(s) to 1-based months")
                self._write("payslips", values["payslips"])
            self._write_meta()

        if "employees" not in values and self.seed_demo:
            logger.info("No saved employees, seeding demo roster")
            values["employees"] = list(DEMO_EMPLOYEES)

        self._state = AppState(**values)
        self.loaded = True
        logger.info(
            f"State loaded: {len(self._state.employees)} employees, "
            f"{len(self._state.overtime_records)} overtime records, "
            f"{len(self._state.payslips)} payslips"
        )
        return self._state

    # -----------------------------------------------------------------------
    # Commit
    # -----------------------------------------------------------------------

    def commit(self, new_state: AppState) -> AppState:
        """Replace the current snapshot and persist the collections that changed."""
        previous = self._state
        self._state = new_state
        if self.data_dir is None:
            return new_state

        self.data_dir.mkdir(parents=True, exist_ok=True)
        if not (self.data_dir / META_FILE).exists():
            self._write_meta()
        for f in fields(AppState):
            value = getattr(new_state, f.name)
            if value == getattr(previous, f.name):
                continue
            self._write(f.name, value)
        return new_state

    def _write(self, name: str, value: Any) -> None:
        path = self._path(name)
        self._write_json(path, dump_collection(name, value))
        logger.debug(f"Wrote {path.name}", extra={"collection": STORAGE_KEYS[name]})

    def _write_meta(self) -> None:
        self._write_json(self.data_dir / META_FILE, {MONTH_BASE_KEY: MONTH_BASE})

    @staticmethod
    def _write_json(path: Path, data: Any) -> None:
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
        os.replace(tmp, path)
