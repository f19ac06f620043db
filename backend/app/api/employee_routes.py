"""
Employee roster routes: CRUD, CSV import/export.

Deleting an employee also removes their payslips, overtime records and CV.
"""
import logging
import uuid
from dataclasses import replace
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import Response
from pydantic import Field

from app.api.deps import get_store, http_error
from app.models.payroll_schema import CamelModel, Employee, PayItem
from app.services.data_exchange import (
    employees_to_csv,
    merge_imported_employees,
    parse_employee_csv,
)
from app.services.errors import PayrollError
from app.services.state_store import (
    StateStore,
    add_employee,
    remove_employee,
    update_employee,
)

router = APIRouter(prefix="/api/employees", tags=["Employees"])
logger = logging.getLogger("payroll-employees")


# ── Pydantic Models ──────────────────────────────────────────────────────────

class EmployeeIn(CamelModel):
    employee_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    department: str = ""
    designation: str = ""
    joining_date: str = ""
    basic_salary: float = Field(0.0, ge=0)
    allowances: List[PayItem] = Field(default_factory=list)
    deductions: List[PayItem] = Field(default_factory=list)
    photo: Optional[str] = None


class CsvImportResult(CamelModel):
    added: int
    skipped: int
    message: str


class DeleteResult(CamelModel):
    deleted: str
    payslips_removed: int
    overtime_records_removed: int


# ── Endpoints ────────────────────────────────────────────────────────────────

@router.get("", response_model=List[Employee])
async def list_employees(q: str = "", store: StateStore = Depends(get_store)):
    """Roster, optionally filtered by name, employee id or department (case-insensitive)."""
    needle = q.lower()
    return [
        e for e in store.state.employees
        if not needle
        or needle in e.name.lower()
        or needle in e.employee_id.lower()
        or needle in e.department.lower()
    ]


@router.get("/export-csv")
async def export_csv(store: StateStore = Depends(get_store)):
    return Response(
        content=employees_to_csv(store.state.employees),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="employees.csv"'},
    )


@router.post("/import-csv", response_model=CsvImportResult)
async def import_csv(file: UploadFile = File(...), store: StateStore = Depends(get_store)):
    raw = await file.read()
    try:
        imported = parse_employee_csv(raw.decode("utf-8-sig"))
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="CSV file must be UTF-8 encoded.")
    except PayrollError as e:
        raise http_error(e)

    state = store.state
    roster, added, skipped = merge_imported_employees(state.employees, imported)
    store.commit(replace(state, employees=roster))

    message = f"Imported {added} new employee(s)."
    if skipped:
        message += f" {skipped} duplicate(s) were skipped."
    logger.info(message)
    return CsvImportResult(added=added, skipped=skipped, message=message)


@router.get("/{employee_id}", response_model=Employee)
async def get_employee(employee_id: str, store: StateStore = Depends(get_store)):
    try:
        return store.state.employee(employee_id)
    except PayrollError as e:
        raise http_error(e)


@router.post("", response_model=Employee, status_code=201)
async def create_employee(req: EmployeeIn, store: StateStore = Depends(get_store)):
    employee = Employee(id=f"emp-{uuid.uuid4().hex[:12]}", **req.model_dump())
    store.commit(add_employee(store.state, employee))
    logger.info(f"Employee {employee.employee_id} added", extra={"employee_id": employee.id})
    return employee


@router.put("/{employee_id}", response_model=Employee)
async def edit_employee(employee_id: str, req: EmployeeIn, store: StateStore = Depends(get_store)):
    employee = Employee(id=employee_id, **req.model_dump())
    try:
        store.commit(update_employee(store.state, employee))
    except PayrollError as e:
        raise http_error(e)
    return employee


@router.delete("/{employee_id}", response_model=DeleteResult)
async def delete_employee(employee_id: str, store: StateStore = Depends(get_store)):
    before = store.state
    try:
        after = store.commit(remove_employee(before, employee_id))
    except PayrollError as e:
        raise http_error(e)

    logger.info(f"Employee {employee_id} deleted with dependent records", extra={"employee_id": employee_id})
    return DeleteResult(
        deleted=employee_id,
        payslips_removed=len(before.payslips) - len(after.payslips),
        overtime_records_removed=len(before.overtime_records) - len(after.overtime_records),
    )
