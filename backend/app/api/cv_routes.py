"""Employee CV routes. A CV is stored once per employee and replaced on save."""
import logging

from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_store, http_error
from app.models.payroll_schema import EmployeeCV
from app.services.cv_migration import default_cv
from app.services.errors import PayrollError
from app.services.state_store import StateStore, upsert_cv

router = APIRouter(prefix="/api/cvs", tags=["Employee CVs"])
logger = logging.getLogger("payroll-cvs")


@router.get("/{employee_id}", response_model=EmployeeCV)
async def get_cv(employee_id: str, store: StateStore = Depends(get_store)):
    """Saved CV, or the blank template when none exists yet."""
    state = store.state
    try:
        state.employee(employee_id)
    except PayrollError as e:
        raise http_error(e)
    saved = next((cv for cv in state.employee_cvs if cv.employee_id == employee_id), None)
    return saved or EmployeeCV.model_validate(default_cv(employee_id))


@router.put("/{employee_id}", response_model=EmployeeCV)
async def save_cv(employee_id: str, cv: EmployeeCV, store: StateStore = Depends(get_store)):
    if cv.employee_id != employee_id:
        raise HTTPException(status_code=400, detail="CV employeeId does not match the URL")
    state = store.state
    try:
        state.employee(employee_id)
    except PayrollError as e:
        raise http_error(e)
    store.commit(upsert_cv(state, cv))
    logger.info("Employee CV saved", extra={"employee_id": employee_id})
    return cv
