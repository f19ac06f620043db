"""Settings routes — overtime/payroll settings, full data export and import."""
import json
import logging
from dataclasses import replace
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import JSONResponse
from pydantic import Field, ValidationError

from app.api.deps import get_store, http_error
from app.models.payroll_schema import CamelModel, PayrollSettings
from app.services.data_exchange import export_bundle, import_bundle
from app.services.errors import PayrollError
from app.services.overtime_engine import resolve_rate
from app.services.state_store import StateStore

router = APIRouter(prefix="/api/settings", tags=["Settings"])
logger = logging.getLogger("payroll-settings")


# ─── Pydantic schemas ────────────────────────────────────────────────────────

class SettingsUpdate(CamelModel):
    overtime_multiplier: Optional[float] = Field(None, ge=0)
    overtime_rate: Optional[float] = Field(None, ge=0)
    overtime_calculation_basic_salary: Optional[float] = Field(None, ge=0)
    working_days_per_month: Optional[float] = Field(None, ge=0)
    working_hours_per_day: Optional[float] = Field(None, ge=0)
    google_sheets_url: Optional[str] = None


class ImportResult(CamelModel):
    employees: int
    payslips: int
    overtime_records: int
    message: str


# ─── Endpoints ──────────────────────────────────────────────────────────────

@router.get("", response_model=PayrollSettings)
async def get_settings(store: StateStore = Depends(get_store)):
    return store.state.settings


@router.put("", response_model=PayrollSettings)
async def update_settings(req: SettingsUpdate, store: StateStore = Depends(get_store)):
    """Partial update; only fields present in the body change and nulls are ignored."""
    state = store.state
    changes = {k: v for k, v in req.model_dump(exclude_unset=True).items() if v is not None}
    try:
        settings = PayrollSettings.model_validate({**state.settings.model_dump(), **changes})
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False))
    store.commit(replace(state, settings=settings))
    logger.info(
        f"Settings updated: {sorted(changes)}; overtime rate now {resolve_rate(settings):.2f}/h"
    )
    return settings


@router.get("/export")
async def export_data(store: StateStore = Depends(get_store)):
    """Full data bundle as a downloadable JSON file."""
    filename = f"factory_payroll_backup_{date.today().isoformat()}.json"
    return JSONResponse(
        content=export_bundle(store.state),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/import", response_model=ImportResult)
async def import_data(file: UploadFile = File(...), store: StateStore = Depends(get_store)):
    """Replace all data with a previously exported bundle; invalid files change nothing."""
    raw = await file.read()
    try:
        payload = json.loads(raw.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise HTTPException(status_code=400, detail=f"Error importing file: {e}")

    try:
        state = store.commit(import_bundle(payload, store.state))
    except PayrollError as e:
        raise http_error(e)

    return ImportResult(
        employees=len(state.employees),
        payslips=len(state.payslips),
        overtime_records=len(state.overtime_records),
        message="Data imported successfully!",
    )
