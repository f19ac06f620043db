"""
Overtime routes: rate lookup, daily logging, record edits, summaries and the
spreadsheet report push.
"""
import logging
from dataclasses import replace
from typing import List, Literal, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from pydantic import Field

from app.api.deps import get_store, get_webhook, http_error
from app.models.payroll_schema import CamelModel, OvertimeGroup, OvertimeRecord, OvertimeTotals
from app.services.errors import PayrollError, RecordNotFoundError
from app.services.overtime_engine import (
    aggregate_by_employee,
    apply_record_edit,
    build_records,
    employee_history,
    group_by_absent_employee,
    group_by_employee,
    month_bounds,
    parse_record_date,
    rate_source,
    resolve_rate,
    search_records,
)
from app.services.state_store import StateStore
from app.services.webhook_client import (
    WebhookClient,
    overtime_details_payload,
    overtime_save_payload,
)

router = APIRouter(prefix="/api/overtime", tags=["Overtime"])
logger = logging.getLogger("payroll-overtime")


# ── Pydantic Models ──────────────────────────────────────────────────────────

class RateResponse(CamelModel):
    rate: float
    source: Literal["fixed", "formula"]


class OvertimeEntry(CamelModel):
    employee_id: str
    hours: float


class OvertimeLogRequest(CamelModel):
    date: str = Field(..., description="YYYY-MM-DD")
    absent_employee_id: Optional[str] = None
    absent_employee_name: Optional[str] = None
    entries: List[OvertimeEntry] = Field(default_factory=list)


class OvertimeLogResponse(CamelModel):
    records: List[OvertimeRecord]
    message: str
    webhook_message: Optional[str] = None


class OvertimeEditRequest(CamelModel):
    date: Optional[str] = None
    hours: Optional[float] = None
    absent_employee_id: Optional[str] = None
    absent_employee_name: Optional[str] = None


class BulkDeleteRequest(CamelModel):
    ids: List[str]


class EmployeeHistoryResponse(CamelModel):
    employee_id: str
    records: List[OvertimeRecord]
    totals: OvertimeTotals


class ReportPushRequest(CamelModel):
    search: str = ""


class PushResponse(CamelModel):
    delivered: bool
    message: str


def _check_date(value: str) -> None:
    if parse_record_date(value) is None:
        raise HTTPException(status_code=400, detail=f"Invalid date '{value}', expected YYYY-MM-DD")


# ── Endpoints ────────────────────────────────────────────────────────────────

@router.get("/rate", response_model=RateResponse)
async def get_rate(store: StateStore = Depends(get_store)):
    settings = store.state.settings
    return RateResponse(rate=round(resolve_rate(settings), 2), source=rate_source(settings))


@router.get("", response_model=List[OvertimeRecord])
async def list_records(
    q: str = "",
    employee_id: Optional[str] = None,
    year: Optional[int] = None,
    month: Optional[int] = Query(None, ge=1, le=12),
    store: StateStore = Depends(get_store),
):
    """Records, most recent first; ``month`` needs ``year``."""
    records = search_records(store.state.overtime_records, q)
    if employee_id:
        records = [r for r in records if r.employee_id == employee_id]
    if year is not None:
        def in_period(rec: OvertimeRecord) -> bool:
            d = parse_record_date(rec.date)
            return d is not None and d.year == year and (month is None or d.month == month)
        records = [r for r in records if in_period(r)]
    return records


async def _push_saved_records(webhook: WebhookClient, url: str, records: List[OvertimeRecord]) -> None:
    result = await webhook.push(
        url,
        overtime_save_payload(records),
        success_message="Overtime records sent to Google Sheets.",
    )
    logger.info(f"Overtime push for {len(records)} record(s): {result.message}")


@router.post("", response_model=OvertimeLogResponse, status_code=201)
async def log_overtime(
    req: OvertimeLogRequest,
    background_tasks: BackgroundTasks,
    store: StateStore = Depends(get_store),
    webhook: WebhookClient = Depends(get_webhook),
):
    """
    Save one day's overtime for several employees.  When a spreadsheet webhook
    is configured the new records are pushed after the response is sent.
    """
    _check_date(req.date)
    state = store.state
    try:
        entries = [(state.employee(e.employee_id), e.hours) for e in req.entries]
        records = build_records(
            entries,
            work_date=req.date,
            settings=state.settings,
            employees=state.employees,
            absent_employee_id=req.absent_employee_id,
            absent_employee_name=req.absent_employee_name,
        )
    except PayrollError as e:
        raise http_error(e)

    store.commit(replace(state, overtime_records=list(state.overtime_records) + records))
    logger.info(f"Saved {len(records)} overtime record(s) for {req.date}", extra={"period": req.date})

    webhook_message = None
    if state.settings.google_sheets_url:
        background_tasks.add_task(_push_saved_records, webhook, state.settings.google_sheets_url, records)
        webhook_message = "Overtime records queued for Google Sheets."

    return OvertimeLogResponse(
        records=records,
        message="Overtime records saved successfully!",
        webhook_message=webhook_message,
    )


@router.put("/{record_id}", response_model=OvertimeRecord)
async def edit_record(record_id: str, req: OvertimeEditRequest, store: StateStore = Depends(get_store)):
    state = store.state
    record = next((r for r in state.overtime_records if r.id == record_id), None)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Overtime record {record_id} not found")

    work_date = req.date if req.date is not None else record.date
    _check_date(work_date)

    absent_id = record.absent_employee_id
    absent_name = record.absent_employee_name
    if req.absent_employee_id is not None:
        try:
            absent_id = req.absent_employee_id or None
            absent_name = state.employee(absent_id).name if absent_id else req.absent_employee_name
        except PayrollError as e:
            raise http_error(e)
    elif req.absent_employee_name is not None:
        absent_id, absent_name = None, req.absent_employee_name

    edited = apply_record_edit(
        record,
        work_date=work_date,
        hours=req.hours if req.hours is not None else record.hours,
        absent_employee_id=absent_id,
        absent_employee_name=absent_name,
    )
    store.commit(replace(state, overtime_records=[
        edited if r.id == record_id else r for r in state.overtime_records
    ]))
    return edited


@router.delete("/{record_id}")
async def delete_record(record_id: str, store: StateStore = Depends(get_store)):
    state = store.state
    remaining = [r for r in state.overtime_records if r.id != record_id]
    if len(remaining) == len(state.overtime_records):
        raise http_error(RecordNotFoundError(f"Overtime record {record_id} not found"))
    store.commit(replace(state, overtime_records=remaining))
    return {"deleted": record_id}


@router.post("/bulk-delete")
async def bulk_delete(req: BulkDeleteRequest, store: StateStore = Depends(get_store)):
    state = store.state
    doomed = set(req.ids)
    remaining = [r for r in state.overtime_records if r.id not in doomed]
    store.commit(replace(state, overtime_records=remaining))
    return {"deleted": len(state.overtime_records) - len(remaining)}


@router.get("/summary", response_model=List[OvertimeGroup])
async def summary(
    by: Literal["employee", "absent"] = "employee",
    store: StateStore = Depends(get_store),
):
    records = store.state.overtime_records
    return group_by_employee(records) if by == "employee" else group_by_absent_employee(records)


@router.get("/totals", response_model=OvertimeTotals)
async def period_totals(
    employee_id: str,
    year: int,
    month: int = Query(..., ge=1, le=12),
    store: StateStore = Depends(get_store),
):
    start, end = month_bounds(year, month)
    return aggregate_by_employee(store.state.overtime_records, employee_id, start, end)


@router.get("/employees/{employee_id}", response_model=EmployeeHistoryResponse)
async def history(employee_id: str, store: StateStore = Depends(get_store)):
    records, totals = employee_history(store.state.overtime_records, employee_id)
    return EmployeeHistoryResponse(employee_id=employee_id, records=records, totals=totals)


@router.post("/push-report", response_model=PushResponse)
async def push_report(
    req: ReportPushRequest,
    store: StateStore = Depends(get_store),
    webhook: WebhookClient = Depends(get_webhook),
):
    state = store.state
    records = search_records(state.overtime_records, req.search)
    result = await webhook.push(
        state.settings.google_sheets_url,
        overtime_details_payload(records),
        success_message="Overtime details report sent to Google Sheets.",
        failure_message="Failed to save report.",
        has_data=bool(records),
    )
    return PushResponse(**result.model_dump())
