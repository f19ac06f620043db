"""
Salary processing routes.

The pending batch lives with the client: ``/preview`` computes it, the client
may drop entries or edit the basic salary and pay items, and ``/finalize``
sends those back.  Overtime pay and absence deduction come from the stored
records, and gross and net are always recomputed server-side.
"""
import logging
from dataclasses import replace
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import Field

from app.api.deps import get_store, get_webhook, http_error
from app.models.payroll_schema import CamelModel, PayItem, Payslip
from app.services.errors import PayrollError, RecordNotFoundError
from app.services.payroll_engine import PayrollEngine
from app.services.state_store import StateStore
from app.services.webhook_client import (
    SINGLE_PERIOD_REQUIRED,
    WebhookClient,
    month_name,
    salary_processing_payload,
    salary_report_payload,
)

router = APIRouter(prefix="/api/payroll", tags=["Payroll"])
logger = logging.getLogger("payroll-salary")

engine = PayrollEngine()


# ── Pydantic Models ──────────────────────────────────────────────────────────

class PeriodRequest(CamelModel):
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=1900)


class PayslipDraft(CamelModel):
    """Pending payslip as edited by the client; omitted components keep their computed value."""
    employee_id: str
    basic_salary: Optional[float] = Field(None, ge=0)
    allowances: Optional[List[PayItem]] = None
    deductions: Optional[List[PayItem]] = None


class FinalizeRequest(PeriodRequest):
    payslips: Optional[List[PayslipDraft]] = None


class FinalizeResponse(CamelModel):
    processed: List[Payslip]
    message: str


class ManualEditRequest(CamelModel):
    basic_salary: Optional[float] = Field(None, ge=0)
    allowances: Optional[List[PayItem]] = None
    deductions: Optional[List[PayItem]] = None


class DraftEditRequest(ManualEditRequest):
    payslip: Payslip


class ReportFilter(CamelModel):
    month: Optional[int] = Field(None, ge=1, le=12)
    year: Optional[int] = None
    employee_id: Optional[str] = None


class PushResponse(CamelModel):
    delivered: bool
    message: str


def _batch_from_drafts(state, req: FinalizeRequest) -> List[Payslip]:
    fresh = {
        p.employee_id: p
        for p in engine.prepare_batch(state.employees, state.overtime_records, req.month, req.year)
    }
    batch = []
    for draft in req.payslips or []:
        slip = fresh.get(draft.employee_id)
        if slip is None:
            raise RecordNotFoundError(f"Employee {draft.employee_id} not found")
        batch.append(engine.apply_manual_edit(slip, draft.basic_salary, draft.allowances, draft.deductions))
    return batch


# ── Endpoints ────────────────────────────────────────────────────────────────

@router.post("/preview", response_model=List[Payslip])
async def preview(req: PeriodRequest, store: StateStore = Depends(get_store)):
    """Pending payslip for every employee for the requested month."""
    state = store.state
    return engine.prepare_batch(state.employees, state.overtime_records, req.month, req.year)


@router.post("/preview/edit", response_model=Payslip)
async def edit_draft(req: DraftEditRequest):
    """Re-derive a pending payslip after a manual edit of its components."""
    return engine.apply_manual_edit(req.payslip, req.basic_salary, req.allowances, req.deductions)


@router.post("/finalize", response_model=FinalizeResponse)
async def finalize(req: FinalizeRequest, store: StateStore = Depends(get_store)):
    """
    Store the batch as Processed payslips.

    Without ``payslips`` the batch is computed fresh for the period.
    """
    state = store.state
    try:
        if req.payslips is None:
            batch = engine.prepare_batch(state.employees, state.overtime_records, req.month, req.year)
        else:
            batch = _batch_from_drafts(state, req)
    except PayrollError as e:
        raise http_error(e)

    if not batch:
        raise HTTPException(status_code=400, detail="There are no payslips to process.")

    payslips = engine.finalize_batch(state.payslips, batch)
    store.commit(replace(state, payslips=payslips))
    period = f"{month_name(req.month)} {req.year}"
    logger.info(f"Processed {len(batch)} payslip(s) for {period}", extra={"period": period})

    processed_ids = {p.id for p in batch}
    return FinalizeResponse(
        processed=[p for p in payslips if p.id in processed_ids],
        message=f"Salaries for {period} have been processed successfully!",
    )


@router.get("/payslips", response_model=List[Payslip])
async def list_payslips(
    year: Optional[int] = None,
    month: Optional[int] = Query(None, ge=1, le=12),
    employee_id: Optional[str] = None,
    store: StateStore = Depends(get_store),
):
    slips = store.state.payslips
    if year is not None:
        slips = [p for p in slips if p.year == year]
    if month is not None:
        slips = [p for p in slips if p.month == month]
    if employee_id:
        slips = [p for p in slips if p.employee_id == employee_id]
    return sorted(slips, key=lambda p: (p.year, p.month), reverse=True)


@router.put("/payslips/{slip_id}", response_model=Payslip)
async def edit_payslip(slip_id: str, req: ManualEditRequest, store: StateStore = Depends(get_store)):
    state = store.state
    slip = next((p for p in state.payslips if p.id == slip_id), None)
    if slip is None:
        raise http_error(RecordNotFoundError(f"Payslip {slip_id} not found"))

    edited = engine.apply_manual_edit(slip, req.basic_salary, req.allowances, req.deductions)
    store.commit(replace(state, payslips=[edited if p.id == slip_id else p for p in state.payslips]))
    return edited


@router.delete("/payslips/{slip_id}")
async def delete_payslip(slip_id: str, store: StateStore = Depends(get_store)):
    state = store.state
    remaining = [p for p in state.payslips if p.id != slip_id]
    if len(remaining) == len(state.payslips):
        raise http_error(RecordNotFoundError(f"Payslip {slip_id} not found"))
    store.commit(replace(state, payslips=remaining))
    return {"deleted": slip_id}


@router.post("/push-batch", response_model=PushResponse)
async def push_batch(
    req: FinalizeRequest,
    store: StateStore = Depends(get_store),
    webhook: WebhookClient = Depends(get_webhook),
):
    """Send the pending batch (given or freshly computed) to the spreadsheet."""
    state = store.state
    try:
        batch = (
            engine.prepare_batch(state.employees, state.overtime_records, req.month, req.year)
            if req.payslips is None
            else _batch_from_drafts(state, req)
        )
    except PayrollError as e:
        raise http_error(e)

    result = await webhook.push(
        state.settings.google_sheets_url,
        salary_processing_payload(batch, state.employees, req.month, req.year),
        success_message=f"Processing data for {month_name(req.month)} {req.year} sent to Google Sheets.",
        failure_message="Failed to save report.",
        has_data=bool(batch),
    )
    return PushResponse(**result.model_dump())


@router.post("/push-report", response_model=PushResponse)
async def push_report(
    req: ReportFilter,
    store: StateStore = Depends(get_store),
    webhook: WebhookClient = Depends(get_webhook),
):
    """Send stored payslips to the spreadsheet; the filter must pin one month and year."""
    state = store.state
    slips = [
        p for p in state.payslips
        if (req.month is None or p.month == req.month)
        and (req.year is None or p.year == req.year)
        and (not req.employee_id or p.employee_id == req.employee_id)
    ]
    if not state.settings.google_sheets_url or not slips:
        result = await webhook.push(state.settings.google_sheets_url, None, "", has_data=bool(slips))
        return PushResponse(**result.model_dump())

    payload = salary_report_payload(slips, state.employees)
    if payload is None:
        return PushResponse(delivered=False, message=SINGLE_PERIOD_REQUIRED)

    result = await webhook.push(
        state.settings.google_sheets_url,
        payload,
        success_message=f"Report for {payload['month']} {payload['year']} sent to Google Sheets.",
        failure_message="Failed to save report.",
    )
    return PushResponse(**result.model_dump())
