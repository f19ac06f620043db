"""
Absence deduction routes.

A person is addressed by ``/{kind}/{key}`` where kind is ``employee_id`` for a
tracked employee or ``name`` for someone only known by name.
"""
import logging
from dataclasses import replace
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_store, get_webhook, http_error
from app.models.payroll_schema import AbsenceSummary, CamelModel
from app.services.absence_engine import (
    AbsenceKey,
    aggregate_absences,
    delete_daily,
    delete_group,
    edit_daily_group,
    find_summary,
    key_from_parts,
)
from app.services.errors import PayrollError
from app.services.overtime_engine import parse_record_date
from app.services.state_store import StateStore
from app.services.webhook_client import WebhookClient, absence_summary_payload

router = APIRouter(prefix="/api/absences", tags=["Absence Deductions"])
logger = logging.getLogger("payroll-absences")


# ── Pydantic Models ──────────────────────────────────────────────────────────

class DailyEditRequest(CamelModel):
    date: Optional[str] = None
    absent_employee_name: Optional[str] = None
    hours: Dict[str, float] = {}             # record id -> hours
    remark: Optional[str] = None


class PushResponse(CamelModel):
    delivered: bool
    message: str


def _key(kind: str, key: str) -> AbsenceKey:
    try:
        return key_from_parts(kind, key)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


def _search(summaries: List[AbsenceSummary], q: str) -> List[AbsenceSummary]:
    needle = q.lower()
    return [s for s in summaries if not needle or needle in s.person_name.lower()]


# ── Endpoints ────────────────────────────────────────────────────────────────

@router.get("", response_model=List[AbsenceSummary])
async def list_absences(q: str = "", store: StateStore = Depends(get_store)):
    state = store.state
    summaries = aggregate_absences(state.overtime_records, state.employees, state.absence_remarks)
    return _search(summaries, q)


@router.get("/{kind}/{key}", response_model=AbsenceSummary)
async def get_absence(kind: str, key: str, store: StateStore = Depends(get_store)):
    state = store.state
    summaries = aggregate_absences(state.overtime_records, state.employees, state.absence_remarks)
    try:
        return find_summary(summaries, _key(kind, key))
    except PayrollError as e:
        raise http_error(e)


@router.put("/{kind}/{key}/{day}", response_model=List[AbsenceSummary])
async def edit_day(
    kind: str, key: str, day: str, req: DailyEditRequest,
    store: StateStore = Depends(get_store),
):
    """Edit every record of one person's day; returns the refreshed summaries."""
    if req.date is not None and parse_record_date(req.date) is None:
        raise HTTPException(status_code=400, detail=f"Invalid date '{req.date}', expected YYYY-MM-DD")

    state = store.state
    try:
        records, remarks = edit_daily_group(
            state.overtime_records,
            state.employees,
            state.absence_remarks,
            _key(kind, key),
            day,
            new_date=req.date,
            new_person_name=req.absent_employee_name,
            hours_by_record=req.hours,
            remark=req.remark,
        )
    except PayrollError as e:
        raise http_error(e)

    state = store.commit(replace(state, overtime_records=records, absence_remarks=remarks))
    return aggregate_absences(state.overtime_records, state.employees, state.absence_remarks)


@router.delete("/{kind}/{key}")
async def delete_person(kind: str, key: str, store: StateStore = Depends(get_store)):
    state = store.state
    try:
        records, remarks = delete_group(
            state.overtime_records, state.employees, state.absence_remarks, _key(kind, key)
        )
    except PayrollError as e:
        raise http_error(e)

    removed = len(state.overtime_records) - len(records)
    store.commit(replace(state, overtime_records=records, absence_remarks=remarks))
    logger.info(f"Deleted {removed} absence-linked overtime record(s) for {kind} '{key}'")
    return {"deleted": removed}


@router.delete("/{kind}/{key}/{day}")
async def delete_day(kind: str, key: str, day: str, store: StateStore = Depends(get_store)):
    state = store.state
    try:
        records, remarks = delete_daily(
            state.overtime_records, state.employees, state.absence_remarks, _key(kind, key), day
        )
    except PayrollError as e:
        raise http_error(e)

    removed = len(state.overtime_records) - len(records)
    store.commit(replace(state, overtime_records=records, absence_remarks=remarks))
    return {"deleted": removed}


@router.post("/push-summary", response_model=PushResponse)
async def push_summary(
    q: str = "",
    store: StateStore = Depends(get_store),
    webhook: WebhookClient = Depends(get_webhook),
):
    state = store.state
    summaries = _search(
        aggregate_absences(state.overtime_records, state.employees, state.absence_remarks), q
    )
    result = await webhook.push(
        state.settings.google_sheets_url,
        absence_summary_payload(summaries),
        success_message="Absent deduction summary sent to Google Sheets.",
        has_data=bool(summaries),
    )
    return PushResponse(**result.model_dump())
