"""
webhook_client.py — Outbound reporting webhook (spreadsheet endpoint).

Every push is one POST with a JSON body, made after local state has been
committed.  The response body is never read and nothing is retried; the
caller only gets a human-readable status message back.
"""

import calendar
import logging
import os
from typing import Any, Dict, List, Optional, Sequence

import httpx
from pydantic import BaseModel

from app.models.payroll_schema import (
    AbsenceSummary,
    Employee,
    OvertimeRecord,
    Payslip,
)

logger = logging.getLogger("payroll-webhook")

WEBHOOK_TIMEOUT_SECONDS = float(os.getenv("WEBHOOK_TIMEOUT_SECONDS", "10"))

NOT_CONFIGURED = "Google Sheets URL is not configured in Settings."
NO_DATA = "There is no data to save."
SINGLE_PERIOD_REQUIRED = "Please filter by a single month and year to generate a report."


class WebhookResult(BaseModel):
    delivered: bool
    message: str


def month_name(month: int) -> str:
    return calendar.month_name[month]


# ---------------------------------------------------------------------------
# Payload builders
# ---------------------------------------------------------------------------

def _dump(items: Sequence[BaseModel]) -> List[Dict[str, Any]]:
    return [item.model_dump(mode="json", by_alias=True) for item in items]


def overtime_save_payload(records: Sequence[OvertimeRecord]) -> Dict[str, Any]:
    return {"records": _dump(records)}


def absence_summary_payload(summaries: Sequence[AbsenceSummary]) -> Dict[str, Any]:
    return {
        "type": "absentDeductionSummary",
        "data": [
            {
                "sl": index,
                "employeeName": s.person_name,
                "totalHours": s.total_hours,
                "totalDeduction": s.total_deduction,
            }
            for index, s in enumerate(summaries, start=1)
        ],
    }


def overtime_details_payload(records: Sequence[OvertimeRecord]) -> Dict[str, Any]:
    return {"type": "overtimeDetailsReport", "data": _dump(records)}


def _salary_rows(payslips: Sequence[Payslip], employees: Sequence[Employee]) -> List[Dict[str, Any]]:
    by_id = {e.id: e for e in employees}
    rows = []
    for slip in payslips:
        emp = by_id.get(slip.employee_id)
        row = slip.model_dump(mode="json", by_alias=True)
        row.update({
            "allowances": _dump(emp.allowances) if emp else [],
            "deductions": _dump(emp.deductions) if emp else [],
            "employeeDisplayId": emp.employee_id if emp else "",
            "department": emp.department if emp else "",
            "designation": emp.designation if emp else "",
        })
        rows.append(row)
    return rows


def salary_processing_payload(
    batch: Sequence[Payslip], employees: Sequence[Employee], month: int, year: int
) -> Dict[str, Any]:
    return {
        "type": "salaryProcessingReport",
        "month": month_name(month),
        "year": year,
        "data": _salary_rows(batch, employees),
    }


def salary_report_payload(
    payslips: Sequence[Payslip], employees: Sequence[Employee]
) -> Optional[Dict[str, Any]]:
    """Report of stored payslips; None unless they all share one month and year."""
    periods = {(p.month, p.year) for p in payslips}
    if len(periods) != 1:
        return None
    month, year = periods.pop()
    return {
        "type": "salaryReport",
        "month": month_name(month),
        "year": year,
        "data": _salary_rows(payslips, employees),
    }


# ---------------------------------------------------------------------------
# WebhookClient
# ---------------------------------------------------------------------------

class WebhookClient:
    """
    Single-attempt JSON POST.

    ``transport`` is handed to httpx unchanged, so tests can pass an
    ``httpx.MockTransport``.
    """

    def __init__(
        self,
        timeout: float = WEBHOOK_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout = timeout
        self.transport = transport

    async def push(
        self,
        url: str,
        payload: Optional[Dict[str, Any]],
        success_message: str,
        failure_message: str = "Failed to save data.",
        has_data: bool = True,
    ) -> WebhookResult:
        if not url:
            return WebhookResult(delivered=False, message=NOT_CONFIGURED)
        if payload is None or not has_data:
            return WebhookResult(delivered=False, message=NO_DATA)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                r = await client.post(url, json=payload)
            logger.info(
                f"Webhook push sent ({payload.get('type', 'records')})",
                extra={"status_code": r.status_code},
            )
        except httpx.HTTPError as e:
            logger.warning(f"Webhook push failed: {e}")
            return WebhookResult(delivered=False, message=failure_message)

        return WebhookResult(delivered=True, message=success_message)
