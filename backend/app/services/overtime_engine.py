"""
overtime_engine.py — Overtime rate resolution and record aggregation.

Covers:
  - Effective hourly overtime rate from settings (fixed override or formula)
  - Building overtime records for a logged day (hours clamped, amounts rounded)
  - Editing a record while keeping totalAmount == round(hours x rate, 2)
  - Period-bounded totals for one employee, workforce-wide totals
  - Grouping by an arbitrary key (employee, absent employee) for summary views
"""

import calendar
import uuid
from datetime import date, datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from app.models.payroll_schema import (
    Employee,
    OvertimeGroup,
    OvertimeRecord,
    OvertimeTotals,
    PayrollSettings,
)
from app.services.errors import OvertimeInputError, RecordNotFoundError


DATE_FORMAT = "%Y-%m-%d"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def parse_record_date(value: Optional[str]) -> Optional[date]:
    """Parse a YYYY-MM-DD record date; anything else yields None."""
    if not value:
        return None
    try:
        return datetime.strptime(str(value)[:10], DATE_FORMAT).date()
    except ValueError:
        return None


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """Inclusive first and last day of a calendar month (month is 1-12)."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def clamp_hours(hours: float) -> float:
    return max(0.0, float(hours or 0.0))


def compute_total_amount(hours: float, rate: float) -> float:
    return round(clamp_hours(hours) * float(rate), 2)


def _sort_key_recent_first(record: OvertimeRecord):
    # Undated records sink to the bottom of a most-recent-first listing
    parsed = parse_record_date(record.date)
    return parsed or date.min


# ---------------------------------------------------------------------------
# 1. Rate resolution
# ---------------------------------------------------------------------------

def resolve_rate(settings: PayrollSettings) -> float:
    """
    Effective hourly overtime rate.

    A positive ``overtime_rate`` is a fixed per-hour rate and wins outright.
    Otherwise the rate is derived from the reference basic salary:

        (basic / working_days / working_hours) x multiplier

    A zero basic salary, zero working days or zero working hours gives 0.
    """
    if settings.overtime_rate and settings.overtime_rate > 0:
        return float(settings.overtime_rate)

    basic = settings.overtime_calculation_basic_salary
    days = settings.working_days_per_month
    hours = settings.working_hours_per_day
    if not basic or days == 0 or hours == 0:
        return 0.0

    daily_salary = basic / days
    hourly_rate = daily_salary / hours
    return hourly_rate * settings.overtime_multiplier


def rate_source(settings: PayrollSettings) -> str:
    return "fixed" if settings.overtime_rate and settings.overtime_rate > 0 else "formula"


# ---------------------------------------------------------------------------
# 2. Record lifecycle
# ---------------------------------------------------------------------------

def build_records(
    entries: Sequence[Tuple[Employee, float]],
    work_date: str,
    settings: PayrollSettings,
    employees: Iterable[Employee],
    absent_employee_id: Optional[str] = None,
    absent_employee_name: Optional[str] = None,
) -> List[OvertimeRecord]:
    """
    Create one overtime record per (employee, hours) entry for ``work_date``.

    Hours below zero are clamped to zero and zero-hour entries are dropped.
    Every record carries the person it covered for: either a tracked employee
    (``absent_employee_id``) or a free-text name for someone not on the roster.
    """
    worked = [(emp, clamp_hours(hours)) for emp, hours in entries]
    worked = [(emp, hours) for emp, hours in worked if hours > 0]
    if not worked:
        raise OvertimeInputError(
            "Please add employees and enter their overtime hours before saving."
        )

    if absent_employee_id:
        absent = next((e for e in employees if e.id == absent_employee_id), None)
        if absent is None:
            raise RecordNotFoundError(f"Absent employee {absent_employee_id} not found")
        absent_employee_name = absent.name
    elif not absent_employee_name:
        raise OvertimeInputError(
            "Please select the employee who was absent for the duty before saving."
        )

    rate = round(resolve_rate(settings), 2)
    records: List[OvertimeRecord] = []
    for emp, hours in worked:
        records.append(OvertimeRecord(
            id=f"ot-{emp.id}-{uuid.uuid4().hex[:12]}",
            employee_id=emp.id,
            employee_display_id=emp.employee_id,
            employee_name=emp.name,
            department=emp.department,
            designation=emp.designation,
            date=work_date,
            hours=hours,
            rate=rate,
            total_amount=compute_total_amount(hours, rate),
            absent_employee_id=absent_employee_id or None,
            absent_employee_name=absent_employee_name,
        ))
    return records


def apply_record_edit(
    record: OvertimeRecord,
    work_date: str,
    hours: float,
    absent_employee_id: Optional[str],
    absent_employee_name: Optional[str],
) -> OvertimeRecord:
    """Return an edited copy; the stored rate is kept and totalAmount re-derived."""
    hours = clamp_hours(hours)
    return record.model_copy(update={
        "date": work_date,
        "hours": hours,
        "total_amount": compute_total_amount(hours, record.rate),
        "absent_employee_id": absent_employee_id or None,
        "absent_employee_name": absent_employee_name or None,
    })


# ---------------------------------------------------------------------------
# 3. Aggregation
# ---------------------------------------------------------------------------

def aggregate_by_employee(
    records: Iterable[OvertimeRecord],
    employee_id: str,
    period_start: date,
    period_end: date,
) -> OvertimeTotals:
    """Sum hours and pay of one employee's records dated inside the inclusive period."""
    total_hours = 0.0
    total_pay = 0.0
    for rec in records:
        if rec.employee_id != employee_id:
            continue
        rec_date = parse_record_date(rec.date)
        if rec_date is None or not (period_start <= rec_date <= period_end):
            continue
        total_hours += rec.hours
        total_pay += rec.total_amount
    return OvertimeTotals(total_hours=round(total_hours, 2), total_pay=round(total_pay, 2))


def aggregate_all(records: Iterable[OvertimeRecord]) -> float:
    return round(sum(rec.total_amount for rec in records), 2)


def group_records(
    records: Iterable[OvertimeRecord],
    key_func: Callable[[OvertimeRecord], Optional[str]],
    name_func: Callable[[OvertimeRecord], str],
) -> List[OvertimeGroup]:
    """
    Group records by ``key_func`` and sum hours/pay per group.

    Records whose key is None are skipped.  Groups keep first-seen order.
    """
    groups: Dict[str, OvertimeGroup] = {}
    for rec in records:
        key = key_func(rec)
        if key is None:
            continue
        group = groups.get(key)
        if group is None:
            group = groups[key] = OvertimeGroup(key=key, name=name_func(rec))
        group.total_hours += rec.hours
        group.total_pay += rec.total_amount
        group.record_count += 1

    for group in groups.values():
        group.total_hours = round(group.total_hours, 2)
        group.total_pay = round(group.total_pay, 2)
    return list(groups.values())


def group_by_employee(records: Iterable[OvertimeRecord]) -> List[OvertimeGroup]:
    return group_records(records, lambda r: r.employee_id, lambda r: r.employee_name)


def group_by_absent_employee(records: Iterable[OvertimeRecord]) -> List[OvertimeGroup]:
    return group_records(
        records,
        lambda r: r.absent_employee_id or r.absent_employee_name or None,
        lambda r: r.absent_employee_name or "Unknown",
    )


def employee_history(
    records: Iterable[OvertimeRecord], employee_id: str
) -> Tuple[List[OvertimeRecord], OvertimeTotals]:
    """One employee's records, most recent first, with their overall totals."""
    own = [rec for rec in records if rec.employee_id == employee_id]
    own.sort(key=_sort_key_recent_first, reverse=True)
    totals = OvertimeTotals(
        total_hours=round(sum(r.hours for r in own), 2),
        total_pay=round(sum(r.total_amount for r in own), 2),
    )
    return own, totals


def search_records(
    records: Iterable[OvertimeRecord], term: str = ""
) -> List[OvertimeRecord]:
    """Filter by employee name (case-insensitive) or date substring, most recent first."""
    needle = (term or "").lower()
    matched = [
        rec for rec in records
        if not needle or needle in rec.employee_name.lower() or needle in rec.date
    ]
    matched.sort(key=_sort_key_recent_first, reverse=True)
    return matched
