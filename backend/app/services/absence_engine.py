"""
absence_engine.py — Absence deduction aggregation.

Every overtime record may name the person whose shift was covered.  The pay
earned by the covering employee is the deduction charged to that person.

Covers:
  - Resolving the group key of a record once (tracked employee id or free-text name)
  - Per-person summaries with a per-date breakdown and free-text remarks
  - Editing / deleting a person's records for one day, keeping remarks keyed correctly
  - Calendar-month deduction totals consumed by payroll
"""

from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from app.models.payroll_schema import (
    AbsenceSummary,
    DailyAbsence,
    Employee,
    OvertimeRecord,
)
from app.services.errors import RecordNotFoundError
from app.services.overtime_engine import (
    apply_record_edit,
    parse_record_date,
)


UNKNOWN_PERSON = "Unknown"


# ---------------------------------------------------------------------------
# Group keys
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ByEmployeeId:
    employee_id: str

    kind = "employee_id"

    @property
    def value(self) -> str:
        return self.employee_id


@dataclass(frozen=True)
class ByName:
    name: str

    kind = "name"

    @property
    def value(self) -> str:
        return self.name


AbsenceKey = Union[ByEmployeeId, ByName]


def absence_key(record: OvertimeRecord) -> Optional[AbsenceKey]:
    """Key of the absent person a record covers; None when it covers nobody."""
    if record.absent_employee_id:
        return ByEmployeeId(record.absent_employee_id)
    if record.absent_employee_name:
        return ByName(record.absent_employee_name)
    return None


def key_from_parts(kind: str, value: str) -> AbsenceKey:
    if kind == ByEmployeeId.kind:
        return ByEmployeeId(value)
    if kind == ByName.kind:
        return ByName(value)
    raise ValueError(f"Unknown absence key kind '{kind}'")


def remark_key(person_name: str, day: str) -> str:
    return f"{person_name}-{day}"


def _display_name(key: AbsenceKey, first: OvertimeRecord, employees: Sequence[Employee]) -> str:
    if isinstance(key, ByEmployeeId):
        match = next((e for e in employees if e.id == key.employee_id), None)
    else:
        match = next((e for e in employees if e.name == key.name), None)
    if match is not None:
        return match.name
    return first.absent_employee_name or UNKNOWN_PERSON


def _day_sort_key(day: DailyAbsence):
    return parse_record_date(day.date) or date.min


# ---------------------------------------------------------------------------
# 1. Aggregation
# ---------------------------------------------------------------------------

def aggregate_absences(
    records: Iterable[OvertimeRecord],
    employees: Sequence[Employee],
    remarks: Optional[Dict[str, str]] = None,
) -> List[AbsenceSummary]:
    """
    Group records by absent person.

    Returns one AbsenceSummary per person, sorted by display name
    (case-insensitive).  Each summary's ``daily_breakdown`` holds one entry per
    distinct date, most recent first, with the remark stored under
    "{person_name}-{date}".
    """
    remarks = remarks or {}
    grouped: Dict[AbsenceKey, List[OvertimeRecord]] = {}
    for rec in records:
        key = absence_key(rec)
        if key is None:
            continue
        grouped.setdefault(key, []).append(rec)

    summaries: List[AbsenceSummary] = []
    for key, recs in grouped.items():
        name = _display_name(key, recs[0], employees)

        days: Dict[str, DailyAbsence] = {}
        for rec in recs:
            day = days.get(rec.date)
            if day is None:
                rkey = remark_key(name, rec.date)
                day = days[rec.date] = DailyAbsence(
                    date=rec.date,
                    person_name=name,
                    remark=remarks.get(rkey, ""),
                    remark_key=rkey,
                )
            day.hours += rec.hours
            day.deduction += rec.total_amount
            day.record_ids.append(rec.id)

        breakdown = sorted(days.values(), key=_day_sort_key, reverse=True)
        for day in breakdown:
            day.hours = round(day.hours, 2)
            day.deduction = round(day.deduction, 2)

        summaries.append(AbsenceSummary(
            person_key=key.value,
            key_kind=key.kind,
            person_name=name,
            total_hours=round(sum(r.hours for r in recs), 2),
            total_deduction=round(sum(r.total_amount for r in recs), 2),
            record_ids=[r.id for r in recs],
            daily_breakdown=breakdown,
        ))

    summaries.sort(key=lambda s: (s.person_name.casefold(), s.person_key))
    return summaries


def find_summary(summaries: Iterable[AbsenceSummary], key: AbsenceKey) -> AbsenceSummary:
    for summary in summaries:
        if summary.key_kind == key.kind and summary.person_key == key.value:
            return summary
    raise RecordNotFoundError(f"No absence records for {key.kind} '{key.value}'")


def find_daily(summary: AbsenceSummary, day: str) -> DailyAbsence:
    for daily in summary.daily_breakdown:
        if daily.date == day:
            return daily
    raise RecordNotFoundError(f"No absence records for {summary.person_name} on {day}")


# ---------------------------------------------------------------------------
# 2. Editing
# ---------------------------------------------------------------------------

def rekey_remark(
    remarks: Dict[str, str], old_key: str, new_key: str, text: str
) -> Dict[str, str]:
    """Move a remark to ``new_key``; the old key never survives a rename."""
    updated = dict(remarks)
    if old_key != new_key:
        updated.pop(old_key, None)
    if text:
        updated[new_key] = text
    else:
        updated.pop(new_key, None)
    return updated


def edit_daily_group(
    records: Sequence[OvertimeRecord],
    employees: Sequence[Employee],
    remarks: Dict[str, str],
    key: AbsenceKey,
    day: str,
    new_date: Optional[str] = None,
    new_person_name: Optional[str] = None,
    hours_by_record: Optional[Dict[str, float]] = None,
    remark: Optional[str] = None,
) -> Tuple[List[OvertimeRecord], Dict[str, str]]:
    """
    Apply one edit to every record of a person's day.

    ``new_person_name`` is matched against the roster; a match links the
    records to that employee's id, otherwise they keep only the name.  Hours
    may be changed per record id; totals are re-derived at the stored rate.
    ``remark=None`` keeps the current remark text.

    Returns (records, remarks) with the edit applied.
    """
    summary = find_summary(aggregate_absences(records, employees, remarks), key)
    daily = find_daily(summary, day)

    target_date = new_date or daily.date
    target_name = new_person_name or daily.person_name
    absent = next((e for e in employees if e.name == target_name), None)
    absent_id = absent.id if absent is not None else None
    hours_by_record = hours_by_record or {}

    in_group = set(daily.record_ids)
    updated: List[OvertimeRecord] = []
    for rec in records:
        if rec.id in in_group:
            rec = apply_record_edit(
                rec,
                work_date=target_date,
                hours=hours_by_record.get(rec.id, rec.hours),
                absent_employee_id=absent_id,
                absent_employee_name=target_name,
            )
        updated.append(rec)

    text = daily.remark if remark is None else remark
    new_remarks = rekey_remark(remarks, daily.remark_key, remark_key(target_name, target_date), text)
    return updated, new_remarks


# ---------------------------------------------------------------------------
# 3. Deletion
# ---------------------------------------------------------------------------

def delete_group(
    records: Sequence[OvertimeRecord],
    employees: Sequence[Employee],
    remarks: Dict[str, str],
    key: AbsenceKey,
) -> Tuple[List[OvertimeRecord], Dict[str, str]]:
    """Drop every record of one absent person together with all their remarks."""
    summary = find_summary(aggregate_absences(records, employees, remarks), key)
    doomed = set(summary.record_ids)
    stale = {d.remark_key for d in summary.daily_breakdown}
    return (
        [r for r in records if r.id not in doomed],
        {k: v for k, v in remarks.items() if k not in stale},
    )


def delete_daily(
    records: Sequence[OvertimeRecord],
    employees: Sequence[Employee],
    remarks: Dict[str, str],
    key: AbsenceKey,
    day: str,
) -> Tuple[List[OvertimeRecord], Dict[str, str]]:
    """Drop one person's records for a single date and that day's remark."""
    summary = find_summary(aggregate_absences(records, employees, remarks), key)
    daily = find_daily(summary, day)
    doomed = set(daily.record_ids)
    new_remarks = dict(remarks)
    new_remarks.pop(daily.remark_key, None)
    return [r for r in records if r.id not in doomed], new_remarks


# ---------------------------------------------------------------------------
# 4. Payroll hand-off
# ---------------------------------------------------------------------------

def period_deductions(
    records: Iterable[OvertimeRecord], year: int, month: int
) -> Dict[AbsenceKey, float]:
    """Absence deduction per absent person for one calendar month (1-12)."""
    totals: Dict[AbsenceKey, float] = {}
    for rec in records:
        key = absence_key(rec)
        rec_date = parse_record_date(rec.date)
        if key is None or rec_date is None:
            continue
        if rec_date.year != year or rec_date.month != month:
            continue
        totals[key] = totals.get(key, 0.0) + rec.total_amount
    return {k: round(v, 2) for k, v in totals.items()}


def deduction_for_employee(employee: Employee, deductions: Dict[AbsenceKey, float]) -> float:
    # Id match first, then records that only carry the employee's name
    return (
        deductions.get(ByEmployeeId(employee.id))
        or deductions.get(ByName(employee.name))
        or 0.0
    )
