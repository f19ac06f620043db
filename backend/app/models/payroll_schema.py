"""
Payroll data model.

Every persisted entity serializes with the camelCase keys used by the
browser build of the tool (``employeeId``, ``totalAmount`` ...), so its JSON
exports load here.  The one difference is payslip months: 1-based here,
0-based in the browser build (converted on import, see payslip_migration).
Python code uses the snake_case attribute names.
"""
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model: camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Employees ────────────────────────────────────────────────────────────────

class PayItem(CamelModel):
    """One allowance or deduction line, e.g. {"type": "House Rent", "amount": 3000}."""
    type: str
    amount: float = 0.0


class Employee(CamelModel):
    id: str                                  # internal id, e.g. "emp-001"
    employee_id: str                         # display code, e.g. "F-101"
    name: str
    department: str = ""
    designation: str = ""
    joining_date: str = ""                   # YYYY-MM-DD
    basic_salary: float = Field(0.0, ge=0)
    allowances: List[PayItem] = Field(default_factory=list)
    deductions: List[PayItem] = Field(default_factory=list)
    photo: Optional[str] = None              # base64 data URL


# ── Overtime ─────────────────────────────────────────────────────────────────

class OvertimeRecord(CamelModel):
    id: str
    employee_id: str                         # internal Employee.id
    employee_display_id: str = ""
    employee_name: str = ""
    department: str = ""
    designation: str = ""
    date: str = ""                           # YYYY-MM-DD; malformed dates never match a period
    hours: float = 0.0
    rate: float = 0.0
    total_amount: float = 0.0                # always round(hours * rate, 2)
    absent_employee_id: Optional[str] = None
    absent_employee_name: Optional[str] = None


# ── Payslips ─────────────────────────────────────────────────────────────────

PayslipStatus = Literal["Processed", "Pending"]


class Payslip(CamelModel):
    id: str
    employee_id: str
    employee_name: str = ""
    month: int = Field(..., ge=1, le=12)     # calendar month, 1 = January
    year: int
    basic_salary: float = 0.0
    total_allowances: float = 0.0
    total_deductions: float = 0.0
    overtime_pay: float = 0.0
    absent_deduction: float = 0.0
    gross_salary: float = 0.0
    net_salary: float = 0.0
    status: PayslipStatus = "Pending"


# ── Settings ─────────────────────────────────────────────────────────────────

class PayrollSettings(CamelModel):
    overtime_multiplier: float = 2.0
    overtime_rate: float = 0.0               # fixed per-hour override; 0 = use formula
    overtime_calculation_basic_salary: float = 9500.0
    working_days_per_month: float = 30.0
    working_hours_per_day: float = 8.0
    google_sheets_url: str = ""


# ── Employee CV ──────────────────────────────────────────────────────────────

CVSectionLayout = Literal["list", "grid", "tags", "paragraph"]
CVSectionSide = Literal["left", "right"]


class CVField(CamelModel):
    id: str
    label: str
    value: str = ""


class CVListItem(CamelModel):
    id: str
    title: str
    subtitle: str = ""
    date_range: str = ""
    description: Optional[str] = None


class CVSection(CamelModel):
    id: str
    title: str
    layout: CVSectionLayout = "list"
    side: CVSectionSide = "left"
    items: List[Union[CVListItem, CVField]] = Field(default_factory=list)


class EmployeeCV(CamelModel):
    employee_id: str
    about_me: str = ""
    sections: List[CVSection] = Field(default_factory=list)


# ── Notes ────────────────────────────────────────────────────────────────────

class Note(CamelModel):
    id: str
    title: str = ""
    content: str = ""                        # may hold HTML
    color: str = ""
    created_at: str = ""
    updated_at: str = ""


# ── Derived views ────────────────────────────────────────────────────────────

class OvertimeTotals(CamelModel):
    total_hours: float = 0.0
    total_pay: float = 0.0


class OvertimeGroup(CamelModel):
    """Summed overtime for one grouping key (employee or absent employee)."""
    key: str
    name: str
    total_hours: float = 0.0
    total_pay: float = 0.0
    record_count: int = 0


class DailyAbsence(CamelModel):
    date: str
    person_name: str
    hours: float = 0.0
    deduction: float = 0.0
    remark: str = ""
    remark_key: str                          # "{person_name}-{date}"
    record_ids: List[str] = Field(default_factory=list)


class AbsenceSummary(CamelModel):
    person_key: str
    key_kind: Literal["employee_id", "name"]
    person_name: str
    total_hours: float = 0.0
    total_deduction: float = 0.0
    record_ids: List[str] = Field(default_factory=list)
    daily_breakdown: List[DailyAbsence] = Field(default_factory=list)


class TopPerformer(CamelModel):
    employee_id: Optional[str] = None
    name: str = "N/A"
    amount: float = 0.0


class MonthlyPayout(CamelModel):
    year: int
    month: int
    label: str                               # e.g. "Oct 26"
    total_net_salary: float = 0.0


class DashboardStats(CamelModel):
    total_employees: int = 0
    total_salary_paid: float = 0.0
    payslips_generated: int = 0
    total_overtime: float = 0.0
    total_deductions: float = 0.0
    top_salary_earner: TopPerformer = Field(default_factory=TopPerformer)
    top_overtime_earner: TopPerformer = Field(default_factory=TopPerformer)
    top_deduction_person: TopPerformer = Field(default_factory=TopPerformer)
    monthly_payouts: List[MonthlyPayout] = Field(default_factory=list)
    department_net_salary: Dict[str, float] = Field(default_factory=dict)
