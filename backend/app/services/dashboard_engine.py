"""
dashboard_engine.py — Headline figures for the dashboard.

Covers:
  - Workforce totals (salary paid, overtime, deductions, payslip count)
  - Top salary earner, top overtime earner, top deduction person
  - Six-month trailing net salary series ending at a reference date
  - Net salary per department
"""

from datetime import date
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar

from app.models.payroll_schema import (
    DashboardStats,
    Employee,
    MonthlyPayout,
    OvertimeRecord,
    Payslip,
    TopPerformer,
)
from app.services.overtime_engine import aggregate_all


TRAILING_MONTHS: int = 6
UNCATEGORIZED = "Uncategorized"

T = TypeVar("T")


def shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    """Move (year, month) by ``delta`` months; month is 1-12."""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def month_label(year: int, month: int) -> str:
    return date(year, month, 1).strftime("%b %y")


class DashboardEngine:

    # -----------------------------------------------------------------------
    # 1. Top performers
    # -----------------------------------------------------------------------

    def top_performer(
        self,
        items: Iterable[T],
        employee_id: Callable[[T], str],
        amount: Callable[[T], float],
        employees: Sequence[Employee],
    ) -> TopPerformer:
        """
        Sum ``amount`` per employee and return the highest total.

        Equal totals go to the lexicographically smallest employee id.  A
        winner missing from ``employees`` is reported as N/A with amount 0.
        """
        totals: Dict[str, float] = {}
        for item in items:
            emp_id = employee_id(item)
            totals[emp_id] = totals.get(emp_id, 0.0) + amount(item)
        if not totals:
            return TopPerformer()

        winner_id, winner_amount = min(totals.items(), key=lambda kv: (-kv[1], kv[0]))
        winner = next((e for e in employees if e.id == winner_id), None)
        if winner is None:
            return TopPerformer()
        return TopPerformer(employee_id=winner_id, name=winner.name, amount=round(winner_amount, 2))

    # -----------------------------------------------------------------------
    # 2. Trailing series
    # -----------------------------------------------------------------------

    def monthly_payouts(
        self, payslips: Sequence[Payslip], today: date
    ) -> List[MonthlyPayout]:
        """Net salary per month for the six months ending with ``today``'s month, oldest first."""
        series: List[MonthlyPayout] = []
        for offset in range(TRAILING_MONTHS - 1, -1, -1):
            year, month = shift_month(today.year, today.month, -offset)
            total = sum(p.net_salary for p in payslips if p.year == year and p.month == month)
            series.append(MonthlyPayout(
                year=year,
                month=month,
                label=month_label(year, month),
                total_net_salary=round(total, 2),
            ))
        return series

    # -----------------------------------------------------------------------
    # 3. Full dashboard
    # -----------------------------------------------------------------------

    def compute_stats(
        self,
        employees: Sequence[Employee],
        payslips: Sequence[Payslip],
        records: Sequence[OvertimeRecord],
        today: Optional[date] = None,
    ) -> DashboardStats:
        today = today or date.today()

        departments: Dict[str, float] = {}
        by_id = {e.id: e for e in employees}
        for slip in payslips:
            emp = by_id.get(slip.employee_id)
            if emp is None:
                continue
            dept = emp.department or UNCATEGORIZED
            departments[dept] = round(departments.get(dept, 0.0) + slip.net_salary, 2)

        return DashboardStats(
            total_employees=len(employees),
            total_salary_paid=round(sum(p.net_salary for p in payslips), 2),
            payslips_generated=len(payslips),
            total_overtime=aggregate_all(records),
            total_deductions=round(
                sum(p.total_deductions + p.absent_deduction for p in payslips), 2
            ),
            top_salary_earner=self.top_performer(
                payslips, lambda p: p.employee_id, lambda p: p.net_salary, employees
            ),
            top_overtime_earner=self.top_performer(
                records, lambda r: r.employee_id, lambda r: r.total_amount, employees
            ),
            top_deduction_person=self.top_performer(
                payslips,
                lambda p: p.employee_id,
                lambda p: p.total_deductions + p.absent_deduction,
                employees,
            ),
            monthly_payouts=self.monthly_payouts(payslips, today),
            department_net_salary=departments,
        )
