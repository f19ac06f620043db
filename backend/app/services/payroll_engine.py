"""
payroll_engine.py — Monthly payslip calculation.

Covers:
  - Payslip for one employee and one calendar month
      gross = basic + allowances + overtime
      net   = gross - deductions - absence deduction
  - Pending batch for the whole workforce (overtime and absence pulled from records)
  - Finalising a batch: entries marked Processed, upserted by (employee, month, year)
  - Manual edits that re-derive every total from the edited components
"""

from typing import Dict, Iterable, List, Optional, Sequence

from app.models.payroll_schema import Employee, OvertimeRecord, PayItem, Payslip
from app.services.absence_engine import deduction_for_employee, period_deductions
from app.services.errors import RecordNotFoundError
from app.services.overtime_engine import aggregate_by_employee, month_bounds


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

STATUS_PENDING = "Pending"
STATUS_PROCESSED = "Processed"


def payslip_id(employee_id: str, month: int, year: int) -> str:
    return f"payslip-{employee_id}-{month}-{year}"


def sum_items(items: Optional[Iterable[PayItem]]) -> float:
    return round(sum(item.amount for item in items or []), 2)


# ---------------------------------------------------------------------------
# PayrollEngine
# ---------------------------------------------------------------------------

class PayrollEngine:
    """Stateless payslip calculator; all inputs arrive as arguments."""

    # -----------------------------------------------------------------------
    # 1. Single payslip
    # -----------------------------------------------------------------------

    def build_payslip(
        self,
        employee_id: str,
        employee_name: str,
        month: int,
        year: int,
        basic_salary: float,
        total_allowances: float,
        total_deductions: float,
        overtime_pay: float,
        absent_deduction: float,
        status: str = STATUS_PENDING,
    ) -> Payslip:
        """Assemble a payslip from its components; gross and net are always derived here."""
        gross = basic_salary + total_allowances + overtime_pay
        net = gross - total_deductions - absent_deduction
        return Payslip(
            id=payslip_id(employee_id, month, year),
            employee_id=employee_id,
            employee_name=employee_name,
            month=month,
            year=year,
            basic_salary=round(basic_salary, 2),
            total_allowances=round(total_allowances, 2),
            total_deductions=round(total_deductions, 2),
            overtime_pay=round(overtime_pay, 2),
            absent_deduction=round(absent_deduction, 2),
            gross_salary=round(gross, 2),
            net_salary=round(net, 2),
            status=status,
        )

    def compute_payslip(
        self,
        employee: Employee,
        overtime_total: float,
        absence_deduction: float,
        month: int,
        year: int,
    ) -> Payslip:
        """
        Pending payslip for ``employee`` in ``month``/``year`` (month 1-12).

        ``overtime_total`` is the pay the employee earned covering shifts that
        month; ``absence_deduction`` is what others earned covering for them.
        """
        return self.build_payslip(
            employee_id=employee.id,
            employee_name=employee.name,
            month=month,
            year=year,
            basic_salary=employee.basic_salary,
            total_allowances=sum_items(employee.allowances),
            total_deductions=sum_items(employee.deductions),
            overtime_pay=overtime_total,
            absent_deduction=absence_deduction,
        )

    # -----------------------------------------------------------------------
    # 2. Batch processing
    # -----------------------------------------------------------------------

    def prepare_batch(
        self,
        employees: Sequence[Employee],
        records: Sequence[OvertimeRecord],
        month: int,
        year: int,
    ) -> List[Payslip]:
        """One Pending payslip per employee, in roster order."""
        start, end = month_bounds(year, month)
        deductions = period_deductions(records, year, month)

        batch: List[Payslip] = []
        for emp in employees:
            overtime = aggregate_by_employee(records, emp.id, start, end)
            batch.append(self.compute_payslip(
                emp,
                overtime_total=overtime.total_pay,
                absence_deduction=deduction_for_employee(emp, deductions),
                month=month,
                year=year,
            ))
        return batch

    def finalize_batch(
        self, existing: Sequence[Payslip], batch: Sequence[Payslip]
    ) -> List[Payslip]:
        """
        Mark every batch entry Processed and upsert it into ``existing``.

        An existing payslip with the same (employee, month, year) is replaced;
        the finalised entries are appended after the untouched ones.
        """
        processed: Dict[tuple, Payslip] = {}
        for slip in batch:
            processed[(slip.employee_id, slip.month, slip.year)] = slip.model_copy(
                update={"status": STATUS_PROCESSED}
            )

        kept = [
            p for p in existing
            if (p.employee_id, p.month, p.year) not in processed
        ]
        return kept + list(processed.values())

    def remove_from_batch(self, batch: Sequence[Payslip], slip_id: str) -> List[Payslip]:
        remaining = [p for p in batch if p.id != slip_id]
        if len(remaining) == len(batch):
            raise RecordNotFoundError(f"Payslip {slip_id} is not in the batch")
        return remaining

    # -----------------------------------------------------------------------
    # 3. Manual edits
    # -----------------------------------------------------------------------

    def apply_manual_edit(
        self,
        payslip: Payslip,
        basic_salary: Optional[float] = None,
        allowances: Optional[List[PayItem]] = None,
        deductions: Optional[List[PayItem]] = None,
    ) -> Payslip:
        """
        Re-derive a payslip after its basic salary or pay items were edited.

        Components left as None keep their current value.  Overtime pay and
        absence deduction are never edited here; they come from the records.
        """
        basic = payslip.basic_salary if basic_salary is None else max(0.0, basic_salary)
        total_allowances = (
            payslip.total_allowances if allowances is None else sum_items(allowances)
        )
        total_deductions = (
            payslip.total_deductions if deductions is None else sum_items(deductions)
        )
        return self.build_payslip(
            employee_id=payslip.employee_id,
            employee_name=payslip.employee_name,
            month=payslip.month,
            year=payslip.year,
            basic_salary=basic,
            total_allowances=total_allowances,
            total_deductions=total_deductions,
            overtime_pay=payslip.overtime_pay,
            absent_deduction=payslip.absent_deduction,
            status=payslip.status,
        )
