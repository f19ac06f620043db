"""Domain exceptions raised by the payroll services and mapped to HTTP errors in app.api."""


class PayrollError(ValueError):
    """Base class for every recognised payroll error condition."""


class ImportValidationError(PayrollError):
    """A bulk import (CSV or JSON bundle) was rejected as a whole."""


class OvertimeInputError(PayrollError):
    """Overtime entry submitted without hours or without the absent employee."""


class RecordNotFoundError(PayrollError):
    """Referenced employee, record, payslip or absence group does not exist."""
