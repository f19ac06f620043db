"""
payslip_migration.py — Month numbering of payslips written by the browser build.

The browser build stored ``month`` 0-based (January = 0) and built payslip ids
from that number.  Documents written here are 1-based and say so with a
``monthBase`` marker (in the data bundle and in the data directory's meta
file).  ``upgrade_payslips`` shifts unmarked documents once, at load/import
time, the same way ``cv_migration.upgrade`` handles flat CVs.
"""

import copy
from typing import Any

MONTH_BASE_KEY = "monthBase"
MONTH_BASE = 1
LEGACY_MONTH_BASE = 0


def _is_month(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def upgrade_payslip(old: Any) -> Any:
    """
    Shift one 0-based payslip document to 1-based months.

    An id following the ``payslip-<employee>-<month>-<year>`` convention is
    rebuilt with the new month; any other id is kept.  Non-dict documents and
    documents without an integer month are returned as-is.
    """
    if not isinstance(old, dict) or not _is_month(old.get("month")):
        return old

    doc = copy.deepcopy(old)
    month = old["month"]
    doc["month"] = month + 1
    legacy_id = f"payslip-{old.get('employeeId')}-{month}-{old.get('year')}"
    if old.get("id") == legacy_id:
        doc["id"] = f"payslip-{old.get('employeeId')}-{month + 1}-{old.get('year')}"
    return doc


def upgrade_payslips(documents: Any, month_base: Any) -> Any:
    """Upgrade a payslip list stored with ``month_base``; 1-based lists pass through."""
    if month_base == MONTH_BASE or not isinstance(documents, list):
        return documents
    return [upgrade_payslip(doc) for doc in documents]
