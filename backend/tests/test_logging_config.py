"""
test_logging_config.py — JSON log lines carry the payroll context passed via ``extra=``.
"""

import json
import logging

from app.services.logging_config import PayrollJSONFormatter


def make_record(**extra):
    record = logging.LogRecord("payroll-store", logging.INFO, __file__, 10, "Wrote %s", ("x.json",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestPayrollJSONFormatter:

    def test_context_fields_included(self):
        line = json.loads(PayrollJSONFormatter().format(
            make_record(collection="factory_payslips", period="October 2026", status_code=200)
        ))
        assert line["logger"] == "payroll-store"
        assert line["message"] == "Wrote x.json"
        assert line["collection"] == "factory_payslips"
        assert line["period"] == "October 2026"
        assert line["status_code"] == 200

    def test_unknown_extras_dropped(self):
        line = json.loads(PayrollJSONFormatter().format(make_record(password="secret")))
        assert "password" not in line
        assert "request_id" not in line
