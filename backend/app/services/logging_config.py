"""
logging_config.py — Log output for the payroll service.

Every module logs to a ``payroll-*`` logger (payroll-api, payroll-store,
payroll-overtime, payroll-salary, payroll-webhook, ...).  Handlers attach
payroll context through ``extra=``:

  - request tracing from the HTTP middleware (request id, path, status, timing)
  - collection writes from the state store (which JSON file was replaced)
  - pay period and employee on overtime and salary processing lines
  - the spreadsheet webhook's HTTP status

In production each line is one JSON object so those fields can be filtered;
``json_output=False`` prints plain text for local runs.
"""
import logging
import json
import sys
from datetime import datetime, timezone
from typing import Dict, Tuple

# extra= fields copied into the JSON line, by concern
CONTEXT_FIELDS: Dict[str, Tuple[str, ...]] = {
    "request": ("request_id", "http_method", "http_path", "http_status", "duration_ms"),
    "store": ("collection",),
    "payroll": ("employee_id", "period"),
    "webhook": ("status_code",),
}

QUIET_LOGGERS = ("uvicorn.access", "httpcore", "httpx")


class PayrollJSONFormatter(logging.Formatter):
    def format(self, record):
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        for fields in CONTEXT_FIELDS.values():
            for name in fields:
                if hasattr(record, name):
                    entry[name] = getattr(record, name)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level: str = "INFO", json_output: bool = True):
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    if json_output:
        handler.setFormatter(PayrollJSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
        ))
    root.handlers = [handler]

    # Webhook transport chatter; payroll-webhook already logs each push
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
