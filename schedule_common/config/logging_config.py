"""
Logging for the Workload Schedule Operator

JSON lines in the cluster, colored text on a terminal. Reconcile and
admission logs pass the schedule identity through `extra=` as
`schedule` ("namespace/name"); the text formatter prefixes it to the message.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Present on every LogRecord; anything else arrived through `extra=`
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}

# Chatty third-party loggers and the lowest level they may emit at
_NOISY_LOGGERS = {
    "kubernetes": logging.INFO,    # request/response bodies at DEBUG
    "urllib3": logging.WARNING,
    "httpx": logging.WARNING,      # one INFO line per time lookup
    "uvicorn.access": logging.WARNING,
}


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS and not k.startswith("_")}


class JSONFormatter(logging.Formatter):
    """One JSON object per record, `extra=` fields merged at top level"""

    def __init__(self, service_name: str = ""):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: Dict[str, Any] = {
            "ts": created.strftime("%Y-%m-%dT%H:%M:%S.") + f"{created.microsecond // 1000:03d}Z",
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if self.service_name:
            entry["service"] = self.service_name
        entry.update(_extra_fields(record))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ColoredFormatter(logging.Formatter):
    """Terminal formatter: colored level, `[namespace/name]` prefix for schedule logs"""

    COLORS = {
        logging.DEBUG: '\033[36m',
        logging.INFO: '\033[32m',
        logging.WARNING: '\033[33m',
        logging.ERROR: '\033[31m',
        logging.CRITICAL: '\033[35m',
    }
    RESET = '\033[0m'

    def __init__(self):
        super().__init__(fmt='%(asctime)s %(levelname)s %(name)s: %(message)s', datefmt='%H:%M:%S')

    def formatMessage(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelno, "")
        obj = getattr(record, "schedule", None)
        values = dict(vars(record))
        values["levelname"] = f"{color}{record.levelname:<7}{self.RESET}" if color else record.levelname
        if obj:
            values["message"] = f"[{obj}] {record.message}"
        return self._style._fmt % values


def setup_logging(
    service_name: str,
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[str] = None
):
    """
    Configure the root logger for the operator process

    Args:
        service_name: Added to every JSON record as `service`
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_format: "json" or "text"
        log_file: Also write JSON lines to this file
    """
    level = getattr(logging, log_level.upper())
    root = logging.getLogger()
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(JSONFormatter(service_name) if log_format == "json" else ColoredFormatter())
    root.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter(service_name))
        root.addHandler(file_handler)

    for name, floor in _NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(max(level, floor))

    logging.getLogger(service_name).info(
        f"Logging configured (level={log_level}, format={log_format})",
        extra={"log_file": log_file},
    )
