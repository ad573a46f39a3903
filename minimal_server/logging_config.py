"""Process logging: every record carries the server run and its lifecycle phase.

A run sets ``lifecycle_id`` and ``lifecycle_status`` once; tasks it spawns
copy both, so the coordinator and the listener report the same run. The
status object is shared, so a record shows the phase at the moment it was
emitted.
"""

import logging
import sys
from contextvars import ContextVar
from typing import Optional

from pythonjsonlogger.json import JsonFormatter

from minimal_server.state import LifecycleStatus

NO_RUN = "-"

lifecycle_id: ContextVar[str] = ContextVar("lifecycle_id", default=NO_RUN)
lifecycle_status: ContextVar[Optional[LifecycleStatus]] = ContextVar(
    "lifecycle_status", default=None
)

JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(lifecycle_id)s %(lifecycle_state)s %(message)s"
TEXT_FORMAT = "%(asctime)s [%(levelname)s] [%(lifecycle_id)s/%(lifecycle_state)s] %(name)s: %(message)s"


def current_state() -> str:
    """Phase of the run in the current context, or '-' outside a run."""
    status = lifecycle_status.get()
    if status is None:
        return NO_RUN
    return status.state.value


class LifecycleFilter(logging.Filter):
    """Stamp records with the run they belong to and its current phase."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.lifecycle_id = lifecycle_id.get()
        record.lifecycle_state = current_state()
        return True


class LifecycleJsonFormatter(JsonFormatter):
    """One JSON object per line, keyed for log aggregators."""

    renamed_fields = {"asctime": "timestamp", "levelname": "level", "name": "logger"}

    def add_fields(
        self,
        log_record: dict,
        record: logging.LogRecord,
        message_dict: dict,
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        for source, target in self.renamed_fields.items():
            if source in log_record:
                log_record[target] = log_record.pop(source)

        # Records emitted through a handler without the filter
        log_record.setdefault("lifecycle_id", lifecycle_id.get())
        log_record.setdefault("lifecycle_state", current_state())


def setup_logging(log_level: str = "INFO", json_format: bool = True) -> None:
    """
    Route all process logging, uvicorn's included, to stdout.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: If True, output JSON; if False, output human-readable format
    """
    if json_format:
        formatter: logging.Formatter = LifecycleJsonFormatter(
            fmt=JSON_FORMAT,
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )
    else:
        formatter = logging.Formatter(fmt=TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.addFilter(LifecycleFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(log_level.upper())
    root.addHandler(handler)

    # uvicorn is started with log_config=None and logs through the root handler
    for name in ("uvicorn", "uvicorn.error"):
        logging.getLogger(name).handlers.clear()
        logging.getLogger(name).propagate = True
