"""Severity-tiered alerting routed through the JSON logger.

Collection and ingestion code never talks to an alert transport directly.
It reports through an ``Alerter`` scoped to one category, and the alerter
writes a structured log line whose ``severity`` and ``category`` fields are
what downstream log-based alarms filter on.
"""

from __future__ import annotations

import logging
from typing import Any

from jaildata.common.logging import get_logger, log_event


class Severity:
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class AlertCategory:
    DATA_COLLECTION = "COLLECTION"
    BATCH_PROCESSING = "BATCH"
    AUTHENTICATION = "AUTH"
    DATABASE = "DB"
    NETWORK = "NET"
    PORTAL = "PORTAL"
    QUEUE = "QUEUE"
    SYSTEM = "SYS"


_LEVEL_BY_SEVERITY = {
    Severity.INFO: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
    Severity.CRITICAL: logging.CRITICAL,
}


class Alerter:
    def __init__(self, category: str, logger: logging.Logger | None = None, **context: Any) -> None:
        self.category = category
        self.logger = logger or get_logger("alerts")
        self.context = context

    @classmethod
    def for_category(cls, category: str, logger: logging.Logger | None = None, **context: Any) -> "Alerter":
        return cls(category, logger=logger, **context)

    def bind(self, **context: Any) -> "Alerter":
        merged = dict(self.context)
        merged.update(context)
        return Alerter(self.category, logger=self.logger, **merged)

    def alert(
        self,
        severity: str,
        message: str,
        *,
        error: BaseException | None = None,
        **fields: Any,
    ) -> None:
        event_fields = dict(self.context)
        event_fields.update(fields)
        event_fields["severity"] = severity
        event_fields["category"] = self.category
        if error is not None:
            event_fields.setdefault("error_code", getattr(error, "error_code", "UNEXPECTED_ERROR"))
        log_event(
            self.logger,
            message,
            level=_LEVEL_BY_SEVERITY[severity],
            exc_info=error,
            **event_fields,
        )

    def info(self, message: str, **fields: Any) -> None:
        self.alert(Severity.INFO, message, **fields)

    def warn(self, message: str, **fields: Any) -> None:
        self.alert(Severity.WARNING, message, **fields)

    def error(self, message: str, error: BaseException | None = None, **fields: Any) -> None:
        self.alert(Severity.ERROR, message, error=error, **fields)

    def critical(self, message: str, error: BaseException | None = None, **fields: Any) -> None:
        self.alert(Severity.CRITICAL, message, error=error, **fields)
