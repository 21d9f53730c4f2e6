"""Drain queued work units into the keyed store."""

from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable, Protocol

from jaildata.common.alerts import AlertCategory, Alerter
from jaildata.common.errors import MalformedMessage
from jaildata.common.models import WorkUnit

PROCESSED = "processed"
DROPPED = "dropped"
FAILED = "failed"


class RecordSink(Protocol):
    def batch_upsert(self, facility_id: str, records: Iterable[Any]) -> int: ...


@dataclass(frozen=True)
class IngestOutcome:
    message_id: str
    status: str
    records: int = 0
    error_code: str | None = None
    error: str | None = None


@dataclass
class IngestReport:
    outcomes: list[IngestOutcome] = field(default_factory=list)

    def _with_status(self, status: str) -> list[IngestOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status == status]

    @property
    def processed(self) -> list[IngestOutcome]:
        return self._with_status(PROCESSED)

    @property
    def dropped(self) -> list[IngestOutcome]:
        return self._with_status(DROPPED)

    @property
    def failed(self) -> list[IngestOutcome]:
        return self._with_status(FAILED)

    @property
    def failed_message_ids(self) -> list[str]:
        return [outcome.message_id for outcome in self.failed]

    def counts(self) -> dict[str, int]:
        return {
            PROCESSED: len(self.processed),
            DROPPED: len(self.dropped),
            FAILED: len(self.failed),
        }


def parse_work_unit(body: str | bytes) -> WorkUnit:
    try:
        message = json.loads(body, parse_float=Decimal)
    except (TypeError, ValueError) as exc:
        raise MalformedMessage(f"Work unit is not valid JSON: {exc}") from exc
    return WorkUnit.from_message(message)


class BatchIngestor:
    """Validate queued work units and hand their records to storage.

    ``ingest`` handles one unit and lets every error propagate.
    ``ingest_many`` handles the units of one delivery concurrently and isolates
    them: a unit that fails never stops the others from being attempted.
    Malformed units are dropped because redelivery cannot fix them; any other
    failure is reported so the queue can redeliver that unit.
    """

    def __init__(self, store: RecordSink, *, alerter: Alerter | None = None, max_workers: int = 4) -> None:
        self.store = store
        self.alerter = alerter or Alerter.for_category(AlertCategory.BATCH_PROCESSING)
        self.max_workers = max(1, max_workers)

    def ingest(self, body: str | bytes) -> int:
        unit = parse_work_unit(body)
        records = unit.page.records
        self.alerter.info(
            f"processing batch {unit.page_number} for facility {unit.facility_id} with {len(records)} inmates",
            facility=unit.facility_id,
            run_id=unit.correlation_id or None,
            page=unit.page_number,
            event="BATCH_START",
            status="ok",
        )
        written = self.store.batch_upsert(unit.facility_id, records)
        self.alerter.info(
            f"processed {len(records)} inmates from batch {unit.page_number} for facility {unit.facility_id}",
            facility=unit.facility_id,
            run_id=unit.correlation_id or None,
            page=unit.page_number,
            records=written,
            event="BATCH_DONE",
            status="ok",
        )
        return written

    def _ingest_one(self, message_id: str, body: str | bytes) -> IngestOutcome:
        try:
            written = self.ingest(body)
        except MalformedMessage as exc:
            self.alerter.error(
                f"dropping malformed batch message {message_id}: {exc}",
                error=exc,
                event="BATCH_DROPPED",
                status="error",
            )
            return IngestOutcome(message_id, DROPPED, error_code=exc.error_code, error=str(exc))
        except Exception as exc:
            self.alerter.error(
                f"failed to process batch message {message_id}: {exc}",
                error=exc,
                event="BATCH_FAIL",
                status="error",
            )
            return IngestOutcome(
                message_id,
                FAILED,
                error_code=getattr(exc, "error_code", "UNEXPECTED_ERROR"),
                error=str(exc),
            )
        return IngestOutcome(message_id, PROCESSED, records=written)

    def ingest_many(self, messages: Iterable[tuple[str, str | bytes]]) -> IngestReport:
        messages = list(messages)
        self.alerter.info(f"processing {len(messages)} batch messages", event="DELIVERY_START", status="ok")
        if not messages:
            return IngestReport()

        workers = min(self.max_workers, len(messages))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ingest") as pool:
            futures = [pool.submit(self._ingest_one, message_id, body) for message_id, body in messages]
            report = IngestReport(outcomes=[future.result() for future in futures])

        unsuccessful = len(report.failed) + len(report.dropped)
        if unsuccessful:
            self.alerter.warn(
                f"batch processing completed with {unsuccessful} failures out of {len(messages)} batches",
                event="DELIVERY_PARTIAL",
                status="partial",
            )
        else:
            self.alerter.info(
                f"successfully processed {len(report.processed)} batches",
                event="DELIVERY_DONE",
                status="ok",
            )
        return report
