"""Paginated roster collection for one facility.

A collector instance drives exactly one run::

    uninitialized -> session_established -> paging -> completed
                 \\______________________________________-> failed

Pages are fetched strictly in sequence because each request depends on the
session cookies and the previous offset. Every fetched page, empty or not, is
dispatched as a work unit before the next one is requested. Units already
dispatched stay queued when a later page fails; storage writes are idempotent
so a rerun simply overwrites them.
"""

from __future__ import annotations

import math
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Protocol

from jaildata.common.alerts import AlertCategory, Alerter
from jaildata.common.config_loader import FacilityConfig
from jaildata.common.constants import DEFAULT_MAX_PAGES, DEFAULT_PAGE_SIZE
from jaildata.common.errors import TransportError
from jaildata.common.models import InmatePage, WorkUnit
from jaildata.harvest.session import SessionClient


class CollectorState:
    UNINITIALIZED = "uninitialized"
    SESSION_ESTABLISHED = "session_established"
    PAGING = "paging"
    COMPLETED = "completed"
    FAILED = "failed"


_ALLOWED_TRANSITIONS = {
    CollectorState.UNINITIALIZED: {CollectorState.SESSION_ESTABLISHED, CollectorState.FAILED},
    CollectorState.SESSION_ESTABLISHED: {CollectorState.PAGING, CollectorState.FAILED},
    CollectorState.PAGING: {CollectorState.COMPLETED, CollectorState.FAILED},
    CollectorState.COMPLETED: set(),
    CollectorState.FAILED: set(),
}


class Dispatcher(Protocol):
    def dispatch(self, unit: WorkUnit) -> str: ...


@dataclass
class CollectionResult:
    facility_id: str
    correlation_id: str
    state: str = CollectorState.UNINITIALIZED
    pages: int = 0
    records: int = 0
    total_reported: int | None = None
    truncated: bool = False
    duration_ms: int = 0
    message_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def build_page_request(skip: int, take: int, sort_field: str) -> dict[str, Any]:
    return {
        "FilterOptionsParameters": {
            "IntersectionSearch": True,
            "SearchText": "",
            "Parameters": [],
        },
        "IncludeCount": True,
        "PagingOptions": {
            "SortOptions": [
                {"Name": sort_field, "SortDirection": "Descending", "Sequence": 1},
            ],
            "Take": take,
            "Skip": skip,
        },
    }


def _total_pages(total: int | None, page_size: int) -> int | None:
    if total is None:
        return None
    return max(1, math.ceil(total / page_size))


class PaginatedCollector:
    def __init__(
        self,
        facility: FacilityConfig,
        session_client: SessionClient,
        dispatcher: Dispatcher,
        *,
        correlation_id: str,
        session_path: str,
        inmates_path: str,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_pages: int = DEFAULT_MAX_PAGES,
        sort_field: str = "ArrestDate",
        alerter: Alerter | None = None,
    ) -> None:
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self.facility = facility
        self.session_client = session_client
        self.dispatcher = dispatcher
        self.session_path = session_path
        self.inmates_path = inmates_path.format(api_id=facility.api_id)
        self.page_size = page_size
        self.max_pages = max_pages
        self.sort_field = sort_field
        self.alerter = (alerter or Alerter.for_category(AlertCategory.DATA_COLLECTION)).bind(
            facility=facility.name,
            run_id=correlation_id,
        )
        self.result = CollectionResult(facility_id=facility.name, correlation_id=correlation_id)

    @property
    def state(self) -> str:
        return self.result.state

    def _transition(self, new_state: str) -> None:
        if new_state not in _ALLOWED_TRANSITIONS[self.result.state]:
            raise RuntimeError(f"Invalid collector transition {self.result.state} -> {new_state}")
        self.result.state = new_state

    def run(self) -> CollectionResult:
        if self.state != CollectorState.UNINITIALIZED:
            raise RuntimeError("PaginatedCollector instances drive a single run")

        started = time.monotonic()
        try:
            self.session_client.establish_session(self.facility.api_id, self.session_path)
            self._transition(CollectorState.SESSION_ESTABLISHED)
            self.alerter.info("session established", event="SESSION_ESTABLISHED", status="ok")

            self._transition(CollectorState.PAGING)
            self._page_loop()
            self._transition(CollectorState.COMPLETED)
        except Exception:
            self.result.state = CollectorState.FAILED
            raise
        finally:
            self.result.duration_ms = int((time.monotonic() - started) * 1000)

        return self.result

    def _fetch_page(self, skip: int) -> InmatePage:
        response = self.session_client.send(
            "POST",
            self.inmates_path,
            json_body=build_page_request(skip, self.page_size, self.sort_field),
        )
        payload = response.json()
        if not isinstance(payload, dict) or not isinstance(payload.get("Inmates"), list):
            raise TransportError(f"Unexpected inmate page shape at skip={skip} for {self.facility.name}")
        return InmatePage.from_batch(payload)

    def _page_loop(self) -> None:
        skip = 0
        total: int | None = None

        while True:
            if self.result.pages >= self.max_pages:
                self.result.truncated = True
                self.alerter.warn(
                    f"stopped after max_pages={self.max_pages} with source total {total}",
                    event="PAGE_LIMIT",
                    status="warning",
                    records=self.result.records,
                )
                return

            page = self._fetch_page(skip)
            page_number = self.result.pages + 1
            if page_number == 1:
                total = page.total
                self.result.total_reported = total

            unit = WorkUnit(
                facility_id=self.facility.name,
                page=page,
                page_number=page_number,
                correlation_id=self.result.correlation_id,
                total_pages=_total_pages(total, self.page_size),
            )
            self.result.message_ids.append(self.dispatcher.dispatch(unit))
            self.result.pages = page_number
            self.result.records += len(page.records)
            self.alerter.info(
                f"dispatched batch {page_number} with {len(page.records)} inmates",
                event="PAGE_DISPATCHED",
                status="ok",
                page=page_number,
                records=len(page.records),
            )

            if len(page.records) < self.page_size:
                return
            if total is not None and self.result.records >= total:
                return
            skip += self.page_size
