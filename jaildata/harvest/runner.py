"""Collection orchestration with fail-soft semantics across facilities."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any

from jaildata.common.alerts import AlertCategory, Alerter
from jaildata.common.config_loader import AppConfig
from jaildata.common.errors import PipelineError
from jaildata.common.http import HttpClient
from jaildata.common.ids import generate_run_id
from jaildata.common.logging import get_logger, log_event
from jaildata.harvest.collector import CollectionResult, Dispatcher, PaginatedCollector
from jaildata.harvest.dispatcher import WorkDispatcher
from jaildata.harvest.session import CollectionSession, SessionClient

logger = get_logger("harvest")


def build_http_client(config: AppConfig) -> HttpClient:
    upstream = config.upstream
    return HttpClient(
        timeout=upstream.timeout,
        retry=upstream.retry,
        requests_per_second=upstream.requests_per_second,
    )


def run_collection(
    facility_name: str,
    config: AppConfig,
    *,
    correlation_id: str | None = None,
    http_client: HttpClient | None = None,
    dispatcher: Dispatcher | None = None,
    alerter: Alerter | None = None,
) -> CollectionResult:
    facility = config.collectable_facility(facility_name)
    base_url = config.require_base_url()
    correlation_id = correlation_id or generate_run_id("collect")
    alerter = (alerter or Alerter.for_category(AlertCategory.DATA_COLLECTION)).bind(
        facility=facility.name,
        run_id=correlation_id,
    )
    dispatcher = dispatcher or WorkDispatcher(config.require_queue_url())

    owns_client = http_client is None
    http = http_client or build_http_client(config)
    upstream = config.upstream

    alerter.info(f"starting data collection for {facility.display_name}", event="COLLECT_START", status="ok")
    try:
        collector = PaginatedCollector(
            facility,
            SessionClient(http, base_url, CollectionSession(), timeout=upstream.timeout),
            dispatcher,
            correlation_id=correlation_id,
            session_path=upstream.session_path,
            inmates_path=upstream.inmates_path,
            page_size=upstream.page_size,
            max_pages=upstream.max_pages,
            sort_field=upstream.sort_field,
            alerter=alerter,
        )
        result = collector.run()
    except Exception as exc:
        alerter.critical(
            f"data collection failed for {facility.display_name}: {exc}",
            error=exc,
            event="COLLECT_FAIL",
            status="error",
        )
        raise
    finally:
        if owns_client:
            http.close()

    alerter.info(
        f"completed data collection for {facility.display_name}: "
        f"{result.pages} batches, {result.records} inmates",
        event="COLLECT_DONE",
        status="partial" if result.truncated else "ok",
        page=result.pages,
        records=result.records,
        duration_ms=result.duration_ms,
    )
    return result


def run_all_facilities(
    config: AppConfig,
    *,
    run_id: str | None = None,
    **collection_kwargs: Any,
) -> dict:
    run_id = run_id or generate_run_id("collect")
    results: dict[str, dict] = {}
    failures: dict[str, str] = {}

    facilities = config.active_facilities()
    for facility in facilities:
        try:
            result = run_collection(
                facility.name,
                config,
                correlation_id=f"{run_id}-{facility.name}",
                **collection_kwargs,
            )
        except PipelineError as exc:
            failures[facility.name] = exc.error_code
            continue
        except Exception:
            failures[facility.name] = "UNEXPECTED_ERROR"
            continue
        results[facility.name] = result.to_dict()

    if facilities and len(failures) >= len(facilities):
        raise PipelineError(f"All active facilities failed for run {run_id}")

    return {
        "run_id": run_id,
        "results": results,
        "failed_facilities": failures,
    }


@dataclass
class BackgroundCollection:
    facility_id: str
    request_id: str
    thread: threading.Thread

    def acknowledgment(self) -> dict[str, str]:
        return {
            "message": "Data collection started",
            "facilityId": self.facility_id,
            "requestId": self.request_id,
        }

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout)


def start_collection_in_background(
    facility_name: str,
    config: AppConfig,
    *,
    correlation_id: str | None = None,
    **collection_kwargs: Any,
) -> BackgroundCollection:
    """Start one collection run on a worker thread and return without waiting.

    Configuration problems raise here, before anything starts. After that the
    caller never observes the outcome; failures reach only the alerter.
    """
    facility = config.collectable_facility(facility_name)
    config.require_base_url()
    if collection_kwargs.get("dispatcher") is None:
        config.require_queue_url()
    request_id = correlation_id or generate_run_id("collect")

    def _target() -> None:
        try:
            run_collection(facility.name, config, correlation_id=request_id, **collection_kwargs)
        except Exception as exc:
            # Already alerted by run_collection.
            log_event(
                logger,
                f"background collection for {facility.name} ended with a failure",
                level=logging.DEBUG,
                run_id=request_id,
                facility=facility.name,
                event="BACKGROUND_FAIL",
                status="error",
                error_code=getattr(exc, "error_code", "UNEXPECTED_ERROR"),
            )

    thread = threading.Thread(target=_target, name=f"collect-{facility.name}")
    thread.start()
    return BackgroundCollection(facility_id=facility.name, request_id=request_id, thread=thread)
