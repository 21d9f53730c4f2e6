"""Event handlers for the serverless deployment.

Configuration is resolved once per process by ``get_config`` and shared by
every invocation the process serves.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from jaildata.common.config_loader import AppConfig, load_app_config
from jaildata.common.errors import ConfigurationError
from jaildata.common.fs import dumps
from jaildata.common.ids import generate_run_id
from jaildata.common.logging import build_logger
from jaildata.common.parameters import ParameterStore
from jaildata.common.time_utils import utc_timestamp_iso
from jaildata.harvest.runner import run_all_facilities, run_collection, start_collection_in_background
from jaildata.ingest.ingestor import BatchIngestor
from jaildata.storage.store import KeyedStore

SERVICE_NAME = "jaildata-api"
SERVICE_VERSION = "1.0.0"
DEFAULT_CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    build_logger(generate_run_id("lambda"), level=os.environ.get("JAILDATA_LOG_LEVEL", "INFO"))
    config_dir = Path(os.environ.get("JAILDATA_CONFIG_DIR", str(DEFAULT_CONFIG_DIR)))
    return load_app_config(config_dir, parameter_store=ParameterStore())


@lru_cache(maxsize=1)
def get_ingestor() -> BatchIngestor:
    config = get_config()
    store = KeyedStore(
        config.storage.table_name,
        index_name=config.storage.index_name,
        batch_size=config.storage.batch_write_size,
    )
    return BatchIngestor(store, max_workers=config.ingest_max_workers)


def _response(status_code: int, payload: Any) -> dict:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": dumps(payload),
    }


def _facility_from(payload: dict) -> str | None:
    facility = payload.get("facilityId") or payload.get("facility")
    if isinstance(facility, str) and facility.strip():
        return facility.strip()
    return None


def collect_scheduled(event: dict, context: Any = None) -> dict:
    """Run a collection to completion; failures propagate to the scheduler."""
    facility = _facility_from(event.get("detail") or {})
    config = get_config()
    if facility:
        return run_collection(facility, config).to_dict()
    return run_all_facilities(config)


def collect(event: dict, context: Any = None) -> dict:
    try:
        payload = json.loads(event.get("body") or "{}")
    except ValueError:
        return _response(400, {"error": "Request body must be JSON"})
    if not isinstance(payload, dict) or not _facility_from(payload):
        return _response(400, {"error": "Missing required parameter: facilityId"})

    try:
        background = start_collection_in_background(_facility_from(payload), get_config())
    except ConfigurationError as exc:
        return _response(400, {"error": str(exc)})
    return _response(202, background.acknowledgment())


def process_batch(event: dict, context: Any = None) -> dict:
    """Ingest one queue delivery and report the units the queue should redeliver."""
    messages = [(record["messageId"], record["body"]) for record in event.get("Records", [])]
    report = get_ingestor().ingest_many(messages)
    return {"batchItemFailures": [{"itemIdentifier": message_id} for message_id in report.failed_message_ids]}


def status(event: dict | None = None, context: Any = None) -> dict:
    return _response(
        200,
        {
            "service": SERVICE_NAME,
            "status": "healthy",
            "timestamp": utc_timestamp_iso(),
            "environment": os.environ.get("STAGE", "unknown"),
            "version": SERVICE_VERSION,
        },
    )
