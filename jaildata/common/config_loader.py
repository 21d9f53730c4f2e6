"""Configuration loading and validation."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from jaildata.common.constants import DEFAULT_MAX_PAGES, DEFAULT_PAGE_SIZE, UNSET_API_ID
from jaildata.common.errors import ConfigurationError
from jaildata.common.fs import read_yaml
from jaildata.common.http import RetryConfig, TimeoutConfig
from jaildata.common.logging import get_logger, log_event
from jaildata.common.parameters import ParameterStore
from jaildata.common.schema import validate_facilities_config, validate_settings_config

logger = get_logger("config")


@dataclass(frozen=True)
class FacilityConfig:
    name: str
    display_name: str
    api_id: int = UNSET_API_ID

    @property
    def is_collectable(self) -> bool:
        return self.api_id > UNSET_API_ID


@dataclass(frozen=True)
class UpstreamSettings:
    base_url: str | None
    session_path: str
    inmates_path: str
    page_size: int = DEFAULT_PAGE_SIZE
    max_pages: int = DEFAULT_MAX_PAGES
    sort_field: str = "ArrestDate"
    timeout: TimeoutConfig = TimeoutConfig()
    retry: RetryConfig = RetryConfig()
    requests_per_second: float = 2.0


@dataclass(frozen=True)
class StorageSettings:
    table_name: str
    index_name: str = "GSI1"
    batch_write_size: int = 25


@dataclass(frozen=True)
class AppConfig:
    facilities: dict[str, FacilityConfig]
    upstream: UpstreamSettings
    storage: StorageSettings
    queue_url: str | None = None
    ingest_max_workers: int = 4

    def all_facilities(self) -> list[FacilityConfig]:
        return list(self.facilities.values())

    def active_facilities(self) -> list[FacilityConfig]:
        return [facility for facility in self.facilities.values() if facility.is_collectable]

    def facility(self, name: str) -> FacilityConfig:
        facility = self.facilities.get(name.lower())
        if facility is None:
            raise ConfigurationError(f"Unknown facility: {name}")
        return facility

    def facility_by_api_id(self, api_id: int) -> FacilityConfig | None:
        if api_id <= UNSET_API_ID:
            return None
        for facility in self.facilities.values():
            if facility.api_id == api_id:
                return facility
        return None

    def collectable_facility(self, name: str) -> FacilityConfig:
        facility = self.facility(name)
        if not facility.is_collectable:
            raise ConfigurationError(f"Facility {facility.name} does not have a configured API ID")
        return facility

    def require_base_url(self) -> str:
        if not self.upstream.base_url:
            raise ConfigurationError("Base URL not configured in parameter store")
        return self.upstream.base_url.rstrip("/")

    def require_queue_url(self) -> str:
        if not self.queue_url:
            raise ConfigurationError("Queue URL not configured")
        return self.queue_url


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigurationError(f"Missing config file: {path}")
    base = read_yaml(path) or {}
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path) or {}
    return _deep_merge(base, overlay)


def _resolve_api_id(
    facility: dict,
    parameter_template: str,
    parameter_store: ParameterStore | None,
) -> int:
    configured = int(facility.get("api_id") or UNSET_API_ID)
    if configured > UNSET_API_ID or parameter_store is None:
        return configured

    name = str(facility["name"]).lower()
    parameter_name = parameter_template.format(name=name)
    try:
        value = parameter_store.get(parameter_name)
        api_id = int(value) if value else UNSET_API_ID
    except (ConfigurationError, ValueError) as exc:
        log_event(
            logger,
            f"failed to load API id for facility {name}: {exc}",
            level=logging.WARNING,
            facility=name,
            event="FACILITY_ID_LOAD_FAIL",
            status="warning",
        )
        return UNSET_API_ID

    log_event(
        logger,
        f"loaded API id for {name}: {'[CONFIGURED]' if api_id > UNSET_API_ID else '[NOT CONFIGURED]'}",
        facility=name,
        event="FACILITY_ID_LOADED",
        status="ok",
    )
    return api_id


def _resolve_base_url(
    upstream: dict,
    parameter_name: str,
    parameter_store: ParameterStore | None,
    environ: Mapping[str, str],
) -> str | None:
    if environ.get("JAILDATA_BASE_URL"):
        return environ["JAILDATA_BASE_URL"]
    if upstream.get("base_url"):
        return str(upstream["base_url"])
    if parameter_store is None:
        return None
    return parameter_store.get(parameter_name)


def _build_upstream(upstream: dict, base_url: str | None) -> UpstreamSettings:
    timeout = upstream.get("timeout") or {}
    return UpstreamSettings(
        base_url=base_url,
        session_path=str(upstream["session_path"]),
        inmates_path=str(upstream["inmates_path"]),
        page_size=int(upstream["page_size"]),
        max_pages=int(upstream.get("max_pages", DEFAULT_MAX_PAGES)),
        sort_field=str(upstream.get("sort_field", "ArrestDate")),
        timeout=TimeoutConfig(
            connect=float(timeout.get("connect_seconds", TimeoutConfig.connect)),
            read=float(timeout.get("read_seconds", TimeoutConfig.read)),
        ),
        retry=RetryConfig(max_attempts=int(upstream.get("max_attempts", 1))),
        requests_per_second=float(upstream.get("requests_per_second", 2.0)),
    )


def load_app_config(
    config_dir: Path,
    *,
    overlay_config_dir: Path | None = None,
    parameter_store: ParameterStore | None = None,
    environ: Mapping[str, str] | None = None,
    allow_unknown: bool = False,
) -> AppConfig:
    env = os.environ if environ is None else environ

    def overlay(name: str) -> Path | None:
        return (overlay_config_dir / name) if overlay_config_dir is not None else None

    settings = validate_settings_config(
        _load_yaml_with_overlay(config_dir / "settings.yml", overlay("settings.yml")),
        allow_unknown=allow_unknown,
    )
    facilities_cfg = validate_facilities_config(
        _load_yaml_with_overlay(config_dir / "facilities.yml", overlay("facilities.yml")),
        allow_unknown=allow_unknown,
    )

    parameters = settings["parameters"]
    facilities: dict[str, FacilityConfig] = {}
    for facility in facilities_cfg["facilities"]:
        name = str(facility["name"]).lower()
        facilities[name] = FacilityConfig(
            name=name,
            display_name=str(facility["display_name"]),
            api_id=_resolve_api_id(facility, parameters["facility_api_id"], parameter_store),
        )

    base_url = _resolve_base_url(settings["upstream"], parameters["base_url"], parameter_store, env)

    storage = settings["storage"]
    return AppConfig(
        facilities=facilities,
        upstream=_build_upstream(settings["upstream"], base_url),
        storage=StorageSettings(
            table_name=env.get("JAILDATA_TABLE") or str(storage["table_name"]),
            index_name=str(storage.get("index_name", "GSI1")),
            batch_write_size=int(storage.get("batch_write_size", 25)),
        ),
        queue_url=env.get("JAILDATA_QUEUE_URL") or settings["queue"].get("queue_url"),
        ingest_max_workers=int(settings["ingest"].get("max_workers", 4)),
    )
