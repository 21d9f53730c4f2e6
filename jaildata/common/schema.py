"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

from jaildata.common.errors import ConfigurationError


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    if not isinstance(obj, dict):
        raise ConfigurationError(f"{ctx} must be a mapping")
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigurationError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigurationError(f"Unknown keys in {ctx}: {unknown_str}")


def validate_settings_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    top_required = {"upstream", "storage", "queue", "ingest", "parameters"}
    _assert_required_keys(cfg, top_required, "settings")
    _assert_no_unknown_keys(cfg, top_required, "settings", allow_unknown)

    upstream_required = {"session_path", "inmates_path", "page_size"}
    upstream_known = upstream_required | {
        "base_url",
        "max_pages",
        "sort_field",
        "timeout",
        "max_attempts",
        "requests_per_second",
    }
    _assert_required_keys(cfg["upstream"], upstream_required, "upstream")
    _assert_no_unknown_keys(cfg["upstream"], upstream_known, "upstream", allow_unknown)
    if int(cfg["upstream"]["page_size"]) <= 0:
        raise ConfigurationError("upstream.page_size must be positive")

    _assert_required_keys(cfg["storage"], {"table_name"}, "storage")
    _assert_required_keys(cfg["queue"], set(), "queue")
    _assert_required_keys(cfg["ingest"], set(), "ingest")
    _assert_required_keys(cfg["parameters"], {"base_url", "facility_api_id"}, "parameters")
    if "{name}" not in cfg["parameters"]["facility_api_id"]:
        raise ConfigurationError("parameters.facility_api_id must contain a {name} placeholder")

    return cfg


def validate_facilities_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    _assert_required_keys(cfg, {"facilities"}, "facilities config")
    _assert_no_unknown_keys(cfg, {"facilities"}, "facilities config", allow_unknown)
    if not isinstance(cfg["facilities"], list) or not cfg["facilities"]:
        raise ConfigurationError("facilities must be a non-empty list")

    names: list[str] = []
    for idx, facility in enumerate(cfg["facilities"]):
        _assert_required_keys(facility, {"name", "display_name"}, f"facilities[{idx}]")
        _assert_no_unknown_keys(
            facility,
            {"name", "display_name", "api_id"},
            f"facilities[{idx}]",
            allow_unknown,
        )
        names.append(str(facility["name"]).lower())

    dupes = {name for name in names if names.count(name) > 1}
    if dupes:
        raise ConfigurationError(f"Duplicate facilities: {', '.join(sorted(dupes))}")

    return cfg
