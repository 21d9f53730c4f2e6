"""Run report aggregation."""

from __future__ import annotations

from pathlib import Path

from jaildata.common.fs import write_json


def write_run_summary(
    data_dir: Path,
    run_id: str,
    run_date: str,
    results: dict[str, dict],
    failures: dict[str, str],
) -> Path:
    totals = {"facilities": len(results) + len(failures), "pages": 0, "records": 0}
    warning_count = 0

    facility_reports = {}
    for name, result in results.items():
        facility_reports[name] = {
            "state": result.get("state"),
            "pages": result.get("pages", 0),
            "records": result.get("records", 0),
            "total_reported": result.get("total_reported"),
            "truncated": bool(result.get("truncated")),
        }
        totals["pages"] += int(result.get("pages", 0))
        totals["records"] += int(result.get("records", 0))
        if result.get("truncated"):
            warning_count += 1

    for name, error_code in failures.items():
        facility_reports[name] = {"state": "failed", "error_code": error_code}

    error_count = len(failures)
    status = "success"
    if error_count > 0 and not results:
        status = "error"
    elif error_count > 0 or warning_count > 0:
        status = "partial"

    summary_path = data_dir / "run_meta" / f"{run_id}_summary.json"
    payload = {
        "run_id": run_id,
        "run_date": run_date,
        "status": status,
        "totals": totals,
        "warning_count": warning_count,
        "error_count": error_count,
        "facility_reports": facility_reports,
    }
    write_json(summary_path, payload)
    return summary_path
