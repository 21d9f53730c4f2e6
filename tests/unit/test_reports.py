from pathlib import Path

from jaildata.common.fs import read_json
from jaildata.harvest.reports import write_run_summary


def _result(pages, records, truncated=False):
    return {"state": "completed", "pages": pages, "records": records, "total_reported": records, "truncated": truncated}


def test_run_summary_success(tmp_path: Path):
    path = write_run_summary(tmp_path, "run-1", "2026-02-17", {"wake": _result(3, 250)}, {})

    summary = read_json(path)
    assert path == tmp_path / "run_meta" / "run-1_summary.json"
    assert summary["status"] == "success"
    assert summary["totals"] == {"facilities": 1, "pages": 3, "records": 250}


def test_run_summary_partial_on_failure_or_truncation(tmp_path: Path):
    failed = read_json(
        write_run_summary(tmp_path, "run-2", "2026-02-17", {"wake": _result(1, 5)}, {"buncombe": "SESSION_ERROR"})
    )
    assert failed["status"] == "partial"
    assert failed["facility_reports"]["buncombe"] == {"state": "failed", "error_code": "SESSION_ERROR"}

    truncated = read_json(write_run_summary(tmp_path, "run-3", "2026-02-17", {"wake": _result(2, 200, True)}, {}))
    assert truncated["status"] == "partial"
    assert truncated["warning_count"] == 1


def test_run_summary_error_when_everything_failed(tmp_path: Path):
    summary = read_json(write_run_summary(tmp_path, "run-4", "2026-02-17", {}, {"wake": "TRANSPORT_ERROR"}))
    assert summary["status"] == "error"
    assert summary["error_count"] == 1
