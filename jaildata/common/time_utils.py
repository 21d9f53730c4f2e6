"""UTC-focused helpers for run metadata and date cutoffs."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def utc_today_iso() -> str:
    return utc_now().date().isoformat()


def utc_days_ago_iso(days: int) -> str:
    return (utc_now() - timedelta(days=days)).date().isoformat()


def utc_timestamp_iso() -> str:
    return utc_now().isoformat(timespec="milliseconds")
