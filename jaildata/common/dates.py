"""Record date normalisation.

Upstream timestamps are observed as ``M/D/YYYY h:mm:ss AM`` but nothing
guarantees it, so the slash form is read positionally (no timezone
interpretation) and anything else goes through ``dateutil``.

The unparseable fallback yields ``M/D/YYYY`` rather than the canonical
``YYYY-MM-DD``. Sort keys written through that branch do not order against
the rest; every hit is logged.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any

from dateutil import parser as date_parser

from jaildata.common.logging import get_logger, log_event
from jaildata.common.time_utils import utc_now

_SLASH_DATE_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})")

logger = get_logger("dates")


def _fallback_date(now: datetime) -> str:
    return f"{now.month}/{now.day}/{now.year}"


def normalize_record_date(raw: Any, *, now: datetime | None = None) -> str:
    current = now or utc_now()
    if raw is None or raw == "":
        return current.date().isoformat()

    text = str(raw).strip()
    match = _SLASH_DATE_RE.match(text)
    if match:
        month, day, year = match.groups()
        return f"{year}-{month.zfill(2)}-{day.zfill(2)}"

    try:
        parsed = date_parser.parse(text)
    except (ValueError, OverflowError):
        log_event(
            logger,
            f"unparseable record date {text!r}, using current date",
            level=logging.WARNING,
            event="DATE_FALLBACK",
            status="warning",
        )
        return _fallback_date(current)

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.date().isoformat()
