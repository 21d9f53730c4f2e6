"""Deterministic storage keys derived from loosely typed person records."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from jaildata.common.constants import FACILITY_KEY_PREFIX, INMATE_KEY_PREFIX

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")


@dataclass(frozen=True)
class InmateKey:
    partition_key: str
    sort_key: str

    def to_item_key(self) -> dict[str, str]:
        return {"PK": self.partition_key, "SK": self.sort_key}


@dataclass(frozen=True)
class FacilityKey:
    secondary_partition: str
    secondary_sort: str

    def to_item_key(self) -> dict[str, str]:
        return {"GSI1PK": self.secondary_partition, "GSI1SK": self.secondary_sort}


def clean_token(value: Any) -> str:
    if value is None:
        return ""
    return _NON_ALNUM_RE.sub("", str(value).lower())


def inmate_partition_prefix(facility_id: str) -> str:
    return f"{INMATE_KEY_PREFIX}#{facility_id}#"


def inmate_key(facility_id: str, last: Any, first: Any, middle: Any, record_date: str) -> InmateKey:
    partition = (
        f"{inmate_partition_prefix(facility_id)}"
        f"{clean_token(last)}#{clean_token(first)}#{clean_token(middle)}"
    )
    return InmateKey(partition_key=partition, sort_key=record_date)


def facility_partition(facility_id: str) -> str:
    return f"{FACILITY_KEY_PREFIX}#{facility_id}"


def facility_secondary_key(facility_id: str, record_date: str) -> FacilityKey:
    return FacilityKey(secondary_partition=facility_partition(facility_id), secondary_sort=record_date)


def surname_prefix(facility_id: str, surname: str) -> str:
    return f"{inmate_partition_prefix(facility_id)}{clean_token(surname)}"
