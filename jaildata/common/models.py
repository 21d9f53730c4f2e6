"""Data models shared by collection, queueing and storage."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from jaildata.common.dates import normalize_record_date
from jaildata.common.errors import MalformedMessage
from jaildata.common.keys import FacilityKey, InmateKey, facility_secondary_key, inmate_key

# Upstream attribute name -> RawPersonRecord field.
KNOWN_FIELDS = {
    "FirstName": "first_name",
    "LastName": "last_name",
    "MiddleName": "middle_name",
    "TotalBondAmount": "total_bond_amount",
    "ArrestDate": "arrest_date",
}


def _optional_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def coerce_bond_amount(value: Any) -> Decimal:
    if value is None or isinstance(value, bool):
        return Decimal(0)
    if isinstance(value, (int, Decimal)):
        amount = Decimal(value)
    elif isinstance(value, float):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        cleaned = value.strip().replace(",", "").replace("$", "")
        try:
            amount = Decimal(cleaned)
        except InvalidOperation:
            return Decimal(0)
    else:
        return Decimal(0)
    if not amount.is_finite():
        return Decimal(0)
    return amount


@dataclass(frozen=True)
class RawPersonRecord:
    """One upstream roster entry.

    The five attributes the pipeline understands are lifted into named
    fields; everything else rides along untouched in ``extras``. ``to_dict``
    rebuilds the upstream mapping in its original key order.
    """

    first_name: Any = None
    last_name: Any = None
    middle_name: Any = None
    total_bond_amount: Any = None
    arrest_date: Any = None
    extras: Mapping[str, Any] = field(default_factory=dict)
    source_keys: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "RawPersonRecord":
        if not isinstance(payload, Mapping):
            raise TypeError(f"Person record must be a mapping, got {type(payload).__name__}")
        known = {attr: payload.get(name) for name, attr in KNOWN_FIELDS.items()}
        extras = {key: value for key, value in payload.items() if key not in KNOWN_FIELDS}
        return cls(**known, extras=extras, source_keys=tuple(payload))

    def to_dict(self) -> dict[str, Any]:
        keys = self.source_keys
        if not keys:
            keys = tuple(
                name for name, attr in KNOWN_FIELDS.items() if getattr(self, attr) is not None
            ) + tuple(self.extras)
        out: dict[str, Any] = {}
        for key in keys:
            if key in KNOWN_FIELDS:
                out[key] = getattr(self, KNOWN_FIELDS[key])
            else:
                out[key] = self.extras[key]
        return out


@dataclass(frozen=True)
class NormalizedRecord:
    facility_id: str
    identity: InmateKey
    facility_key: FacilityKey
    record_date: str
    bond_amount: Decimal
    last_updated: str
    raw_data: dict[str, Any]

    @classmethod
    def from_raw(cls, facility_id: str, raw: RawPersonRecord, *, last_updated: str) -> "NormalizedRecord":
        record_date = normalize_record_date(raw.arrest_date)
        return cls(
            facility_id=facility_id,
            identity=inmate_key(facility_id, raw.last_name, raw.first_name, raw.middle_name, record_date),
            facility_key=facility_secondary_key(facility_id, record_date),
            record_date=record_date,
            bond_amount=coerce_bond_amount(raw.total_bond_amount),
            last_updated=last_updated,
            raw_data=raw.to_dict(),
        )

    def to_item(self) -> dict[str, Any]:
        item: dict[str, Any] = {}
        item.update(self.identity.to_item_key())
        item.update(self.facility_key.to_item_key())
        item.update(
            {
                "facilityId": self.facility_id,
                "recordDate": self.record_date,
                "lastUpdated": self.last_updated,
                "totalBondAmount": self.bond_amount,
                "rawData": self.raw_data,
            }
        )
        return item


@dataclass(frozen=True)
class InmatePage:
    records: list[dict[str, Any]]
    total: int | None
    show_images: bool = False

    @classmethod
    def from_batch(cls, batch: Mapping[str, Any]) -> "InmatePage":
        return cls(
            records=list(batch["Inmates"]),
            total=_optional_int(batch.get("Total")),
            show_images=bool(batch.get("ShowImages", False)),
        )

    def to_batch(self) -> dict[str, Any]:
        return {"Inmates": self.records, "Total": self.total, "ShowImages": self.show_images}


@dataclass(frozen=True)
class WorkUnit:
    facility_id: str
    page: InmatePage
    page_number: int
    correlation_id: str
    total_pages: int | None = None

    def to_message(self) -> dict[str, Any]:
        message: dict[str, Any] = {
            "facilityId": self.facility_id,
            "batch": self.page.to_batch(),
            "batchNumber": self.page_number,
            "requestId": self.correlation_id,
        }
        if self.total_pages is not None:
            message["totalBatches"] = self.total_pages
        return message

    @classmethod
    def from_message(cls, message: Any) -> "WorkUnit":
        if not isinstance(message, Mapping):
            raise MalformedMessage("Work unit must be a JSON object")

        facility_id = message.get("facilityId")
        if not isinstance(facility_id, str) or not facility_id:
            raise MalformedMessage("Missing facilityId in batch message")

        batch = message.get("batch")
        if not isinstance(batch, Mapping) or not isinstance(batch.get("Inmates"), list):
            raise MalformedMessage("Invalid batch structure in message")
        if not all(isinstance(entry, Mapping) for entry in batch["Inmates"]):
            raise MalformedMessage("Invalid batch structure in message: person records must be objects")

        return cls(
            facility_id=facility_id,
            page=InmatePage.from_batch(batch),
            page_number=_optional_int(message.get("batchNumber")) or 0,
            correlation_id=str(message.get("requestId") or ""),
            total_pages=_optional_int(message.get("totalBatches")),
        )
