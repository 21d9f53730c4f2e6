"""Keyed record storage on a single DynamoDB table.

Items are addressed by the identity key pair (``PK``/``SK``) and carry a
second key pair (``GSI1PK``/``GSI1SK``) projected into the ``GSI1`` index for
facility and date-range reads. Writes are unconditional puts, so the last
writer for one person on one day wins and a replayed work unit is harmless.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Callable, Iterable, Iterator, Mapping

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import BotoCoreError, ClientError

from jaildata.common.constants import (
    BATCH_WRITE_LIMIT,
    DEFAULT_QUERY_LIMIT,
    DEFAULT_SURNAME_LIMIT,
    FACILITY_KEY_PREFIX,
    KEY_ATTRIBUTES,
)
from jaildata.common.errors import StorageError
from jaildata.common.keys import facility_partition, inmate_key, surname_prefix
from jaildata.common.logging import get_logger, log_event
from jaildata.common.models import NormalizedRecord, RawPersonRecord
from jaildata.common.time_utils import utc_days_ago_iso, utc_timestamp_iso

logger = get_logger("storage")

_STORE_ERRORS = (BotoCoreError, ClientError)


def strip_key_attributes(item: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in item.items() if key not in KEY_ATTRIBUTES}


def to_dynamo_value(value: Any) -> Any:
    # DynamoDB rejects float; Decimal(str()) keeps the printed value.
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, Mapping):
        return {key: to_dynamo_value(inner) for key, inner in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_dynamo_value(inner) for inner in value]
    return value


def chunked(items: list, size: int) -> Iterator[list]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class KeyedStore:
    def __init__(
        self,
        table_name: str,
        *,
        dynamodb=None,
        index_name: str = "GSI1",
        batch_size: int = BATCH_WRITE_LIMIT,
        region_name: str | None = None,
        clock: Callable[[], str] = utc_timestamp_iso,
    ) -> None:
        if not 0 < batch_size <= BATCH_WRITE_LIMIT:
            raise ValueError(f"batch_size must be between 1 and {BATCH_WRITE_LIMIT}")
        self.table_name = table_name
        self.dynamodb = dynamodb or boto3.resource("dynamodb", region_name=region_name)
        self.table = self.dynamodb.Table(table_name)
        self.index_name = index_name
        self.batch_size = batch_size
        self.clock = clock

    def _normalize(self, facility_id: str, record: Any, last_updated: str) -> NormalizedRecord:
        raw = record if isinstance(record, RawPersonRecord) else RawPersonRecord.from_dict(record)
        return NormalizedRecord.from_raw(facility_id, raw, last_updated=last_updated)

    # Writes

    def upsert(self, facility_id: str, record: Any) -> NormalizedRecord:
        normalized = self._normalize(facility_id, record, self.clock())
        try:
            self.table.put_item(Item=to_dynamo_value(normalized.to_item()))
        except _STORE_ERRORS as exc:
            raise StorageError(f"Failed to save record for facility {facility_id}: {exc}") from exc
        return normalized

    def batch_upsert(self, facility_id: str, records: Iterable[Any]) -> int:
        """Write records in groups of at most ``batch_size`` and return the count written.

        Groups are written one after another. The first group that fails
        raises ``StorageError``; groups before it stay written and groups
        after it are not attempted. A record whose key repeats inside one
        group replaces the earlier one, since a batch write may not name the
        same key twice.
        """
        records = list(records)
        written = 0
        last_updated = self.clock()
        for group_number, group in enumerate(chunked(records, self.batch_size), start=1):
            by_key: dict[tuple[str, str], dict[str, Any]] = {}
            for record in group:
                item = self._normalize(facility_id, record, last_updated).to_item()
                by_key[(item["PK"], item["SK"])] = item
            requests = [{"PutRequest": {"Item": to_dynamo_value(item)}} for item in by_key.values()]

            try:
                response = self.dynamodb.batch_write_item(RequestItems={self.table_name: requests})
            except _STORE_ERRORS as exc:
                raise StorageError(
                    f"Batch write failed for facility {facility_id} at group {group_number}: {exc}"
                ) from exc

            unprocessed = (response or {}).get("UnprocessedItems", {}).get(self.table_name) or []
            if unprocessed:
                raise StorageError(
                    f"Batch write left {len(unprocessed)} unprocessed items for facility "
                    f"{facility_id} at group {group_number}"
                )
            written += len(requests)

        log_event(
            logger,
            f"saved {written} records",
            level=logging.DEBUG,
            facility=facility_id,
            event="BATCH_SAVED",
            status="ok",
            records=written,
        )
        return written

    # Reads

    def _scan_all(self, **kwargs: Any) -> Iterator[dict[str, Any]]:
        while True:
            response = self.table.scan(**kwargs)
            yield from response.get("Items", [])
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return
            kwargs["ExclusiveStartKey"] = last_key

    def query_by_facility(
        self,
        facility_id: str,
        *,
        start_date: str | None = None,
        end_date: str | None = None,
        limit: int = DEFAULT_QUERY_LIMIT,
    ) -> list[dict[str, Any]]:
        """Records for one facility, most recent first, within inclusive date bounds."""
        condition = Key("GSI1PK").eq(facility_partition(facility_id))
        if start_date and end_date:
            condition = condition & Key("GSI1SK").between(start_date, end_date)
        elif start_date:
            condition = condition & Key("GSI1SK").gte(start_date)
        elif end_date:
            condition = condition & Key("GSI1SK").lte(end_date)

        try:
            response = self.table.query(
                IndexName=self.index_name,
                KeyConditionExpression=condition,
                ScanIndexForward=False,
                Limit=limit,
            )
        except _STORE_ERRORS as exc:
            raise StorageError(f"Failed to query facility {facility_id}: {exc}") from exc
        return [strip_key_attributes(item) for item in response.get("Items", [])]

    def query_facility_recent(self, facility_id: str, limit: int = DEFAULT_QUERY_LIMIT) -> list[dict[str, Any]]:
        return self.query_by_facility(facility_id, start_date=utc_days_ago_iso(1), limit=limit)

    def query_recent_global(self, limit: int = DEFAULT_QUERY_LIMIT) -> list[dict[str, Any]]:
        # A key condition cannot prefix-match a partition key, so this scans the index.
        cutoff = utc_days_ago_iso(1)
        try:
            items = list(
                self._scan_all(
                    IndexName=self.index_name,
                    FilterExpression=Attr("GSI1PK").begins_with(f"{FACILITY_KEY_PREFIX}#")
                    & Attr("GSI1SK").gte(cutoff),
                )
            )
        except _STORE_ERRORS as exc:
            raise StorageError(f"Failed to query recent records: {exc}") from exc
        items.sort(key=lambda item: (item.get("GSI1SK", ""), item.get("PK", "")), reverse=True)
        return [strip_key_attributes(item) for item in items[:limit]]

    def query_by_surname_prefix(
        self,
        facility_id: str,
        surname: str,
        limit: int = DEFAULT_SURNAME_LIMIT,
    ) -> list[dict[str, Any]]:
        """Records whose identity key starts with the cleaned surname, in key order."""
        prefix = surname_prefix(facility_id, surname)
        if prefix.endswith("#"):
            raise ValueError("surname must contain at least one letter or digit")
        try:
            items = list(self._scan_all(FilterExpression=Attr("PK").begins_with(prefix)))
        except _STORE_ERRORS as exc:
            raise StorageError(f"Failed to search facility {facility_id} by surname: {exc}") from exc
        items.sort(key=lambda item: (item.get("PK", ""), item.get("SK", "")))
        return [strip_key_attributes(item) for item in items[:limit]]

    def get_by_identity(
        self,
        facility_id: str,
        last: Any,
        first: Any,
        middle: Any,
        record_date: str,
    ) -> dict[str, Any] | None:
        key = inmate_key(facility_id, last, first, middle, record_date)
        try:
            response = self.table.get_item(Key=key.to_item_key())
        except _STORE_ERRORS as exc:
            raise StorageError(f"Failed to load record {key.partition_key}: {exc}") from exc
        item = response.get("Item")
        if item is None:
            return None
        return strip_key_attributes(item)
