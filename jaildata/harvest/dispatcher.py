"""Hand fetched pages to the ingestion queue."""

from __future__ import annotations

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from jaildata.common.errors import DispatchError
from jaildata.common.fs import dumps
from jaildata.common.models import WorkUnit


def message_attributes(unit: WorkUnit) -> dict[str, dict[str, str]]:
    return {
        "facilityId": {"DataType": "String", "StringValue": unit.facility_id},
        "requestId": {"DataType": "String", "StringValue": unit.correlation_id},
        "batchNumber": {"DataType": "Number", "StringValue": str(unit.page_number)},
    }


class WorkDispatcher:
    def __init__(self, queue_url: str, *, sqs_client=None, region_name: str | None = None) -> None:
        self.queue_url = queue_url
        self.client = sqs_client or boto3.client("sqs", region_name=region_name)

    def dispatch(self, unit: WorkUnit) -> str:
        """Enqueue one work unit and return the queue's message id."""
        try:
            response = self.client.send_message(
                QueueUrl=self.queue_url,
                MessageBody=dumps(unit.to_message()),
                MessageAttributes=message_attributes(unit),
            )
        except (BotoCoreError, ClientError) as exc:
            raise DispatchError(
                f"Failed to enqueue batch {unit.page_number} for facility {unit.facility_id}: {exc}"
            ) from exc
        return str(response.get("MessageId", ""))
