from __future__ import annotations

import copy
import json
import logging
from urllib.parse import urlparse

import pytest
from boto3.dynamodb.conditions import AttributeBase
from botocore.exceptions import ClientError

from jaildata.common.config_loader import AppConfig, FacilityConfig, StorageSettings, UpstreamSettings
from jaildata.common.http import HttpRequestError, HttpResponse
from jaildata.storage.store import KeyedStore

TABLE_NAME = "jaildata-test"
BASE_URL = "https://portal.example.com"
QUEUE_URL = "https://sqs.us-east-2.amazonaws.com/123456789012/jaildata-batches"


def client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": f"{code} raised by fake"}}, operation)


def _operand(value, item):
    if isinstance(value, AttributeBase):
        return item.get(value.name)
    return value


def evaluate_condition(condition, item) -> bool:
    expression = condition.get_expression()
    operator = expression["operator"]
    values = expression["values"]
    if operator == "AND":
        return evaluate_condition(values[0], item) and evaluate_condition(values[1], item)

    left = _operand(values[0], item)
    if left is None:
        return False
    if operator == "=":
        return left == values[1]
    if operator == ">=":
        return left >= values[1]
    if operator == "<=":
        return left <= values[1]
    if operator == "BETWEEN":
        return values[1] <= left <= values[2]
    if operator == "begins_with":
        return str(left).startswith(values[1])
    raise NotImplementedError(operator)


class FakeTable:
    def __init__(self, name: str, scan_page_size: int = 2):
        self.name = name
        self.items: dict[tuple[str, str], dict] = {}
        self.scan_page_size = scan_page_size
        self.scan_calls = 0
        self.error: ClientError | None = None

    def _check(self):
        if self.error is not None:
            raise self.error

    def put_item(self, Item):
        self._check()
        self.items[(Item["PK"], Item["SK"])] = copy.deepcopy(Item)
        return {}

    def get_item(self, Key):
        self._check()
        item = self.items.get((Key["PK"], Key["SK"]))
        return {"Item": copy.deepcopy(item)} if item is not None else {}

    def query(self, KeyConditionExpression, IndexName=None, ScanIndexForward=True, Limit=None):
        self._check()
        sort_attr = "GSI1SK" if IndexName else "SK"
        matches = [item for item in self.items.values() if evaluate_condition(KeyConditionExpression, item)]
        matches.sort(key=lambda item: item[sort_attr], reverse=not ScanIndexForward)
        if Limit is not None:
            matches = matches[:Limit]
        return {"Items": copy.deepcopy(matches), "Count": len(matches)}

    def scan(self, IndexName=None, FilterExpression=None, ExclusiveStartKey=None):
        self._check()
        self.scan_calls += 1
        pool = list(self.items.values())
        if IndexName:
            pool = [item for item in pool if "GSI1PK" in item]
        start = ExclusiveStartKey["position"] if ExclusiveStartKey else 0
        page = pool[start : start + self.scan_page_size]
        if FilterExpression is not None:
            page = [item for item in page if evaluate_condition(FilterExpression, item)]
        response = {"Items": copy.deepcopy(page)}
        if start + self.scan_page_size < len(pool):
            response["LastEvaluatedKey"] = {"position": start + self.scan_page_size}
        return response


class FakeDynamoResource:
    def __init__(self):
        self.tables: dict[str, FakeTable] = {}
        self.batch_calls: list[dict] = []
        self.fail_on_batch_call: int | None = None
        self.unprocessed_on_batch_call: int | None = None

    def Table(self, name):
        return self.tables.setdefault(name, FakeTable(name))

    def batch_write_item(self, RequestItems):
        self.batch_calls.append(RequestItems)
        call_number = len(self.batch_calls)
        if call_number == self.fail_on_batch_call:
            raise client_error("ProvisionedThroughputExceededException", "BatchWriteItem")

        unprocessed = {}
        for table_name, requests in RequestItems.items():
            table = self.Table(table_name)
            for request in requests:
                table.put_item(Item=request["PutRequest"]["Item"])
            if call_number == self.unprocessed_on_batch_call:
                unprocessed[table_name] = requests[-1:]
        return {"UnprocessedItems": unprocessed}


class FakeSQS:
    def __init__(self):
        self.sent: list[dict] = []
        self.error: ClientError | None = None

    def send_message(self, **kwargs):
        if self.error is not None:
            raise self.error
        self.sent.append(kwargs)
        return {"MessageId": f"msg-{len(self.sent)}"}


class FakeSSM:
    def __init__(self, parameters=None):
        self.parameters = dict(parameters or {})
        self.requested: list[str] = []

    def get_parameter(self, Name, WithDecryption=False):
        self.requested.append(Name)
        value = self.parameters.get(Name)
        if value is None:
            raise client_error("ParameterNotFound", "GetParameter")
        if isinstance(value, Exception):
            raise value
        return {"Parameter": {"Name": Name, "Value": value}}


class FakePortal:
    """Stands in for ``HttpClient`` and serves one facility's roster."""

    def __init__(self, inmates, *, reported_total="auto", issue_token=True, fail_on_post=None):
        self.inmates = list(inmates)
        self.reported_total = len(self.inmates) if reported_total == "auto" else reported_total
        self.issue_token = issue_token
        self.fail_on_post = fail_on_post
        self.requests: list[dict] = []
        self.closed = False

    @property
    def posts(self):
        return [request for request in self.requests if request["method"] == "POST"]

    def request(self, method, url, *, json_body=None, headers=None, timeout=None):
        self.requests.append(
            {"method": method, "url": url, "json_body": json_body, "headers": dict(headers or {}), "timeout": timeout}
        )
        if method == "GET":
            cookies = ["ASP.NET_SessionId=sess-1; path=/; HttpOnly"]
            if self.issue_token:
                cookies.append("XSRF-TOKEN=tok%2Fen%3D%3D; path=/")
            return HttpResponse(url=url, status_code=200, text="<html></html>", set_cookie=cookies)

        if len(self.posts) == self.fail_on_post:
            raise HttpRequestError(f"HTTP status: 500 for {urlparse(url).path}")
        paging = json_body["PagingOptions"]
        page = self.inmates[paging["Skip"] : paging["Skip"] + paging["Take"]]
        payload = {"Inmates": page, "Total": self.reported_total, "ShowImages": False}
        return HttpResponse(url=url, status_code=200, text=json.dumps(payload), set_cookie=[])

    def close(self):
        self.closed = True


def make_inmates(count, *, arrest_date="9/15/2025 10:30:00 AM", start=0):
    return [
        {
            "FirstName": f"First{index}",
            "LastName": f"Last{index}",
            "MiddleName": "",
            "ArrestDate": arrest_date,
            "TotalBondAmount": "1,500.00",
            "BookingNumber": f"B{index:05d}",
        }
        for index in range(start, start + count)
    ]


def make_app_config(**upstream_overrides) -> AppConfig:
    upstream = {
        "base_url": BASE_URL,
        "session_path": "/jtclientweb/jailtracker/index/{api_id}",
        "inmates_path": "/jtclientweb/Inmates/{api_id}",
        "page_size": 100,
        "max_pages": 500,
    }
    upstream.update(upstream_overrides)
    return AppConfig(
        facilities={
            "buncombe": FacilityConfig(name="buncombe", display_name="Buncombe County", api_id=123),
            "wake": FacilityConfig(name="wake", display_name="Wake County"),
        },
        upstream=UpstreamSettings(**upstream),
        storage=StorageSettings(table_name=TABLE_NAME),
        queue_url=QUEUE_URL,
    )


@pytest.fixture
def fake_dynamodb():
    return FakeDynamoResource()


@pytest.fixture
def store(fake_dynamodb):
    return KeyedStore(TABLE_NAME, dynamodb=fake_dynamodb)


@pytest.fixture
def fake_sqs():
    return FakeSQS()


@pytest.fixture
def inmates():
    return make_inmates


@pytest.fixture
def portal():
    return FakePortal


@pytest.fixture
def app_config():
    return make_app_config()


@pytest.fixture
def ssm():
    return FakeSSM


@pytest.fixture(autouse=True)
def reset_jaildata_logger():
    yield
    logger = logging.getLogger("jaildata")
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
