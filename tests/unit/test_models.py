from decimal import Decimal

import pytest

from jaildata.common.errors import MalformedMessage
from jaildata.common.models import (
    InmatePage,
    NormalizedRecord,
    RawPersonRecord,
    WorkUnit,
    coerce_bond_amount,
)


def test_coerce_bond_amount_accepts_numbers_and_money_strings():
    assert coerce_bond_amount(1500) == Decimal(1500)
    assert coerce_bond_amount(12.5) == Decimal("12.5")
    assert coerce_bond_amount("$1,500.00") == Decimal("1500.00")


def test_coerce_bond_amount_defaults_to_zero():
    assert coerce_bond_amount(None) == 0
    assert coerce_bond_amount("n/a") == 0
    assert coerce_bond_amount("NaN") == 0
    assert coerce_bond_amount(True) == 0
    assert coerce_bond_amount(["1"]) == 0


def test_raw_person_record_keeps_unknown_fields_and_key_order():
    payload = {"BookingNumber": "B1", "LastName": "Smith", "Charges": ["x"], "FirstName": "Ann"}
    record = RawPersonRecord.from_dict(payload)

    assert record.last_name == "Smith"
    assert record.first_name == "Ann"
    assert record.middle_name is None
    assert record.extras == {"BookingNumber": "B1", "Charges": ["x"]}
    assert list(record.to_dict()) == ["BookingNumber", "LastName", "Charges", "FirstName"]
    assert record.to_dict() == payload


def test_raw_person_record_rejects_non_mapping():
    with pytest.raises(TypeError):
        RawPersonRecord.from_dict(["not", "a", "record"])


def test_normalized_record_item_shape():
    raw = RawPersonRecord.from_dict(
        {
            "FirstName": "Ann",
            "LastName": "Smith",
            "MiddleName": "Q",
            "ArrestDate": "9/15/2025 10:30:00 AM",
            "TotalBondAmount": "250",
            "Cell": "4B",
        }
    )
    record = NormalizedRecord.from_raw("wake", raw, last_updated="2026-01-01T00:00:00.000+00:00")
    item = record.to_item()

    assert item["PK"] == "INMATE#wake#smith#ann#q"
    assert item["SK"] == "2025-09-15"
    assert item["GSI1PK"] == "FACILITY#wake"
    assert item["GSI1SK"] == "2025-09-15"
    assert item["facilityId"] == "wake"
    assert item["recordDate"] == "2025-09-15"
    assert item["totalBondAmount"] == Decimal(250)
    assert item["lastUpdated"] == "2026-01-01T00:00:00.000+00:00"
    assert item["rawData"]["Cell"] == "4B"


def test_work_unit_message_round_trip_fields():
    page = InmatePage(records=[{"LastName": "Smith"}], total=250, show_images=True)
    unit = WorkUnit(facility_id="wake", page=page, page_number=2, correlation_id="run-1", total_pages=3)
    message = unit.to_message()

    assert message == {
        "facilityId": "wake",
        "batch": {"Inmates": [{"LastName": "Smith"}], "Total": 250, "ShowImages": True},
        "batchNumber": 2,
        "requestId": "run-1",
        "totalBatches": 3,
    }
    assert WorkUnit.from_message(message) == unit


def test_work_unit_omits_unknown_total_pages():
    unit = WorkUnit(facility_id="wake", page=InmatePage([], None), page_number=1, correlation_id="r")
    assert "totalBatches" not in unit.to_message()


@pytest.mark.parametrize(
    "message, reason",
    [
        ({"batch": {"Inmates": []}}, "Missing facilityId"),
        ({"facilityId": "", "batch": {"Inmates": []}}, "Missing facilityId"),
        ({"facilityId": "wake"}, "Invalid batch structure"),
        ({"facilityId": "wake", "batch": {"Inmates": {}}}, "Invalid batch structure"),
        ({"facilityId": "wake", "batch": {"Inmates": [None]}}, "Invalid batch structure"),
        ({"facilityId": "wake", "batch": {"Inmates": [{"LastName": "A"}, "B"]}}, "Invalid batch structure"),
        ([1, 2], "JSON object"),
    ],
)
def test_work_unit_from_message_rejects_bad_structure(message, reason):
    with pytest.raises(MalformedMessage, match=reason):
        WorkUnit.from_message(message)
