import json
from dataclasses import replace

import pytest

from cargoqr.errors import PayloadFormatError
from cargoqr.payload import parse_payload, serialize, summary_lines
from cargoqr.record import CargoRecord, LengthUnit, Location, WeightUnit


def test_pallet_payload_is_canonical(pallet):
    assert serialize(pallet) == (
        '{"id":"X1","desc":"Pallet",'
        '"dim":{"l":"10","w":"5","h":"4","unit":"cm"},'
        '"wt":{"val":"20","unit":"kg"},'
        '"notes":"","loc":null}'
    )


def test_serialize_is_deterministic(pallet_with_fix):
    assert serialize(pallet_with_fix) == serialize(pallet_with_fix)


def test_top_level_key_order(pallet_with_fix):
    doc = json.loads(serialize(pallet_with_fix))
    assert list(doc) == ["id", "desc", "dim", "wt", "notes", "loc"]
    assert list(doc["dim"]) == ["l", "w", "h", "unit"]
    assert list(doc["wt"]) == ["val", "unit"]
    assert list(doc["loc"]) == ["lat", "lng", "ts"]


def test_location_values_carried_verbatim(pallet_with_fix):
    text = serialize(pallet_with_fix)
    assert '"loc":{"lat":12.34,"lng":56.78,"ts":1234567890}' in text


def test_imperial_units_resolve_to_tags(pallet):
    record = CargoRecord(
        id=pallet.id,
        length="40",
        width="48",
        height="50",
        weight="900",
        length_unit=LengthUnit.IMPERIAL,
        weight_unit=WeightUnit.IMPERIAL,
    )
    doc = json.loads(serialize(record))
    assert doc["dim"]["unit"] == "in"
    assert doc["wt"]["unit"] == "lb"


def test_absent_optional_fields_do_not_raise():
    doc = json.loads(serialize(CargoRecord(notes=None)))
    assert doc["notes"] == ""
    assert doc["loc"] is None
    assert doc["id"] == ""


def test_numeric_fields_stay_text():
    record = CargoRecord(id="N", length="10.50", width="0005", height="1e3", weight="12,5")
    doc = json.loads(serialize(record))
    assert doc["dim"] == {"l": "10.50", "w": "0005", "h": "1e3", "unit": "cm"}
    assert doc["wt"]["val"] == "12,5"


@pytest.mark.parametrize(
    "record",
    [
        CargoRecord(),
        CargoRecord(id="X1", description="Pallet", length="10", width="5", height="4", weight="20"),
        CargoRecord(id="Ü-7", description="Kiste \"fragile\"", notes="line one\nline two ✓",
                    length_unit=LengthUnit.IMPERIAL, weight_unit=WeightUnit.IMPERIAL),
        CargoRecord(id="eq", location=Location(0.0, 0.0, 0)),
        CargoRecord(id="neg", location=Location(-33.868820, 151.209296, 1700000000123)),
        CargoRecord(id="float-ts", location=Location(51.5, -0.12, 1700000000123.5)),
    ],
    ids=["empty", "pallet", "unicode-imperial", "null-island", "sydney", "float-ts"],
)
def test_parse_recovers_every_field(record):
    assert parse_payload(serialize(record)) == record


def test_zero_coordinates_are_a_location_not_an_absence():
    text = serialize(CargoRecord(location=Location(0.0, 0.0, 0)))
    assert json.loads(text)["loc"] == {"lat": 0.0, "lng": 0.0, "ts": 0}


@pytest.mark.parametrize(
    "text",
    [
        "not json",
        "{}",
        '{"id":"X","desc":"","dim":{"l":"","w":"","h":"","unit":"mm"},'
        '"wt":{"val":"","unit":"kg"},"notes":"","loc":null}',
        '{"id":"X","desc":"","dim":{"l":"","w":"","h":"","unit":"cm"},'
        '"wt":{"val":"","unit":"kg"},"notes":"","loc":{"lat":1.0}}',
        '{"id":"X","desc":"","dim":{"l":"","w":"","h":"","unit":"cm"},'
        '"wt":{"val":"","unit":"kg"},"notes":"","loc":{"lat":NaN,"lng":1.0,"ts":0}}',
    ],
    ids=["garbage", "empty-object", "unknown-unit", "partial-location", "nan-latitude"],
)
def test_parse_rejects_foreign_text(text):
    with pytest.raises(PayloadFormatError):
        parse_payload(text)


def test_summary_lines_without_location(pallet):
    assert summary_lines(pallet) == [
        "ID: X1",
        "Description: Pallet",
        "Dimensions: 10 × 5 × 4 cm",
        "Weight: 20 kg",
    ]


def test_summary_lines_with_location_and_notes(pallet_with_fix):
    record = replace(pallet_with_fix, notes="Top load only", weight_unit=WeightUnit.IMPERIAL)
    lines = summary_lines(record)
    assert "Weight: 20 lbs" in lines
    assert "Location: 12.340000, 56.780000" in lines
    assert lines[-1] == "Notes: Top load only"
