"""Payload serializer: CargoRecord <-> compact JSON text for the QR code.

Key names and order are fixed::

    {"id", "desc", "dim": {"l", "w", "h", "unit"}, "wt": {"val", "unit"}, "notes", "loc"}

``loc`` is ``null`` or ``{"lat", "lng", "ts"}``.
"""

import json

from cargoqr.errors import PayloadFormatError
from cargoqr.logging import audit, get_logger, trace
from cargoqr.record import CargoRecord, LengthUnit, Location, WeightUnit

log = get_logger("payload")

_SEPARATORS = (",", ":")


def _text(value) -> str:
    return "" if value is None else str(value)


@trace
def serialize(record: CargoRecord) -> str:
    """Serialize a record into canonical payload text. Never raises on absent fields."""
    loc = record.location
    doc = {
        "id": _text(record.id),
        "desc": _text(record.description),
        "dim": {
            "l": _text(record.length),
            "w": _text(record.width),
            "h": _text(record.height),
            "unit": LengthUnit(record.length_unit).value,
        },
        "wt": {
            "val": _text(record.weight),
            "unit": WeightUnit(record.weight_unit).value,
        },
        "notes": _text(record.notes),
        "loc": None if loc is None else {
            "lat": loc.latitude,
            "lng": loc.longitude,
            "ts": loc.timestamp,
        },
    }
    text = json.dumps(doc, ensure_ascii=False, separators=_SEPARATORS)
    audit("payload.serialized", logger=log, id=doc["id"][:40], chars=len(text),
          has_location=loc is not None)
    return text


@trace
def parse_payload(text: str) -> CargoRecord:
    """Rebuild the record a payload was serialized from.

    Raises:
        PayloadFormatError: text is not a payload produced by ``serialize``.
    """
    try:
        doc = json.loads(text)
        dim, wt, loc = doc["dim"], doc["wt"], doc["loc"]
        return CargoRecord(
            id=doc["id"],
            description=doc["desc"],
            length=dim["l"],
            width=dim["w"],
            height=dim["h"],
            weight=wt["val"],
            length_unit=LengthUnit(dim["unit"]),
            weight_unit=WeightUnit(wt["unit"]),
            notes=doc["notes"],
            location=None if loc is None else Location(loc["lat"], loc["lng"], loc["ts"]),
        )
    except (ValueError, KeyError, TypeError) as e:
        raise PayloadFormatError(f"Not a cargo payload: {e}") from e


def _coord(value: float) -> str:
    return f"{value:.6f}"


def summary_lines(record: CargoRecord) -> list[str]:
    """Human-readable lines describing what the code carries."""
    length_unit = LengthUnit(record.length_unit).value
    weight_label = "kg" if record.weight_unit is WeightUnit.METRIC else "lbs"
    lines = [
        f"ID: {record.id}",
        f"Description: {record.description}",
        f"Dimensions: {record.length} × {record.width} × {record.height} {length_unit}",
        f"Weight: {record.weight} {weight_label}",
    ]
    if record.location is not None:
        lines.append(
            f"Location: {_coord(record.location.latitude)}, {_coord(record.location.longitude)}"
        )
    if record.notes:
        lines.append(f"Notes: {record.notes}")
    return lines
