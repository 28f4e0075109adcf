"""Cargo record model and the location-source adapter."""

import math
from dataclasses import dataclass, replace
from enum import Enum

from cargoqr.errors import LocationUnavailable
from cargoqr.logging import audit, get_logger

log = get_logger("record")


class LengthUnit(Enum):
    METRIC = "cm"
    IMPERIAL = "in"


class WeightUnit(Enum):
    METRIC = "kg"
    IMPERIAL = "lb"


class LocationFailure(Enum):
    PERMISSION_DENIED = "permission_denied"
    POSITION_UNAVAILABLE = "position_unavailable"
    TIMEOUT = "timeout"
    UNSUPPORTED = "unsupported"


LOCATION_MESSAGES = {
    LocationFailure.PERMISSION_DENIED: "Location access denied. Please enable location services.",
    LocationFailure.POSITION_UNAVAILABLE: "Location information is unavailable.",
    LocationFailure.TIMEOUT: "Location request timed out.",
    LocationFailure.UNSUPPORTED: "Geolocation is not supported on this device.",
}


@dataclass(frozen=True)
class Location:
    """A GPS fix: all three values or no location at all."""

    latitude: float
    longitude: float
    timestamp: int | float  # epoch milliseconds, as the position source reports it

    def __post_init__(self):
        for name in ("latitude", "longitude", "timestamp"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise TypeError(f"Location.{name} must be a number, got {value!r}")
            if not math.isfinite(value):
                raise ValueError(f"Location.{name} must be finite, got {value!r}")


@dataclass(frozen=True)
class CargoRecord:
    """One cargo entry as captured by the form.

    Dimensions and weight stay text exactly as typed; their unit comes from
    ``length_unit`` / ``weight_unit`` rather than from the values.
    """

    id: str = ""
    description: str = ""
    length: str = ""
    width: str = ""
    height: str = ""
    weight: str = ""
    length_unit: LengthUnit = LengthUnit.METRIC
    weight_unit: WeightUnit = WeightUnit.METRIC
    notes: str = ""
    location: Location | None = None

    def with_location(self, location: "Location | None") -> "CargoRecord":
        return replace(self, location=location)

    @classmethod
    def from_form(cls, form: dict) -> "CargoRecord":
        """Build a record from the form shell's state dictionary.

        The form keeps ``useCm``/``useKg`` booleans and a location object whose
        three members are either all set or all ``None``.
        """
        loc = form.get("location") or {}
        parts = [loc.get("latitude"), loc.get("longitude"), loc.get("timestamp")]
        present = [p is not None for p in parts]
        if any(present) and not all(present):
            raise ValueError(f"Partial location is not allowed: {loc!r}")

        return cls(
            id=form.get("id") or "",
            description=form.get("description") or "",
            length=form.get("length") or "",
            width=form.get("width") or "",
            height=form.get("height") or "",
            weight=form.get("weight") or "",
            length_unit=LengthUnit.METRIC if form.get("useCm", True) else LengthUnit.IMPERIAL,
            weight_unit=WeightUnit.METRIC if form.get("useKg", True) else WeightUnit.IMPERIAL,
            notes=form.get("notes") or "",
            location=Location(*parts) if all(present) else None,
        )


def resolve_location(fix) -> Location | None:
    """Turn whatever the position source produced into an optional Location.

    Failures of any kind degrade to ``None``; the reason is only logged.
    """
    if fix is None or isinstance(fix, Location):
        return fix
    if isinstance(fix, LocationUnavailable):
        fix = fix.reason
    if isinstance(fix, LocationFailure):
        audit("location.unavailable", logger=log, reason=fix.value)
        return None
    if isinstance(fix, str):
        audit("location.unavailable", logger=log, reason=fix)
        return None
    raise TypeError(f"Unexpected location source result: {fix!r}")
