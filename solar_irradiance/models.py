"""
Canonical data shapes for Solar Irradiance

Both provider adapters emit IrradianceResponse; everything downstream
(aggregation, export, CLI) only ever sees these shapes.

Invariants:
- IrradiancePoint.time is always a canonical UTC string ("...Z")
- IrradianceUnit has exactly one of irradiance / irradiation populated
- Points are ordered ascending by time, duplicates left as delivered
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional, TypedDict, Union

from solar_irradiance.errors import ValidationError

LAT_MIN, LAT_MAX = -90.0, 90.0
LON_MIN, LON_MAX = -180.0, 180.0
YEAR_MIN, YEAR_MAX = 1990, 2100

ExtraValue = Union[float, int, str, None]


class GeocodeCandidate(TypedDict):
    lat: float
    lon: float
    displayName: str
    provider: str
    confidence: Optional[float]


class GeocodeResult(TypedDict):
    requestUrl: str
    candidates: List[GeocodeCandidate]


class IrradianceUnit(TypedDict, total=False):
    irradiance: Literal["W/m2"]
    irradiation: Literal["Wh/m2", "kWh/m2"]


class IrradiancePoint(TypedDict):
    time: str  # ISO-8601 UTC
    ghi: Optional[float]
    dni: Optional[float]
    dhi: Optional[float]
    extras: Dict[str, ExtraValue]


class _MetadataRequired(TypedDict):
    source: Literal["pvgis", "cams"]
    queryType: Literal["tmy", "series"]
    lat: float
    lon: float
    timeRef: Literal["UTC"]
    unit: IrradianceUnit


class IrradianceMetadata(_MetadataRequired, total=False):
    provider: str
    rawInputs: Any
    cached: bool
    requestUrl: str


class IrradianceResponse(TypedDict):
    metadata: IrradianceMetadata
    data: List[IrradiancePoint]


class _OptimalRequired(TypedDict):
    lat: float
    lon: float
    startYear: int
    endYear: int
    optimalTiltDeg: Optional[float]
    optimalAzimuthDeg: Optional[float]
    annualPoaKwhM2: float
    annualPoaWm2Sum: float


class OptimalSummary(_OptimalRequired, total=False):
    requestUrl: str
    rawInputs: Any
    cached: bool


@dataclass(frozen=True)
class Coordinate:
    """A resolved WGS-84 position. Rejects out-of-range values."""
    lat: float
    lon: float

    def __post_init__(self):
        validate_coordinates(self.lat, self.lon)


def validate_coordinates(lat: float, lon: float) -> None:
    """Raise ValidationError unless lat/lon are finite WGS-84 values."""
    problems = []
    if not _is_finite_number(lat) or not (LAT_MIN <= lat <= LAT_MAX):
        problems.append({"field": "lat", "message": f"must be within [{LAT_MIN}, {LAT_MAX}]", "value": lat})
    if not _is_finite_number(lon) or not (LON_MIN <= lon <= LON_MAX):
        problems.append({"field": "lon", "message": f"must be within [{LON_MIN}, {LON_MAX}]", "value": lon})
    if problems:
        raise ValidationError(f"Invalid coordinates: ({lat}, {lon})", problems)


def validate_year_range(start_year: int, end_year: int) -> None:
    """Raise ValidationError unless both years are in range and ordered."""
    for name, year in (("startYear", start_year), ("endYear", end_year)):
        if isinstance(year, bool) or not isinstance(year, int) or not (YEAR_MIN <= year <= YEAR_MAX):
            raise ValidationError(
                f"{name} must be an integer within [{YEAR_MIN}, {YEAR_MAX}]",
                [{"field": name, "value": year}],
            )
    if end_year < start_year:
        raise ValidationError(
            "endYear must be >= startYear",
            [{"field": "endYear", "value": end_year}],
        )


def _is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return value == value and value not in (float("inf"), float("-inf"))


def irradiance_unit() -> IrradianceUnit:
    """Unit for instantaneous power flux series."""
    return {"irradiance": "W/m2"}


def irradiation_unit(unit: str = "Wh/m2") -> IrradianceUnit:
    """Unit for energy-integrated series."""
    if unit not in ("Wh/m2", "kWh/m2"):
        raise ValueError(f"Unsupported irradiation unit: {unit}")
    return {"irradiation": unit}


def unit_label(unit: IrradianceUnit) -> str:
    """Human-readable label, e.g. 'irradiance W/m2'."""
    if unit.get("irradiance"):
        return f"irradiance {unit['irradiance']}"
    if unit.get("irradiation"):
        return f"irradiation {unit['irradiation']}"
    return "unknown"


def with_cached_flag(response: IrradianceResponse) -> IrradianceResponse:
    """Copy of a cached response with metadata.cached set; the stored value is untouched."""
    metadata = dict(response["metadata"])
    metadata["cached"] = True
    return {"metadata": metadata, "data": response["data"]}
