"""
Request models for the public operations.

Every payload is validated here before any provider is contacted;
pydantic errors are re-raised as the package ValidationError.
"""

from datetime import date
from typing import Annotated, Any, Dict, Literal, Optional, Type, TypeVar, Union

import pydantic
from pydantic import BaseModel, Field, TypeAdapter, field_validator, model_validator

from solar_irradiance.errors import ValidationError

Latitude = Annotated[float, Field(ge=-90, le=90, allow_inf_nan=False)]
Longitude = Annotated[float, Field(ge=-180, le=180, allow_inf_nan=False)]
Year = Annotated[int, Field(ge=1990, le=2100, strict=True)]
IsoDate = Annotated[str, Field(pattern=r"^\d{4}-\d{2}-\d{2}$")]

CamsTimeStep = Literal["1min", "15min", "1h", "1d", "1M"]
CamsIdentifier = Literal["cams_radiation", "mcclear"]

COUNTRY_CODES_PATTERN = r"^[a-z]{2}(,[a-z]{2})*$"
CountryCodes = Annotated[str, Field(pattern=COUNTRY_CODES_PATTERN)]

M = TypeVar("M")


class GeocodeRequest(BaseModel):
    query: str = Field(..., min_length=2)
    limit: int = Field(5, ge=1, le=10)
    countryCodes: Optional[CountryCodes] = None

    @field_validator("query", mode="before")
    @classmethod
    def _strip_query(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("countryCodes", mode="before")
    @classmethod
    def _normalize_codes(cls, v: Any) -> Any:
        if v is None:
            return None
        if isinstance(v, (list, tuple)):
            v = ",".join(str(c) for c in v)
        if isinstance(v, str):
            v = v.strip().lower().replace(" ", "")
            if not v:
                return None
        return v


class TmyRequest(BaseModel):
    lat: Latitude
    lon: Longitude


class PvgisSeriesRequest(BaseModel):
    source: Literal["pvgis"]
    lat: Latitude
    lon: Longitude
    startYear: Year
    endYear: Year

    @model_validator(mode="after")
    def _check_order(self) -> "PvgisSeriesRequest":
        if self.endYear < self.startYear:
            raise ValueError("endYear must be >= startYear")
        return self


class CamsSeriesRequest(BaseModel):
    source: Literal["cams"]
    lat: Latitude
    lon: Longitude
    start: IsoDate
    end: IsoDate
    timeStep: CamsTimeStep = "1h"
    identifier: CamsIdentifier = "cams_radiation"
    integrated: bool = False

    @field_validator("start", "end", mode="before")
    @classmethod
    def _strip_dates(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("start", "end")
    @classmethod
    def _real_date(cls, v: str) -> str:
        date.fromisoformat(v)
        return v

    @model_validator(mode="after")
    def _check_order(self) -> "CamsSeriesRequest":
        if self.end < self.start:
            raise ValueError("end must be >= start")
        return self


SeriesRequest = Annotated[
    Union[PvgisSeriesRequest, CamsSeriesRequest],
    Field(discriminator="source"),
]


class OptimalRequest(BaseModel):
    lat: Latitude
    lon: Longitude
    year: Optional[Year] = None


def parse_request(model: Type[M], payload: Dict[str, Any]) -> M:
    """
    Validate a raw payload against a request model (or union).

    Raises:
        ValidationError: with one problem per offending field
    """
    try:
        return TypeAdapter(model).validate_python(payload)
    except pydantic.ValidationError as e:
        problems = [
            {
                "field": ".".join(str(p) for p in err["loc"]),
                "message": err["msg"],
            }
            for err in e.errors()
        ]
        summary = "; ".join(f"{p['field']}: {p['message']}" for p in problems)
        raise ValidationError(f"Invalid request: {summary}", problems) from e
