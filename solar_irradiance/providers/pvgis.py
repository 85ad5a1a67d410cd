"""
PVGIS Provider for Solar Irradiance

Fetches hourly radiation from the JRC PVGIS JSON API and packages it as
canonical IrradianceResponse records.

Endpoints:
- /tmy         - Typical Meteorological Year, 8760 rows, horizontal fields
                 G(h) / Gb(n) / Gd(h) map straight onto GHI / DNI / DHI
- /seriescalc  - Multi-year hourly series with components=1; PVGIS returns
                 plane-of-array components Gb(i) / Gd(i) / Gr(i) instead

IMPORTANT (series mode): canonical ghi is the POA component sum. With the
default zero tilt this equals horizontal global irradiance; for any other
mounting it does not. PVGIS itself reports the data this way, so the sum is
kept as-is and dni/dhi stay null.
"""

import json
import logging
import math
import re
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlencode

from solar_irradiance.config import Settings
from solar_irradiance.errors import (
    PayloadFormatError,
    TimeFormatError,
    UpstreamHttpError,
    YearRangeError,
)
from solar_irradiance.http_client import HttpClient
from solar_irradiance.models import (
    IrradiancePoint,
    IrradianceResponse,
    OptimalSummary,
    irradiance_unit,
    validate_coordinates,
    validate_year_range,
)
from solar_irradiance.timecodec import parse_pvgis_time, to_iso_utc

logger = logging.getLogger(__name__)

TMY_TIME_KEY = "time(UTC)"
SERIES_TIME_KEY = "time"

# TMY horizontal columns -> canonical fields
TMY_GHI_KEY = "G(h)"
TMY_DNI_KEY = "Gb(n)"
TMY_DHI_KEY = "Gd(h)"

# seriescalc plane-of-array components (beam, diffuse, reflected)
POA_COMPONENT_KEYS = ("Gb(i)", "Gd(i)", "Gr(i)")

# "... must be between 2005 and 2020" style provider messages
YEAR_RANGE_RE = re.compile(r"between\s+(\d{4})\s+and\s+(\d{4})", re.IGNORECASE)


def number_or_null(value: Any) -> Optional[float]:
    """Finite JSON number -> float, anything else -> None."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value) if math.isfinite(value) else None


def poa_sum(row: Dict[str, Any]) -> Optional[float]:
    """
    Sum of the POA components of one row.

    Missing components count as zero; None when none of them is present.
    """
    values = [number_or_null(row.get(k)) for k in POA_COMPONENT_KEYS]
    if all(v is None for v in values):
        return None
    return sum(v for v in values if v is not None)


def extract_year_range(message: str) -> Optional[tuple]:
    """Pull (min, max) out of a provider message, or None if absent."""
    m = YEAR_RANGE_RE.search(message or "")
    if not m:
        return None
    lo, hi = int(m.group(1)), int(m.group(2))
    return (min(lo, hi), max(lo, hi))


def _extras(row: Dict[str, Any], skip: Iterable[str]) -> Dict[str, Any]:
    skip = set(skip)
    return {k: v for k, v in row.items() if k not in skip}


def _provider_message(body: str) -> str:
    """PVGIS error bodies are JSON {"message": ...}; fall back to raw text."""
    try:
        payload = json.loads(body)
    except (TypeError, ValueError):
        return body
    if isinstance(payload, dict) and isinstance(payload.get("message"), str):
        return payload["message"]
    return body


class PVGISProvider:
    """
    Provider for PVGIS typical-year, multi-year and optimal-angle queries.

    All operations are coordinate-addressed and validate their inputs
    before any network call.
    """

    SOURCE = "pvgis"
    TMY_TIMEOUT_MS = 20_000
    SERIES_TIMEOUT_MS = 25_000

    def __init__(self, settings: Settings, client: Optional[HttpClient] = None):
        self.settings = settings
        self.client = client or HttpClient(default_retries=settings.http_retries)

    def _url(self, endpoint: str, params: Dict[str, Any]) -> str:
        base = self.settings.pvgis_base_url.rstrip("/")
        return f"{base}/{endpoint}?{urlencode(params)}"

    async def _fetch(self, url: str, timeout_ms: int) -> Dict[str, Any]:
        try:
            payload = await self.client.fetch_json(url, timeout_ms=timeout_ms)
        except UpstreamHttpError as e:
            message = _provider_message(e.body)
            year_range = extract_year_range(message)
            if year_range is not None:
                logger.warning(f"[PVGISProvider] Year range rejected, valid window {year_range[0]}-{year_range[1]}")
                raise YearRangeError(
                    year_range[0], year_range[1],
                    status_code=e.status_code, body=message, url=url,
                ) from e
            raise

        if not isinstance(payload, dict) or not isinstance(payload.get("outputs"), dict):
            raise PayloadFormatError("PVGIS response has no 'outputs' section")
        return payload

    async def fetch_tmy(self, lat: float, lon: float) -> IrradianceResponse:
        """
        Fetch the Typical Meteorological Year for one coordinate.

        Returns:
            IrradianceResponse with queryType "tmy" and unit W/m2
        """
        validate_coordinates(lat, lon)
        url = self._url("tmy", {"lat": lat, "lon": lon, "outputformat": "json"})
        logger.info(f"[PVGISProvider] Fetching TMY for ({lat}, {lon})")

        payload = await self._fetch(url, self.TMY_TIMEOUT_MS)
        rows = payload["outputs"].get("tmy_hourly") or []

        data: List[IrradiancePoint] = []
        for row in rows:
            raw_time = row.get(TMY_TIME_KEY)
            if not isinstance(raw_time, str):
                raise TimeFormatError(f"PVGIS TMY row missing {TMY_TIME_KEY}")
            data.append({
                "time": to_iso_utc(parse_pvgis_time(raw_time)),
                "ghi": number_or_null(row.get(TMY_GHI_KEY)),
                "dni": number_or_null(row.get(TMY_DNI_KEY)),
                "dhi": number_or_null(row.get(TMY_DHI_KEY)),
                "extras": _extras(row, (TMY_TIME_KEY, TMY_GHI_KEY, TMY_DNI_KEY, TMY_DHI_KEY)),
            })

        logger.info(f"[PVGISProvider] Parsed {len(data)} TMY records")
        return {
            "metadata": {
                "source": self.SOURCE,
                "queryType": "tmy",
                "lat": lat,
                "lon": lon,
                "timeRef": "UTC",
                "unit": irradiance_unit(),
                "requestUrl": url,
                "rawInputs": payload.get("inputs"),
            },
            "data": data,
        }

    def _series_url(self, lat: float, lon: float, start_year: int, end_year: int,
                    optimal_angles: bool = False) -> str:
        params = {
            "lat": lat,
            "lon": lon,
            "startyear": start_year,
            "endyear": end_year,
            "outputformat": "json",
            "browser": 0,
            "components": 1,
        }
        if optimal_angles:
            params["optimalangles"] = 1
        return self._url("seriescalc", params)

    async def fetch_series(self, lat: float, lon: float, start_year: int, end_year: int) -> IrradianceResponse:
        """
        Fetch the hourly multi-year series with POA components.

        Args:
            lat: Latitude (-90 to 90)
            lon: Longitude (-180 to 180)
            start_year: First year (1990-2100)
            end_year: Last year, >= start_year

        Returns:
            IrradianceResponse with queryType "series"; ghi is the
            Gb(i)+Gd(i)+Gr(i) sum, dni/dhi null

        Raises:
            YearRangeError: PVGIS does not cover these years here
        """
        validate_coordinates(lat, lon)
        validate_year_range(start_year, end_year)
        url = self._series_url(lat, lon, start_year, end_year)
        logger.info(f"[PVGISProvider] Fetching series for ({lat}, {lon}) {start_year}-{end_year}")

        payload = await self._fetch(url, self.SERIES_TIMEOUT_MS)
        rows = payload["outputs"].get("hourly") or []

        data: List[IrradiancePoint] = []
        for row in rows:
            raw_time = row.get(SERIES_TIME_KEY)
            if not isinstance(raw_time, str):
                raise TimeFormatError("PVGIS series row missing time")
            data.append({
                "time": to_iso_utc(parse_pvgis_time(raw_time)),
                "ghi": poa_sum(row),
                "dni": None,
                "dhi": None,
                "extras": _extras(row, (SERIES_TIME_KEY,)),
            })

        logger.info(f"[PVGISProvider] Parsed {len(data)} series records")
        return {
            "metadata": {
                "source": self.SOURCE,
                "queryType": "series",
                "lat": lat,
                "lon": lon,
                "timeRef": "UTC",
                "unit": irradiance_unit(),
                "requestUrl": url,
                "rawInputs": payload.get("inputs"),
            },
            "data": data,
        }

    async def fetch_optimal(self, lat: float, lon: float, year: int) -> OptimalSummary:
        """
        Annual POA total at PVGIS-selected optimal tilt/azimuth for one year.

        annualPoaKwhM2 is the hourly W/m2 sum divided by 1000, a kWh/m2
        approximation for hourly data.
        """
        validate_coordinates(lat, lon)
        validate_year_range(year, year)
        url = self._series_url(lat, lon, year, year, optimal_angles=True)
        logger.info(f"[PVGISProvider] Fetching optimal angles for ({lat}, {lon}) {year}")

        payload = await self._fetch(url, self.SERIES_TIMEOUT_MS)
        rows = payload["outputs"].get("hourly") or []

        total = 0.0
        for row in rows:
            value = poa_sum(row)
            if value is not None:
                total += value

        inputs = payload.get("inputs") or {}
        fixed = {}
        if isinstance(inputs, dict):
            fixed = (inputs.get("mounting_system") or {}).get("fixed") or {}
        tilt = number_or_null((fixed.get("slope") or {}).get("value"))
        azimuth = number_or_null((fixed.get("azimuth") or {}).get("value"))

        logger.info(
            f"[PVGISProvider] Optimal tilt={tilt} azimuth={azimuth}, "
            f"annual POA {total / 1000:.1f} kWh/m2 from {len(rows)} rows"
        )
        return {
            "lat": lat,
            "lon": lon,
            "startYear": year,
            "endYear": year,
            "optimalTiltDeg": tilt,
            "optimalAzimuthDeg": azimuth,
            "annualPoaKwhM2": total / 1000,
            "annualPoaWm2Sum": total,
            "requestUrl": url,
            "rawInputs": payload.get("inputs"),
        }
