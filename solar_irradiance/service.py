"""
Solar Irradiance service facade

Public operations, each taking a JSON-like payload:

    geocode({"query", "limit"?, "countryCodes"?})
    tmy({"lat", "lon"})
    series({"source": "pvgis", "lat", "lon", "startYear", "endYear"})
    series({"source": "cams", "lat", "lon", "start", "end",
            "timeStep"?, "identifier"?, "integrated"?})
    optimal({"lat", "lon", "year"?})

Flow per call: validate payload -> fingerprint cache lookup -> provider
fetch -> cache store. Cache hits come back flagged cached=True. Errors
propagate unchanged; no partial response is ever returned.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from solar_irradiance.cache_manager import FingerprintCache, build_cache_key
from solar_irradiance.config import (
    GEOCODE_TTL_MS,
    OPTIMAL_TTL_MS,
    SERIES_TTL_MS,
    TMY_TTL_MS,
    Settings,
)
from solar_irradiance.errors import ConfigurationError
from solar_irradiance.http_client import HttpClient
from solar_irradiance.models import IrradianceResponse, OptimalSummary, with_cached_flag
from solar_irradiance.providers.cams import CAMSProvider
from solar_irradiance.providers.geocoder import NominatimGeocoder
from solar_irradiance.providers.pvgis import PVGISProvider
from solar_irradiance.schemas import (
    CamsSeriesRequest,
    GeocodeRequest,
    OptimalRequest,
    PvgisSeriesRequest,
    SeriesRequest,
    TmyRequest,
    parse_request,
)

logger = logging.getLogger(__name__)


def _coord_key(lat: float, lon: float) -> str:
    return f"{lat},{lon}"


def _copy_geocode(result: Dict[str, Any]) -> Dict[str, Any]:
    """Callers get their own candidate list; the cached entry is never shared."""
    return {**result, "candidates": [dict(c) for c in result["candidates"]]}


class IrradianceService:
    """
    Entry point used by the CLI (and any outer HTTP layer).

    Args:
        settings: Provider configuration
        client: Shared transport client (injectable for tests)
        cache: Fingerprint cache (a NullCache disables caching)
    """

    def __init__(
        self,
        settings: Settings,
        client: Optional[HttpClient] = None,
        cache: Optional[FingerprintCache] = None,
    ):
        self.settings = settings
        self.client = client or HttpClient(default_retries=settings.http_retries)
        self.cache = cache if cache is not None else FingerprintCache()
        self.geocoder = NominatimGeocoder(settings, self.client)
        self.pvgis = PVGISProvider(settings, self.client)
        self.cams = CAMSProvider(settings, self.client)

    async def geocode(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        req = parse_request(GeocodeRequest, payload)
        key = build_cache_key("geocode:nominatim", req.query, req.limit, req.countryCodes or "all")

        cached = self.cache.get(key)
        if cached is not None:
            logger.info(f"[IrradianceService] geocode cache HIT '{req.query}'")
            return _copy_geocode(cached)

        found = await self.geocoder.geocode(req.query, req.limit, req.countryCodes)
        result = {
            "requestUrl": found["requestUrl"],
            "candidates": found["candidates"],
            "countryCodes": req.countryCodes,
        }
        self.cache.set(key, result, GEOCODE_TTL_MS)
        return _copy_geocode(result)

    async def tmy(self, payload: Dict[str, Any]) -> IrradianceResponse:
        req = parse_request(TmyRequest, payload)
        key = build_cache_key("pvgis:tmy", _coord_key(req.lat, req.lon))

        cached = self.cache.get(key)
        if cached is not None:
            logger.info(f"[IrradianceService] TMY cache HIT ({req.lat}, {req.lon})")
            return with_cached_flag(cached)

        result = await self.pvgis.fetch_tmy(req.lat, req.lon)
        self.cache.set(key, result, TMY_TTL_MS)
        return result

    async def series(self, payload: Dict[str, Any]) -> IrradianceResponse:
        req = parse_request(SeriesRequest, payload)
        if isinstance(req, PvgisSeriesRequest):
            return await self._pvgis_series(req)
        return await self._cams_series(req)

    async def _pvgis_series(self, req: PvgisSeriesRequest) -> IrradianceResponse:
        key = build_cache_key(
            "pvgis:series", _coord_key(req.lat, req.lon), f"{req.startYear}-{req.endYear}"
        )
        cached = self.cache.get(key)
        if cached is not None:
            logger.info(f"[IrradianceService] PVGIS series cache HIT {key}")
            return with_cached_flag(cached)

        result = await self.pvgis.fetch_series(req.lat, req.lon, req.startYear, req.endYear)
        self.cache.set(key, result, SERIES_TTL_MS)
        return result

    async def _cams_series(self, req: CamsSeriesRequest) -> IrradianceResponse:
        if not (self.settings.cams_email or "").strip():
            raise ConfigurationError("Missing CAMS_SODA_EMAIL in server configuration")

        key = build_cache_key(
            "cams:series",
            _coord_key(req.lat, req.lon),
            req.start,
            req.end,
            req.timeStep,
            req.identifier,
            req.integrated,
        )
        cached = self.cache.get(key)
        if cached is not None:
            logger.info(f"[IrradianceService] CAMS series cache HIT {key}")
            return with_cached_flag(cached)

        result = await self.cams.fetch_series(
            req.lat,
            req.lon,
            req.start,
            req.end,
            time_step=req.timeStep,
            identifier=req.identifier,
            integrated=req.integrated,
        )
        self.cache.set(key, result, SERIES_TTL_MS)
        return result

    async def optimal(self, payload: Dict[str, Any]) -> OptimalSummary:
        req = parse_request(OptimalRequest, payload)
        # Default to the last complete calendar year
        year = req.year if req.year is not None else datetime.now(timezone.utc).year - 1
        key = build_cache_key("pvgis:optimal", _coord_key(req.lat, req.lon), f"{year}-{year}")

        cached = self.cache.get(key)
        if cached is not None:
            logger.info(f"[IrradianceService] optimal cache HIT {key}")
            return {**cached, "cached": True}

        summary = await self.pvgis.fetch_optimal(req.lat, req.lon, year)
        self.cache.set(key, summary, OPTIMAL_TTL_MS)
        return summary
