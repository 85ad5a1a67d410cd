"""
Tests for the service facade: validation, caching and dispatch.

Run with: python -m pytest tests/test_service.py -v
"""

import logging
from datetime import datetime, timezone

import httpx
import pytest

from conftest import (
    CAMS_CSV,
    RecordingHandler,
    json_response,
    make_client,
    pvgis_series_payload,
    pvgis_tmy_payload,
)
from solar_irradiance.cache_manager import FingerprintCache, NullCache
from solar_irradiance.config import SERIES_TTL_MS
from solar_irradiance.errors import ConfigurationError, ValidationError
from solar_irradiance.service import IrradianceService

logger = logging.getLogger(__name__)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def route(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path.endswith("/tmy"):
        return json_response(pvgis_tmy_payload(48))
    if path.endswith("/seriescalc"):
        return json_response(pvgis_series_payload(slope=20, azimuth=0))
    if path.endswith("/search"):
        return json_response([{"lat": "30.27", "lon": "120.15", "display_name": "Hangzhou", "importance": 0.6}])
    if path.endswith("/wps"):
        return httpx.Response(200, text=CAMS_CSV)
    return httpx.Response(404, text="unknown route")


@pytest.fixture
def handler():
    return RecordingHandler(route)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def service(settings, handler, clock):
    return IrradianceService(settings, client=make_client(handler), cache=FingerprintCache(clock=clock))


class TestCaching:

    @pytest.mark.asyncio
    async def test_tmy_second_call_is_cached(self, service, handler):
        first = await service.tmy({"lat": 30.27, "lon": 120.15})
        second = await service.tmy({"lat": 30.27, "lon": 120.15})

        logger.info(f"[TEST] upstream calls: {handler.count}")
        assert handler.count == 1
        assert not first["metadata"].get("cached")
        assert second["metadata"]["cached"] is True
        assert second["data"] == first["data"]

    @pytest.mark.asyncio
    async def test_cached_flag_not_stored(self, service):
        await service.tmy({"lat": 30.27, "lon": 120.15})
        await service.tmy({"lat": 30.27, "lon": 120.15})
        third = await service.tmy({"lat": 30.27, "lon": 120.15})
        assert third["metadata"]["cached"] is True
        stored = service.cache.get("pvgis:tmy:30.27,120.15")
        assert "cached" not in stored["metadata"]

    @pytest.mark.asyncio
    async def test_series_expiry_refetches(self, service, handler, clock):
        payload = {"source": "pvgis", "lat": 30.27, "lon": 120.15, "startYear": 2020, "endYear": 2020}
        await service.series(payload)
        clock.now += SERIES_TTL_MS / 1000.0
        await service.series(payload)
        assert handler.count == 1

        clock.now += 1.0
        refreshed = await service.series(payload)
        assert handler.count == 2
        assert not refreshed["metadata"].get("cached")

    @pytest.mark.asyncio
    async def test_different_years_are_different_keys(self, service, handler):
        await service.series({"source": "pvgis", "lat": 30.27, "lon": 120.15, "startYear": 2019, "endYear": 2019})
        await service.series({"source": "pvgis", "lat": 30.27, "lon": 120.15, "startYear": 2020, "endYear": 2020})
        assert handler.count == 2

    @pytest.mark.asyncio
    async def test_null_cache_always_fetches(self, settings, handler):
        service = IrradianceService(settings, client=make_client(handler), cache=NullCache())
        await service.tmy({"lat": 30.27, "lon": 120.15})
        await service.tmy({"lat": 30.27, "lon": 120.15})
        assert handler.count == 2

    @pytest.mark.asyncio
    async def test_geocode_cached(self, service, handler):
        first = await service.geocode({"query": "Hangzhou", "countryCodes": ["CN"]})
        second = await service.geocode({"query": "Hangzhou", "countryCodes": "cn"})
        assert handler.count == 1
        assert first["countryCodes"] == "cn"
        assert second["candidates"][0]["displayName"] == "Hangzhou"

    @pytest.mark.asyncio
    async def test_geocode_result_mutation_does_not_leak(self, service, handler):
        first = await service.geocode({"query": "Hangzhou"})
        first["candidates"][0]["displayName"] = "changed"
        first["candidates"].clear()

        second = await service.geocode({"query": "Hangzhou"})
        second["candidates"][0]["lat"] = 0.0
        third = await service.geocode({"query": "Hangzhou"})

        assert handler.count == 1
        assert third["candidates"][0]["displayName"] == "Hangzhou"
        assert third["candidates"][0]["lat"] == 30.27


class TestValidation:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {"lat": 91, "lon": 0},
        {"lat": 0},
        {"lat": "north", "lon": 0},
    ])
    async def test_tmy_invalid(self, service, handler, payload):
        with pytest.raises(ValidationError) as exc_info:
            await service.tmy(payload)
        assert exc_info.value.problems
        assert handler.count == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {"source": "pvgis", "lat": 30, "lon": 120, "startYear": 2021, "endYear": 2020},
        {"source": "pvgis", "lat": 30, "lon": 120, "startYear": 1980, "endYear": 2020},
        {"source": "pvgis", "lat": 30, "lon": 120, "startYear": 2020.5, "endYear": 2021},
        {"source": "cams", "lat": 30, "lon": 120, "start": "2020-02-30", "end": "2020-03-01"},
        {"source": "cams", "lat": 30, "lon": 120, "start": "2020-03-02", "end": "2020-03-01"},
        {"source": "cams", "lat": 30, "lon": 120, "start": "2020-03-01", "end": "2020-03-02", "timeStep": "2h"},
        {"source": "meteonorm", "lat": 30, "lon": 120},
        {"lat": 30, "lon": 120, "startYear": 2020, "endYear": 2020},
    ])
    async def test_series_invalid(self, service, handler, payload):
        with pytest.raises(ValidationError):
            await service.series(payload)
        assert handler.count == 0

    @pytest.mark.asyncio
    async def test_geocode_short_query(self, service, handler):
        with pytest.raises(ValidationError) as exc_info:
            await service.geocode({"query": " a "})
        assert exc_info.value.to_dict()["type"] == "validation"
        assert handler.count == 0


class TestDispatch:

    @pytest.mark.asyncio
    async def test_pvgis_series(self, service, handler):
        result = await service.series({"source": "pvgis", "lat": 30.27, "lon": 120.15, "startYear": 2020, "endYear": 2020})
        assert result["metadata"]["source"] == "pvgis"
        assert handler.requests[0].url.path.endswith("/seriescalc")

    @pytest.mark.asyncio
    async def test_cams_series(self, service, handler):
        payload = {"source": "cams", "lat": 30.27, "lon": 120.15, "start": "2020-06-01", "end": "2020-06-01"}
        result = await service.series(payload)
        assert result["metadata"]["source"] == "cams"
        assert len(result["data"]) == 2
        await service.series(payload)
        assert handler.count == 1

    @pytest.mark.asyncio
    async def test_cams_integrated_is_separate_entry(self, service, handler):
        base = {"source": "cams", "lat": 30.27, "lon": 120.15, "start": "2020-06-01", "end": "2020-06-01"}
        await service.series(base)
        result = await service.series({**base, "integrated": True})
        assert handler.count == 2
        assert result["metadata"]["unit"] == {"irradiation": "Wh/m2"}

    @pytest.mark.asyncio
    async def test_cams_without_email(self, settings_no_email, handler):
        service = IrradianceService(settings_no_email, client=make_client(handler))
        with pytest.raises(ConfigurationError) as exc_info:
            await service.series({"source": "cams", "lat": 30, "lon": 120, "start": "2020-06-01", "end": "2020-06-01"})
        assert exc_info.value.to_dict()["type"] == "configuration"
        assert handler.count == 0


class TestOptimal:

    @pytest.mark.asyncio
    async def test_defaults_to_previous_year(self, service, handler):
        summary = await service.optimal({"lat": 30.27, "lon": 120.15})
        expected = datetime.now(timezone.utc).year - 1
        assert summary["startYear"] == summary["endYear"] == expected
        assert handler.requests[0].url.params["startyear"] == str(expected)
        assert summary["optimalTiltDeg"] == 20.0

    @pytest.mark.asyncio
    async def test_cached(self, service, handler):
        await service.optimal({"lat": 30.27, "lon": 120.15, "year": 2020})
        again = await service.optimal({"lat": 30.27, "lon": 120.15, "year": 2020})
        assert handler.count == 1
        assert again["cached"] is True
