"""
Tests for Nominatim geocoding.

Run with: python -m pytest tests/test_geocoder.py -v
"""

import logging

import pytest

from conftest import RecordingHandler, json_response, make_client
from solar_irradiance.errors import PayloadFormatError, ValidationError
from solar_irradiance.providers.geocoder import NominatimGeocoder, normalize_country_codes

logger = logging.getLogger(__name__)

NOMINATIM_ITEMS = [
    {"lat": "30.2587", "lon": "120.1315", "display_name": "West Lake, Hangzhou, Zhejiang, China", "importance": 0.71},
    {"lat": "30.2741", "lon": "120.1551", "display_name": "Hangzhou, Zhejiang, China", "importance": 0.64},
    {"lat": "n/a", "lon": "120.0", "display_name": "Broken row"},
    {"lat": "31.0", "lon": "121.0", "display_name": "No importance"},
]


@pytest.fixture
def handler():
    return RecordingHandler(lambda req: json_response(NOMINATIM_ITEMS))


@pytest.fixture
def geocoder(settings, handler):
    return NominatimGeocoder(settings, make_client(handler))


class TestNormalizeCountryCodes:

    def test_string_and_list(self):
        assert normalize_country_codes("CN, us") == "cn,us"
        assert normalize_country_codes(["CN", "jp"]) == "cn,jp"

    def test_empty_is_none(self):
        assert normalize_country_codes(None) is None
        assert normalize_country_codes(" , ") is None

    def test_rejects_bad_code(self):
        with pytest.raises(ValidationError):
            normalize_country_codes("chn")


class TestNominatimGeocoder:

    @pytest.mark.asyncio
    async def test_candidates_keep_provider_order(self, geocoder, handler):
        result = await geocoder.geocode("West Lake", limit=5)
        names = [c["displayName"] for c in result["candidates"]]
        logger.info(f"[TEST] candidates: {names}")
        assert names == [
            "West Lake, Hangzhou, Zhejiang, China",
            "Hangzhou, Zhejiang, China",
            "No importance",
        ]
        first = result["candidates"][0]
        assert first["lat"] == pytest.approx(30.2587)
        assert first["lon"] == pytest.approx(120.1315)
        assert first["provider"] == "nominatim"
        assert first["confidence"] == pytest.approx(0.71)
        assert result["candidates"][2]["confidence"] is None
        assert handler.count == 1

    @pytest.mark.asyncio
    async def test_request_shape(self, geocoder, handler, settings):
        result = await geocoder.geocode("  Hangzhou  ", limit=3, country_codes="CN")
        request = handler.requests[0]
        params = request.url.params
        assert params["q"] == "Hangzhou"
        assert params["format"] == "jsonv2"
        assert params["limit"] == "3"
        assert params["addressdetails"] == "1"
        assert params["accept-language"] == "zh-CN"
        assert params["countrycodes"] == "cn"
        assert request.headers["User-Agent"] == settings.geocode_user_agent
        assert result["requestUrl"] == str(request.url)

    @pytest.mark.asyncio
    async def test_no_country_filter_omits_param(self, geocoder, handler):
        await geocoder.geocode("Hangzhou")
        assert "countrycodes" not in handler.requests[0].url.params

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", ["", " ", "a", " b "])
    async def test_short_query_rejected_before_network(self, geocoder, handler, query):
        with pytest.raises(ValidationError):
            await geocoder.geocode(query)
        assert handler.count == 0

    @pytest.mark.asyncio
    async def test_two_characters_accepted(self, geocoder, handler):
        await geocoder.geocode("ab")
        assert handler.count == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [0, 11, True])
    async def test_bad_limit_rejected(self, geocoder, handler, limit):
        with pytest.raises(ValidationError):
            await geocoder.geocode("Hangzhou", limit=limit)
        assert handler.count == 0

    @pytest.mark.asyncio
    async def test_empty_result_is_not_an_error(self, settings):
        handler = RecordingHandler(lambda req: json_response([]))
        geocoder = NominatimGeocoder(settings, make_client(handler))
        result = await geocoder.geocode("Nowhere at all")
        assert result["candidates"] == []

    @pytest.mark.asyncio
    async def test_non_list_payload(self, settings):
        handler = RecordingHandler(lambda req: json_response({"error": "x"}))
        geocoder = NominatimGeocoder(settings, make_client(handler))
        with pytest.raises(PayloadFormatError):
            await geocoder.geocode("Hangzhou")
