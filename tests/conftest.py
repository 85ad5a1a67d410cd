"""
Shared fixtures for the Solar Irradiance tests.

Upstreams are never contacted: every client is built on httpx.MockTransport
with a handler that records the requests it saw.
"""

import json
import logging
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, List

import httpx
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from solar_irradiance.config import Settings
from solar_irradiance.http_client import HttpClient
from solar_irradiance.resilience import RetryConfig

logging.basicConfig(level=logging.DEBUG)

TEST_EMAIL = "someone@example.com"


class RecordingHandler:
    """
    MockTransport handler that replays a route function and keeps every request.

    Args:
        route: request -> httpx.Response
    """

    def __init__(self, route: Callable[[httpx.Request], httpx.Response]):
        self.route = route
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.route(request)

    @property
    def count(self) -> int:
        return len(self.requests)


def json_response(payload, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, text=json.dumps(payload))


def make_client(handler: RecordingHandler, retries: int = 1) -> HttpClient:
    """HttpClient on a mock transport with zero backoff."""
    return HttpClient(
        transport=httpx.MockTransport(handler),
        retry_config=RetryConfig(backoff_step_seconds=0),
        default_retries=retries,
    )


@pytest.fixture
def settings():
    return Settings(cams_email=TEST_EMAIL)


@pytest.fixture
def settings_no_email():
    return Settings()


def pvgis_tmy_payload(hours: int = 8760) -> dict:
    """A TMY payload with one row per hour of 2019 (the year is irrelevant)."""
    start = datetime(2019, 1, 1)
    rows = []
    for h in range(hours):
        t = start + timedelta(hours=h)
        rows.append({
            "time(UTC)": t.strftime("%Y%m%d:%H%M"),
            "T2m": 10.0,
            "G(h)": 100.0 if 6 <= t.hour < 18 else 0.0,
            "Gb(n)": 50.0,
            "Gd(h)": 25.0,
            "WS10m": 2.1,
        })
    return {"inputs": {"location": {"latitude": 30.27, "longitude": 120.15}}, "outputs": {"tmy_hourly": rows}}


def pvgis_series_payload(rows=None, slope=None, azimuth=None) -> dict:
    if rows is None:
        rows = [
            {"time": "20200101:0010", "Gb(i)": 10.0, "Gd(i)": 5.0, "Gr(i)": 1.0, "H_sun": 0.0, "T2m": 3.2, "WS10m": 1.1, "Int": 0.0},
            {"time": "20200101:0110", "Gb(i)": None, "Gd(i)": None, "Gr(i)": None, "H_sun": 0.0, "T2m": 3.0, "WS10m": 1.0, "Int": 0.0},
            {"time": "20200101:0210", "Gb(i)": 20.0, "Gd(i)": 8.0, "H_sun": 5.0, "T2m": 3.4, "WS10m": 0.9, "Int": 0.0},
        ]
    inputs = {"location": {"latitude": 30.27, "longitude": 120.15}}
    if slope is not None:
        inputs["mounting_system"] = {
            "fixed": {
                "slope": {"value": slope, "optimal": True},
                "azimuth": {"value": azimuth, "optimal": True},
            }
        }
    return {"inputs": inputs, "outputs": {"hourly": rows}}


CAMS_CSV = """# Title: CAMS Radiation Service v4.6 all-sky irradiation
# Latitude: 30.2700 (30°16'12"N)
# Longitude: 120.1500 (120°09'00"E)
# Altitude (m): 12.0
# Time reference: Universal time (UT)
# Observation period;TOA;Clear sky GHI;Clear sky BHI;Clear sky DHI;Clear sky BNI;GHI;BHI;DHI;BNI;Reliability
2020-06-01T00:00:00.0/2020-06-01T01:00:00.0;400.1;300.0;200.0;100.0;350.0;280.5;180.2;100.3;310.0;1.000
2020-06-01T01:00:00.0/2020-06-01T02:00:00.0;600.0;480.0;330.0;150.0;520.0;nan;300.0;120.0;500.0;1.000
2020-06-01T02:00:00.0/2020-06-01T03:00:00.0;700.0
"""
