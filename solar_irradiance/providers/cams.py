"""
CAMS Radiation Provider for Solar Irradiance

Fetches hourly (or coarser/finer) irradiation from the SoDa WPS service
and packages it as canonical IrradianceResponse records.

SoDa answers with a semicolon CSV dialect:

    # Title: CAMS Radiation Service v4.6 all-sky irradiation
    # Latitude: 30.2700 (30°16'12"N)
    # ...
    # Observation period;TOA;Clear sky GHI;...;GHI;BHI;DHI;BNI;Reliability
    2020-01-01T00:00:00.0/2020-01-01T01:00:00.0;0.0000;...

'#' lines are "key: value" metadata until the "# Observation period;"
line, which names the columns. Data rows with the wrong field count are
skipped, not fatal.

A SoDa account email is required. It comes from server configuration only
and is redacted from every URL we hand back to callers.
"""

import logging
import math
import re
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlencode

from solar_irradiance.config import Settings
from solar_irradiance.errors import (
    ConfigurationError,
    CsvFormatError,
    TimeFormatError,
    ValidationError,
)
from solar_irradiance.http_client import HttpClient
from solar_irradiance.models import (
    IrradiancePoint,
    IrradianceResponse,
    irradiance_unit,
    irradiation_unit,
    validate_coordinates,
)
from solar_irradiance.timecodec import parse_observation_period, to_iso_utc

logger = logging.getLogger(__name__)

OBSERVATION_KEY = "Observation period"
GHI_KEY = "GHI"
DNI_KEY = "BNI"
DHI_KEY = "DHI"

TIME_STEPS = ("1min", "15min", "1h", "1d", "1M")
IDENTIFIERS = ("cams_radiation", "mcclear")

HEADER_RE = re.compile(r"^Observation period\s*;")
META_RE = re.compile(r"^([^:]+):\s*(.*)$")
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

REDACTED = "***"


def coerce_value(value: str) -> Any:
    """Numeric-looking strings -> float, everything else unchanged."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return value
    return number if math.isfinite(number) else value


def number_or_null(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def parse_cams_csv(text: str) -> Tuple[List[str], List[Dict[str, str]], Dict[str, str]]:
    """
    Parse a SoDa CSV payload.

    Returns:
        (header columns, rows as column->raw string, metadata mapping)

    Raises:
        CsvFormatError: no "# Observation period;" header line
    """
    lines = [line for line in text.splitlines() if line.strip()]

    meta: Dict[str, str] = {}
    header_idx = -1
    for idx, line in enumerate(lines):
        if not line.startswith("#"):
            continue
        trimmed = line.lstrip("#").strip()
        if HEADER_RE.match(trimmed):
            header_idx = idx
            continue
        m = META_RE.match(trimmed)
        if m:
            meta[m.group(1).strip()] = m.group(2).strip()

    if header_idx < 0:
        raise CsvFormatError("CAMS CSV missing '# Observation period;' header line")

    header = [h.strip() for h in lines[header_idx].lstrip("#").strip().split(";")]

    rows: List[Dict[str, str]] = []
    skipped = 0
    for line in lines[header_idx + 1:]:
        if line.startswith("#"):
            continue
        parts = [p.strip() for p in line.split(";")]
        if len(parts) != len(header):
            skipped += 1
            continue
        rows.append(dict(zip(header, parts)))

    if skipped:
        logger.warning(f"[parse_cams_csv] Skipped {skipped} malformed rows")
    logger.debug(f"[parse_cams_csv] {len(rows)} rows, {len(meta)} metadata keys")
    return header, rows, meta


def redact_email(url: str, email: str) -> str:
    """Remove the account email (in any of its encodings) from a URL."""
    for form in (
        email,
        email.replace("@", "%2540"),
        urlencode({"x": email})[2:],
        urlencode({"x": email.replace("@", "%2540")})[2:],
    ):
        if form:
            url = url.replace(form, REDACTED)
    return url


class CAMSProvider:
    """
    Provider for CAMS radiation via the SoDa WPS endpoint.

    Args:
        settings: Process settings (WPS URL, account email)
        client: Transport client (injectable for tests)
    """

    SOURCE = "cams"
    PROVIDER = "soda"
    TIMEOUT_MS = 30_000

    def __init__(self, settings: Settings, client: Optional[HttpClient] = None):
        self.settings = settings
        self.client = client or HttpClient(default_retries=settings.http_retries)

    @property
    def email(self) -> str:
        email = (self.settings.cams_email or "").strip()
        if not email:
            raise ConfigurationError("CAMS requires a SoDa account email (set CAMS_SODA_EMAIL)")
        return email

    def build_url(self, lat: float, lon: float, start: str, end: str, time_step: str,
                  identifier: str, integrated: bool) -> str:
        email_escaped = self.email.replace("@", "%2540")
        data_inputs = ";".join([
            f"latitude={lat}",
            f"longitude={lon}",
            "altitude=-999",
            f"date_begin={start}",
            f"date_end={end}",
            "time_ref=UT",
            f"time_step={time_step}",
            f"email={email_escaped}",
            "verbose=false",
            "outputformat=csv",
            f"integrated={'true' if integrated else 'false'}",
        ])
        params = {
            "DataInputs": data_inputs,
            "Service": "WPS",
            "Request": "Execute",
            "Identifier": f"get_{identifier}",
            "version": "1.0.0",
            "RawDataOutput": "irradiation",
        }
        return f"{self.settings.cams_wps_url}?{urlencode(params)}"

    def _validate(self, lat: float, lon: float, start: str, end: str, time_step: str,
                  identifier: str) -> None:
        validate_coordinates(lat, lon)
        for name, value in (("start", start), ("end", end)):
            if not isinstance(value, str) or not DATE_RE.match(value):
                raise ValidationError(f"{name} must be YYYY-MM-DD", [{"field": name, "value": value}])
        if end < start:
            raise ValidationError("end must be >= start", [{"field": "end", "value": end}])
        if time_step not in TIME_STEPS:
            raise ValidationError(f"timeStep must be one of {TIME_STEPS}", [{"field": "timeStep", "value": time_step}])
        if identifier not in IDENTIFIERS:
            raise ValidationError(f"identifier must be one of {IDENTIFIERS}", [{"field": "identifier", "value": identifier}])

    async def fetch_series(
        self,
        lat: float,
        lon: float,
        start: str,
        end: str,
        time_step: str = "1h",
        identifier: str = "cams_radiation",
        integrated: bool = False,
    ) -> IrradianceResponse:
        """
        Fetch a CAMS series for a closed date range.

        Args:
            lat: Latitude (-90 to 90)
            lon: Longitude (-180 to 180)
            start: First day, YYYY-MM-DD
            end: Last day, YYYY-MM-DD (>= start)
            time_step: One of 1min, 15min, 1h, 1d, 1M
            identifier: cams_radiation (all-sky) or mcclear (clear-sky)
            integrated: True for Wh/m2 energy, False for W/m2 flux

        Returns:
            IrradianceResponse with queryType "series"
        """
        self._validate(lat, lon, start, end, time_step, identifier)
        email = self.email
        url = self.build_url(lat, lon, start, end, time_step, identifier, integrated)
        public_url = redact_email(url, email)
        logger.info(
            f"[CAMSProvider] Fetching {identifier} for ({lat}, {lon}) "
            f"{start}..{end} step={time_step} integrated={integrated}"
        )

        text = await self.client.fetch_text(url, timeout_ms=self.TIMEOUT_MS)
        header, rows, meta = parse_cams_csv(text)
        if OBSERVATION_KEY not in header:
            raise CsvFormatError(f"CAMS CSV header has no '{OBSERVATION_KEY}' column")

        skip = {OBSERVATION_KEY, GHI_KEY, DNI_KEY, DHI_KEY}
        data: List[IrradiancePoint] = []
        for row in rows:
            raw_time = row.get(OBSERVATION_KEY)
            if not raw_time:
                raise TimeFormatError("CAMS row has an empty observation period")
            data.append({
                "time": to_iso_utc(parse_observation_period(raw_time)),
                "ghi": number_or_null(row.get(GHI_KEY)),
                "dni": number_or_null(row.get(DNI_KEY)),
                "dhi": number_or_null(row.get(DHI_KEY)),
                "extras": {k: coerce_value(v) for k, v in row.items() if k not in skip},
            })

        logger.info(f"[CAMSProvider] Parsed {len(data)} records")
        return {
            "metadata": {
                "source": self.SOURCE,
                "queryType": "series",
                "lat": lat,
                "lon": lon,
                "timeRef": "UTC",
                "unit": irradiation_unit("Wh/m2") if integrated else irradiance_unit(),
                "provider": self.PROVIDER,
                "requestUrl": public_url,
                "rawInputs": {
                    "params": {
                        "start": start,
                        "end": end,
                        "timeStep": time_step,
                        "identifier": identifier,
                        "integrated": integrated,
                    },
                    "soda": meta,
                },
            },
            "data": data,
        }
