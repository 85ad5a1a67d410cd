"""
Time codec for Solar Irradiance

Decodes each provider's native timestamp encoding into one canonical
representation: an aware UTC datetime, serialized as
"YYYY-MM-DDTHH:MM:SSZ". Nothing downstream of the adapters looks at
provider-native time strings.

- PVGIS:  "20200101:0010"  (YYYYMMDD:HHMM, UTC by convention)
- CAMS:   "2020-01-01T00:00:00.0/2020-01-01T01:00:00.0"  (START/END,
          START may or may not carry Z or an offset; UTC if absent)
"""

import re
from datetime import datetime, timedelta, timezone

from solar_irradiance.errors import TimeFormatError

PVGIS_TIME_RE = re.compile(r"^(\d{4})(\d{2})(\d{2}):(\d{2})(\d{2})$")
TZ_SUFFIX_RE = re.compile(r"(?:[zZ]|[+-]\d{2}:?\d{2})$")
FRACTION_RE = re.compile(r"\.\d+")
COMPACT_OFFSET_RE = re.compile(r"([+-]\d{2})(\d{2})$")


def parse_pvgis_time(value: str) -> datetime:
    """
    Parse a PVGIS "YYYYMMDD:HHMM" timestamp.

    Args:
        value: Raw PVGIS time string

    Returns:
        Aware UTC datetime

    Raises:
        TimeFormatError: pattern mismatch or impossible calendar values
    """
    if not isinstance(value, str):
        raise TimeFormatError(f"Unsupported PVGIS time format: {value!r}")

    m = PVGIS_TIME_RE.match(value.strip())
    if not m:
        raise TimeFormatError(f"Unsupported PVGIS time format: {value!r}")

    year, month, day, hour, minute = (int(g) for g in m.groups())
    try:
        return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)
    except ValueError as e:
        raise TimeFormatError(f"Invalid PVGIS timestamp {value!r}: {e}") from e


def parse_observation_period(value: str) -> datetime:
    """
    Parse the START of a CAMS "Observation period" interval.

    Args:
        value: "START/END" string; END is ignored

    Returns:
        Aware UTC datetime of START

    Raises:
        TimeFormatError: START missing or unparsable
    """
    if not isinstance(value, str):
        raise TimeFormatError(f"Unsupported CAMS time format: {value!r}")

    start = value.split("/")[0].strip()
    if not start:
        raise TimeFormatError("CAMS observation period is missing its start")

    # Second precision; drop fractional seconds such as "00:00:00.0"
    normalized = FRACTION_RE.sub("", start)
    normalized = COMPACT_OFFSET_RE.sub(r"\1:\2", normalized)
    if normalized[-1] in "zZ":
        normalized = normalized[:-1] + "+00:00"
    elif not TZ_SUFFIX_RE.search(normalized):
        normalized = normalized + "+00:00"

    try:
        dt = datetime.fromisoformat(normalized)
    except ValueError as e:
        raise TimeFormatError(f"Unsupported CAMS time format: {value!r}") from e

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_iso_utc(dt: datetime) -> str:
    """Serialize a datetime as canonical UTC ISO-8601, second precision."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_iso_utc(value: str) -> datetime:
    """Read a canonical time string back into an aware UTC datetime."""
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError as e:
        raise TimeFormatError(f"Not an ISO-8601 instant: {value!r}") from e
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_offset_time(value: str, offset: timedelta) -> str:
    """
    Render a canonical UTC string as wall-clock time at a fixed offset.

    Example: "2020-01-01T00:00:00Z", +8h -> "2020-01-01T08:00:00+08:00"
    """
    local = parse_iso_utc(value).astimezone(timezone(offset))
    return local.isoformat(timespec="seconds")
