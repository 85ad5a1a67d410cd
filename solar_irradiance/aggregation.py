"""
Aggregation layer for Solar Irradiance

Derived views over a canonical IrradianceResponse:
- monthly_index  - 12 wall-clock-month sums / 1000 (rough kWh/m2 index)
- day_curve      - one wall-clock day as (minutes since midnight, value)

Both are parameterized by a display timezone: UTC or China Standard Time
(fixed +08:00, no DST). The offset is explicit, never the host timezone.

Value selection per point, first available wins:
1. ghi
2. Gb(i) + Gd(i) + Gr(i) from extras (missing components count as 0)
3. Int from extras
"""

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import List, Optional, Tuple

import pandas as pd

from solar_irradiance.models import IrradiancePoint, IrradianceResponse

logger = logging.getLogger(__name__)

FIELD_GHI = "ghi"
FIELD_COMPONENTS = "extras:Gb(i)+Gd(i)+Gr(i)"
FIELD_INT = "extras:Int"

COMPONENT_KEYS = ("Gb(i)", "Gd(i)", "Gr(i)")


class DisplayTimezone(Enum):
    """Wall-clock frames a caller may bucket by."""
    UTC = "utc"
    CN = "cn"

    @property
    def offset(self) -> timedelta:
        return timedelta(hours=8) if self is DisplayTimezone.CN else timedelta(0)

    @property
    def tzinfo(self) -> timezone:
        return timezone(self.offset)

    @property
    def label(self) -> str:
        return "CN" if self is DisplayTimezone.CN else "UTC"


@dataclass
class MonthlyIndex:
    """Monthly sums and which field family produced them."""
    months: List[dict]
    used_key: Optional[str]

    def to_dict(self) -> dict:
        return {"months": self.months, "usedKey": self.used_key}


def _number(value) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value) if math.isfinite(value) else None


def select_value(point: IrradiancePoint) -> Tuple[Optional[float], Optional[str]]:
    """
    Pick the value a point contributes and the field family it came from.

    Returns:
        (value, family) or (None, None) when nothing usable is present
    """
    ghi = _number(point.get("ghi"))
    if ghi is not None:
        return ghi, FIELD_GHI

    extras = point.get("extras") or {}
    components = [_number(extras.get(k)) for k in COMPONENT_KEYS]
    if any(c is not None for c in components):
        return sum(c for c in components if c is not None), FIELD_COMPONENTS

    integrated = _number(extras.get("Int"))
    if integrated is not None:
        return integrated, FIELD_INT

    return None, None


def to_frame(response: IrradianceResponse, tz: DisplayTimezone = DisplayTimezone.UTC) -> pd.DataFrame:
    """
    Flatten a response into a DataFrame with wall-clock columns.

    Columns: time (UTC), local (tz-shifted), value, family
    """
    records = []
    for point in response["data"]:
        value, family = select_value(point)
        records.append({"time": point["time"], "value": value, "family": family})

    df = pd.DataFrame(records, columns=["time", "value", "family"])
    if df.empty:
        df["local"] = pd.Series(dtype="datetime64[ns, UTC]")
        return df

    df["time"] = pd.to_datetime(df["time"], utc=True)
    df["local"] = df["time"].dt.tz_convert(tz.tzinfo)
    df["value"] = pd.to_numeric(df["value"])
    return df


def monthly_index(response: IrradianceResponse, tz: DisplayTimezone = DisplayTimezone.UTC) -> MonthlyIndex:
    """
    Sum values per wall-clock month and divide by 1000.

    PVGIS hourly W/m2 summed over a month and divided by 1000 approximates
    kWh/m2; for other steps it is only a relative index.

    Returns:
        MonthlyIndex with all 12 months (zeros where no data) and usedKey:
        "ghi" if any point used ghi, otherwise the first fallback seen
    """
    df = to_frame(response, tz)
    sums = [0.0] * 12
    used_key: Optional[str] = None

    if not df.empty:
        usable = df[df["family"].notna()]
        if (usable["family"] == FIELD_GHI).any():
            used_key = FIELD_GHI
        elif not usable.empty:
            used_key = usable["family"].iloc[0]

        by_month = usable.groupby(usable["local"].dt.month)["value"].sum()
        for month, total in by_month.items():
            sums[int(month) - 1] = float(total)

    months = [{"month": idx + 1, "kwhM2": total / 1000} for idx, total in enumerate(sums)]
    logger.debug(f"[monthly_index] tz={tz.label} usedKey={used_key}")
    return MonthlyIndex(months=months, used_key=used_key)


def _day_bounds(day: date, tz: DisplayTimezone) -> Tuple[datetime, datetime]:
    start_local = datetime(day.year, day.month, day.day, tzinfo=tz.tzinfo)
    start = start_local.astimezone(timezone.utc)
    return start, start + timedelta(days=1)


def day_curve(
    response: IrradianceResponse,
    day: date,
    tz: DisplayTimezone = DisplayTimezone.UTC,
) -> List[Tuple[int, float]]:
    """
    Extract one wall-clock day as (minutes since local midnight, value).

    Points with no usable field plot as 0. Empty list when the day has no
    points.
    """
    if isinstance(day, str):
        day = date.fromisoformat(day)

    df = to_frame(response, tz)
    if df.empty:
        return []

    start, end = _day_bounds(day, tz)
    in_day = df[(df["time"] >= pd.Timestamp(start)) & (df["time"] < pd.Timestamp(end))]
    if in_day.empty:
        return []

    minutes = in_day["local"].dt.hour * 60 + in_day["local"].dt.minute
    values = in_day["value"].fillna(0.0)
    curve = sorted(zip(minutes.astype(int).tolist(), values.astype(float).tolist()), key=lambda p: p[0])
    return curve


def annual_horizontal_kwh(response: IrradianceResponse) -> Optional[float]:
    """Sum of ghi / 1000, or None when no point carries ghi."""
    values = [_number(p.get("ghi")) for p in response["data"]]
    values = [v for v in values if v is not None]
    if not values:
        return None
    return sum(values) / 1000


def available_days(response: IrradianceResponse, tz: DisplayTimezone = DisplayTimezone.UTC) -> List[date]:
    """Distinct wall-clock days present in the series, in order."""
    df = to_frame(response, tz)
    if df.empty:
        return []
    return sorted(set(df["local"].dt.date.tolist()))


def filter_month(
    response: IrradianceResponse,
    month: int,
    tz: DisplayTimezone = DisplayTimezone.UTC,
) -> List[IrradiancePoint]:
    """Points whose wall-clock month equals month (1-12)."""
    if not 1 <= month <= 12:
        raise ValueError(f"month must be 1-12, got {month}")
    df = to_frame(response, tz)
    if df.empty:
        return []
    mask = (df["local"].dt.month == month).tolist()
    return [point for point, keep in zip(response["data"], mask) if keep]
