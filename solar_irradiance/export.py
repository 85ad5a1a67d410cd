"""
CSV export for canonical irradiance responses.

Layout:

    # metadata={"source": "pvgis", ..., "exportTimeRef": "Asia/Shanghai", "exportOffset": "+08:00"}
    time_cn,time_utc,ghi,dni,dhi,<extras columns in first-seen order>
    2020-01-01T08:00:00+08:00,2020-01-01T00:00:00Z,0.0,,,...

time_cn is always China Standard Time (+08:00), whatever frame the caller
views the series in. Nulls are written as empty cells. Cells containing a
comma, quote or newline are quoted with internal quotes doubled.

from_csv reads the same layout back. Every extras column comes back on
every point (empty cells as None). A cell becomes a number only when the
number renders back to the same text, so "007" stays a string.
"""

import csv
import io
import json
import logging
import math
from typing import Any, Dict, List

from solar_irradiance.aggregation import DisplayTimezone
from solar_irradiance.errors import CsvFormatError
from solar_irradiance.models import IrradiancePoint, IrradianceResponse
from solar_irradiance.timecodec import format_offset_time, parse_iso_utc, to_iso_utc

logger = logging.getLogger(__name__)

METADATA_PREFIX = "# metadata="
EXPORT_TIME_REF = "Asia/Shanghai"
BASE_COLUMNS = ["time_cn", "time_utc", "ghi", "dni", "dhi"]


def csv_cell(value: Any) -> str:
    """Render one cell; None -> empty, quote when needed."""
    if value is None:
        return ""
    if isinstance(value, float) and not math.isfinite(value):
        return ""
    text = str(value)
    if any(ch in text for ch in (",", '"', "\n", "\r")):
        return '"' + text.replace('"', '""') + '"'
    return text


def extras_columns(response: IrradianceResponse) -> List[str]:
    """Union of extras keys across all points, first-seen order."""
    seen: Dict[str, None] = {}
    for point in response["data"]:
        for key in (point.get("extras") or {}):
            seen.setdefault(key, None)
    return list(seen)


def to_csv(response: IrradianceResponse) -> str:
    """Serialize a response to the export CSV text."""
    extras = extras_columns(response)
    china = DisplayTimezone.CN
    metadata = dict(response["metadata"])
    metadata["exportTimeRef"] = EXPORT_TIME_REF
    metadata["exportOffset"] = format_offset_time("1970-01-01T00:00:00Z", china.offset)[-6:]

    lines = [METADATA_PREFIX + json.dumps(metadata, ensure_ascii=False, default=str)]
    lines.append(",".join(csv_cell(c) for c in BASE_COLUMNS + extras))

    for point in response["data"]:
        row_extras = point.get("extras") or {}
        cells = [
            format_offset_time(point["time"], china.offset),
            point["time"],
            point.get("ghi"),
            point.get("dni"),
            point.get("dhi"),
        ] + [row_extras.get(k) for k in extras]
        lines.append(",".join(csv_cell(c) for c in cells))

    logger.info(f"[to_csv] Exported {len(response['data'])} rows, {len(extras)} extras columns")
    return "\n".join(lines)


def _parse_cell(text: str) -> Any:
    if text == "":
        return None
    try:
        integer = int(text)
    except ValueError:
        pass
    else:
        return integer if str(integer) == text else text
    try:
        number = float(text)
    except ValueError:
        return text
    if not math.isfinite(number) or repr(number) != text:
        return text
    return number


def from_csv(text: str) -> IrradianceResponse:
    """
    Read an exported CSV back into a canonical response.

    Raises:
        CsvFormatError: metadata comment or header row missing
    """
    lines = text.splitlines()
    if not lines or not lines[0].startswith(METADATA_PREFIX):
        raise CsvFormatError("Export CSV is missing its '# metadata=' row")
    try:
        metadata = json.loads(lines[0][len(METADATA_PREFIX):])
    except json.JSONDecodeError as e:
        raise CsvFormatError(f"Export metadata is not valid JSON: {e}") from e
    metadata.pop("exportTimeRef", None)
    metadata.pop("exportOffset", None)

    reader = csv.reader(io.StringIO("\n".join(lines[1:])))
    header = next(reader, None)
    if not header or header[:len(BASE_COLUMNS)] != BASE_COLUMNS:
        raise CsvFormatError("Export CSV header does not start with time_cn,time_utc,ghi,dni,dhi")
    extras = header[len(BASE_COLUMNS):]

    data: List[IrradiancePoint] = []
    for row in reader:
        if not row:
            continue
        if len(row) != len(header):
            raise CsvFormatError(f"Export row has {len(row)} fields, expected {len(header)}")
        values = [_parse_cell(c) for c in row[2:]]
        data.append({
            "time": to_iso_utc(parse_iso_utc(row[1])),
            "ghi": values[0],
            "dni": values[1],
            "dhi": values[2],
            "extras": dict(zip(extras, values[3:])),
        })

    return {"metadata": metadata, "data": data}
