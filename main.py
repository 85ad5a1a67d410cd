"""
Solar Irradiance: command line interface

Resolves a location (address or coordinates), fetches a canonical
irradiance series from PVGIS or CAMS, and prints summaries or writes the
CSV export.

Examples:
    python main.py geocode "West Lake, Hangzhou" --country cn
    python main.py tmy --lat 30.27 --lon 120.15 --monthly --tz cn
    python main.py series pvgis --address "Hangzhou" --start-year 2020 --end-year 2020
    python main.py series cams --lat 30.27 --lon 120.15 --start 2020-06-01 --end 2020-06-07 --integrated
    python main.py optimal --lat 30.27 --lon 120.15 --year 2020
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from datetime import date
from pathlib import Path

from colorama import Fore, Style, init
from dotenv import load_dotenv

from solar_irradiance.aggregation import (
    DisplayTimezone,
    annual_horizontal_kwh,
    available_days,
    day_curve,
    monthly_index,
)
from solar_irradiance.config import load_settings
from solar_irradiance.errors import (
    ConfigurationError,
    IrradianceError,
    ValidationError,
)
from solar_irradiance.export import to_csv
from solar_irradiance.models import Coordinate, unit_label
from solar_irradiance.service import IrradianceService

init()

# Load environment variables
load_dotenv()

# Ensure logs directory exists
os.makedirs("logs", exist_ok=True)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler("logs/solar_irradiance.log", mode='a', encoding='utf-8'),
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description='Solar irradiance from PVGIS / CAMS, normalized to one canonical series'
    )
    sub = parser.add_subparsers(dest="command", required=True)

    geo = sub.add_parser("geocode", help="Resolve an address to coordinate candidates")
    geo.add_argument("query")
    geo.add_argument("--limit", type=int, default=5)
    geo.add_argument("--country", default=None, help="Country codes, e.g. 'cn' or 'cn,us'")

    def add_location(p):
        p.add_argument("--lat", type=float)
        p.add_argument("--lon", type=float)
        p.add_argument("--address", help="Geocode this address and use the best match")
        p.add_argument("--country", default=None)

    def add_output(p):
        p.add_argument("--csv", type=Path, help="Write the CSV export to this path")
        p.add_argument("--monthly", action="store_true", help="Print the monthly index")
        p.add_argument("--day", type=date.fromisoformat, help="Print the curve for one day (YYYY-MM-DD)")
        p.add_argument("--tz", choices=["utc", "cn"], default="cn",
                       help="Frame for --monthly and --day; the CSV time_cn column is always +08:00")

    tmy = sub.add_parser("tmy", help="PVGIS typical meteorological year")
    add_location(tmy)
    add_output(tmy)

    series = sub.add_parser("series", help="Multi-year (PVGIS) or date-range (CAMS) series")
    series_sub = series.add_subparsers(dest="source", required=True)

    pvgis = series_sub.add_parser("pvgis")
    add_location(pvgis)
    add_output(pvgis)
    pvgis.add_argument("--start-year", type=int, required=True)
    pvgis.add_argument("--end-year", type=int, required=True)

    cams = series_sub.add_parser("cams")
    add_location(cams)
    add_output(cams)
    cams.add_argument("--start", required=True)
    cams.add_argument("--end", required=True)
    cams.add_argument("--time-step", default="1h", choices=["1min", "15min", "1h", "1d", "1M"])
    cams.add_argument("--identifier", default="cams_radiation", choices=["cams_radiation", "mcclear"])
    cams.add_argument("--integrated", action="store_true")

    optimal = sub.add_parser("optimal", help="PVGIS optimal tilt/azimuth and annual POA")
    add_location(optimal)
    optimal.add_argument("--year", type=int, default=None)

    return parser.parse_args(argv)


async def resolve_location(service: IrradianceService, args) -> Coordinate:
    """Coordinates from --lat/--lon, or the first geocoding candidate of --address."""
    if args.address:
        result = await service.geocode({"query": args.address, "countryCodes": args.country})
        if not result["candidates"]:
            raise ValidationError(f"No location found for '{args.address}'; try a more specific address")
        best = result["candidates"][0]
        print(f"{Fore.CYAN}Location:{Style.RESET_ALL} {best['displayName']} ({best['lat']}, {best['lon']})")
        return Coordinate(best["lat"], best["lon"])

    if args.lat is None or args.lon is None:
        raise ValidationError("Provide --lat and --lon, or --address")
    return Coordinate(args.lat, args.lon)


def print_response_summary(response, args):
    """Print metadata, monthly index and day curve as requested."""
    meta = response["metadata"]
    tz = DisplayTimezone(args.tz)
    cached = " (cached)" if meta.get("cached") else ""
    print(f"{Fore.GREEN}OK{Style.RESET_ALL} - {meta['source']}/{meta['queryType']}: "
          f"{len(response['data'])} points, {unit_label(meta['unit'])}{cached}")
    print(f"   Request: {meta.get('requestUrl')}")

    annual = annual_horizontal_kwh(response)
    if annual is not None:
        print(f"   Annual GHI index: {annual:.1f} kWh/m2")

    if args.monthly:
        index = monthly_index(response, tz)
        print(f"\n{Fore.WHITE}Monthly index ({tz.label}), from {index.used_key or '-'}{Style.RESET_ALL}")
        for row in index.months:
            print(f"   {row['month']:>2}: {row['kwhM2']:8.2f}")

    if args.day:
        curve = day_curve(response, args.day, tz)
        print(f"\n{Fore.WHITE}{args.day} ({tz.label}){Style.RESET_ALL}")
        if not curve:
            days = available_days(response, tz)
            hint = f" (data covers {days[0]} .. {days[-1]})" if days else ""
            print(f"   no points{hint}")
        for minutes, value in curve:
            print(f"   {minutes // 60:02d}:{minutes % 60:02d}  {value:8.1f}")

    if args.csv:
        args.csv.write_text(to_csv(response), encoding="utf-8")
        print(f"{Fore.GREEN}CSV saved:{Style.RESET_ALL} {args.csv}")
        logger.info(f"[main] CSV written to {args.csv}")


async def main(args) -> int:
    """Run one command; returns the process exit code."""
    try:
        settings = load_settings()
        service = IrradianceService(settings)

        if args.command == "geocode":
            result = await service.geocode({
                "query": args.query,
                "limit": args.limit,
                "countryCodes": args.country,
            })
            print(f"{Fore.CYAN}{len(result['candidates'])} candidates{Style.RESET_ALL} ({result['requestUrl']})")
            for idx, c in enumerate(result["candidates"], start=1):
                print(f"   {idx}. {c['displayName']}  ({c['lat']:.5f}, {c['lon']:.5f})  confidence={c['confidence']}")
            return 0

        coord = await resolve_location(service, args)
        lat, lon = coord.lat, coord.lon

        if args.command == "tmy":
            response = await service.tmy({"lat": lat, "lon": lon})
            print_response_summary(response, args)

        elif args.command == "series" and args.source == "pvgis":
            response = await service.series({
                "source": "pvgis",
                "lat": lat,
                "lon": lon,
                "startYear": args.start_year,
                "endYear": args.end_year,
            })
            print_response_summary(response, args)

        elif args.command == "series":
            response = await service.series({
                "source": "cams",
                "lat": lat,
                "lon": lon,
                "start": args.start,
                "end": args.end,
                "timeStep": args.time_step,
                "identifier": args.identifier,
                "integrated": args.integrated,
            })
            print_response_summary(response, args)

        elif args.command == "optimal":
            payload = {"lat": lat, "lon": lon}
            if args.year is not None:
                payload["year"] = args.year
            summary = await service.optimal(payload)
            print(json.dumps({k: v for k, v in summary.items() if k != "rawInputs"}, indent=2))

        return 0

    except (ValidationError, ConfigurationError) as e:
        logger.error(f"[main] {e.message}")
        print(f"\n{Fore.RED}ERROR:{Style.RESET_ALL} {json.dumps(e.to_dict(), ensure_ascii=False)}")
        return 2
    except IrradianceError as e:
        logger.error(f"[main] FAILED: {e.message}")
        print(f"\n{Fore.RED}ERROR:{Style.RESET_ALL} {json.dumps(e.to_dict(), ensure_ascii=False)}")
        return 1


def cli():
    args = parse_args()
    exit_code = asyncio.run(main(args))
    sys.exit(exit_code)


if __name__ == "__main__":
    cli()
