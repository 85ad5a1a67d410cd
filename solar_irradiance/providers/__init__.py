"""
Providers package for Solar Irradiance

Each adapter owns its own request building and parsing and emits the
shared canonical shapes from solar_irradiance.models:

1. Nominatim - free-text address -> GeocodeCandidate list
2. PVGIS     - JSON field matrix (TMY: horizontal fields; series: POA components)
3. CAMS      - SoDa WPS semicolon CSV with commented metadata header
"""

from solar_irradiance.providers.geocoder import (
    NominatimGeocoder,
    normalize_country_codes,
)

from solar_irradiance.providers.pvgis import (
    PVGISProvider,
    extract_year_range,
    poa_sum,
)

from solar_irradiance.providers.cams import (
    CAMSProvider,
    parse_cams_csv,
    redact_email,
)

__all__ = [
    # Nominatim (geocoding)
    "NominatimGeocoder",
    "normalize_country_codes",
    # PVGIS (JSON)
    "PVGISProvider",
    "extract_year_range",
    "poa_sum",
    # CAMS (CSV over WPS)
    "CAMSProvider",
    "parse_cams_csv",
    "redact_email",
]
