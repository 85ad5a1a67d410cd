"""
Nominatim Geocoder for Solar Irradiance

Turns a free-text address into an ordered list of coordinate candidates.
The provider's own ranking is kept verbatim (first = best match); an empty
list is a valid "no match" answer, not an error.
"""

import logging
from typing import List, Optional, Sequence, Union
from urllib.parse import urlencode

from solar_irradiance.config import Settings
from solar_irradiance.errors import PayloadFormatError, ValidationError
from solar_irradiance.http_client import HttpClient
from solar_irradiance.models import GeocodeCandidate, GeocodeResult

logger = logging.getLogger(__name__)

MIN_QUERY_CHARS = 2
MAX_LIMIT = 10


def normalize_country_codes(country_codes: Union[str, Sequence[str], None]) -> Optional[str]:
    """
    Normalize a country filter to Nominatim's "cn,us" form.

    Raises:
        ValidationError: any code that is not two ASCII letters
    """
    if country_codes is None:
        return None
    if isinstance(country_codes, str):
        codes = [c.strip() for c in country_codes.split(",")]
    else:
        codes = [str(c).strip() for c in country_codes]
    codes = [c.lower() for c in codes if c]
    if not codes:
        return None
    for code in codes:
        if len(code) != 2 or not code.isascii() or not code.isalpha():
            raise ValidationError(
                "countryCodes must be like 'cn' or 'cn,us'",
                [{"field": "countryCodes", "value": code}],
            )
    return ",".join(codes)


def _to_float(value) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class NominatimGeocoder:
    """
    Provider for OpenStreetMap Nominatim search.

    Uses the /search endpoint with jsonv2 output. A User-Agent identifying
    the application is required by the Nominatim usage policy.
    """

    PROVIDER = "nominatim"
    TIMEOUT_MS = 15_000

    def __init__(self, settings: Settings, client: Optional[HttpClient] = None):
        self.settings = settings
        self.client = client or HttpClient(default_retries=settings.http_retries)

    def build_url(self, query: str, limit: int, country_codes: Optional[str]) -> str:
        params = {
            "q": query,
            "format": "jsonv2",
            "limit": str(limit),
            "addressdetails": "1",
            "accept-language": self.settings.geocode_language,
        }
        if country_codes:
            params["countrycodes"] = country_codes
        return f"{self.settings.nominatim_base_url}?{urlencode(params)}"

    async def geocode(
        self,
        query: str,
        limit: int = 5,
        country_codes: Union[str, Sequence[str], None] = None,
    ) -> GeocodeResult:
        """
        Resolve an address to coordinate candidates.

        Args:
            query: Free-text address (at least 2 characters after trimming)
            limit: Maximum number of candidates (1-10)
            country_codes: Optional 2-letter code list restricting the search

        Returns:
            {"requestUrl": ..., "candidates": [...]} in provider ranking order
        """
        query = (query or "").strip()
        if len(query) < MIN_QUERY_CHARS:
            raise ValidationError(
                f"query must be at least {MIN_QUERY_CHARS} characters",
                [{"field": "query", "value": query}],
            )
        if isinstance(limit, bool) or not isinstance(limit, int) or not (1 <= limit <= MAX_LIMIT):
            raise ValidationError(
                f"limit must be an integer within [1, {MAX_LIMIT}]",
                [{"field": "limit", "value": limit}],
            )
        codes = normalize_country_codes(country_codes)

        url = self.build_url(query, limit, codes)
        logger.info(f"[NominatimGeocoder] Searching '{query}' (limit={limit}, countries={codes or 'all'})")

        items = await self.client.fetch_json(
            url,
            timeout_ms=self.TIMEOUT_MS,
            headers={"User-Agent": self.settings.geocode_user_agent},
        )
        if items is None:
            items = []
        if not isinstance(items, list):
            raise PayloadFormatError("Nominatim response is not a list")

        candidates: List[GeocodeCandidate] = []
        for item in items:
            lat = _to_float(item.get("lat"))
            lon = _to_float(item.get("lon"))
            if lat is None or lon is None:
                logger.warning(f"[NominatimGeocoder] Skipping item without coordinates: {item.get('display_name')}")
                continue

            importance = item.get("importance")
            confidence = float(importance) if isinstance(importance, (int, float)) and not isinstance(importance, bool) else None

            candidates.append({
                "lat": lat,
                "lon": lon,
                "displayName": item.get("display_name", ""),
                "provider": self.PROVIDER,
                "confidence": confidence,
            })

        logger.info(f"[NominatimGeocoder] {len(candidates)} candidates")
        return {"requestUrl": url, "candidates": candidates}
