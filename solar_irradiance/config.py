"""
Solar Irradiance configuration.

All upstream endpoints and identities come from the environment (a .env
file is honoured by the CLI through python-dotenv). Settings are read once
at startup and never mutated per request.
"""

import os
from typing import Optional

import pydantic
from pydantic import BaseModel, ConfigDict, Field

from solar_irradiance.errors import ConfigurationError


class Settings(BaseModel):
    """Process-wide provider configuration."""

    model_config = ConfigDict(frozen=True)

    pvgis_base_url: str = "https://re.jrc.ec.europa.eu/api/v5_3"
    cams_wps_url: str = "https://api.soda-solardata.com/service/wps"
    nominatim_base_url: str = "https://nominatim.openstreetmap.org/search"
    geocode_language: str = "zh-CN"
    geocode_user_agent: str = "solar-irradiance/0.1 (local dev)"
    cams_email: Optional[str] = Field(None, description="SoDa account email for CAMS")
    http_retries: int = Field(1, ge=0, le=5)


# Environment variable -> Settings field
ENV_VARS = {
    "PVGIS_BASE_URL": "pvgis_base_url",
    "CAMS_SODA_WPS_URL": "cams_wps_url",
    "NOMINATIM_BASE_URL": "nominatim_base_url",
    "GEOCODE_LANGUAGE": "geocode_language",
    "GEOCODE_USER_AGENT": "geocode_user_agent",
    "CAMS_SODA_EMAIL": "cams_email",
    "HTTP_RETRIES": "http_retries",
}

# Cache lifetimes (milliseconds)
GEOCODE_TTL_MS = 24 * 60 * 60 * 1000
TMY_TTL_MS = 12 * 60 * 60 * 1000
SERIES_TTL_MS = 60 * 60 * 1000
OPTIMAL_TTL_MS = 12 * 60 * 60 * 1000


def load_settings() -> Settings:
    """Build Settings from the current environment; unset or blank vars keep defaults."""
    values = {}
    for env_name, field_name in ENV_VARS.items():
        raw = os.getenv(env_name)
        if raw is not None and raw.strip():
            values[field_name] = raw.strip()
    try:
        return Settings(**values)
    except pydantic.ValidationError as e:
        fields = ", ".join(str(err["loc"][0]) for err in e.errors())
        raise ConfigurationError(f"Invalid environment configuration: {fields}") from e
