"""
Solar Irradiance: multi-source acquisition and normalization

Resolves a location to coordinates and retrieves hourly solar irradiance
from two heterogeneous upstreams, normalized into one canonical shape.

Architecture:
    providers/       - Upstream adapters:
                       * geocoder.py - Nominatim free-text search
                       * pvgis.py    - JRC PVGIS JSON API (TMY, series, optimal)
                       * cams.py     - CAMS radiation via SoDa WPS (CSV)
    http_client.py   - Time-boxed transport with bounded retry
    resilience.py    - Retry policy and linear backoff
    timecodec.py     - Provider timestamps -> canonical UTC
    cache_manager.py - Fingerprint cache with per-entry expiry
    aggregation.py   - Monthly index and single-day curves (UTC / +08:00)
    export.py        - CSV export / import
    service.py       - Validated, cache-checked public operations

Entry Points:
    main.py          - Command line interface
"""

__version__ = "0.1.0"
__author__ = "Solar Irradiance"
