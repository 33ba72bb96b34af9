"""
Census enrichment for hail events.

Resolves a coordinate to a ZIP code and an estimated affected population:

1. Reverse geocode with Nominatim to get a postcode and the kind of place
   (city, village, ...).
2. Look up the ZIP Code Tabulation Area's total population in the 2020
   decennial census and take 30% of it.

The 30% figure is a rough stand-in for "people within about five miles of the
report"; no radius computation is done and no accuracy is promised. When the
census stage fails, or no postcode comes back, a random figure is drawn from a
range chosen by place type. When reverse geocoding itself fails, a fixed
sentinel is returned so the detail view always has something to show.
"""

from __future__ import annotations

import logging
import random
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import requests

from .config import GeoServicesConfig
from .exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

UNKNOWN_ZIP = 'Unknown'
SENTINEL_POPULATION = 7383
AFFECTED_SHARE = 0.30

_ZIP_PREFIX = re.compile(r'^\s*(\d{5})(?!\d)')


class PlaceType(Enum):
    """Settlement classes used for the fallback population estimate."""
    CITY = "city"
    VILLAGE = "village"
    OTHER = "other"


# Inclusive ranges for the fallback estimate
PLACE_POPULATION_RANGES = {
    PlaceType.CITY: (10000, 15000),
    PlaceType.VILLAGE: (2000, 5000),
    PlaceType.OTHER: (500, 2000),
}


class EnrichmentSource(Enum):
    CENSUS = "census"
    ESTIMATE = "estimate"
    SENTINEL = "sentinel"


@dataclass(frozen=True)
class EnrichmentResult:
    zip_code: str
    population: int
    source: EnrichmentSource

    def to_dict(self) -> Dict[str, Any]:
        return {'zip': self.zip_code, 'population': self.population}


SENTINEL_RESULT = EnrichmentResult(UNKNOWN_ZIP, SENTINEL_POPULATION, EnrichmentSource.SENTINEL)


def normalize_postcode(postcode: Optional[str]) -> Optional[str]:
    """Return the 5-digit ZIP from a postcode such as '76102-1234' or '76102;76104'."""
    if not postcode:
        return None
    match = _ZIP_PREFIX.match(str(postcode))
    return match.group(1) if match else None


def classify_place(address: Dict[str, Any]) -> PlaceType:
    """Classify a Nominatim address block by the most specific settlement key."""
    if address.get('city') or address.get('town'):
        return PlaceType.CITY
    if address.get('village') or address.get('hamlet'):
        return PlaceType.VILLAGE
    return PlaceType.OTHER


class CensusEnricher:
    """Reverse geocode + ZCTA population lookup with heuristic fallbacks."""

    def __init__(self, config: Optional[GeoServicesConfig] = None, session: Optional[requests.Session] = None,
                 timeout: float = 15.0, rng: Optional[random.Random] = None):
        self.config = config or GeoServicesConfig()
        self.session = session or requests.Session()
        self.session.headers.update({'User-Agent': self.config.user_agent})
        self.timeout = timeout
        self.rng = rng or random.Random()

    def lookup(self, lat: float, lon: float) -> EnrichmentResult:
        """Resolve ZIP and affected population for a coordinate. Never raises."""
        try:
            zip_code, place_type = self._reverse_geocode(lat, lon)
        except Exception as e:
            logger.warning(f"Reverse geocoding failed for {lat}, {lon}: {e}")
            return SENTINEL_RESULT

        if not zip_code:
            logger.info(f"No postcode for {lat}, {lon}; estimating from place type {place_type.value}")
            return EnrichmentResult(UNKNOWN_ZIP, self.estimate_population(place_type), EnrichmentSource.ESTIMATE)

        try:
            total = self.zcta_population(zip_code)
        except (requests.RequestException, ExternalServiceError, ValueError) as e:
            logger.warning(f"Census lookup failed for ZIP {zip_code}: {e}")
            return EnrichmentResult(zip_code, self.estimate_population(place_type), EnrichmentSource.ESTIMATE)

        return EnrichmentResult(zip_code, round(total * AFFECTED_SHARE), EnrichmentSource.CENSUS)

    def _reverse_geocode(self, lat: float, lon: float) -> Tuple[Optional[str], PlaceType]:
        """Reverse geocode using Nominatim; returns (zip or None, place type)."""
        params = {
            'lat': lat,
            'lon': lon,
            'format': 'json',
            'addressdetails': 1,
            'zoom': 18
        }

        url = f"{self.config.nominatim_base_url.rstrip('/')}/reverse"
        response = self.session.get(url, params=params, timeout=self.timeout)
        response.raise_for_status()

        data = response.json() or {}
        address = data.get('address') or {}
        return normalize_postcode(address.get('postcode')), classify_place(address)

    def zcta_population(self, zip_code: str) -> int:
        """Total population of a ZIP Code Tabulation Area."""
        params = {
            'get': 'P1_001N',
            'for': f'zip code tabulation area:{zip_code}',
        }
        if self.config.census_api_key:
            params['key'] = self.config.census_api_key

        response = self.session.get(self.config.census_base_url, params=params, timeout=self.timeout)
        response.raise_for_status()

        rows = response.json()
        # First row is the header, e.g. [["P1_001N", "zip code tabulation area"], ["24817", "76102"]]
        if not isinstance(rows, list) or len(rows) < 2:
            raise ExternalServiceError(f"No census data for ZIP {zip_code}")
        return int(rows[1][0])

    def estimate_population(self, place_type: PlaceType) -> int:
        low, high = PLACE_POPULATION_RANGES[place_type]
        return self.rng.randint(low, high)


class RelayCensusClient:
    """Runs the same lookup through the notification relay's /census-lookup endpoint."""

    def __init__(self, relay_url: str, session: Optional[requests.Session] = None, timeout: float = 15.0):
        self.relay_url = relay_url.rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout

    def lookup(self, lat: float, lon: float) -> EnrichmentResult:
        try:
            response = self.session.post(
                f"{self.relay_url}/census-lookup", json={'lat': lat, 'lon': lon}, timeout=self.timeout
            )
            response.raise_for_status()
            data = response.json()
            zip_code = str(data['zip'])
            population = int(data['population'])
        except (requests.RequestException, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Relay census lookup failed for {lat}, {lon}: {e}")
            return SENTINEL_RESULT

        if zip_code == UNKNOWN_ZIP and population == SENTINEL_POPULATION:
            return SENTINEL_RESULT
        source = EnrichmentSource.CENSUS if zip_code != UNKNOWN_ZIP else EnrichmentSource.ESTIMATE
        return EnrichmentResult(zip_code, population, source)


def create_enricher(config: GeoServicesConfig, relay_url: str, timeout: float = 15.0):
    """Create the enricher selected by config.enrichment_mode."""
    if config.enrichment_mode == 'relay':
        return RelayCensusClient(relay_url, timeout=timeout)
    return CensusEnricher(config, timeout=timeout)
