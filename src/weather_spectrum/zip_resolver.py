"""ZIP code → centroid lookups via Zippopotam.us."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

import requests

from .config import GeoServicesConfig
from .exceptions import ValidationError, NotFoundError

logger = logging.getLogger(__name__)

ZIP_PATTERN = re.compile(r'^\d{5}$')


class ZipValidationError(ValidationError):
    """The ZIP code is not exactly five digits."""

    def __init__(self, zip_code: str):
        super().__init__('Please enter a valid 5-digit ZIP code')
        self.zip_code = zip_code


class ZipLookupError(NotFoundError):
    """The ZIP code could not be resolved."""

    def __init__(self, zip_code: str):
        super().__init__('Could not find ZIP code. Please try again.')
        self.zip_code = zip_code


@dataclass(frozen=True)
class ZipLocation:
    zip_code: str
    lat: float
    lon: float
    city: str
    state: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def validate_zip(zip_code: str) -> str:
    """Return the trimmed ZIP or raise ZipValidationError."""
    candidate = (zip_code or '').strip()
    if not ZIP_PATTERN.match(candidate):
        raise ZipValidationError(zip_code)
    return candidate


class ZipResolver:
    """Resolves 5-digit US ZIP codes to a lat/lon centroid."""

    def __init__(self, config: Optional[GeoServicesConfig] = None, session: Optional[requests.Session] = None,
                 timeout: float = 15.0):
        self.config = config or GeoServicesConfig()
        self.session = session or requests.Session()
        self.timeout = timeout

    def resolve(self, zip_code: str) -> ZipLocation:
        """Look up a ZIP code.

        Raises:
            ZipValidationError: input is not exactly 5 digits (no lookup issued).
            ZipLookupError: network failure, unknown ZIP or malformed answer.
        """
        zip_code = validate_zip(zip_code)
        url = f"{self.config.zippopotam_base_url.rstrip('/')}/{zip_code}"

        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            place = response.json()['places'][0]
            location = ZipLocation(
                zip_code=zip_code,
                lat=float(place['latitude']),
                lon=float(place['longitude']),
                city=place.get('place name', ''),
                state=place.get('state abbreviation', ''),
            )
        except (requests.RequestException, ValueError, KeyError, IndexError, TypeError) as e:
            logger.warning(f"ZIP lookup failed for {zip_code}: {e}")
            raise ZipLookupError(zip_code) from e

        logger.debug(f"Resolved ZIP {zip_code} to {location.lat}, {location.lon}")
        return location
