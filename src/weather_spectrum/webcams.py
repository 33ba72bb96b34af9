"""Nearby webcams from the Windy webcams API, closest first."""

from __future__ import annotations

import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

import requests

from .config import GeoServicesConfig
from .exceptions import ExternalServiceError
from .geo import haversine_miles

logger = logging.getLogger(__name__)

DEFAULT_RADIUS_MILES = 50
MAX_WEBCAMS = 6


class WebcamsUnavailableError(ExternalServiceError):
    """The webcam provider could not be queried."""


@dataclass
class Webcam:
    id: str
    title: str
    image: str
    city: str
    region: str
    lat: float
    lon: float
    distance_miles: float
    source: str = 'Windy'

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['distance_miles'] = round(self.distance_miles, 1)
        return data


class WindyWebcamClient:
    """Queries Windy for webcams around a point."""

    def __init__(self, config: Optional[GeoServicesConfig] = None, session: Optional[requests.Session] = None,
                 timeout: float = 15.0):
        self.config = config or GeoServicesConfig()
        self.session = session or requests.Session()
        self.timeout = timeout

    def nearby(self, lat: float, lon: float, radius_miles: float = DEFAULT_RADIUS_MILES,
               limit: int = MAX_WEBCAMS) -> List[Webcam]:
        """The closest webcams within radius_miles, nearest first.

        Raises:
            WebcamsUnavailableError: no API key, network failure or a non-2xx answer.
        """
        if not self.config.windy_api_key:
            raise WebcamsUnavailableError('Webcam API key is not configured')

        url = f"{self.config.windy_base_url.rstrip('/')}/list/nearby={lat},{lon},{radius_miles:g}"
        params = {'show': 'webcams:image,location', 'key': self.config.windy_api_key}

        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Webcam lookup failed near {lat}, {lon}: {e}")
            raise WebcamsUnavailableError('Unable to load nearby webcams')

        webcams = []
        for cam in (data.get('result') or {}).get('webcams') or []:
            try:
                location = cam['location']
                cam_lat = float(location['latitude'])
                cam_lon = float(location['longitude'])
            except (KeyError, TypeError, ValueError):
                logger.debug(f"Skipping webcam without a location: {cam.get('id')}")
                continue

            image = ((cam.get('image') or {}).get('current') or {}).get('preview', '')
            webcams.append(Webcam(
                id=f"windy-{cam.get('id')}",
                title=cam.get('title', ''),
                image=image,
                city=location.get('city', ''),
                region=location.get('region', ''),
                lat=cam_lat,
                lon=cam_lon,
                distance_miles=haversine_miles(lat, lon, cam_lat, cam_lon),
            ))

        webcams.sort(key=lambda cam: cam.distance_miles)
        return webcams[:limit]
