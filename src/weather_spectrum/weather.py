"""
National Weather Service client: current conditions, 5-day forecast and
active alerts for a coordinate.

The NWS API is hypermedia driven. A /points lookup returns the URLs of the
forecast and of the nearby observation stations; the first station listed is
the closest one and its latest observation supplies the current temperature.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

import requests

from .config import GeoServicesConfig
from .exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

FORECAST_DAYS = 5
FORECAST_SCAN_PERIODS = 10


class WeatherUnavailableError(ExternalServiceError):
    """NWS does not cover the location or did not answer."""


@dataclass
class ForecastDay:
    day: str
    high: Optional[int]
    low: Optional[int]
    condition: str
    icon: str


@dataclass
class CurrentConditions:
    location: str
    temperature_f: Optional[int]
    condition: str
    lat: float
    lon: float
    forecast: List[ForecastDay] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class WeatherAlert:
    id: str
    event: str
    area: str
    headline: str
    severity: str
    urgency: str
    style: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def celsius_to_fahrenheit(value: Optional[float]) -> Optional[int]:
    if value is None:
        return None
    return round(value * 9 / 5 + 32)


def condition_icon(condition: str) -> str:
    """Icon name for a short forecast text."""
    lower = (condition or '').lower()
    if 'rain' in lower or 'shower' in lower:
        return 'cloud-rain'
    if 'cloud' in lower:
        return 'cloud'
    if 'clear' in lower or 'sunny' in lower:
        return 'sun'
    if 'wind' in lower:
        return 'wind'
    return 'cloud'


def alert_style(severity: Optional[str], urgency: Optional[str]) -> str:
    """Banner color for an alert: red for warnings, orange for watches, yellow for advisories."""
    if severity == 'Extreme' or urgency == 'Immediate':
        return 'red'
    if severity == 'Severe' or urgency == 'Expected':
        return 'orange'
    return 'yellow'


def build_daily_forecast(periods: List[Dict[str, Any]], days: int = FORECAST_DAYS) -> List[ForecastDay]:
    """Collapse NWS day/night periods into daily high/low entries.

    Each daytime period pairs with the period after it for the low. Only the
    first ten periods are scanned; the first daytime entry is labelled 'Today'.
    """
    forecast: List[ForecastDay] = []
    limit = min(FORECAST_SCAN_PERIODS, len(periods))
    i = 0
    while i < limit and len(forecast) < days:
        period = periods[i]
        if period.get('isDaytime'):
            next_period = periods[i + 1] if i + 1 < len(periods) else None
            condition = period.get('shortForecast', '')
            forecast.append(ForecastDay(
                day='Today' if i in (0, 1) else str(period.get('name', '')).split(' ')[0],
                high=period.get('temperature'),
                low=next_period.get('temperature') if next_period else period.get('temperature'),
                condition=condition,
                icon=condition_icon(condition),
            ))
            i += 1
        i += 1
    return forecast


class NWSClient:
    """Client for api.weather.gov."""

    def __init__(self, config: Optional[GeoServicesConfig] = None, session: Optional[requests.Session] = None,
                 timeout: float = 15.0):
        self.config = config or GeoServicesConfig()
        self.session = session or requests.Session()
        self.session.headers.update({
            'User-Agent': self.config.user_agent,
            'Accept': 'application/geo+json',
        })
        self.timeout = timeout

    def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise WeatherUnavailableError(f"Weather service unreachable: {e}")
        if not response.ok:
            raise WeatherUnavailableError(f"Weather service returned {response.status_code} for {url}")
        try:
            return response.json()
        except ValueError:
            raise WeatherUnavailableError(f"Weather service returned invalid JSON for {url}")

    def current_conditions(self, lat: float, lon: float, location_name: Optional[str] = None) -> CurrentConditions:
        """Current temperature, condition and 5-day forecast.

        Raises:
            WeatherUnavailableError: the location is outside NWS coverage or
                a required request failed.
        """
        base = self.config.nws_base_url.rstrip('/')
        points = self._get_json(f"{base}/points/{lat:.4f},{lon:.4f}").get('properties') or {}

        forecast_url = points.get('forecast')
        if not forecast_url:
            raise WeatherUnavailableError('Location not supported by NWS')

        periods = (self._get_json(forecast_url).get('properties') or {}).get('periods') or []
        if not periods:
            raise WeatherUnavailableError('No forecast periods returned')
        current_period = next((p for p in periods if p.get('isDaytime')), periods[0])

        observation = self._latest_observation(points.get('observationStations'))
        temperature = celsius_to_fahrenheit((observation.get('temperature') or {}).get('value'))
        if temperature is None:
            temperature = current_period.get('temperature')
        condition = observation.get('textDescription') or current_period.get('shortForecast', '')

        if not location_name:
            relative = (points.get('relativeLocation') or {}).get('properties') or {}
            location_name = f"{relative.get('city', 'Unknown')}, {relative.get('state', '')}".rstrip(', ')

        return CurrentConditions(
            location=location_name,
            temperature_f=temperature,
            condition=condition,
            lat=lat,
            lon=lon,
            forecast=build_daily_forecast(periods),
        )

    def _latest_observation(self, stations_url: Optional[str]) -> Dict[str, Any]:
        # Observations are optional; the forecast fills in when they are missing
        if not stations_url:
            return {}
        try:
            features = self._get_json(stations_url).get('features') or []
            if not features:
                return {}
            station = features[0]['id']
            return self._get_json(f"{station}/observations/latest").get('properties') or {}
        except (WeatherUnavailableError, KeyError, TypeError) as e:
            logger.warning(f"No latest observation from {stations_url}: {e}")
            return {}

    def active_alerts(self, lat: float, lon: float) -> List[WeatherAlert]:
        """Active alerts covering a point, with a banner style per alert."""
        base = self.config.nws_base_url.rstrip('/')
        data = self._get_json(f"{base}/alerts/active", params={'point': f"{lat},{lon}"})

        alerts = []
        for feature in data.get('features') or []:
            props = feature.get('properties') or {}
            alerts.append(WeatherAlert(
                id=feature.get('id') or props.get('id', ''),
                event=props.get('event', ''),
                area=props.get('areaDesc', ''),
                headline=props.get('headline') or '',
                severity=props.get('severity', 'Unknown'),
                urgency=props.get('urgency', 'Unknown'),
                style=alert_style(props.get('severity'), props.get('urgency')),
            ))
        logger.debug(f"{len(alerts)} active alerts for {lat}, {lon}")
        return alerts
