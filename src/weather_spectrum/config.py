"""
Configuration management for The Weather Spectrum.

This module handles environment variables, external service endpoints and
credentials for both the public site and the notification relay.
"""

import os
import logging
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field
from pathlib import Path
import json

logger = logging.getLogger(__name__)

ENRICHMENT_MODES = ('direct', 'relay')


@dataclass
class FeedConfig:
    """Configuration for the SPC storm report feed."""
    base_url: str = "https://www.spc.noaa.gov/climo/reports"
    earliest_date: str = "2012-01-01"
    radius_miles: float = 50.0

    # Default map center (Fort Worth, TX)
    default_lat: float = 32.7555
    default_lon: float = -97.3308


@dataclass
class GeoServicesConfig:
    """Configuration for geocoding, census and weather services."""
    zippopotam_base_url: str = "https://api.zippopotam.us/us"
    nominatim_base_url: str = "https://nominatim.openstreetmap.org"
    census_base_url: str = "https://api.census.gov/data/2020/dec/pl"
    census_api_key: Optional[str] = None
    nws_base_url: str = "https://api.weather.gov"
    windy_base_url: str = "https://api.windy.com/api/webcams/v2"
    windy_api_key: Optional[str] = None
    user_agent: str = "TheWeatherSpectrum/1.0 (theweatherspectrum.com)"

    # Enrichment: call the census chain directly or through the relay
    enrichment_mode: str = "direct"


@dataclass
class PushConfig:
    """Configuration for the push notification provider and relay."""
    onesignal_app_id: Optional[str] = None
    onesignal_rest_api_key: Optional[str] = None
    onesignal_api_url: str = "https://onesignal.com/api/v1/notifications"
    default_segments: List[str] = field(default_factory=lambda: ['Subscribed Users'])

    relay_url: str = "http://127.0.0.1:8787"
    relay_api_key: Optional[str] = None


@dataclass
class AdminConfig:
    """Admin panel configuration."""
    password: Optional[str] = None
    session_lifetime_minutes: int = 60


@dataclass
class SystemConfig:
    """Main system configuration."""
    feed: FeedConfig = field(default_factory=FeedConfig)
    geo: GeoServicesConfig = field(default_factory=GeoServicesConfig)
    push: PushConfig = field(default_factory=PushConfig)
    admin: AdminConfig = field(default_factory=AdminConfig)

    # System-wide settings
    debug: bool = False
    environment: str = "development"
    version: str = "1.0.0"
    site_url: str = "https://theweatherspectrum.com"
    http_timeout: float = 15.0

    # Logging
    log_level: str = "INFO"
    log_file: Path = field(default_factory=lambda: Path("logs/weather_spectrum.log"))

    # Security
    secret_key: Optional[str] = None
    enable_cors: bool = True


class ConfigManager:
    """Configuration manager for handling environment variables and settings."""

    def __init__(self, config_file: Optional[Path] = None, environ: Optional[Dict[str, str]] = None):
        self.config_file = config_file or Path(os.getenv('WEATHER_SPECTRUM_CONFIG', 'weather_spectrum.json'))
        self.environ = os.environ if environ is None else environ
        self.config = SystemConfig()
        self._load_config()

    def _load_config(self):
        """Load configuration from config file and environment variables."""
        if self.config_file.exists():
            try:
                with open(self.config_file, 'r') as f:
                    config_data = json.load(f)
                self._update_config_from_dict(config_data)
                logger.info(f"Loaded configuration from {self.config_file}")
            except (OSError, ValueError) as e:
                logger.warning(f"Failed to load config file: {e}")

        # Environment wins over the file
        self._load_from_environment()

        self._validate_config()

    def _update_config_from_dict(self, config_data: Dict[str, Any]):
        """Update configuration from dictionary."""
        sections = {
            'feed': self.config.feed,
            'geo': self.config.geo,
            'push': self.config.push,
            'admin': self.config.admin,
        }
        for name, section in sections.items():
            for key, value in config_data.get(name, {}).items():
                if hasattr(section, key):
                    setattr(section, key, value)
                else:
                    logger.warning(f"Ignoring unknown config key {name}.{key}")

        sys_data = config_data.get('system', {})
        self.config.debug = sys_data.get('debug', self.config.debug)
        self.config.environment = sys_data.get('environment', self.config.environment)
        self.config.log_level = sys_data.get('log_level', self.config.log_level)
        self.config.site_url = sys_data.get('site_url', self.config.site_url)
        self.config.http_timeout = float(sys_data.get('http_timeout', self.config.http_timeout))

    def _env(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.environ.get(name, default)

    def _load_from_environment(self):
        """Load configuration from environment variables."""
        # Push provider
        self.config.push.onesignal_app_id = self._env('ONESIGNAL_APP_ID', self.config.push.onesignal_app_id)
        self.config.push.onesignal_rest_api_key = self._env('ONESIGNAL_REST_API_KEY', self.config.push.onesignal_rest_api_key)
        self.config.push.relay_url = self._env('RELAY_URL', self.config.push.relay_url)
        self.config.push.relay_api_key = self._env('RELAY_API_KEY', self.config.push.relay_api_key)

        # Geo services
        self.config.geo.census_api_key = self._env('CENSUS_API_KEY', self.config.geo.census_api_key)
        self.config.geo.windy_api_key = self._env('WINDY_API_KEY', self.config.geo.windy_api_key)
        self.config.geo.nominatim_base_url = self._env('NOMINATIM_BASE_URL', self.config.geo.nominatim_base_url)
        self.config.geo.enrichment_mode = self._env('ENRICHMENT_MODE', self.config.geo.enrichment_mode).lower()

        # Admin
        self.config.admin.password = self._env('ADMIN_PASSWORD', self.config.admin.password)
        self.config.admin.session_lifetime_minutes = int(
            self._env('ADMIN_SESSION_MINUTES', str(self.config.admin.session_lifetime_minutes))
        )

        # System Configuration
        self.config.debug = self._env('DEBUG', str(self.config.debug)).lower() == 'true'
        self.config.environment = self._env('ENVIRONMENT', self.config.environment)
        self.config.log_level = self._env('LOG_LEVEL', self.config.log_level)
        self.config.secret_key = self._env('SECRET_KEY', self.config.secret_key)
        self.config.site_url = self._env('SITE_URL', self.config.site_url)
        self.config.http_timeout = float(self._env('HTTP_TIMEOUT', str(self.config.http_timeout)))

    def _validate_config(self):
        """Validate configuration settings."""
        errors = []

        if self.config.geo.enrichment_mode not in ENRICHMENT_MODES:
            errors.append(f"ENRICHMENT_MODE must be one of {', '.join(ENRICHMENT_MODES)}")

        if self.config.http_timeout <= 0:
            errors.append("HTTP timeout must be positive")

        if self.config.feed.radius_miles <= 0:
            errors.append("Feed radius_miles must be positive")

        if self.config.admin.session_lifetime_minutes <= 0:
            errors.append("Admin session lifetime must be positive")

        if not (-90 <= self.config.feed.default_lat <= 90):
            errors.append("Invalid default_lat")

        if not (-180 <= self.config.feed.default_lon <= 180):
            errors.append("Invalid default_lon")

        if self.config.environment == 'production':
            if not self.config.secret_key:
                errors.append("SECRET_KEY is required in production environment")
            if not self.config.admin.password:
                errors.append("ADMIN_PASSWORD is required in production environment")
            if not (self.config.push.onesignal_app_id and self.config.push.onesignal_rest_api_key):
                errors.append("OneSignal credentials are required in production environment")

        if errors:
            raise ValueError(f"Configuration validation failed: {'; '.join(errors)}")

        logger.info("Configuration validation passed")

    def get_system_config(self) -> SystemConfig:
        """Get system configuration."""
        return self.config

    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.config.environment == 'production'


def get_config() -> SystemConfig:
    """Get global configuration instance."""
    if not hasattr(get_config, '_instance'):
        get_config._instance = ConfigManager()
    return get_config._instance.get_system_config()


def reset_config():
    """Drop the cached configuration so the next get_config() reloads it."""
    if hasattr(get_config, '_instance'):
        del get_config._instance


def get_push_config() -> PushConfig:
    """Get push notification configuration."""
    return get_config().push


def get_geo_config() -> GeoServicesConfig:
    """Get geo services configuration."""
    return get_config().geo
