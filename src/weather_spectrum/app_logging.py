"""Logging setup shared by the site and the relay apps."""

import logging
from logging.handlers import RotatingFileHandler

from flask import Flask

from .config import SystemConfig

LOG_FORMAT = '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'


def configure_logging(app: Flask, config: SystemConfig, name: str = 'Weather Spectrum'):
    """Attach a rotating file handler outside debug/testing and set levels."""
    level = getattr(logging, str(config.log_level).upper(), logging.INFO)

    package_logger = logging.getLogger('weather_spectrum')
    package_logger.setLevel(level)

    if not app.debug and not app.testing:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        log_path = str(config.log_file.resolve())
        handler = next((h for h in package_logger.handlers
                        if isinstance(h, RotatingFileHandler) and h.baseFilename == log_path), None)
        if handler is None:
            handler = RotatingFileHandler(log_path, maxBytes=1_000_000, backupCount=3)
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            handler.setLevel(level)
            package_logger.addHandler(handler)
        app.logger.addHandler(handler)

    app.logger.setLevel(level)
    app.logger.info(f'{name} startup ({config.environment})')
