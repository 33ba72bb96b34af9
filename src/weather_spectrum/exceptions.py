"""
Error types shared across the site and the notification relay.
"""

from enum import Enum
from typing import Optional


class ErrorType(Enum):
    """Categories of failures."""
    VALIDATION_ERROR = "validation_error"
    EXTERNAL_ERROR = "external_error"
    NOT_FOUND_ERROR = "not_found_error"
    AUTHENTICATION_ERROR = "authentication_error"
    INTERNAL_ERROR = "internal_error"


class WeatherSpectrumError(Exception):
    """Base exception for The Weather Spectrum."""
    error_type = ErrorType.INTERNAL_ERROR
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {'error': self.message, 'type': self.error_type.value}


class ValidationError(WeatherSpectrumError):
    """User input failed validation."""
    error_type = ErrorType.VALIDATION_ERROR
    status_code = 400


class AuthenticationError(WeatherSpectrumError):
    """Missing or invalid credentials."""
    error_type = ErrorType.AUTHENTICATION_ERROR
    status_code = 401


class NotFoundError(WeatherSpectrumError):
    """Requested item does not exist."""
    error_type = ErrorType.NOT_FOUND_ERROR
    status_code = 404


class ExternalServiceError(WeatherSpectrumError):
    """An upstream API failed or returned unusable data."""
    error_type = ErrorType.EXTERNAL_ERROR
    status_code = 502
