"""
Admin notification panel: login, quick templates and broadcasts.

The admin password lives only in server configuration. A successful login
stores an expiry time in the signed Flask session cookie; the password itself
never leaves the server. Broadcasts are forwarded to the notification relay
with the relay API key.
"""

import hmac
import logging
import time
from dataclasses import dataclass, asdict
from functools import wraps
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests
from flask import session

from .config import AdminConfig, PushConfig
from .exceptions import AuthenticationError, ExternalServiceError, ValidationError

logger = logging.getLogger(__name__)

SESSION_KEY = 'admin_expires_at'


@dataclass(frozen=True)
class NotificationTemplate:
    label: str
    title: str
    message: str
    color: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


QUICK_TEMPLATES: List[NotificationTemplate] = [
    NotificationTemplate(
        'Severe Weather', '⚠️ Severe Weather Alert',
        'Severe thunderstorm warning issued for your area. Seek shelter immediately.', 'red',
    ),
    NotificationTemplate(
        'Tornado', '🌪️ Tornado Warning',
        'TORNADO WARNING! Take shelter now in lowest floor interior room.', 'purple',
    ),
    NotificationTemplate(
        'Daily Forecast', "☀️ Today's Weather",
        'Good morning! Today will be sunny with highs in the mid-70s.', 'blue',
    ),
    NotificationTemplate(
        'Special Event', '✨ Rare Weather Event',
        'Aurora borealis may be visible tonight! Check the sky after 10 PM.', 'yellow',
    ),
]


def verify_password(config: AdminConfig, candidate: Optional[str]) -> bool:
    """Constant-time comparison against the configured admin password."""
    if not config.password or not isinstance(candidate, str) or not candidate:
        return False
    return hmac.compare_digest(candidate.encode('utf-8'), config.password.encode('utf-8'))


class AdminSessions:
    """Login state kept in the signed session cookie."""

    def __init__(self, config: AdminConfig, clock: Callable[[], float] = time.time):
        self.config = config
        self.clock = clock

    def login(self, password: Optional[str]) -> float:
        """Start an admin session; returns its expiry as a UNIX timestamp.

        Raises:
            AuthenticationError: wrong or missing password.
        """
        if not verify_password(self.config, password):
            logger.warning("Failed admin login attempt")
            raise AuthenticationError('Invalid password')

        expires_at = self.clock() + self.config.session_lifetime_minutes * 60
        session[SESSION_KEY] = expires_at
        session.permanent = True
        logger.info("Admin logged in")
        return expires_at

    def logout(self):
        session.pop(SESSION_KEY, None)

    def is_authenticated(self) -> bool:
        expires_at = session.get(SESSION_KEY)
        if expires_at is None:
            return False
        if self.clock() >= expires_at:
            session.pop(SESSION_KEY, None)
            return False
        return True

    def require(self, f):
        """Decorator rejecting requests without a live admin session."""
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not self.is_authenticated():
                raise AuthenticationError('Not authenticated')
            return f(*args, **kwargs)
        return decorated_function


class NotificationBroadcaster:
    """Sends admin broadcasts through the notification relay."""

    def __init__(self, config: PushConfig, site_url: str, session: Optional[requests.Session] = None,
                 timeout: float = 15.0):
        self.config = config
        self.site_url = site_url
        self.session = session or requests.Session()
        self.timeout = timeout

    def broadcast(self, title: str, message: str, url: Optional[str] = None) -> Tuple[int, Dict[str, Any]]:
        """Relay a notification; returns the relay's (status code, JSON body).

        Raises:
            ValidationError: title or message is blank or not text.
            ExternalServiceError: the relay could not be reached.
        """
        if not isinstance(title or '', str) or not isinstance(message or '', str):
            raise ValidationError('Title and message must be text')
        title = (title or '').strip()
        message = (message or '').strip()
        if not title or not message:
            raise ValidationError('Title and message are required')

        headers = {'Content-Type': 'application/json'}
        if self.config.relay_api_key:
            headers['Authorization'] = f'Bearer {self.config.relay_api_key}'

        payload = {'title': title, 'message': message, 'url': url or self.site_url}
        try:
            response = self.session.post(
                f"{self.config.relay_url.rstrip('/')}/send-notification",
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Notification relay unreachable: {e}")
            raise ExternalServiceError(f"Notification relay unreachable: {e}")

        try:
            body = response.json()
        except ValueError:
            body = {'error': response.text or 'Failed to send notification'}

        logger.info(f"Broadcast '{title}' relayed with status {response.status_code}")
        return response.status_code, body
