"""
OneSignal push provider client and the process-wide push subsystem.

The subsystem is initialized once per process. init_push() is safe to call
repeatedly and from several threads; only the first call builds the client.
teardown_push() closes the client and allows a fresh init_push().
"""

import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

import requests

from ..config import PushConfig
from ..exceptions import ExternalServiceError

logger = logging.getLogger(__name__)


class PushProviderError(ExternalServiceError):
    """The push provider is unusable (missing credentials, not initialized)."""


class OneSignalClient:
    """Minimal OneSignal REST client for broadcast notifications."""

    def __init__(self, config: PushConfig, session: Optional[requests.Session] = None, timeout: float = 15.0):
        self.config = config
        self.session = session or requests.Session()
        self.timeout = timeout

    def build_payload(self, title: str, message: str, url: str, segments: List[str]) -> Dict[str, Any]:
        return {
            'app_id': self.config.onesignal_app_id,
            'headings': {'en': title},
            'contents': {'en': message},
            'url': url,
            'included_segments': segments,
        }

    def send(self, title: str, message: str, url: str, segments: List[str]) -> Tuple[int, Dict[str, Any]]:
        """Send a notification; returns the provider's (status code, JSON body)."""
        if not (self.config.onesignal_app_id and self.config.onesignal_rest_api_key):
            raise PushProviderError('OneSignal credentials are not configured')

        headers = {
            'Content-Type': 'application/json',
            'Authorization': f'Basic {self.config.onesignal_rest_api_key}',
        }
        response = self.session.post(
            self.config.onesignal_api_url,
            json=self.build_payload(title, message, url, segments),
            headers=headers,
            timeout=self.timeout,
        )

        try:
            body = response.json()
        except ValueError:
            body = {'raw': response.text}

        if response.ok:
            logger.info(f"Notification '{title}' accepted by OneSignal: {body.get('id')}")
        else:
            logger.warning(f"OneSignal rejected notification '{title}' ({response.status_code}): {body}")
        return response.status_code, body

    def close(self):
        self.session.close()


_push_lock = threading.Lock()
_push_client: Optional[OneSignalClient] = None


def init_push(config: PushConfig, session: Optional[requests.Session] = None,
              timeout: float = 15.0) -> OneSignalClient:
    """Initialize the push subsystem once; later calls return the same client."""
    global _push_client
    with _push_lock:
        if _push_client is None:
            _push_client = OneSignalClient(config, session=session, timeout=timeout)
            logger.info("Push notification subsystem initialized")
        return _push_client


def get_push_client() -> OneSignalClient:
    with _push_lock:
        if _push_client is None:
            raise PushProviderError('Push notifications are not initialized')
        return _push_client


def is_push_initialized() -> bool:
    with _push_lock:
        return _push_client is not None


def teardown_push():
    """Close the shared client; a later init_push() starts over."""
    global _push_client
    with _push_lock:
        if _push_client is not None:
            _push_client.close()
            _push_client = None
            logger.info("Push notification subsystem shut down")
