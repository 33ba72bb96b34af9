"""
Notification relay package.

Flask app that forwards admin broadcasts to OneSignal and serves census
lookups, plus the process-wide push subsystem.
"""

from .app import create_relay_app
from .onesignal import (
    OneSignalClient,
    PushProviderError,
    init_push,
    get_push_client,
    is_push_initialized,
    teardown_push,
)

__all__ = [
    'create_relay_app',
    'OneSignalClient',
    'PushProviderError',
    'init_push',
    'get_push_client',
    'is_push_initialized',
    'teardown_push',
]
