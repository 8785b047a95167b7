"""
Access to the ``SECURE_CHANNEL`` settings dict with defaults.

Settings are looked up on every call so tests can use
``override_settings`` without restarting anything.
"""
from __future__ import annotations

from typing import Any

from django.conf import settings

DEFAULTS: dict[str, Any] = {
    'DH_PRIME': 23,
    'DH_GENERATOR': 5,
    'SESSION_STORE': 'securelink.services.sessions.InMemorySessionStore',
    'SESSION_TTL': 1800,
    'STRICT': False,
    'ENDPOINTS': {},
    'CLIENT_TIMEOUT': 10,
}

SESSION_HEADER = 'session-id'
DEFAULT_SESSION_ID = 'default'


def secure_setting(name: str) -> Any:
    if name not in DEFAULTS:
        raise KeyError(f'Unknown SECURE_CHANNEL setting: {name}')
    configured = getattr(settings, 'SECURE_CHANNEL', None) or {}
    return configured.get(name, DEFAULTS[name])
