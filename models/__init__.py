"""
Data models for the cookie consent service.
"""

from .cookies import (
    ANONYMOUS_USER_ID,
    CookieCategory,
    ConsentState,
    CookieSettings,
    CookieSettingsPayload,
    CookieResponse,
    CookieListResponse,
    default_settings,
    settings_for,
)

__all__ = [
    'ANONYMOUS_USER_ID',
    'CookieCategory',
    'ConsentState',
    'CookieSettings',
    'CookieSettingsPayload',
    'CookieResponse',
    'CookieListResponse',
    'default_settings',
    'settings_for',
]
