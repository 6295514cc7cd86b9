"""
Browser cookies that reflect the active consent decision.
"""

import logging
from http.cookies import SimpleCookie
from typing import List, Optional

from models.cookies import CookieSettings

logger = logging.getLogger(__name__)

SESSION_COOKIE = "session_id"
ANALYTICS_COOKIE = "analytics_enabled"
PREFERENCES_COOKIE = "preferences_enabled"

CONSENT_COOKIE_MAX_AGE_DAYS = 365
_EXPIRED = "Thu, 01 Jan 1970 00:00:00 GMT"


class ConsentCookieJar:
    """
    Applies a consent decision to a cookie jar.

    The essential session cookie is always present. Each optional category
    has a marker cookie that exists only while the category is allowed;
    revoking a category expires its cookie.
    """

    def __init__(self, jar: Optional[SimpleCookie] = None, days: int = CONSENT_COOKIE_MAX_AGE_DAYS):
        self.jar = jar if jar is not None else SimpleCookie()
        self.days = days

    def _set(self, name: str, value: str) -> None:
        self.jar[name] = value
        morsel = self.jar[name]
        morsel["path"] = "/"
        morsel["max-age"] = self.days * 24 * 60 * 60
        morsel["samesite"] = "Lax"
        morsel["expires"] = ""

    def _expire(self, name: str) -> None:
        self.jar[name] = ""
        morsel = self.jar[name]
        morsel["path"] = "/"
        morsel["expires"] = _EXPIRED
        morsel["max-age"] = ""

    def apply(self, settings: CookieSettings) -> None:
        """Set or expire cookies so they match ``settings``."""
        self._set(SESSION_COOKIE, "essential")

        if settings.analytics:
            self._set(ANALYTICS_COOKIE, "true")
        else:
            self._expire(ANALYTICS_COOKIE)

        if settings.preferences:
            self._set(PREFERENCES_COOKIE, "true")
        else:
            self._expire(PREFERENCES_COOKIE)

        logger.debug(
            f"Applied consent cookies (analytics={settings.analytics}, preferences={settings.preferences})"
        )

    def clear_optional(self) -> None:
        """Expire every optional-category cookie."""
        self._expire(ANALYTICS_COOKIE)
        self._expire(PREFERENCES_COOKIE)

    def is_set(self, name: str) -> bool:
        """True if ``name`` is present and not expired."""
        morsel = self.jar.get(name)
        return morsel is not None and morsel.value != "" and morsel["expires"] != _EXPIRED

    def header_values(self) -> List[str]:
        """Render each cookie as a ``Set-Cookie`` header value."""
        return [morsel.OutputString() for morsel in self.jar.values()]
