"""
Sentry error tracking configuration.
"""

import logging
from typing import Optional

import sentry_sdk
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.redis import RedisIntegration

logger = logging.getLogger(__name__)

_SCRUBBED_HEADERS = ('cookie', 'set-cookie', 'authorization')


def init_sentry(
    dsn: Optional[str],
    environment: str = 'development',
    release: Optional[str] = None,
    traces_sample_rate: float = 0.1
) -> bool:
    """
    Initialize Sentry error tracking.

    Args:
        dsn: Sentry DSN (Data Source Name)
        environment: Environment name (development, staging, production)
        release: Release version
        traces_sample_rate: Percentage of transactions to trace (0.0 to 1.0)

    Returns:
        True if Sentry was initialized
    """
    if not dsn:
        logger.info("Sentry DSN not configured, error tracking disabled")
        return False

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        release=release,
        traces_sample_rate=traces_sample_rate,
        integrations=[
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
            AsyncioIntegration(),
            RedisIntegration(),
        ],
        send_default_pii=False,
        attach_stacktrace=True,
        before_send=before_send_filter,
    )

    logger.info(f"Sentry initialized: environment={environment}, traces_sample_rate={traces_sample_rate}")
    return True


def before_send_filter(event, hint):
    """
    Drop expected not-found errors and scrub cookie headers.

    Consent records are keyed by user id and cookie headers carry the
    consent cookies themselves, so neither leaves the process.
    """
    exc_info = hint.get('exc_info') if hint else None
    if exc_info:
        exc_value = exc_info[1]
        if getattr(exc_value, 'status_code', None) == 404:
            return None

    request = event.get('request')
    if request:
        headers = request.get('headers') or {}
        for name in list(headers):
            if name.lower() in _SCRUBBED_HEADERS:
                headers[name] = '[Filtered]'
        if 'cookies' in request:
            request['cookies'] = '[Filtered]'

    return event
