"""
Consent client: local-first cookie consent state with best-effort sync to
the preference service.
"""

from consent.api_client import PreferenceApiClient, PreferenceApiError
from consent.cookies import ConsentCookieJar
from consent.events import ChangeReason, ConsentChange, ConsentChannel
from consent.manager import ConsentManager, SaveResult
from consent.storage import (
    JsonFileStorage,
    LocalStorage,
    MemoryStorage,
    SharedStorageArea,
    StorageEvent,
    mark_onboarded,
)

__all__ = [
    "PreferenceApiClient",
    "PreferenceApiError",
    "ConsentCookieJar",
    "ChangeReason",
    "ConsentChange",
    "ConsentChannel",
    "ConsentManager",
    "SaveResult",
    "JsonFileStorage",
    "LocalStorage",
    "MemoryStorage",
    "SharedStorageArea",
    "StorageEvent",
    "mark_onboarded",
]
