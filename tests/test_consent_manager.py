"""
Tests for the local-first consent manager.

The manager talks to the real FastAPI app through ``ASGITransport``; failure
cases use ``httpx.MockTransport``.
"""

import json
from typing import List

import httpx
import pytest

from consent.api_client import PreferenceApiClient
from consent.cookies import ANALYTICS_COOKIE, PREFERENCES_COOKIE, SESSION_COOKIE, ConsentCookieJar
from consent.events import ChangeReason, ConsentChange
from consent.manager import ConsentManager
from consent.storage import (
    CONSENT_KEY,
    SETTINGS_KEY,
    USER_ID_KEY,
    JsonFileStorage,
    MemoryStorage,
    mark_onboarded,
)
from models.cookies import ANONYMOUS_USER_ID, ConsentState, CookieCategory, CookieSettings


def failing_client(requests: List[httpx.Request]) -> PreferenceApiClient:
    """API client whose every request fails to connect."""
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    return PreferenceApiClient("http://test", transport=httpx.MockTransport(handler))


def stored_settings(storage: MemoryStorage) -> dict:
    return json.loads(storage.get_item(SETTINGS_KEY))


# ============================================================================
# Save
# ============================================================================

@pytest.mark.asyncio
async def test_fresh_reject_all(manager: ConsentManager, storage: MemoryStorage, store):
    result = await manager.reject_all()

    assert manager.consent is ConsentState.ESSENTIAL
    assert manager.settings.analytics is False
    assert manager.settings.preferences is False
    assert storage.get_item(CONSENT_KEY) == "essential"
    assert stored_settings(storage) == {"essential": True, "analytics": False, "preferences": False}

    assert result.synced is True
    assert store.get(ANONYMOUS_USER_ID).analytics is False


@pytest.mark.asyncio
async def test_fresh_accept_all(manager: ConsentManager, storage: MemoryStorage):
    result = await manager.accept_all()

    assert result.consent is ConsentState.ALL
    assert manager.consent is ConsentState.ALL
    assert manager.settings.essential is True
    assert manager.settings.analytics is True
    assert manager.settings.preferences is True
    assert storage.get_item(CONSENT_KEY) == "all"


@pytest.mark.asyncio
async def test_custom_save_is_pushed_for_onboarded_user(manager: ConsentManager, storage: MemoryStorage, store):
    mark_onboarded(storage, "learner-1", {"name": "Ada"})

    result = await manager.save_custom(CookieSettings(analytics=False, preferences=True))

    assert result.consent is ConsentState.CUSTOM
    assert result.synced is True
    remote = store.get("learner-1")
    assert remote.essential is True
    assert remote.analytics is False
    assert remote.preferences is True


@pytest.mark.asyncio
async def test_save_forces_essential(manager: ConsentManager):
    await manager.save_preferences(ConsentState.CUSTOM, CookieSettings(essential=False, analytics=True))
    assert manager.settings.essential is True


@pytest.mark.asyncio
async def test_remote_failure_keeps_local_decision(storage: MemoryStorage):
    requests = []
    manager = ConsentManager(storage, api_client=failing_client(requests))

    result = await manager.accept_all()

    assert len(requests) == 1
    assert result.synced is False
    assert manager.consent is ConsentState.ALL
    assert storage.get_item(CONSENT_KEY) == "all"
    assert manager.is_allowed(CookieCategory.ANALYTICS) is True


@pytest.mark.asyncio
async def test_remote_error_status_keeps_local_decision(storage: MemoryStorage):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"success": False, "message": "boom"})

    api = PreferenceApiClient("http://test", transport=httpx.MockTransport(handler))
    manager = ConsentManager(storage, api_client=api)

    result = await manager.reject_all()

    assert result.synced is False
    assert manager.consent is ConsentState.ESSENTIAL


@pytest.mark.asyncio
async def test_unwritable_local_storage_keeps_decision_in_memory(tmp_path):
    (tmp_path / "blocker").write_text("not a directory")
    requests = []
    storage = JsonFileStorage(tmp_path / "blocker" / "storage.json")
    manager = ConsentManager(storage, api_client=failing_client(requests))

    result = await manager.accept_all()

    assert result.consent is ConsentState.ALL
    assert manager.consent is ConsentState.ALL
    assert manager.is_allowed(CookieCategory.ANALYTICS) is True
    assert len(requests) == 1

    await manager.reset_preferences()
    assert manager.consent is None


@pytest.mark.asyncio
async def test_save_without_api_client_is_local_only(storage: MemoryStorage):
    manager = ConsentManager(storage)

    result = await manager.accept_all()

    assert result.synced is False
    assert manager.consent is ConsentState.ALL


@pytest.mark.asyncio
async def test_save_publishes_change(manager: ConsentManager, channel):
    changes: List[ConsentChange] = []
    channel.subscribe(changes.append)

    await manager.accept_all()

    assert len(changes) == 1
    assert changes[0].reason is ChangeReason.SAVED
    assert changes[0].consent is ConsentState.ALL
    assert changes[0].settings.analytics is True


# ============================================================================
# Load
# ============================================================================

@pytest.mark.asyncio
async def test_load_prefers_local_storage_without_network(storage: MemoryStorage):
    requests = []
    storage.set_item(USER_ID_KEY, "learner-1")
    storage.set_item(CONSENT_KEY, "custom")
    storage.set_item(SETTINGS_KEY, json.dumps({"essential": True, "analytics": True, "preferences": False}))
    manager = ConsentManager(storage, api_client=failing_client(requests))

    consent = await manager.load_preferences()

    assert requests == []
    assert consent is ConsentState.CUSTOM
    assert manager.settings.analytics is True
    assert manager.settings.preferences is False


@pytest.mark.asyncio
async def test_load_adopts_remote_record(manager: ConsentManager, storage: MemoryStorage, api_client):
    await api_client.save(CookieSettings(analytics=True, preferences=True, user_id="learner-1"))
    storage.set_item(USER_ID_KEY, "learner-1")

    consent = await manager.load_preferences()

    assert consent is ConsentState.CUSTOM
    assert manager.settings.analytics is True
    assert manager.settings.preferences is True
    assert storage.get_item(CONSENT_KEY) == "custom"
    assert stored_settings(storage) == {"essential": True, "analytics": True, "preferences": True}


@pytest.mark.asyncio
async def test_load_without_user_id_stays_undecided(manager: ConsentManager):
    assert await manager.load_preferences() is None
    assert manager.consent is None
    assert manager.settings.analytics is False


@pytest.mark.asyncio
async def test_load_with_unknown_remote_user(manager: ConsentManager, storage: MemoryStorage):
    storage.set_item(USER_ID_KEY, "nobody")

    assert await manager.load_preferences() is None
    assert storage.get_item(CONSENT_KEY) is None


@pytest.mark.asyncio
async def test_load_remote_failure_stays_at_defaults(storage: MemoryStorage):
    requests = []
    storage.set_item(USER_ID_KEY, "learner-1")
    manager = ConsentManager(storage, api_client=failing_client(requests))

    assert await manager.load_preferences() is None
    assert len(requests) == 1
    assert manager.is_allowed(CookieCategory.ESSENTIAL) is False


@pytest.mark.asyncio
async def test_local_decision_during_fetch_wins(storage: MemoryStorage):
    def handler(request: httpx.Request) -> httpx.Response:
        # The visitor rejects everything while the fetch is in flight.
        storage.set_item(CONSENT_KEY, "essential")
        storage.set_item(SETTINGS_KEY, json.dumps({"essential": True, "analytics": False, "preferences": False}))
        return httpx.Response(200, json={
            "success": True,
            "data": {"essential": True, "analytics": True, "preferences": True, "userId": "learner-1"}
        })

    storage.set_item(USER_ID_KEY, "learner-1")
    api = PreferenceApiClient("http://test", transport=httpx.MockTransport(handler))
    manager = ConsentManager(storage, api_client=api)

    assert await manager.load_preferences() is ConsentState.ESSENTIAL

    assert manager.settings.analytics is False
    assert storage.get_item(CONSENT_KEY) == "essential"
    assert stored_settings(storage)["analytics"] is False


@pytest.mark.asyncio
@pytest.mark.parametrize("consent,settings", [
    ("custom", "{not json"),
    ("custom", "[1, 2]"),
    ("maybe", json.dumps({"essential": True, "analytics": True, "preferences": True})),
])
async def test_malformed_local_storage_is_discarded(storage: MemoryStorage, consent, settings):
    storage.set_item(CONSENT_KEY, consent)
    storage.set_item(SETTINGS_KEY, settings)
    manager = ConsentManager(storage)

    assert await manager.load_preferences() is None
    assert manager.settings.analytics is False
    assert storage.get_item(CONSENT_KEY) is None
    assert storage.get_item(SETTINGS_KEY) is None


# ============================================================================
# Reset
# ============================================================================

@pytest.mark.asyncio
async def test_reset_clears_everything(manager: ConsentManager, storage: MemoryStorage, store, channel):
    mark_onboarded(storage, "learner-1")
    await manager.accept_all()
    changes: List[ConsentChange] = []
    channel.subscribe(changes.append)

    remote_deleted = await manager.reset_preferences()

    assert remote_deleted is True
    assert store.get("learner-1") is None
    assert manager.consent is None
    assert manager.settings.analytics is False
    assert storage.get_item(CONSENT_KEY) is None
    assert storage.get_item(SETTINGS_KEY) is None
    assert [change.reason for change in changes] == [ChangeReason.RESET]


@pytest.mark.asyncio
async def test_reset_without_user_id_clears_local(manager: ConsentManager, storage: MemoryStorage):
    await manager.reject_all()

    assert await manager.reset_preferences() is False
    assert storage.get_item(CONSENT_KEY) is None
    assert manager.consent is None


@pytest.mark.asyncio
async def test_reset_remote_failure_still_clears_local(storage: MemoryStorage):
    requests = []
    mark_onboarded(storage, "learner-1")
    manager = ConsentManager(storage, api_client=failing_client(requests))
    await manager.accept_all()

    assert await manager.reset_preferences() is False
    assert manager.consent is None
    assert storage.get_item(CONSENT_KEY) is None


# ============================================================================
# is_allowed / banner
# ============================================================================

@pytest.mark.asyncio
async def test_is_allowed_requires_decision(manager: ConsentManager):
    assert manager.is_allowed(CookieCategory.ESSENTIAL) is False

    # A granted flag without a recorded decision still allows nothing.
    manager._settings = CookieSettings(analytics=True, preferences=True)
    assert manager.is_allowed(CookieCategory.ANALYTICS) is False

    await manager.reject_all()
    assert manager.is_allowed("essential") is True
    assert manager.is_allowed("analytics") is False
    assert manager.is_allowed("preferences") is False


@pytest.mark.asyncio
async def test_is_allowed_mirrors_custom_flags(manager: ConsentManager):
    await manager.save_custom(CookieSettings(analytics=True, preferences=False))

    assert manager.is_allowed(CookieCategory.ANALYTICS) is True
    assert manager.is_allowed(CookieCategory.PREFERENCES) is False


@pytest.mark.asyncio
async def test_unknown_category_is_not_allowed(manager: ConsentManager):
    await manager.accept_all()

    assert manager.is_allowed("bogus") is False
    assert manager.is_allowed("") is False


@pytest.mark.asyncio
async def test_banner_requires_onboarding_and_no_decision(manager: ConsentManager, storage: MemoryStorage):
    assert manager.should_show_banner() is False

    mark_onboarded(storage, "learner-1")
    assert manager.should_show_banner() is True

    await manager.reject_all()
    assert manager.should_show_banner() is False

    await manager.reset_preferences()
    assert manager.should_show_banner() is True


# ============================================================================
# Cookies
# ============================================================================

@pytest.mark.asyncio
async def test_cookie_jar_follows_decision(storage: MemoryStorage):
    jar = ConsentCookieJar()
    manager = ConsentManager(storage, cookie_jar=jar)

    await manager.save_custom(CookieSettings(analytics=True, preferences=False))
    assert jar.is_set(SESSION_COOKIE)
    assert jar.is_set(ANALYTICS_COOKIE)
    assert not jar.is_set(PREFERENCES_COOKIE)

    await manager.reset_preferences()
    assert not jar.is_set(ANALYTICS_COOKIE)
    assert not jar.is_set(PREFERENCES_COOKIE)


# ============================================================================
# Cross-tab synchronization
# ============================================================================

@pytest.mark.asyncio
async def test_other_tab_follows_save_and_reset(storage_area):
    first = ConsentManager(storage_area.open_tab())
    second = ConsentManager(storage_area.open_tab())
    second.attach()
    changes: List[ConsentChange] = []
    second.subscribe(changes.append)

    await first.accept_all()

    assert second.consent is ConsentState.ALL
    assert second.settings.analytics is True
    assert changes[-1].reason is ChangeReason.EXTERNAL

    await first.reset_preferences()

    assert second.consent is None
    assert second.settings.analytics is False
    assert changes[-1].reason is ChangeReason.EXTERNAL


@pytest.mark.asyncio
async def test_other_tab_never_sees_half_written_decision(storage_area):
    first = ConsentManager(storage_area.open_tab())
    await first.reject_all()
    second = ConsentManager(storage_area.open_tab())
    await second.start()
    changes: List[ConsentChange] = []
    second.subscribe(changes.append)

    await first.accept_all()

    assert [(change.reason, change.consent) for change in changes] == [
        (ChangeReason.EXTERNAL, ConsentState.ALL)
    ]
    assert changes[0].settings.analytics is True
    assert changes[0].settings.preferences is True


@pytest.mark.asyncio
async def test_own_writes_do_not_trigger_external_change(manager: ConsentManager, channel):
    manager.attach()
    changes: List[ConsentChange] = []
    channel.subscribe(changes.append)

    await manager.reject_all()

    assert [change.reason for change in changes] == [ChangeReason.SAVED]


@pytest.mark.asyncio
async def test_detached_tab_ignores_changes(storage_area):
    first = ConsentManager(storage_area.open_tab())
    second = ConsentManager(storage_area.open_tab())
    second.attach()
    second.detach()

    await first.accept_all()

    assert second.consent is None


@pytest.mark.asyncio
async def test_unrelated_keys_are_ignored(storage_area):
    first_tab = storage_area.open_tab()
    second = ConsentManager(storage_area.open_tab())
    second.attach()
    changes: List[ConsentChange] = []
    second.subscribe(changes.append)

    first_tab.set_item("theme", "dark")

    assert changes == []


@pytest.mark.asyncio
async def test_start_attaches_and_loads(storage_area):
    tab = storage_area.open_tab()
    tab.set_item(CONSENT_KEY, "essential")
    tab.set_item(SETTINGS_KEY, json.dumps({"essential": True, "analytics": False, "preferences": False}))
    manager = ConsentManager(storage_area.open_tab())

    assert await manager.start() is ConsentState.ESSENTIAL

    other = ConsentManager(tab)
    await other.accept_all()
    assert manager.consent is ConsentState.ALL
