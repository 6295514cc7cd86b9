"""
Local-first consent state machine.

The manager keeps the visitor's consent decision in a local storage area,
answers "is this category allowed?" for the rest of the application and
reconciles with the preference service in the background. Local storage
always wins on read; the service is written best-effort after the local
write and its failures never undo a local decision.
"""

import json
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from pydantic import ValidationError

from consent.api_client import PreferenceApiClient, PreferenceApiError
from consent.cookies import ConsentCookieJar
from consent.events import ChangeReason, ConsentChange, ConsentChannel, ConsentSubscriber
from consent.storage import (
    CONSENT_KEY,
    CONSENT_KEYS,
    SETTINGS_KEY,
    USER_DATA_KEY,
    USER_ID_KEY,
    LocalStorage,
    StorageEvent,
)
from models.cookies import (
    ANONYMOUS_USER_ID,
    ConsentState,
    CookieCategory,
    CookieSettings,
    default_settings,
    settings_for,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SaveResult:
    """Outcome of a consent action."""
    consent: ConsentState
    settings: CookieSettings
    synced: bool


class ConsentManager:
    """
    Tracks, persists and synchronizes the visitor's cookie consent.

    Args:
        storage: Local storage area holding the decision
        api_client: Client for the preference service; None disables sync
        channel: Channel that receives change notifications
        cookie_jar: Cookie jar kept in line with the decision
    """

    def __init__(
        self,
        storage: LocalStorage,
        api_client: Optional[PreferenceApiClient] = None,
        channel: Optional[ConsentChannel] = None,
        cookie_jar: Optional[ConsentCookieJar] = None
    ):
        self.storage = storage
        self.api_client = api_client
        self.channel = channel or ConsentChannel()
        self.cookie_jar = cookie_jar
        self._consent: Optional[ConsentState] = None
        self._settings: CookieSettings = default_settings()
        self._remove_listener: Optional[Callable[[], None]] = None

    @property
    def consent(self) -> Optional[ConsentState]:
        return self._consent

    @property
    def settings(self) -> CookieSettings:
        return self._settings

    @property
    def user_id(self) -> Optional[str]:
        """Stable user id recorded at onboarding, if any."""
        return self.storage.get_item(USER_ID_KEY) or None

    def subscribe(self, callback: ConsentSubscriber) -> Callable[[], None]:
        return self.channel.subscribe(callback)

    # ------------------------------------------------------------------
    # Local storage
    # ------------------------------------------------------------------

    def _read_local(self) -> Optional[Tuple[ConsentState, CookieSettings]]:
        raw_consent = self.storage.get_item(CONSENT_KEY)
        raw_settings = self.storage.get_item(SETTINGS_KEY)
        if raw_consent is None or raw_settings is None:
            return None

        try:
            consent = ConsentState(raw_consent)
            settings = CookieSettings.model_validate_json(raw_settings)
        except (ValueError, ValidationError) as e:
            logger.warning(f"Discarding malformed consent in local storage: {e}")
            self._discard_local()
            return None

        return consent, settings

    def _write_local(self, consent: ConsentState, settings: CookieSettings) -> None:
        # Other tabs only see a complete pair once the consent key lands last.
        try:
            self.storage.remove_item(CONSENT_KEY)
            self.storage.set_item(SETTINGS_KEY, json.dumps(settings.to_json_dict(include_identity=False)))
            self.storage.set_item(CONSENT_KEY, consent.value)
        except OSError as e:
            logger.error(f"Could not persist cookie consent locally: {e}")

    def _discard_local(self) -> None:
        try:
            for key in CONSENT_KEYS:
                self.storage.remove_item(key)
        except OSError as e:
            logger.error(f"Could not remove cookie consent from local storage: {e}")

    # ------------------------------------------------------------------
    # In-memory state
    # ------------------------------------------------------------------

    def _apply(self, consent: Optional[ConsentState], settings: CookieSettings, reason: ChangeReason) -> None:
        self._consent = consent
        self._settings = settings

        if self.cookie_jar is not None:
            if consent is None:
                self.cookie_jar.clear_optional()
            else:
                self.cookie_jar.apply(settings)

        self.channel.publish(ConsentChange(reason=reason, consent=consent, settings=settings))

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def load_preferences(self) -> Optional[ConsentState]:
        """
        Adopt the stored decision.

        A decision in local storage is adopted without any network call.
        Otherwise, when a user id is known, the service record is fetched,
        adopted as a custom decision and copied to local storage. Failures
        leave the defaults in place.

        Returns:
            The consent state after loading
        """
        local = self._read_local()
        if local is not None:
            self._apply(*local, reason=ChangeReason.LOADED)
            return self._consent

        user_id = self.user_id
        if not user_id or self.api_client is None:
            return self._consent

        try:
            remote = await self.api_client.fetch(user_id)
        except PreferenceApiError as e:
            logger.warning(f"Could not load cookie preferences for user {user_id}: {e}")
            return self._consent

        if remote is None:
            logger.info(f"No stored cookie preferences for user {user_id}")
            return self._consent

        local = self._read_local()
        if local is not None:
            # A decision was made locally while the fetch was in flight.
            logger.info(f"Ignoring remote cookie preferences for user {user_id}: local decision exists")
            self._apply(*local, reason=ChangeReason.LOADED)
            return self._consent

        settings = CookieSettings(analytics=remote.analytics, preferences=remote.preferences)
        self._write_local(ConsentState.CUSTOM, settings)
        self._apply(ConsentState.CUSTOM, settings, reason=ChangeReason.LOADED)
        return self._consent

    async def save_preferences(
        self,
        consent: ConsentState,
        settings: Optional[CookieSettings] = None
    ) -> SaveResult:
        """
        Record a consent action.

        The decision is written to local storage and applied in memory
        before the service is contacted; a failed push is logged and
        reported through ``SaveResult.synced`` only.
        A local storage failure is logged as well; the decision still
        applies in memory and is pushed.

        Args:
            consent: Action taken (all, essential, custom)
            settings: Chosen flags, required for custom consent

        Returns:
            SaveResult with the applied decision
        """
        consent = ConsentState(consent)
        record = settings_for(consent, settings)

        self._write_local(consent, record)
        self._apply(consent, record, reason=ChangeReason.SAVED)

        synced = await self._push(record)
        return SaveResult(consent=consent, settings=record, synced=synced)

    async def accept_all(self) -> SaveResult:
        return await self.save_preferences(ConsentState.ALL)

    async def reject_all(self) -> SaveResult:
        return await self.save_preferences(ConsentState.ESSENTIAL)

    async def save_custom(self, settings: CookieSettings) -> SaveResult:
        return await self.save_preferences(ConsentState.CUSTOM, settings)

    async def _push(self, settings: CookieSettings) -> bool:
        if self.api_client is None:
            return False

        user_id = self.user_id or ANONYMOUS_USER_ID
        try:
            await self.api_client.save(settings.model_copy(update={"user_id": user_id}))
        except PreferenceApiError as e:
            logger.warning(f"Cookie preferences kept locally, sync failed for user {user_id}: {e}")
            return False

        logger.debug(f"Synced cookie preferences for user {user_id}")
        return True

    async def reset_preferences(self) -> bool:
        """
        Forget the decision everywhere.

        Returns:
            True if the service confirmed a record was deleted
        """
        remote_deleted = False
        user_id = self.user_id
        if user_id and self.api_client is not None:
            try:
                remote_deleted = await self.api_client.delete(user_id)
            except PreferenceApiError as e:
                logger.warning(f"Could not delete remote cookie preferences for user {user_id}: {e}")

        self._discard_local()
        self._apply(None, default_settings(), reason=ChangeReason.RESET)
        return remote_deleted

    def is_allowed(self, category: CookieCategory) -> bool:
        """
        Whether ``category`` is currently permitted.

        Nothing is permitted before a decision exists, essential included.
        """
        if self._consent is None:
            return False
        try:
            category = CookieCategory(category)
        except ValueError:
            return False
        if category is CookieCategory.ESSENTIAL:
            return True
        return self._settings.is_granted(category)

    def should_show_banner(self) -> bool:
        """Show the prompt only to onboarded visitors without a stored decision."""
        return bool(self.storage.get_item(USER_DATA_KEY)) and self.storage.get_item(CONSENT_KEY) is None

    # ------------------------------------------------------------------
    # Cross-tab synchronization
    # ------------------------------------------------------------------

    def attach(self) -> None:
        """Follow consent changes written by other tabs."""
        if self._remove_listener is None:
            self._remove_listener = self.storage.add_listener(self._on_storage_event)

    def detach(self) -> None:
        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None

    def _on_storage_event(self, event: StorageEvent) -> None:
        if event.key is not None and event.key not in CONSENT_KEYS:
            return

        local = self._read_local()
        if local is not None:
            consent, settings = local
            if consent is not self._consent or not settings.same_choices(self._settings):
                self._apply(consent, settings, reason=ChangeReason.EXTERNAL)
            return

        cleared = all(self.storage.get_item(key) is None for key in CONSENT_KEYS)
        if cleared and self._consent is not None:
            self._apply(None, default_settings(), reason=ChangeReason.EXTERNAL)

    async def start(self) -> Optional[ConsentState]:
        """Attach to storage changes and load the stored decision."""
        self.attach()
        return await self.load_preferences()
