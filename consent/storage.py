"""
Local storage areas for the consent client.

A storage area is a synchronous string-to-string mapping with change
notification, modelled on browser local storage: a write made through one
tab notifies the listeners registered by every *other* tab that shares the
same area.
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

CONSENT_KEY = "cookieConsent"
SETTINGS_KEY = "cookieSettings"
USER_DATA_KEY = "userData"
USER_ID_KEY = "userId"

CONSENT_KEYS = (CONSENT_KEY, SETTINGS_KEY)


@dataclass(frozen=True)
class StorageEvent:
    """A change observed in a storage area. ``key`` is None after ``clear()``."""
    key: Optional[str]
    old_value: Optional[str]
    new_value: Optional[str]


StorageListener = Callable[[StorageEvent], None]


class LocalStorage(ABC):
    """Synchronous key-value storage area."""

    def __init__(self):
        self._listeners: List[StorageListener] = []

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Return the stored string or None."""

    @abstractmethod
    def _write(self, key: str, value: Optional[str]) -> Optional[str]:
        """Store ``value`` (None removes the key); return the previous value."""

    @abstractmethod
    def keys(self) -> List[str]:
        """Return every stored key."""

    def set_item(self, key: str, value: str) -> None:
        old_value = self._write(key, value)
        if old_value != value:
            self._notify(StorageEvent(key, old_value, value))

    def remove_item(self, key: str) -> None:
        old_value = self._write(key, None)
        if old_value is not None:
            self._notify(StorageEvent(key, old_value, None))

    def clear(self) -> None:
        had_items = bool(self.keys())
        for key in self.keys():
            self._write(key, None)
        if had_items:
            self._notify(StorageEvent(None, None, None))

    def add_listener(self, listener: StorageListener) -> Callable[[], None]:
        """
        Register a listener for changes made elsewhere.

        Returns:
            A callable that removes the listener
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self, event: StorageEvent) -> None:
        """Deliver ``event`` to listeners of other views of this area."""

    def _dispatch(self, event: StorageEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Storage listener failed for key {event.key}")


class SharedStorageArea:
    """
    Backing data shared by several in-process tabs.

    Each call to :meth:`open_tab` returns a :class:`MemoryStorage` view.
    """

    def __init__(self):
        self.data: Dict[str, str] = {}
        self._tabs: List["MemoryStorage"] = []

    def open_tab(self) -> "MemoryStorage":
        tab = MemoryStorage(area=self)
        return tab

    @property
    def tab_count(self) -> int:
        return len(self._tabs)

    def _attach(self, tab: "MemoryStorage") -> None:
        self._tabs.append(tab)

    def _detach(self, tab: "MemoryStorage") -> None:
        if tab in self._tabs:
            self._tabs.remove(tab)

    def broadcast(self, source: "MemoryStorage", event: StorageEvent) -> None:
        for tab in list(self._tabs):
            if tab is not source:
                tab._dispatch(event)


class MemoryStorage(LocalStorage):
    """In-memory storage area, optionally shared with other tabs."""

    def __init__(self, area: Optional[SharedStorageArea] = None):
        super().__init__()
        self.area = area or SharedStorageArea()
        self.area._attach(self)

    def get_item(self, key: str) -> Optional[str]:
        return self.area.data.get(key)

    def _write(self, key: str, value: Optional[str]) -> Optional[str]:
        if value is None:
            return self.area.data.pop(key, None)
        old_value = self.area.data.get(key)
        self.area.data[key] = value
        return old_value

    def keys(self) -> List[str]:
        return list(self.area.data)

    def _notify(self, event: StorageEvent) -> None:
        self.area.broadcast(self, event)

    def close(self) -> None:
        """Stop receiving changes made by other tabs."""
        self.area._detach(self)
        self._listeners.clear()


class JsonFileStorage(LocalStorage):
    """
    Storage area persisted to a JSON file.

    The whole mapping is rewritten on every change through a temporary file
    and ``os.replace``, so a crash never leaves a half-written file. An
    unreadable file is treated as empty.
    """

    def __init__(self, path: Path):
        super().__init__()
        self.path = Path(path)

    def _load(self) -> Dict[str, str]:
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable storage file {self.path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Ignoring storage file {self.path}: top level is not an object")
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _dump(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def get_item(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def _write(self, key: str, value: Optional[str]) -> Optional[str]:
        data = self._load()
        old_value = data.pop(key, None) if value is None else data.get(key)
        if value is not None:
            data[key] = value
        if old_value != value:
            self._dump(data)
        return old_value

    def keys(self) -> List[str]:
        return list(self._load())

    def _notify(self, event: StorageEvent) -> None:
        # Single process; no other tab to inform.
        pass


def mark_onboarded(storage: LocalStorage, user_id: str, profile: Optional[Dict[str, Any]] = None) -> None:
    """
    Record that the visitor finished onboarding.

    Writes the stable user id and the onboarding record whose presence
    allows the consent banner to show.

    Args:
        storage: Storage area to write to
        user_id: Stable identifier of the visitor
        profile: Onboarding form data
    """
    if not user_id:
        raise ValueError("user_id must be a non-empty string")
    record = dict(profile or {})
    record.setdefault("userId", user_id)
    storage.set_item(USER_ID_KEY, user_id)
    storage.set_item(USER_DATA_KEY, json.dumps(record))
    logger.info(f"Recorded onboarding for user {user_id}")
