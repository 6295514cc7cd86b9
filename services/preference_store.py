"""
Storage backends for per-user cookie preferences.

Every backend follows the same contract: the caller validates the payload,
the store stamps the record and replaces whatever was stored under the same
``userId``. Records are never merged.
"""

import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from pydantic import ValidationError
from redis import Redis
from redis.exceptions import RedisError

from core.config import StoreConfig
from models.cookies import CookieSettings, CookieSettingsPayload

logger = logging.getLogger(__name__)


def current_timestamp_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class PreferenceStore(ABC):
    """Abstract key-value store for cookie preferences."""

    @abstractmethod
    def list_all(self) -> List[CookieSettings]:
        """Return every stored record. Ordering is not guaranteed."""

    @abstractmethod
    def get(self, user_id: str) -> Optional[CookieSettings]:
        """Return the record stored for ``user_id`` or None."""

    @abstractmethod
    def _put(self, record: CookieSettings) -> None:
        """Replace the record stored under ``record.user_id``."""

    @abstractmethod
    def delete(self, user_id: str) -> bool:
        """Remove the record for ``user_id``; return whether one existed."""

    @abstractmethod
    def count(self) -> int:
        """Return the number of stored records."""

    @abstractmethod
    def ping(self) -> bool:
        """Return True if the backend is reachable."""

    def save(self, payload: CookieSettingsPayload) -> CookieSettings:
        """
        Stamp and upsert a validated payload.

        Args:
            payload: Validated save request

        Returns:
            The stored record
        """
        record = payload.to_settings(timestamp=current_timestamp_ms())
        self._put(record)
        logger.info(
            f"Saved cookie preferences for user {record.user_id} "
            f"(analytics={record.analytics}, preferences={record.preferences})"
        )
        return record


class InMemoryPreferenceStore(PreferenceStore):
    """
    Preference store backed by a single dict.

    Records live only as long as the process.
    """

    def __init__(self):
        self._records: Dict[str, CookieSettings] = {}

    def list_all(self) -> List[CookieSettings]:
        return list(self._records.values())

    def get(self, user_id: str) -> Optional[CookieSettings]:
        return self._records.get(user_id)

    def _put(self, record: CookieSettings) -> None:
        self._records[record.user_id] = record

    def delete(self, user_id: str) -> bool:
        existed = self._records.pop(user_id, None) is not None
        if existed:
            logger.info(f"Deleted cookie preferences for user {user_id}")
        return existed

    def ping(self) -> bool:
        return True

    def count(self) -> int:
        return len(self._records)

    def __len__(self) -> int:
        return self.count()


class RedisPreferenceStore(PreferenceStore):
    """
    Preference store backed by one Redis hash.

    The hash field is the user id and the value is the JSON record, so
    ``HSET`` gives whole-record last-write-wins semantics per user.
    """

    def __init__(self, redis_client: Redis, hash_key: str = "cookie_preferences"):
        """
        Initialize the store.

        Args:
            redis_client: Redis client created with ``decode_responses=True``
            hash_key: Name of the hash holding all records
        """
        self.redis_client = redis_client
        self.hash_key = hash_key

    @classmethod
    def from_config(cls, config: StoreConfig) -> "RedisPreferenceStore":
        """Create a store from configuration."""
        client = Redis.from_url(
            config.redis_url,
            decode_responses=True,
            socket_connect_timeout=config.socket_timeout,
            socket_timeout=config.socket_timeout
        )
        return cls(client, hash_key=config.hash_key)

    def _decode(self, user_id: str, raw: str) -> Optional[CookieSettings]:
        try:
            return CookieSettings.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as e:
            logger.error(f"Discarding unreadable cookie preferences for user {user_id}: {e}")
            return None

    def list_all(self) -> List[CookieSettings]:
        records = []
        for user_id, raw in self.redis_client.hgetall(self.hash_key).items():
            record = self._decode(user_id, raw)
            if record is not None:
                records.append(record)
        return records

    def get(self, user_id: str) -> Optional[CookieSettings]:
        raw = self.redis_client.hget(self.hash_key, user_id)
        if raw is None:
            return None
        return self._decode(user_id, raw)

    def _put(self, record: CookieSettings) -> None:
        self.redis_client.hset(self.hash_key, record.user_id, json.dumps(record.to_json_dict()))

    def delete(self, user_id: str) -> bool:
        existed = self.redis_client.hdel(self.hash_key, user_id) > 0
        if existed:
            logger.info(f"Deleted cookie preferences for user {user_id}")
        return existed

    def count(self) -> int:
        return self.redis_client.hlen(self.hash_key)

    def ping(self) -> bool:
        try:
            return bool(self.redis_client.ping())
        except RedisError as e:
            logger.warning(f"Redis preference store unreachable: {e}")
            return False

    def close(self) -> None:
        """Close the underlying Redis connection pool."""
        self.redis_client.close()


def create_preference_store(config: StoreConfig) -> PreferenceStore:
    """
    Create the preference store selected by configuration.

    Args:
        config: Store configuration

    Returns:
        A PreferenceStore instance
    """
    if config.backend == 'redis':
        logger.info(f"Using Redis preference store at {config.redis_url} (hash {config.hash_key})")
        return RedisPreferenceStore.from_config(config)

    logger.info("Using in-memory preference store")
    return InMemoryPreferenceStore()
