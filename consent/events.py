"""
Typed publish/subscribe channel for consent changes.

Collaborators (analytics, settings panels, cookie writers) subscribe here
instead of listening for untyped global events.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from models.cookies import ConsentState, CookieSettings

logger = logging.getLogger(__name__)


class ChangeReason(str, Enum):
    """Why the consent state changed."""
    SAVED = "saved"
    RESET = "reset"
    LOADED = "loaded"
    EXTERNAL = "external"


@dataclass(frozen=True)
class ConsentChange:
    """Snapshot of the consent state after a change."""
    reason: ChangeReason
    consent: Optional[ConsentState]
    settings: CookieSettings


ConsentSubscriber = Callable[[ConsentChange], None]


class ConsentChannel:
    """
    In-process channel delivering :class:`ConsentChange` notifications.

    Callbacks run synchronously in publish order. Asyncio consumers can
    take a queue instead; every change is put on it without waiting.
    """

    def __init__(self, queue_maxsize: int = 100):
        self._subscribers: List[ConsentSubscriber] = []
        self._queues: List[asyncio.Queue] = []
        self._queue_maxsize = queue_maxsize

    def subscribe(self, callback: ConsentSubscriber) -> Callable[[], None]:
        """
        Register ``callback`` for every future change.

        Returns:
            A callable that unsubscribes
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def queue(self) -> asyncio.Queue:
        """Return a new queue that receives every future change."""
        q: asyncio.Queue = asyncio.Queue(maxsize=self._queue_maxsize)
        self._queues.append(q)
        return q

    def close_queue(self, q: asyncio.Queue) -> None:
        """Stop feeding ``q``."""
        if q in self._queues:
            self._queues.remove(q)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers) + len(self._queues)

    def publish(self, change: ConsentChange) -> None:
        """Deliver ``change`` to every subscriber and queue."""
        logger.debug(f"Publishing consent change: {change.reason.value} consent={change.consent}")

        for callback in list(self._subscribers):
            try:
                callback(change)
            except Exception:
                # One broken collaborator must not block the others.
                logger.exception(f"Consent subscriber {callback!r} failed")

        for q in list(self._queues):
            try:
                q.put_nowait(change)
            except asyncio.QueueFull:
                logger.warning("Consent change queue is full; change dropped for one consumer")
