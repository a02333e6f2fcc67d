"""Cancellable subscription handles for live competition updates."""

from __future__ import annotations

from collections import deque
import logging
from threading import Lock
from typing import Callable

from zone_app.core.events import CompetitionEvent

logger = logging.getLogger(__name__)

Poller = Callable[[], list[CompetitionEvent]]


class Subscription:
    """Queue of typed events owned by exactly one consumer.

    Producers either push events with ``publish`` (in-process backend) or the
    subscription pulls them with a ``poller`` each time the consumer drains
    (HTTP polling). The consumer drains on its own turn; nothing is delivered
    through callbacks. ``unsubscribe`` releases the handle exactly once.
    """

    def __init__(
        self,
        topic: str,
        *,
        poller: Poller | None = None,
        on_release: Callable[[Subscription], None] | None = None,
    ) -> None:
        self.topic = topic
        self._poller = poller
        self._on_release = on_release
        self._queue: deque[CompetitionEvent] = deque()
        self._lock = Lock()
        self._active = True

    @property
    def is_active(self) -> bool:
        """False once released."""
        return self._active

    def publish(self, event: CompetitionEvent) -> bool:
        """Enqueue an event. Returns False when the subscription was released."""
        with self._lock:
            if not self._active:
                return False
            self._queue.append(event)
            return True

    def drain(self) -> list[CompetitionEvent]:
        """Return and clear every pending event, polling first if poll-fed.

        Errors raised by the poller propagate to the consumer; events that
        were already queued stay queued for the next drain.
        """
        if not self._active:
            return []
        if self._poller is not None:
            polled = self._poller()
            with self._lock:
                self._queue.extend(polled)
        with self._lock:
            events = list(self._queue)
            self._queue.clear()
        return events

    def unsubscribe(self) -> None:
        """Stop receiving events. Safe to call twice."""
        with self._lock:
            if not self._active:
                return
            self._active = False
            self._queue.clear()
        logger.debug("Released subscription %s", self.topic)
        if self._on_release is not None:
            self._on_release(self)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.unsubscribe()

    def __repr__(self) -> str:
        state = "active" if self._active else "released"
        return f"Subscription({self.topic!r}, {state})"
