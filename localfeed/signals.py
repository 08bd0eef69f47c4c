from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import Any, Callable, Protocol

from .kv_store import StorageChange

logger = logging.getLogger(__name__)


class Topic(str, Enum):
    PROFILE_UPDATED = "profile_updated"
    COMMUNITY_CHANGED = "community_changed"
    OPEN_COMPOSER = "open_composer"
    STORAGE_CHANGED = "storage_changed"


@dataclass(frozen=True)
class ProfileUpdated:
    display_name: str
    avatar_url: str | None = None


@dataclass(frozen=True)
class CommunityChanged:
    label: str


@dataclass(frozen=True)
class OpenComposer:
    kind: str = "post"
    prefill: str | None = None


@dataclass(frozen=True)
class StorageChanged:
    key: str
    context_id: str
    removed: bool = False


PAYLOAD_TYPES: dict[Topic, type] = {
    Topic.PROFILE_UPDATED: ProfileUpdated,
    Topic.COMMUNITY_CHANGED: CommunityChanged,
    Topic.OPEN_COMPOSER: OpenComposer,
    Topic.STORAGE_CHANGED: StorageChanged,
}

Handler = Callable[[Any], None]


@dataclass(frozen=True)
class Subscription:
    topic: Topic
    handler: Handler
    token: int


class SignalBus:
    """
    Synchronous publish/subscribe within one context.

    Delivery goes to a snapshot of the subscribers taken at publish time, so a
    handler that subscribes or unsubscribes does not affect the current round.
    """

    def __init__(self) -> None:
        self._subs: dict[Topic, dict[int, Handler]] = {t: {} for t in Topic}
        self._tokens = itertools.count(1)
        self._lock = Lock()

    def subscribe(self, topic: Topic, handler: Handler) -> Subscription:
        t = Topic(topic)
        if not callable(handler):
            raise TypeError("handler must be callable")
        with self._lock:
            token = next(self._tokens)
            self._subs[t][token] = handler
        return Subscription(topic=t, handler=handler, token=token)

    def unsubscribe(self, subscription: Subscription) -> bool:
        with self._lock:
            return self._subs[subscription.topic].pop(subscription.token, None) is not None

    def subscriber_count(self, topic: Topic) -> int:
        with self._lock:
            return len(self._subs[Topic(topic)])

    def publish(self, topic: Topic, payload: Any) -> int:
        """Deliver `payload` to every current subscriber; returns how many were called."""
        t = Topic(topic)
        expected = PAYLOAD_TYPES[t]
        if not isinstance(payload, expected):
            raise TypeError(f"{t.value} expects {expected.__name__}, got {type(payload).__name__}")

        with self._lock:
            handlers = list(self._subs[t].values())

        for handler in handlers:
            try:
                handler(payload)
            except Exception:
                # Handler failures are logged; delivery continues.
                logger.exception("signal_handler_failed topic=%s", t.value)
        return len(handlers)


class SubscriptionScope:
    """
    Registrations owned by one view, torn down together.

    Closing the scope unsubscribes everything it registered, so a view that is
    mounted again never receives duplicate deliveries.
    """

    def __init__(self, bus: SignalBus) -> None:
        self._bus = bus
        self._subs: list[Subscription] = []
        self._closed = False

    def __enter__(self) -> "SubscriptionScope":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def __len__(self) -> int:
        return len(self._subs)

    def subscribe(self, topic: Topic, handler: Handler) -> Subscription:
        if self._closed:
            raise RuntimeError("subscription scope is closed")
        sub = self._bus.subscribe(topic, handler)
        self._subs.append(sub)
        return sub

    def close(self) -> None:
        subs, self._subs = self._subs, []
        for sub in subs:
            self._bus.unsubscribe(sub)
        self._closed = True


class ChangeSource(Protocol):
    def poll_changes(self) -> list[StorageChange]: ...


class StorageWatcher:
    """Republishes writes made by other contexts as STORAGE_CHANGED signals."""

    def __init__(self, source: ChangeSource, bus: SignalBus) -> None:
        self._source = source
        self._bus = bus

    def poll(self) -> list[StorageChange]:
        changes = self._source.poll_changes()
        for ch in changes:
            self._bus.publish(
                Topic.STORAGE_CHANGED,
                StorageChanged(key=ch.key, context_id=ch.context_id, removed=ch.removed),
            )
        return changes
