"""Synchronous in-process publish/subscribe bus."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

Subscriber = Callable[["Event"], None]


@dataclass(frozen=True, slots=True)
class Event:
    """A published event: caller data plus the name and publish time."""

    name: str
    timestamp: datetime
    data: Mapping[str, Any] = field(default_factory=dict)

    @property
    def payload(self) -> Any:
        return self.data.get("payload")


class PubSub:
    """Maps event names to subscriber callbacks.

    Subscribers are called synchronously, in subscription order, on the
    publishing thread. A callback is registered at most once per name.

    Example::

        bus = PubSub()
        bus.subscribe("trigger", on_trigger)
        bus.publish("trigger", {"payload": b"line"})
    """

    __slots__ = ("_subscribers",)

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Subscriber]] = {}

    def subscribe(self, name: str, subscriber: Subscriber) -> None:
        """Register *subscriber* for *name*; re-subscribing is a no-op."""
        subscribers = self._subscribers.setdefault(name, [])
        if subscriber in subscribers:
            return
        subscribers.append(subscriber)

    def unsubscribe(self, name: str, subscriber: Subscriber) -> None:
        subscribers = self._subscribers.get(name)
        if subscribers is None:
            return
        if subscriber in subscribers:
            subscribers.remove(subscriber)

    def subscribers(self, name: str) -> list[Subscriber]:
        return list(self._subscribers.get(name, ()))

    def publish(self, name: str, data: Mapping[str, Any] | None = None) -> None:
        """Deliver an :class:`Event` for *name* to every current subscriber."""
        subscribers = self._subscribers.get(name)
        if not subscribers:
            return
        event = Event(name=name, timestamp=datetime.now(UTC), data=dict(data or {}))
        for subscriber in list(subscribers):
            subscriber(event)
