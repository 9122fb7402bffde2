"""
DocSync event bus.

Events are addressed by a structured key instead of a concatenated string.
A classified change fans out to six keys so consumers can subscribe at the
granularity they need: everything, one type, or one record.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from docsync.core.errors import DeliveryError
from docsync.core.logging import get_logger

logger = get_logger(__name__)

STORE_CHANNEL = "store"
ERROR_CHANNEL = "error"
CHANGE_KIND = "change"

# Type segment of type-scoped keys for records whose id carries no type.
UNTYPED = ""

Handler = Callable[..., Any]


@dataclass(frozen=True)
class EventKey:
    """Address of an event on the bus."""

    channel: str
    kind: str
    type: str | None = None
    id: str | None = None
    scope: str | None = None

    def __post_init__(self) -> None:
        if self.id is not None and self.type is None:
            raise ValueError("An event scoped by id must also be scoped by type")

    def __str__(self) -> str:
        parts = [self.scope, self.channel, self.kind, self.type, self.id]
        return ":".join(part for part in parts if part is not None)


def change_keys(
    scope: str | None,
    kind: str,
    type: str | None,
    id: str | None,
) -> list[tuple[EventKey, bool]]:
    """
    Keys a classified change is published under, in delivery order.

    Each entry pairs the key with whether the handler also receives the
    change kind as its first argument (the generic "change" keys do).
    Records without a type are published under UNTYPED.
    """
    if type is None:
        type = UNTYPED
    keys: list[tuple[EventKey, bool]] = []
    for event_kind, with_kind in ((kind, False), (CHANGE_KIND, True)):
        keys.append((EventKey(STORE_CHANNEL, event_kind, scope=scope), with_kind))
        keys.append((EventKey(STORE_CHANNEL, event_kind, type=type, scope=scope), with_kind))
        if id is not None:
            keys.append(
                (EventKey(STORE_CHANNEL, event_kind, type=type, id=id, scope=scope), with_kind)
            )
    return keys


class EventBus:
    """In-process dispatch table from event keys to handlers."""

    def __init__(self) -> None:
        self._handlers: dict[EventKey, list[Handler]] = {}

    def subscribe(self, key: EventKey, handler: Handler) -> Callable[[], None]:
        """Register a handler. Returns a callable that unsubscribes it."""
        self._handlers.setdefault(key, []).append(handler)
        logger.debug("Handler subscribed", key=str(key))

        def unsubscribe() -> None:
            self.unsubscribe(key, handler)

        return unsubscribe

    def unsubscribe(self, key: EventKey, handler: Handler) -> bool:
        handlers = self._handlers.get(key)
        if not handlers or handler not in handlers:
            return False
        handlers.remove(handler)
        if not handlers:
            del self._handlers[key]
        return True

    def has_subscribers(self, key: EventKey) -> bool:
        return bool(self._handlers.get(key))

    def emit(self, key: EventKey, *args: Any) -> int:
        """
        Deliver an event to every handler subscribed to ``key``.

        All handlers run even when one fails. Failures are collected and
        raised together as a DeliveryError once dispatch is complete.
        Returns the number of handlers called.
        """
        handlers = list(self._handlers.get(key, ()))
        errors: list[Exception] = []
        for handler in handlers:
            try:
                handler(*args)
            except Exception as e:
                logger.warning("Event handler failed", key=str(key), error=str(e))
                errors.append(e)

        if errors:
            raise DeliveryError(key, errors)
        return len(handlers)
