"""In-memory event bus for curation events.

Each curation session owns one bus; there is no process-wide instance.
"""

import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import TypeVar

from curator.domain.events.membership_events import DomainEvent

logger = logging.getLogger(__name__)

TEvent = TypeVar("TEvent", bound=DomainEvent)

EventHandler = Callable[[TEvent], Awaitable[None]]


def _handler_name(handler: Callable) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)


class EventBus:
    """Publish domain events to async handlers.

    Handlers subscribed to a base class (``DomainEvent``) receive every
    subclass event too. Handlers run one after another in subscription
    order, most specific event type first; a failing handler is logged and
    the rest still run.

    Example:
        ```python
        bus = EventBus()
        unsubscribe = bus.subscribe(MembershipViewChanged, render)
        await bus.publish(event)
        unsubscribe()
        ```

    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: type[TEvent], handler: EventHandler[TEvent]) -> Callable[[], None]:
        """Register ``handler`` for ``event_type``; returns a callable that undoes it."""
        self._handlers[event_type].append(handler)
        logger.debug(
            "event_handler_subscribed",
            extra={
                "event_type": event_type.__name__,
                "handler": _handler_name(handler),
                "total_handlers": len(self._handlers[event_type]),
            },
        )

        def _unsubscribe() -> None:
            self.unsubscribe(event_type, handler)

        return _unsubscribe

    def unsubscribe(self, event_type: type[TEvent], handler: EventHandler[TEvent]) -> None:
        handlers = self._handlers.get(event_type)
        if not handlers or handler not in handlers:
            logger.debug(
                "event_handler_not_subscribed",
                extra={"event_type": event_type.__name__, "handler": _handler_name(handler)},
            )
            return
        handlers.remove(handler)

    def _handlers_for(self, event: DomainEvent) -> list[EventHandler]:
        matched: list[EventHandler] = []
        for event_type in type(event).__mro__:
            matched.extend(self._handlers.get(event_type, ()))
            if event_type is DomainEvent:
                break
        return matched

    async def publish(self, event: DomainEvent) -> None:
        handlers = self._handlers_for(event)
        if not handlers:
            logger.debug(
                "event_published_no_handlers",
                extra={"event_type": type(event).__name__, "container_id": event.aggregate_id},
            )
            return

        for handler in handlers:
            try:
                await handler(event)
            except Exception as exc:
                logger.exception(
                    "event_handler_failed",
                    extra={
                        "event_type": type(event).__name__,
                        "handler": _handler_name(handler),
                        "container_id": event.aggregate_id,
                        "error": str(exc),
                    },
                )

    def clear_handlers(self, event_type: type[TEvent] | None = None) -> None:
        """Drop the handlers of one event type, or of all types."""
        if event_type is None:
            self._handlers.clear()
        else:
            self._handlers.pop(event_type, None)

    def get_handler_count(self, event_type: type[TEvent]) -> int:
        return len(self._handlers.get(event_type, ()))
