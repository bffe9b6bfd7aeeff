"""
Process-local event bus for same-process view updates.

Only a latency optimisation: views that miss an event still converge on
their next poll.
"""

import inspect
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from ..models.events import SyncEvent, SyncEventName
from ..core.errors import ValidationError
from ..core.logger import logger, log_error

Handler = Callable[[SyncEvent], Optional[Awaitable[None]]]


class EventBus:
    """Typed publish/subscribe keyed by SyncEventName."""

    def __init__(self):
        self._handlers: Dict[SyncEventName, List[Handler]] = defaultdict(list)

    def subscribe(
        self,
        name: Union[SyncEventName, str],
        handler: Handler
    ) -> Callable[[], None]:
        """
        Register a handler for one event name.

        Returns:
            A callable that removes the handler again
        """
        event_name = SyncEventName(name)
        self._handlers[event_name].append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(event_name, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    async def publish(self, event: Union[SyncEvent, Dict[str, Any]]) -> int:
        """
        Deliver an event to every handler subscribed to its name.

        Handler failures are logged and do not stop delivery to the others.

        Returns:
            Number of handlers that completed

        Raises:
            ValidationError: If a raw payload does not match the event shape
        """
        if not isinstance(event, SyncEvent):
            try:
                event = SyncEvent.model_validate(event)
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid sync event: {e.error_count()} error(s)")

        delivered = 0
        for handler in list(self._handlers.get(event.name, [])):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception as e:
                log_error(e, {"event": event.name.value, "resident_id": event.resident_id})

        logger.debug(f"Published {event.name.value} to {delivered} handler(s)")
        return delivered

    def handler_count(self, name: Union[SyncEventName, str]) -> int:
        return len(self._handlers.get(SyncEventName(name), []))

    def clear(self) -> None:
        """Remove every handler."""
        self._handlers.clear()


# Process-wide bus
sync_bus = EventBus()
