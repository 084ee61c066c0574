"""Route parsed envelopes to the handler registered for their event type.

The routing key is the event type alone. Handlers branch on the action
and on payload fields themselves.

The registration table is built once at startup and injected here. The
router keeps a read-only copy, so routing is a pure lookup that is safe
to share between concurrent deliveries.
"""

import logging
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from ..handlers.base import EventHandler
from .models import EventEnvelope

logger = logging.getLogger(__name__)


class EventRouter:
    """Maps an envelope's event type to its registered handler.

    Attributes:
        registrations: Read-only mapping from event type to handler.
    """

    def __init__(self, registrations: Mapping[str, EventHandler]):
        """Initialize the router.

        Args:
            registrations: Mapping from event type to handler. The mapping
                           is copied; later changes to it have no effect.

        Raises:
            ValueError: If an event type key is empty.
        """
        table = dict(registrations)
        for event_type in table:
            if not event_type or not event_type.strip():
                raise ValueError("Handler registered for an empty event type")
        self._registrations: Mapping[str, EventHandler] = MappingProxyType(table)

    @property
    def registrations(self) -> Mapping[str, EventHandler]:
        return self._registrations

    @property
    def registered_event_types(self) -> Tuple[str, ...]:
        """All routable event types, sorted."""
        return tuple(sorted(self._registrations))

    def route(self, envelope: EventEnvelope) -> Optional[EventHandler]:
        """Select the handler for an envelope.

        Args:
            envelope: The parsed delivery.

        Returns:
            The registered handler, or None if the event type has no
            handler. An unregistered type is not an error: the webhook
            may be configured to send more events than this service uses.
        """
        return self._registrations.get(envelope.event_type)
