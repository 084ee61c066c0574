"""Delivery deduplication at the handler boundary.

GitHub redelivers a webhook when it does not get a 2xx in time, and
operators can redeliver by hand. Wrapping a handler in a
DeduplicatingHandler makes it skip a delivery id it has already
processed successfully within the TTL.

Only successful deliveries stay marked: if the inner handler fails or is
cancelled, the id is forgotten so the redelivery is processed.

The seen-set is process-local and is only touched from the event loop,
so it needs no lock.
"""

import asyncio
import logging
import time
from collections import OrderedDict
from typing import Callable, Hashable, Optional

from ..webhook.models import EventEnvelope
from .base import EventHandler

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 10_000


class DeliveryDeduplicator:
    """Bounded, TTL-based set of recently seen delivery keys.

    Attributes:
        ttl_seconds: How long a key is remembered.
        max_entries: Upper bound on remembered keys; the oldest are evicted.
    """

    def __init__(
        self,
        ttl_seconds: float,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._seen: "OrderedDict[Hashable, float]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._seen)

    def mark_if_new(self, key: Hashable) -> bool:
        """Record a key.

        Returns:
            True if the key was not seen within the TTL (and is now marked),
            False if it is a duplicate.
        """
        now = self._clock()
        self._expire(now)

        if key in self._seen:
            return False

        self._seen[key] = now + self.ttl_seconds
        while len(self._seen) > self.max_entries:
            self._seen.popitem(last=False)
        return True

    def forget(self, key: Hashable) -> None:
        self._seen.pop(key, None)

    def _expire(self, now: float) -> None:
        # Entries are inserted in expiry order, so stop at the first live one
        while self._seen:
            key, expires_at = next(iter(self._seen.items()))
            if expires_at > now:
                break
            del self._seen[key]


class DeduplicatingHandler(EventHandler):
    """Wraps a handler so repeated delivery ids are handled once."""

    def __init__(self, inner: EventHandler, deduplicator: DeliveryDeduplicator):
        super().__init__(inner.api)
        self.inner = inner
        self.deduplicator = deduplicator
        self.event_type = inner.event_type

    @property
    def name(self) -> str:
        return self.inner.name

    async def handle(self, envelope: EventEnvelope) -> None:
        if not envelope.delivery_id:
            await self.inner.handle(envelope)
            return

        key = (envelope.event_type, envelope.delivery_id)
        if not self.deduplicator.mark_if_new(key):
            logger.info(
                "Skipping duplicate delivery",
                extra=envelope.log_context(),
            )
            return

        try:
            await self.inner.handle(envelope)
        except (Exception, asyncio.CancelledError):
            self.deduplicator.forget(key)
            raise


def with_deduplication(
    handler: EventHandler,
    deduplicator: Optional[DeliveryDeduplicator],
) -> EventHandler:
    """Wrap a handler when a deduplicator is configured."""
    if deduplicator is None:
        return handler
    return DeduplicatingHandler(handler, deduplicator)
