"""Event emitter implementations for delivery observability.

This module defines an abstract EventEmitter interface and concrete
implementations for different event sinks:

- LoggingEventEmitter: Emits events as structured log entries
- CompositeEventEmitter: Emits to multiple sinks simultaneously
- NullEventEmitter: Discards events (for testing)

The emitter abstraction lets the dispatch supervisor report outcomes
without coupling to specific monitoring infrastructure.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional

from .models import DeliveryEvent, DeliveryEventType

logger = logging.getLogger(__name__)


class EventSinkType(str, Enum):
    """Types of event sinks supported by the router.

    Attributes:
        LOGGING: Emit events as structured log entries.
        METRICS: Emit events as Prometheus metrics (counters, histograms).
    """

    LOGGING = "logging"
    METRICS = "metrics"


class EventEmitter(ABC):
    """Abstract base class for delivery event emitters.

    Implementations should be:
    - Async-safe: emit() is called from request coroutines
    - Non-blocking: emit() should not delay the HTTP response
    - Fault-tolerant: emit() failures should not change a delivery's outcome

    Example:
        >>> class MyEmitter(EventEmitter):
        ...     async def emit(self, event: DeliveryEvent) -> None:
        ...         pass
    """

    @abstractmethod
    async def emit(self, event: DeliveryEvent) -> None:
        """Emit a delivery event.

        Args:
            event: The delivery event to emit.
        """
        pass

    async def close(self) -> None:
        """Close the emitter and release resources.

        The default implementation does nothing.
        """
        pass


class LoggingEventEmitter(EventEmitter):
    """Event emitter that logs events using structured logging.

    Events are logged at different levels based on event type:

    - ACCEPTED: INFO level
    - UNREGISTERED: DEBUG level
    - REJECTED: WARNING level
    - HANDLER_FAILED: ERROR level
    - TIMEOUT: ERROR level

    Example:
        >>> emitter = LoggingEventEmitter()
        >>> await emitter.emit(DeliveryEvent(
        ...     event_type=DeliveryEventType.ACCEPTED,
        ...     github_event="push",
        ...     delivery_id="72d3162e",
        ... ))
        # Logs: INFO - Webhook delivery accepted: push (72d3162e)
    """

    def __init__(self, logger_name: Optional[str] = None):
        """Initialize the logging event emitter.

        Args:
            logger_name: Optional logger name. If not provided, uses
                         the module logger.
        """
        self._logger = (
            logging.getLogger(logger_name)
            if logger_name
            else logger
        )
        self._log_level_map = {
            DeliveryEventType.ACCEPTED: logging.INFO,
            DeliveryEventType.UNREGISTERED: logging.DEBUG,
            DeliveryEventType.REJECTED: logging.WARNING,
            DeliveryEventType.HANDLER_FAILED: logging.ERROR,
            DeliveryEventType.TIMEOUT: logging.ERROR,
        }

    async def emit(self, event: DeliveryEvent) -> None:
        """Emit event as a structured log entry.

        Args:
            event: The delivery event to log.
        """
        log_level = self._log_level_map.get(event.event_type, logging.INFO)

        self._logger.log(
            log_level,
            "Webhook delivery %s: %s (%s)",
            event.event_type.value,
            event.github_event,
            event.delivery_id or "no delivery id",
            extra=event.to_log_dict(),
        )


class CompositeEventEmitter(EventEmitter):
    """Event emitter that delegates to multiple child emitters.

    Failures in one emitter do not affect others: each emitter is called
    independently and errors are logged but not propagated.

    Example:
        >>> composite = CompositeEventEmitter(
        ...     [LoggingEventEmitter(), MetricsEventEmitter()]
        ... )
        >>> await composite.emit(event)  # Emits to both sinks
    """

    def __init__(self, emitters: Optional[List[EventEmitter]] = None):
        self._emitters: List[EventEmitter] = emitters or []

    @property
    def emitters(self) -> List[EventEmitter]:
        """Get the list of child emitters (read-only copy)."""
        return list(self._emitters)

    async def emit(self, event: DeliveryEvent) -> None:
        """Emit event to all child emitters.

        Args:
            event: The delivery event to emit.
        """
        for emitter in self._emitters:
            try:
                await emitter.emit(event)
            except Exception as e:
                logger.error(
                    "Failed to emit event to %s: %s",
                    type(emitter).__name__,
                    str(e),
                    extra={
                        "emitter_type": type(emitter).__name__,
                        "event_type": event.event_type.value,
                        "delivery_id": event.delivery_id,
                    },
                )

    async def close(self) -> None:
        """Close all child emitters, logging failures."""
        for emitter in self._emitters:
            try:
                await emitter.close()
            except Exception as e:
                logger.error(
                    "Failed to close emitter %s: %s",
                    type(emitter).__name__,
                    str(e),
                )


class NullEventEmitter(EventEmitter):
    """Event emitter that discards all events."""

    async def emit(self, event: DeliveryEvent) -> None:
        pass


def create_event_emitter(
    sink_types: Optional[List[EventSinkType]] = None,
    logger_name: Optional[str] = None,
    registry=None,
) -> EventEmitter:
    """Factory function to create event emitters based on configuration.

    If multiple sink types are requested, a CompositeEventEmitter is
    returned that delegates to all of them.

    Args:
        sink_types: List of event sink types to enable. If None or empty,
                    returns a LoggingEventEmitter as the default.
        logger_name: Optional logger name for the LoggingEventEmitter.
        registry: Optional Prometheus registry for the metrics sink.

    Returns:
        An EventEmitter configured for the requested sinks.

    Example:
        >>> emitter = create_event_emitter([
        ...     EventSinkType.LOGGING,
        ...     EventSinkType.METRICS
        ... ])
        >>> isinstance(emitter, CompositeEventEmitter)
        True
    """
    if not sink_types:
        return LoggingEventEmitter(logger_name=logger_name)

    emitters: List[EventEmitter] = []

    for sink_type in sink_types:
        if sink_type == EventSinkType.LOGGING:
            emitters.append(LoggingEventEmitter(logger_name=logger_name))
        elif sink_type == EventSinkType.METRICS:
            # Imported here because metrics.py imports this module
            from .metrics import MetricsEventEmitter

            emitters.append(MetricsEventEmitter(registry=registry))
        else:
            logger.warning(
                "Unknown event sink type: %s, skipping",
                sink_type,
            )

    if not emitters:
        return LoggingEventEmitter(logger_name=logger_name)

    if len(emitters) == 1:
        return emitters[0]

    return CompositeEventEmitter(emitters)
