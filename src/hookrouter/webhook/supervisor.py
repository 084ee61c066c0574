"""Dispatch supervisor: run one handler for one delivery, and contain it.

The supervisor is the single point that keeps one bad handler from
affecting other deliveries:

- any exception raised by the handler becomes a HANDLER_FAILED outcome
- a handler that runs past the per-delivery deadline is cancelled and
  reported as TIMED_OUT
- nothing is retried here; the 500 response lets GitHub apply its own
  redelivery policy

Every outcome, including rejections and unregistered events decided by
the endpoint, is reported through the supervisor so the event emitter
sees exactly one event per delivery.
"""

import asyncio
import logging
import time
from typing import Optional

from ..events.emitter import EventEmitter, NullEventEmitter
from ..events.models import DeliveryEvent
from ..handlers.base import EventHandler
from .errors import HandlerTimeoutError
from .models import NO_HANDLER, DispatchOutcome, EventEnvelope

logger = logging.getLogger(__name__)


class DispatchSupervisor:
    """Invokes handlers with failure isolation and an optional deadline.

    Attributes:
        timeout_seconds: Per-delivery handler deadline. None or 0 disables
                         the deadline.
        event_emitter: Receives one DeliveryEvent per delivery.
    """

    def __init__(
        self,
        timeout_seconds: Optional[float] = None,
        event_emitter: Optional[EventEmitter] = None,
    ):
        if timeout_seconds is not None and timeout_seconds < 0:
            raise ValueError("timeout_seconds cannot be negative")
        self.timeout_seconds = timeout_seconds or None
        self.event_emitter = event_emitter or NullEventEmitter()

    async def dispatch(
        self,
        envelope: EventEnvelope,
        handler: EventHandler,
    ) -> DispatchOutcome:
        """Run a handler for an envelope and report the outcome.

        Args:
            envelope: The parsed delivery.
            handler: The handler selected by the router.

        Returns:
            ACCEPTED if the handler completed, HANDLER_FAILED if it raised,
            TIMED_OUT if it exceeded the deadline.
        """
        handler_name = handler.name
        context = {**envelope.log_context(), "handler": handler_name}
        start = time.monotonic()

        logger.info("Dispatching webhook delivery", extra=context)

        task = asyncio.ensure_future(handler.handle(envelope))
        try:
            done, _ = await asyncio.wait({task}, timeout=self.timeout_seconds)
        except asyncio.CancelledError:
            task.cancel()
            raise

        # Only the supervisor's own deadline counts as a timeout. A
        # TimeoutError raised by the handler is an ordinary failure.
        if task not in done:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            logger.error(
                "Handler %s failed: %s",
                handler_name,
                HandlerTimeoutError(self.timeout_seconds),
                extra=context,
            )
            outcome = DispatchOutcome.timed_out(
                envelope,
                handler=handler_name,
                timeout_seconds=self.timeout_seconds,
            )
            await self._report(outcome, envelope.repository)
            return outcome

        try:
            task.result()
        except Exception as exc:
            logger.exception(
                "Handler %s failed: %s",
                handler_name,
                exc,
                extra=context,
            )
            outcome = DispatchOutcome.handler_failed(
                envelope,
                handler=handler_name,
                error=f"{type(exc).__name__}: {exc}",
                duration_seconds=time.monotonic() - start,
            )
        else:
            outcome = DispatchOutcome.accepted(
                envelope,
                handler=handler_name,
                duration_seconds=time.monotonic() - start,
            )

        await self._report(outcome, envelope.repository)
        return outcome

    async def accept_unregistered(self, envelope: EventEnvelope) -> DispatchOutcome:
        """Accept a delivery whose event type has no handler."""
        logger.debug(
            "No handler registered for event type %s",
            envelope.event_type,
            extra=envelope.log_context(),
        )
        outcome = DispatchOutcome.accepted(envelope, reason=NO_HANDLER)
        await self._report(outcome, envelope.repository)
        return outcome

    async def reject(
        self,
        reason: str,
        event_type: Optional[str] = None,
        delivery_id: Optional[str] = None,
    ) -> DispatchOutcome:
        """Report a delivery that failed authentication or parsing."""
        outcome = DispatchOutcome.rejected(
            reason,
            event_type=event_type,
            delivery_id=delivery_id,
        )
        await self._report(outcome, None)
        return outcome

    async def _report(
        self,
        outcome: DispatchOutcome,
        repository: Optional[str],
    ) -> None:
        event = DeliveryEvent.from_outcome(outcome, repository=repository)
        try:
            await self.event_emitter.emit(event)
        except Exception as e:
            logger.error(
                "Failed to emit delivery event: %s",
                str(e),
                extra={"delivery_id": outcome.delivery_id},
            )
